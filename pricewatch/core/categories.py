"""Search terms shared by the VTEX merchants."""

# Detailed categories, queried one by one during a category sync
DETAILED_CATEGORIES = [
    # Almacén
    'Aceites y Vinagres', 'Aderezos', 'Arroz y Legumbres', 'Conservas',
    'Desayuno y Merienda', 'Golosinas y Chocolates', 'Harinas', 'Panificados',
    'Para Preparar', 'Pastas Secas y Salsas', 'Sal, Pimienta y Especias',
    'Snacks', 'Sopas, Caldos y Puré',

    # Bebidas
    'A Base de Hierbas', 'Aguas', 'Aperitivos', 'Cervezas', 'Champagnes',
    'Energizantes', 'Bebidas Blancas', 'Gaseosas', 'Hielo', 'Isotónicas',
    'Jugos', 'Licores', 'Sidras', 'Vinos', 'Whiskys',

    # Frescos
    'Cremas', 'Dulce de Leche', 'Leches', 'Mantecas y Margarinas',
    'Pastas y Tapas', 'Quesos', 'Yogures',
    'Dulces', 'Encurtidos, Aceitunas y Pickles', 'Fiambres', 'Salchichas',
    'Pastas Frescas Simples', 'Pastas Frescas Rellenas', 'Salsa y Quesos',

    # Limpieza
    'Accesorios de Limpieza', 'Calzado', 'Cuidado Para La Ropa',
    'Desodorantes de Ambiente', 'Insecticidas', 'Lavandina', 'Limpieza de Baño',
    'Limpieza de Cocina', 'Limpieza de Pisos y Muebles', 'Papeles',

    # Perfumería
    'Cuidado Capilar', 'Cuidado de la Piel', 'Cuidado Oral', 'Cuidado Personal', 'Farmacia',
]
