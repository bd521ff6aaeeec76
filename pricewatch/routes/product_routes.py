from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Any, Dict, List
from pricewatch.core.dependencies import get_catalog_service, get_registry
from pricewatch.core.merchant_registry import MerchantRegistry
from pricewatch.services.catalog_service import CatalogQueryService
from pricewatch.core.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["catalog"])

@router.get("/products/search")
def search_products(
    q: str = Query(..., min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: CatalogQueryService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    """Search products by name or brand."""
    return service.search_products(q, page=page, limit=limit)

@router.get("/products/{code}")
def get_product(code: str, service: CatalogQueryService = Depends(get_catalog_service)) -> Dict[str, Any]:
    """Get a product with its prices at every merchant and their history."""
    product = service.get_product_detail(code)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product not found: {code}")
    return product

@router.get("/products/{code}/cheapest")
def get_cheapest(code: str, service: CatalogQueryService = Depends(get_catalog_service)) -> Dict[str, Any]:
    """Get the cheapest merchant currently offering a product."""
    cheapest = service.get_cheapest(code)
    if cheapest is None:
        raise HTTPException(status_code=404, detail=f"No available prices for product {code}")
    return cheapest

@router.get("/categories")
def list_categories(service: CatalogQueryService = Depends(get_catalog_service)) -> Dict[str, List[Dict[str, Any]]]:
    return {"categories": service.list_categories()}

@router.get("/merchants")
def list_merchants(
    registry: MerchantRegistry = Depends(get_registry),
    service: CatalogQueryService = Depends(get_catalog_service),
) -> Dict[str, Any]:
    """Configured merchants with the number of products stored for each."""
    counts = {row["name"]: row["product_count"] for row in service.list_merchants()}
    return {
        "merchants": [
            {
                "key": merchant.key,
                "name": merchant.name,
                "base_url": merchant.base_url,
                "is_master": merchant.is_master,
                "product_count": counts.get(merchant.name, 0),
            }
            for merchant in registry.all()
        ]
    }
