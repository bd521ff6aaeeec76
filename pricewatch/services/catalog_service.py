from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload
from typing import Any, Dict, List, Optional
from pricewatch.models.database import Merchant, MerchantProduct, Product
from pricewatch.core.logging_config import get_logger
import math

logger = get_logger(__name__)


def _price_entry(mp: MerchantProduct) -> Dict[str, Any]:
    return {
        "merchant": mp.merchant.name if mp.merchant else None,
        "price": mp.price,
        "list_price": mp.list_price,
    }


def _min_available_price(merchant_products: List[MerchantProduct]) -> Optional[float]:
    prices = [mp.price for mp in merchant_products if mp.is_available and mp.price]
    return min(prices) if prices else None


class CatalogQueryService:
    """Read side of the catalog."""

    def __init__(self, db: Session):
        self.db = db

    def get_product_detail(self, code: str) -> Optional[Dict[str, Any]]:
        """Product with every merchant snapshot and its price history, newest first."""
        product = (
            self.db.query(Product)
            .options(
                selectinload(Product.merchant_products).options(
                    joinedload(MerchantProduct.merchant),
                    selectinload(MerchantProduct.price_history),
                )
            )
            .filter(Product.code == code)
            .first()
        )
        if product is None:
            return None

        merchants = []
        for mp in product.merchant_products:
            merchants.append({
                "name": mp.merchant.name if mp.merchant else None,
                "price": mp.price,
                "list_price": mp.list_price,
                "reference_price": mp.reference_price,
                "reference_unit": mp.reference_unit,
                "is_available": mp.is_available,
                "product_url": mp.product_url,
                "last_checked_at": mp.last_checked_at,
                "price_history": [
                    {"price": entry.price, "list_price": entry.list_price, "date": entry.observed_at}
                    for entry in mp.price_history
                ],
            })

        min_price = _min_available_price(product.merchant_products)
        cheapest_at = next(
            (m["name"] for m in merchants if m["is_available"] and min_price is not None and m["price"] == min_price),
            None,
        )

        return {
            "code": product.code,
            "name": product.name,
            "description": product.description,
            "brand": product.brand,
            "image_url": product.image_url,
            "images": product.image_list,
            "category": product.category,
            "product_url": product.product_url,
            "merchants": merchants,
            "min_price": min_price,
            "cheapest_at": cheapest_at,
        }

    def search_products(self, query: str, page: int = 1, limit: int = 20) -> Dict[str, Any]:
        """Case-insensitive match on name or brand, ordered by name."""
        page = max(page, 1)
        limit = max(limit, 1)
        pattern = f"%{query.lower()}%"
        search_filter = or_(func.lower(Product.name).like(pattern), func.lower(Product.brand).like(pattern))

        total = self.db.query(func.count(Product.code)).filter(search_filter).scalar() or 0
        products = (
            self.db.query(Product)
            .options(selectinload(Product.merchant_products).joinedload(MerchantProduct.merchant))
            .filter(search_filter)
            .order_by(Product.name.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        logger.debug(f"Search '{query}': {total} matches")

        return {
            "products": [
                {
                    "code": p.code,
                    "name": p.name,
                    "brand": p.brand,
                    "category": p.category,
                    "image_url": p.image_url,
                    "prices": [_price_entry(mp) for mp in p.merchant_products if mp.is_available],
                    "min_price": _min_available_price(p.merchant_products),
                }
                for p in products
            ],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit),
            },
        }

    def list_categories(self) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(Product.category, func.count(Product.code))
            .filter(Product.category.isnot(None))
            .group_by(Product.category)
            .order_by(Product.category.asc())
            .all()
        )
        return [{"name": name, "count": count} for name, count in rows]

    def get_cheapest(self, code: str) -> Optional[Dict[str, Any]]:
        """Cheapest available merchant for a product and the savings against the most expensive one."""
        offers = (
            self.db.query(MerchantProduct)
            .options(joinedload(MerchantProduct.merchant))
            .filter(MerchantProduct.product_code == code)
            .filter(MerchantProduct.is_available.is_(True))
            .filter(MerchantProduct.price.isnot(None))
            .order_by(MerchantProduct.price.asc())
            .all()
        )
        if not offers:
            return None

        cheapest = offers[0]
        max_price = max(mp.price for mp in offers)
        savings = max_price - cheapest.price
        return {
            "merchant": cheapest.merchant.name if cheapest.merchant else None,
            "price": cheapest.price,
            "list_price": cheapest.list_price,
            "product_url": cheapest.product_url,
            "max_price": max_price,
            "savings": round(savings, 2) if savings > 0 else 0,
            "savings_percent": round(savings / max_price * 100, 1) if savings > 0 and max_price else 0,
            "compared_to": len(offers),
        }

    def list_merchants(self) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(Merchant.name, func.count(MerchantProduct.id))
            .outerjoin(MerchantProduct, MerchantProduct.merchant_id == Merchant.id)
            .group_by(Merchant.id, Merchant.name)
            .order_by(Merchant.name.asc())
            .all()
        )
        return [{"name": name, "product_count": count} for name, count in rows]
