"""Mapping from raw VTEX catalog entries to canonical products.

The mapping is pure: it reads nothing but its arguments and never looks at
the clock, so the same raw entry always produces the same projection.
"""
from typing import Any, Dict, Iterable, Optional
from pricewatch.core.config import DEFAULT_EXCLUDED_BRANDS
from pricewatch.schemas.product_schemas import (
    NormalizedProduct,
    NormalizationResult,
    NormalizationSkip,
    SkipReason,
)


def _select_seller(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    sellers = item.get("sellers") or []
    for seller in sellers:
        if seller.get("sellerDefault"):
            return seller
    return sellers[0] if sellers else None


def _to_float(value) -> Optional[float]:
    if value in (None, "", "None"):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_product(
    raw: Dict[str, Any],
    base_url: str,
    source: str,
    excluded_brands: Iterable[str] = DEFAULT_EXCLUDED_BRANDS,
) -> NormalizationResult:
    """
    Normalize one raw catalog entry.

    Args:
        raw: Entry from ``data.productSuggestions.products``.
        base_url: Storefront base URL, used to build the product link.
        source: Merchant key recorded on the projection.
        excluded_brands: Private-label brands to discard (case-insensitive).

    Returns:
        A NormalizedProduct, or a NormalizationSkip naming why the entry
        was discarded.
    """
    external_id = raw.get("productId")
    items = raw.get("items") or []
    if not items:
        return NormalizationSkip(SkipReason.NO_ITEMS, external_id)

    item = items[0]
    images = [img.get("imageUrl") for img in (item.get("images") or []) if img.get("imageUrl")]
    if not images:
        return NormalizationSkip(SkipReason.NO_IMAGES, external_id)

    price_range = raw.get("priceRange") or {}
    if not price_range.get("sellingPrice"):
        return NormalizationSkip(SkipReason.NO_PRICE_RANGE, external_id)

    code = item.get("ean")
    if not code:
        return NormalizationSkip(SkipReason.NO_CODE, external_id)

    brand = raw.get("brand")
    excluded = {b.lower() for b in excluded_brands}
    if brand and brand.strip().lower() in excluded:
        return NormalizationSkip(SkipReason.EXCLUDED_BRAND, external_id)

    seller = _select_seller(item)
    offer = seller.get("commertialOffer") if seller else None

    selling_price = _to_float(offer.get("Price")) if offer else None
    if selling_price is not None:
        list_price = _to_float(offer.get("PriceWithoutDiscount")) or selling_price
    else:
        selling_price = _to_float(price_range["sellingPrice"].get("lowPrice"))
        list_price = _to_float((price_range.get("listPrice") or {}).get("lowPrice")) or selling_price

    if selling_price is None:
        return NormalizationSkip(SkipReason.NO_PRICE_RANGE, external_id)

    reference_price = None
    unit_multiplier = _to_float(item.get("unitMultiplier"))
    if unit_multiplier and unit_multiplier > 0:
        reference_price = selling_price / unit_multiplier

    is_available = True
    if offer:
        is_available = (_to_float(offer.get("AvailableQuantity")) or 0) > 0

    clean_base_url = base_url.rstrip("/")
    link_text = raw.get("linkText")

    return NormalizedProduct(
        code=str(code),
        external_id=str(external_id) if external_id is not None else None,
        source=source,
        name=raw.get("productName"),
        link=f"{clean_base_url}/{link_text}/p" if link_text else None,
        image=images[0],
        images=images,
        price=selling_price,
        list_price=list_price,
        reference_price=reference_price,
        reference_unit=item.get("measurementUnit"),
        is_available=is_available,
        brand=brand,
        categories=list(raw.get("categories") or []),
        description=raw.get("description"),
    )
