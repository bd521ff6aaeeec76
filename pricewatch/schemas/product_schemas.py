from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from enum import Enum
from dataclasses import dataclass

# Products carried in a job result or webhook payload; the full list stays on SyncResult.
RESULT_PRODUCT_LIMIT = 100


class NormalizedProduct(BaseModel):
    """Canonical projection of one vendor catalog entry."""
    model_config = ConfigDict(frozen=True)

    code: str
    external_id: Optional[str] = None
    source: str
    name: Optional[str] = None
    link: Optional[str] = None
    image: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    price: float
    list_price: float
    reference_price: Optional[float] = None
    reference_unit: Optional[str] = None
    is_available: bool = True
    brand: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    description: Optional[str] = None

    @property
    def category(self) -> Optional[str]:
        return self.categories[0] if self.categories else None


class SkipReason(str, Enum):
    NO_ITEMS = "no_items"
    NO_IMAGES = "no_images"
    NO_PRICE_RANGE = "no_price_range"
    NO_CODE = "no_code"
    EXCLUDED_BRAND = "excluded_brand"


@dataclass(frozen=True)
class NormalizationSkip:
    """A raw entry that is deliberately not turned into a product."""
    reason: SkipReason
    external_id: Optional[str] = None


NormalizationResult = Union[NormalizedProduct, NormalizationSkip]


class SaveResult(BaseModel):
    saved: bool
    reason: Optional[str] = None


class SyncResult(BaseModel):
    """Terminal result of one sync pass over a merchant's terms."""
    success: bool
    source: str
    total_unique_products: int = 0
    saved_count: int = 0
    skipped_count: int = 0
    failed_terms: List[str] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
    products: List[NormalizedProduct] = Field(default_factory=list)
    error: Optional[str] = None

    def summary(self, product_limit: int = RESULT_PRODUCT_LIMIT) -> Dict[str, Any]:
        """Result payload with at most ``product_limit`` products."""
        data = self.model_dump(mode="json", exclude={"products"})
        data["products"] = [p.model_dump(mode="json") for p in self.products[:product_limit]]
        data["products_truncated"] = len(self.products) > product_limit
        return data


class RefreshResult(BaseModel):
    """Counters of one price refresh batch."""
    success: bool = True
    source: str = "price-refresh"
    processed: int = 0
    updated: int = 0
    price_changed: int = 0
    unavailable: int = 0
    errored: int = 0
    elapsed_seconds: float = 0.0
    completed_at: Optional[datetime] = None

    def summary(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
