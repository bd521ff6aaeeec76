from dataclasses import dataclass, field
from typing import Dict, List, Optional
from pricewatch.core.categories import DETAILED_CATEGORIES
from pricewatch.core.exceptions import UnknownSourceError, InvalidModeError
import logging

logger = logging.getLogger(__name__)

SYNC_MODES = ("categories", "codes")

@dataclass(frozen=True)
class MerchantConfig:
    """A VTEX storefront that can be synchronized."""
    key: str
    name: str
    base_url: str
    is_master: bool = False
    categories: List[str] = field(default_factory=lambda: list(DETAILED_CATEGORIES))

    @property
    def label(self) -> str:
        return f"{self.name} (master)" if self.is_master else self.name


DEFAULT_MERCHANTS = [
    MerchantConfig("disco", "Disco", "https://www.disco.com.ar", is_master=True),
    MerchantConfig("carrefour", "Carrefour", "https://www.carrefour.com.ar"),
    MerchantConfig("jumbo", "Jumbo", "https://www.jumbo.com.ar"),
    MerchantConfig("vea", "Vea", "https://www.vea.com.ar"),
    MerchantConfig("dia", "Dia", "https://diaonline.supermercadosdia.com.ar"),
    MerchantConfig("masonline", "Masonline", "https://www.masonline.com.ar"),
    MerchantConfig("farmacity", "Farmacity", "https://www.farmacity.com"),
]


class MerchantRegistry:
    """Registry of the merchants known to the sync layer."""

    def __init__(self, merchants: Optional[List[MerchantConfig]] = None, product_codes: Optional[List[str]] = None):
        self._merchants: Dict[str, MerchantConfig] = {}
        self.product_codes = list(product_codes or [])
        for merchant in merchants if merchants is not None else DEFAULT_MERCHANTS:
            self.register(merchant)

    def register(self, merchant: MerchantConfig) -> None:
        """
        Register a merchant.

        Raises:
            ValueError: If the key is empty or a second master is registered.
        """
        if not merchant.key:
            raise ValueError("Merchant key cannot be empty")
        if not merchant.base_url:
            raise ValueError(f"Merchant {merchant.key} has no base URL")
        if merchant.is_master:
            current = self.master
            if current is not None and current.key != merchant.key.lower():
                raise ValueError(f"Master merchant already registered: {current.key}")
        self._merchants[merchant.key.lower().strip()] = merchant
        logger.debug(f"Registered merchant {merchant.key}")

    def get(self, key: str) -> MerchantConfig:
        """
        Get a merchant by key.

        Raises:
            UnknownSourceError: If the merchant is not registered.
        """
        merchant = self._merchants.get((key or "").lower().strip())
        if merchant is None:
            supported = ", ".join(self.keys())
            raise UnknownSourceError(f"Unknown merchant: {key}. Supported merchants are: {supported}")
        return merchant

    def by_name(self, name: str) -> Optional[MerchantConfig]:
        """Find a merchant by its display name (case-insensitive)."""
        if not name:
            return None
        for merchant in self._merchants.values():
            if merchant.name.lower() == name.lower():
                return merchant
        return None

    def keys(self) -> List[str]:
        return list(self._merchants.keys())

    def all(self) -> List[MerchantConfig]:
        """All merchants, master first."""
        return sorted(self._merchants.values(), key=lambda m: not m.is_master)

    @property
    def master(self) -> Optional[MerchantConfig]:
        for merchant in self._merchants.values():
            if merchant.is_master:
                return merchant
        return None

    def terms_for(self, merchant: MerchantConfig, mode: str) -> List[str]:
        """
        Get the search terms for a sync pass.

        Args:
            merchant: Merchant being synchronized.
            mode: "categories" or "codes".

        Raises:
            InvalidModeError: If the mode is not supported.
        """
        validate_mode(mode)
        if mode == "codes":
            return list(self.product_codes)
        return list(merchant.categories)


def validate_mode(mode: str) -> str:
    if mode not in SYNC_MODES:
        raise InvalidModeError(f"Invalid mode \"{mode}\". Valid options: {', '.join(SYNC_MODES)}")
    return mode
