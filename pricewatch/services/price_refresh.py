from typing import Callable, Iterable, List
from datetime import datetime
from pricewatch.clients.vtex_client import VtexQueryClient
from pricewatch.core.config import DEFAULT_EXCLUDED_BRANDS
from pricewatch.core.exceptions import FetchError, PersistenceError
from pricewatch.core.merchant_registry import MerchantRegistry
from pricewatch.models.database import utcnow
from pricewatch.schemas.product_schemas import NormalizedProduct, RefreshResult
from pricewatch.services.catalog_store import CatalogStore, StaleRecord
from pricewatch.services.normalizer import normalize_product
import asyncio
import logging
import time

logger = logging.getLogger(__name__)

# Per-record outcomes
UPDATED = "updated"
PRICE_CHANGED = "price_changed"
NOT_FOUND = "not_found"
ERRORED = "errored"


def chunk(records: List, size: int) -> List[List]:
    return [records[i:i + size] for i in range(0, len(records), size)]


def price_has_changed(old_price, new_price, epsilon: float = 0.01) -> bool:
    """True when the absolute difference exceeds epsilon. A missing old price counts as a change."""
    if old_price is None:
        return True
    return abs(float(new_price) - float(old_price)) > epsilon


class PriceRefreshScheduler:
    """Re-checks the stalest merchant snapshots for price drift."""

    def __init__(
        self,
        client: VtexQueryClient,
        store: CatalogStore,
        registry: MerchantRegistry,
        batch_limit: int = 500,
        group_size: int = 10,
        delay_seconds: float = 0.5,
        epsilon: float = 0.01,
        excluded_brands: Iterable[str] = DEFAULT_EXCLUDED_BRANDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        if group_size < 1:
            raise ValueError("group_size must be at least 1")
        self.client = client
        self.store = store
        self.registry = registry
        self.batch_limit = batch_limit
        self.group_size = group_size
        self.delay_seconds = delay_seconds
        self.epsilon = epsilon
        self.excluded_brands = list(excluded_brands)
        self.clock = clock

    async def refresh_record(self, record: StaleRecord) -> str:
        """Look up one snapshot by code and store the outcome."""
        merchant = self.registry.by_name(record.merchant_name)
        if merchant is None:
            logger.warning(f"No base URL configured for {record.merchant_name} (id={record.merchant_id})")
            return ERRORED

        try:
            raw = await self.client.lookup_by_code(merchant.base_url, record.product_code)
        except FetchError as e:
            logger.warning(f"Lookup failed for {record.product_code} at {merchant.key}: {e}")
            return ERRORED

        product = None
        if raw is not None:
            result = normalize_product(raw, merchant.base_url, merchant.key, self.excluded_brands)
            if isinstance(result, NormalizedProduct):
                product = result

        observed_at = self.clock()
        try:
            if product is None:
                logger.info(f"{merchant.key} | {record.product_code}: not found, marking unavailable")
                self.store.mark_unavailable(record.id, observed_at)
                return NOT_FOUND

            changed = price_has_changed(record.price, product.price, self.epsilon)
            self.store.apply_refresh(record.id, product, observed_at, changed)
        except PersistenceError as e:
            logger.error(f"Error updating merchant product {record.id}: {e}")
            return ERRORED

        if changed:
            logger.info(f"{merchant.key} | {record.product_code}: price {record.price} -> {product.price}")
            return PRICE_CHANGED
        logger.debug(f"{merchant.key} | {record.product_code}: price unchanged ({record.price})")
        return UPDATED

    async def run(self) -> RefreshResult:
        """
        Refresh one batch of stale snapshots.

        Groups of ``group_size`` records are looked up in parallel; every
        lookup in a group settles before the next group starts.
        """
        started = time.monotonic()
        records = self.store.select_stale(self.batch_limit)
        result = RefreshResult(processed=len(records))

        if not records:
            logger.info("No merchant products to refresh")
            result.completed_at = self.clock()
            return result

        groups = chunk(records, self.group_size)
        logger.info(f"Refreshing {len(records)} merchant products in {len(groups)} groups")

        for index, group in enumerate(groups):
            group_started = time.monotonic()
            outcomes = await asyncio.gather(
                *(self.refresh_record(record) for record in group),
                return_exceptions=True,
            )

            for record, outcome in zip(group, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"Unexpected error refreshing {record.product_code}: {outcome}")
                    result.errored += 1
                elif outcome == PRICE_CHANGED:
                    result.updated += 1
                    result.price_changed += 1
                elif outcome == UPDATED:
                    result.updated += 1
                elif outcome == NOT_FOUND:
                    result.unavailable += 1
                else:
                    result.errored += 1

            logger.info(f"Group {index + 1}/{len(groups)} done in {time.monotonic() - group_started:.2f}s")

            if index < len(groups) - 1 and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)

        result.elapsed_seconds = round(time.monotonic() - started, 3)
        result.completed_at = self.clock()
        logger.info(
            f"Refresh completed: {result.updated} updated, {result.price_changed} price changes, "
            f"{result.unavailable} unavailable, {result.errored} errors in {result.elapsed_seconds}s"
        )
        return result
