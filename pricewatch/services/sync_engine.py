from typing import Callable, Dict, Iterable, List
from datetime import datetime
from pricewatch.clients.vtex_client import VtexQueryClient
from pricewatch.core.config import DEFAULT_EXCLUDED_BRANDS
from pricewatch.core.exceptions import FetchError
from pricewatch.core.merchant_registry import MerchantConfig
from pricewatch.models.database import utcnow
from pricewatch.schemas.product_schemas import NormalizedProduct, SyncResult
from pricewatch.services.catalog_store import CatalogStore
from pricewatch.services.normalizer import normalize_product
from pricewatch.services.save_policy import NOT_IN_MASTER, SavePolicy
import asyncio
import logging

logger = logging.getLogger(__name__)


class CatalogSyncEngine:
    """Runs one sync pass over a merchant's search terms."""

    def __init__(
        self,
        client: VtexQueryClient,
        store: CatalogStore,
        policy: SavePolicy,
        delay_seconds: float = 0.2,
        excluded_brands: Iterable[str] = DEFAULT_EXCLUDED_BRANDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.client = client
        self.store = store
        self.policy = policy
        self.delay_seconds = delay_seconds
        self.excluded_brands = list(excluded_brands)
        self.clock = clock

    async def fetch_term(self, merchant: MerchantConfig, term: str, count: int) -> List[NormalizedProduct]:
        """Fetch and normalize one term. Raises FetchError."""
        raw_entries = await self.client.search(merchant.base_url, term, count)
        products = []
        for raw in raw_entries:
            result = normalize_product(raw, merchant.base_url, merchant.key, self.excluded_brands)
            if isinstance(result, NormalizedProduct):
                products.append(result)
            else:
                logger.debug(f"Skipped entry {result.external_id} for '{term}': {result.reason.value}")
        return products

    async def run(self, merchant: MerchantConfig, terms: List[str], count: int = 50) -> SyncResult:
        """
        Process every term in order.

        Products are deduplicated by code across the whole pass; the first
        occurrence wins and later duplicates are dropped without being saved.
        A failed term contributes zero products and the pass continues.

        Args:
            merchant: Merchant to synchronize.
            terms: Category names or product codes, processed sequentially.
            count: Results requested per term.

        Returns:
            SyncResult with unique, saved and skipped counts.
        """
        logger.info(f"Starting sync for {merchant.label}: {len(terms)} terms")

        try:
            merchant_id = self.store.get_or_create_merchant(merchant.name)
        except Exception as e:
            logger.error(f"Could not resolve merchant id for {merchant.name}: {e}")
            return SyncResult(
                success=False,
                source=merchant.key,
                completed_at=self.clock(),
                error=f"Could not resolve merchant {merchant.name}",
            )

        seen: Dict[str, NormalizedProduct] = {}
        failed_terms: List[str] = []
        saved_count = 0
        skipped_count = 0

        for index, term in enumerate(terms):
            logger.info(f"[{index + 1}/{len(terms)}] {merchant.key}: '{term}'")

            try:
                products = await self.fetch_term(merchant, term, count)
            except FetchError as e:
                logger.warning(f"Error fetching '{term}' from {merchant.key}: {e}")
                failed_terms.append(term)
                products = []

            for product in products:
                if product.code in seen:
                    continue
                seen[product.code] = product

                result = await self.policy.save(product, merchant_id, self.clock())
                if result.saved:
                    saved_count += 1
                elif result.reason == NOT_IN_MASTER:
                    skipped_count += 1

            logger.debug(f"'{term}': {len(products)} products, {len(seen)} unique so far")

            if index < len(terms) - 1 and self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)

        result = SyncResult(
            success=True,
            source=merchant.key,
            total_unique_products=len(seen),
            saved_count=saved_count,
            skipped_count=skipped_count,
            failed_terms=failed_terms,
            completed_at=self.clock(),
            products=list(seen.values()),
        )
        logger.info(
            f"Sync completed for {merchant.label}: {result.total_unique_products} unique, "
            f"{saved_count} saved, {skipped_count} not in master, {len(failed_terms)} failed terms"
        )
        return result
