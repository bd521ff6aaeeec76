"""
Populate the catalog from the configured merchants.

Usage:
    python scripts/populate_db.py all              - every merchant, master first
    python scripts/populate_db.py disco            - a single merchant
    python scripts/populate_db.py carrefour codes  - a single merchant in codes mode
"""
from pricewatch.clients.vtex_client import VtexQueryClient
from pricewatch.core.config import get_settings
from pricewatch.core.exceptions import PriceWatchError
from pricewatch.core.logging_config import configure_logging
from pricewatch.core.merchant_registry import SYNC_MODES, MerchantConfig, MerchantRegistry
from pricewatch.models.database import init_db
from pricewatch.services.catalog_store import CatalogStore
from pricewatch.services.save_policy import policy_for
from pricewatch.services.sync_engine import CatalogSyncEngine
import argparse
import asyncio
import logging
import sys
import time

logger = logging.getLogger(__name__)


async def run_merchant(merchant: MerchantConfig, mode: str, registry, client, store, settings) -> bool:
    logger.info("=" * 50)
    logger.info(f"Running: {merchant.label} [mode: {mode}]")
    logger.info("=" * 50)

    engine = CatalogSyncEngine(
        client,
        store,
        policy_for(merchant.is_master, store),
        delay_seconds=settings.term_delay_seconds,
        excluded_brands=settings.excluded_brands,
    )
    count = settings.category_result_count if mode == "categories" else 1
    result = await engine.run(merchant, registry.terms_for(merchant, mode), count)

    if result.success:
        logger.info(f"{merchant.name}: {result.total_unique_products} products, {result.saved_count} saved")
    else:
        logger.error(f"Error in {merchant.name}: {result.error}")
    return result.success


async def main(target: str, mode: str) -> int:
    settings = get_settings()
    configure_logging(settings.debug)
    init_db()

    registry = MerchantRegistry(product_codes=settings.product_codes)
    store = CatalogStore()
    merchants = registry.all() if target == "all" else [registry.get(target)]

    started = time.monotonic()
    results = {}
    async with VtexQueryClient(settings.vtex_sha256_hash, timeout=settings.request_timeout_seconds) as client:
        for merchant in merchants:
            results[merchant.key] = await run_merchant(merchant, mode, registry, client, store, settings)

    logger.info("=" * 50)
    logger.info(f"Finished in {(time.monotonic() - started) / 60:.2f} min")
    for key, success in results.items():
        logger.info(f"{'OK    ' if success else 'FAILED'} {key}")
    return 0 if all(results.values()) else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Populate the catalog from VTEX merchants")
    parser.add_argument("target", help="Merchant key or 'all'")
    parser.add_argument("mode", nargs="?", default="categories", choices=SYNC_MODES)
    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(main(args.target.lower(), args.mode)))
    except PriceWatchError as e:
        logger.error(f"{e}")
        sys.exit(2)
