"""
Refresh prices of the stalest merchant snapshots.

Usage:
    python scripts/update_prices.py [--limit 500]
"""
from pricewatch.clients.vtex_client import VtexQueryClient
from pricewatch.core.config import get_settings
from pricewatch.core.exceptions import PriceWatchError
from pricewatch.core.logging_config import configure_logging
from pricewatch.core.merchant_registry import MerchantRegistry
from pricewatch.models.database import init_db
from pricewatch.services.catalog_store import CatalogStore
from pricewatch.services.price_refresh import PriceRefreshScheduler
import argparse
import asyncio
import logging
import sys

logger = logging.getLogger(__name__)


async def main(limit: int) -> int:
    settings = get_settings()
    configure_logging(settings.debug)
    init_db()

    async with VtexQueryClient(settings.vtex_sha256_hash, timeout=settings.request_timeout_seconds) as client:
        scheduler = PriceRefreshScheduler(
            client,
            CatalogStore(),
            MerchantRegistry(product_codes=settings.product_codes),
            batch_limit=limit,
            group_size=settings.refresh_group_size,
            delay_seconds=settings.refresh_delay_seconds,
            epsilon=settings.price_change_epsilon,
            excluded_brands=settings.excluded_brands,
        )
        result = await scheduler.run()

    logger.info(f"Summary: {result.summary()}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Refresh stale merchant prices")
    parser.add_argument("--limit", type=int, default=None, help="Records per batch (default from settings)")
    args = parser.parse_args()

    try:
        limit = args.limit or get_settings().refresh_batch_limit
        sys.exit(asyncio.run(main(limit)))
    except PriceWatchError as e:
        logger.error(f"{e}")
        sys.exit(2)
