"""Master/follower write policies applied to each normalized product."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from pricewatch.core.exceptions import PersistenceError
from pricewatch.models.database import utcnow
from pricewatch.schemas.product_schemas import NormalizedProduct, SaveResult
from pricewatch.services.catalog_store import CatalogStore
import logging
import traceback

logger = logging.getLogger(__name__)

NOT_IN_MASTER = "not_in_master"
DB_ERROR = "db_error"
EXCEPTION = "exception"


class SavePolicy(ABC):
    """Decides whether a product is written and whether it may enter the catalog."""

    name: str = ""

    def __init__(self, store: CatalogStore):
        self.store = store

    async def save(self, product: NormalizedProduct, merchant_id: int, observed_at: Optional[datetime] = None) -> SaveResult:
        """
        Persist one observation. Never raises.

        Returns:
            SaveResult with ``saved`` and, when not saved, a reason
            (``not_in_master``, ``db_error`` or ``exception``).
        """
        observed_at = observed_at or utcnow()
        try:
            return self._save(product, merchant_id, observed_at)
        except PersistenceError as e:
            logger.error(f"Database error saving {product.code}: {e}")
            return SaveResult(saved=False, reason=DB_ERROR)
        except Exception as e:
            logger.error(f"Error saving {product.code}: {e}")
            logger.debug(traceback.format_exc())
            return SaveResult(saved=False, reason=EXCEPTION)

    @abstractmethod
    def _save(self, product: NormalizedProduct, merchant_id: int, observed_at: datetime) -> SaveResult:
        pass

    def _record_observation(self, db, product: NormalizedProduct, merchant_id: int, observed_at: datetime) -> None:
        snapshot = self.store.upsert_merchant_product(db, product, merchant_id, observed_at)
        self.store.append_price_history(db, snapshot.id, product.price, product.list_price, observed_at)


class MasterSavePolicy(SavePolicy):
    """Writes the catalog entry, the merchant snapshot and a history row."""

    name = "master"

    def _save(self, product: NormalizedProduct, merchant_id: int, observed_at: datetime) -> SaveResult:
        with self.store.session() as db:
            self.store.upsert_product(db, product)
            db.flush()
            self._record_observation(db, product, merchant_id, observed_at)
        return SaveResult(saved=True)


class FollowerSavePolicy(SavePolicy):
    """Attaches observations only to products the master catalog already has."""

    name = "follower"

    def _save(self, product: NormalizedProduct, merchant_id: int, observed_at: datetime) -> SaveResult:
        with self.store.session() as db:
            if not self.store.product_exists(product.code, db):
                return SaveResult(saved=False, reason=NOT_IN_MASTER)
            self._record_observation(db, product, merchant_id, observed_at)
        return SaveResult(saved=True)


def policy_for(is_master: bool, store: CatalogStore) -> SavePolicy:
    return MasterSavePolicy(store) if is_master else FollowerSavePolicy(store)
