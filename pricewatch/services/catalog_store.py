from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from contextlib import contextmanager
from pricewatch.core.exceptions import PersistenceError
from pricewatch.models.database import (
    SessionLocal, Merchant, Product, MerchantProduct, PriceHistoryEntry, utcnow,
)
from pricewatch.schemas.product_schemas import NormalizedProduct
import json
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaleRecord:
    """A merchant snapshot selected for a price refresh."""
    id: int
    product_code: str
    price: Optional[float]
    merchant_id: int
    merchant_name: str
    last_checked_at: Optional[datetime] = None


class CatalogStore:
    """Persistence operations over products, merchant snapshots and price history.

    Every write is keyed (product code, or product code + merchant) so that
    repeated or concurrent writers converge on the same rows. Price history
    rows are only ever inserted.
    """

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or SessionLocal

    @contextmanager
    def session(self):
        """Transactional session; SQLAlchemy errors surface as PersistenceError."""
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def get_or_create_merchant(self, name: str) -> int:
        """Find or create a merchant by name and return its id."""
        try:
            with self.session() as db:
                merchant = db.query(Merchant).filter(Merchant.name == name).first()
                if merchant:
                    return merchant.id
                merchant = Merchant(name=name)
                db.add(merchant)
                db.flush()
                logger.info(f"Created merchant {name} (id={merchant.id})")
                return merchant.id
        except PersistenceError as e:
            # Another writer created it between our select and insert
            if not isinstance(e.__cause__, IntegrityError):
                raise
            with self.session() as db:
                merchant = db.query(Merchant).filter(Merchant.name == name).first()
                if merchant:
                    return merchant.id
                logger.error(f"Failed to find merchant {name} after IntegrityError")
                raise

    def product_exists(self, code: str, db: Session = None) -> bool:
        if db is None:
            with self.session() as db:
                return self.product_exists(code, db)
        return db.query(Product.code).filter(Product.code == code).first() is not None

    def upsert_product(self, db: Session, product: NormalizedProduct) -> Product:
        """Create or overwrite the canonical catalog entry for a product code."""
        row = db.query(Product).filter(Product.code == product.code).first()
        if row is None:
            row = Product(code=product.code)
            db.add(row)
            logger.debug(f"Creating product {product.code}")

        row.name = product.name
        row.description = product.description or product.name
        row.brand = product.brand
        row.image_url = product.image
        row.images = json.dumps(product.images) if product.images else None
        row.category = product.category
        row.product_url = product.link
        return row

    def upsert_merchant_product(
        self, db: Session, product: NormalizedProduct, merchant_id: int, observed_at: datetime
    ) -> MerchantProduct:
        """Create or refresh the snapshot of a product at a merchant."""
        row = (
            db.query(MerchantProduct)
            .filter(MerchantProduct.product_code == product.code)
            .filter(MerchantProduct.merchant_id == merchant_id)
            .first()
        )
        if row is None:
            row = MerchantProduct(product_code=product.code, merchant_id=merchant_id)
            db.add(row)

        self._apply_snapshot(row, product, observed_at)
        db.flush()
        return row

    def append_price_history(
        self, db: Session, merchant_product_id: int, price: float, list_price: Optional[float], observed_at: datetime
    ) -> PriceHistoryEntry:
        entry = PriceHistoryEntry(
            merchant_product_id=merchant_product_id,
            price=price,
            list_price=list_price,
            observed_at=observed_at,
        )
        db.add(entry)
        return entry

    def select_stale(self, limit: int = 500) -> List[StaleRecord]:
        """Snapshots ordered by staleness: never checked first, then oldest check."""
        with self.session() as db:
            rows = (
                db.query(MerchantProduct, Merchant.name)
                .join(Merchant, MerchantProduct.merchant_id == Merchant.id)
                .order_by(
                    MerchantProduct.last_checked_at.isnot(None),
                    MerchantProduct.last_checked_at.asc(),
                    MerchantProduct.id.asc(),
                )
                .limit(limit)
                .all()
            )
            return [
                StaleRecord(
                    id=mp.id,
                    product_code=mp.product_code,
                    price=mp.price,
                    merchant_id=mp.merchant_id,
                    merchant_name=name,
                    last_checked_at=mp.last_checked_at,
                )
                for mp, name in rows
            ]

    def apply_refresh(
        self, merchant_product_id: int, product: NormalizedProduct, observed_at: datetime, price_changed: bool
    ) -> None:
        """
        Store the outcome of a point lookup.

        A changed price rewrites the snapshot and appends a history row; an
        unchanged price only touches availability and the check timestamp.
        """
        with self.session() as db:
            row = db.query(MerchantProduct).filter(MerchantProduct.id == merchant_product_id).first()
            if row is None:
                raise PersistenceError(f"Merchant product {merchant_product_id} not found")

            if price_changed:
                self._apply_snapshot(row, product, observed_at)
                self.append_price_history(db, row.id, product.price, product.list_price, observed_at)
            else:
                row.is_available = product.is_available
                row.last_checked_at = observed_at

    def mark_unavailable(self, merchant_product_id: int, observed_at: datetime) -> None:
        with self.session() as db:
            updated = (
                db.query(MerchantProduct)
                .filter(MerchantProduct.id == merchant_product_id)
                .update({"is_available": False, "last_checked_at": observed_at}, synchronize_session=False)
            )
            if not updated:
                raise PersistenceError(f"Merchant product {merchant_product_id} not found")

    @staticmethod
    def _apply_snapshot(row: MerchantProduct, product: NormalizedProduct, observed_at: datetime) -> None:
        row.external_id = product.external_id
        row.product_url = product.link
        row.price = product.price
        row.list_price = product.list_price
        row.reference_price = product.reference_price
        row.reference_unit = product.reference_unit
        row.is_available = product.is_available
        row.last_checked_at = observed_at or utcnow()
