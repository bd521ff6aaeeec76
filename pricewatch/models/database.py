from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Boolean, Text, ForeignKey,
    UniqueConstraint, create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from datetime import datetime, timezone
from pricewatch.core.config import DatabaseSettings
import json
import os

# Create database engine from DATABASE_URL (environment or .env)
SQLALCHEMY_DATABASE_URL = DatabaseSettings().database_url

def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}

engine = create_engine(SQLALCHEMY_DATABASE_URL, **_engine_kwargs(SQLALCHEMY_DATABASE_URL))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def get_db():
    """FastAPI dependency yielding a session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db(bind=None):
    """Create all tables."""
    bind = bind or engine
    if str(bind.url).startswith("sqlite:///") and not str(bind.url).startswith("sqlite:///:memory:"):
        db_path = os.path.dirname(bind.url.database or "")
        if db_path:
            os.makedirs(db_path, exist_ok=True)
    Base.metadata.create_all(bind=bind)


class Merchant(Base):
    __tablename__ = "merchants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)

    merchant_products = relationship("MerchantProduct", back_populates="merchant")


class Product(Base):
    """Canonical catalog entry, one per product code."""
    __tablename__ = "products"

    code = Column(String, primary_key=True, index=True)
    name = Column(String)
    description = Column(Text)
    brand = Column(String, index=True)
    image_url = Column(String)
    images = Column(Text)  # JSON encoded list of image URLs
    category = Column(String, index=True)
    product_url = Column(String)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    merchant_products = relationship("MerchantProduct", back_populates="product")

    @property
    def image_list(self):
        if not self.images:
            return []
        try:
            return json.loads(self.images)
        except ValueError:
            return []


class MerchantProduct(Base):
    """Current price snapshot of a product at one merchant."""
    __tablename__ = "merchant_products"
    __table_args__ = (
        UniqueConstraint("product_code", "merchant_id", name="uq_merchant_product"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_code = Column(String, ForeignKey("products.code"), nullable=False, index=True)
    merchant_id = Column(Integer, ForeignKey("merchants.id"), nullable=False, index=True)
    external_id = Column(String)
    product_url = Column(String)
    price = Column(Float)
    list_price = Column(Float)
    reference_price = Column(Float)
    reference_unit = Column(String)
    is_available = Column(Boolean, default=True)
    last_checked_at = Column(DateTime(timezone=True), nullable=True, index=True)

    product = relationship("Product", back_populates="merchant_products")
    merchant = relationship("Merchant", back_populates="merchant_products")
    price_history = relationship(
        "PriceHistoryEntry",
        back_populates="merchant_product",
        order_by="PriceHistoryEntry.observed_at.desc()",
    )


class PriceHistoryEntry(Base):
    """Immutable price observation."""
    __tablename__ = "price_history"

    id = Column(Integer, primary_key=True, index=True)
    merchant_product_id = Column(Integer, ForeignKey("merchant_products.id"), nullable=False, index=True)
    price = Column(Float, nullable=False)
    list_price = Column(Float)
    observed_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    merchant_product = relationship("MerchantProduct", back_populates="price_history")
