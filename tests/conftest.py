import pytest
import os
import sys
from pathlib import Path

# Add the application root directory to the Python path
root_dir = str(Path(__file__).parent.parent)
sys.path.insert(0, root_dir)

# Set testing environment variables before the application is imported
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ.setdefault("VTEX_SHA256_HASH", "test-query-hash")
os.environ.pop("WEBHOOK_URL", None)

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from pricewatch.core.config import Settings
from pricewatch.core.merchant_registry import MerchantConfig, MerchantRegistry
from pricewatch.models.database import Base
from pricewatch.services.catalog_store import CatalogStore

DISCO_URL = "https://www.disco.com.ar"
VEA_URL = "https://www.vea.com.ar"


def build_raw_entry(
    code="7790001000011",
    price=100.0,
    list_price=120.0,
    brand="Marolio",
    name="Aceite de girasol 1.5 L",
    product_id="1001",
    available_quantity=10,
    categories=("/Almacen/Aceites/",),
    with_images=True,
):
    """Raw productSuggestions entry as returned by a VTEX storefront."""
    return {
        "productId": product_id,
        "productName": name,
        "brand": brand,
        "linkText": f"producto-{code}",
        "description": f"{name} description",
        "categories": list(categories),
        "priceRange": {
            "sellingPrice": {"lowPrice": price, "highPrice": price},
            "listPrice": {"lowPrice": list_price, "highPrice": list_price},
        },
        "items": [
            {
                "itemId": product_id,
                "ean": code,
                "measurementUnit": "un",
                "unitMultiplier": 1,
                "images": [{"imageUrl": f"https://img.example.com/{code}.jpg"}] if with_images else [],
                "sellers": [
                    {
                        "sellerId": "1",
                        "sellerDefault": True,
                        "commertialOffer": {
                            "Price": price,
                            "PriceWithoutDiscount": list_price,
                            "AvailableQuantity": available_quantity,
                        },
                    }
                ],
            }
        ],
    }


class FakeVtexClient:
    """In-memory stand-in for VtexQueryClient."""

    def __init__(self, responses=None, lookups=None):
        self.responses = responses or {}
        self.lookups = lookups or {}
        self.calls = []

    async def search(self, base_url, term, count=50):
        self.calls.append((base_url, term, count))
        value = self.responses.get(term, [])
        if isinstance(value, Exception):
            raise value
        return value

    async def lookup_by_code(self, base_url, code):
        self.calls.append((base_url, code, 1))
        value = self.lookups.get(code)
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def raw_entry():
    return build_raw_entry


@pytest.fixture
def fake_client_class():
    return FakeVtexClient


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return CatalogStore(session_factory)


@pytest.fixture
def settings():
    return Settings(
        vtex_sha256_hash="test-query-hash",
        webhook_url=None,
        term_delay_seconds=0,
        refresh_delay_seconds=0,
    )


@pytest.fixture
def registry():
    return MerchantRegistry(
        [
            MerchantConfig("disco", "Disco", DISCO_URL, is_master=True, categories=["Aceites"]),
            MerchantConfig("vea", "Vea", VEA_URL, categories=["Aceites"]),
        ],
        product_codes=["7790001000011"],
    )


# Clean up test database after tests
@pytest.fixture(autouse=True)
def cleanup_test_db():
    yield
    test_db = Path("test.db")
    if test_db.exists():
        test_db.unlink()
