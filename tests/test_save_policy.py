import pytest
from pricewatch.core.exceptions import PersistenceError
from pricewatch.models.database import MerchantProduct, PriceHistoryEntry, Product
from pricewatch.services.catalog_store import CatalogStore
from pricewatch.services.normalizer import normalize_product
from pricewatch.services.save_policy import (
    DB_ERROR, EXCEPTION, NOT_IN_MASTER, FollowerSavePolicy, MasterSavePolicy, policy_for,
)


def count_rows(store, model):
    with store.session() as db:
        return db.query(model).count()


def product_from(raw, source="disco", base_url="https://www.disco.com.ar"):
    return normalize_product(raw, base_url, source)


def test_policy_for():
    store = CatalogStore()
    assert isinstance(policy_for(True, store), MasterSavePolicy)
    assert isinstance(policy_for(False, store), FollowerSavePolicy)


@pytest.mark.asyncio
async def test_master_save_is_idempotent_on_rows(store, raw_entry):
    """Saving the same product twice keeps one catalog row and appends history."""
    merchant_id = store.get_or_create_merchant("Disco")
    policy = MasterSavePolicy(store)
    product = product_from(raw_entry())

    first = await policy.save(product, merchant_id)
    second = await policy.save(product, merchant_id)

    assert first.saved and second.saved
    assert count_rows(store, Product) == 1
    assert count_rows(store, MerchantProduct) == 1
    assert count_rows(store, PriceHistoryEntry) == 2


@pytest.mark.asyncio
async def test_master_save_overwrites_snapshot(store, raw_entry):
    merchant_id = store.get_or_create_merchant("Disco")
    policy = MasterSavePolicy(store)

    await policy.save(product_from(raw_entry(price=100.0)), merchant_id)
    await policy.save(product_from(raw_entry(price=90.0, name="Aceite nuevo")), merchant_id)

    with store.session() as db:
        snapshot = db.query(MerchantProduct).one()
        assert snapshot.price == 90.0
        assert db.query(Product).one().name == "Aceite nuevo"


@pytest.mark.asyncio
async def test_follower_skips_unknown_product(store, raw_entry):
    merchant_id = store.get_or_create_merchant("Vea")

    result = await FollowerSavePolicy(store).save(product_from(raw_entry(), "vea"), merchant_id)

    assert not result.saved
    assert result.reason == NOT_IN_MASTER
    assert count_rows(store, Product) == 0
    assert count_rows(store, MerchantProduct) == 0
    assert count_rows(store, PriceHistoryEntry) == 0


@pytest.mark.asyncio
async def test_follower_attaches_to_master_product(store, raw_entry):
    disco_id = store.get_or_create_merchant("Disco")
    vea_id = store.get_or_create_merchant("Vea")
    await MasterSavePolicy(store).save(product_from(raw_entry(name="Nombre maestro")), disco_id)

    result = await FollowerSavePolicy(store).save(
        product_from(raw_entry(name="Nombre vea", price=95.0), "vea"), vea_id
    )

    assert result.saved
    assert count_rows(store, Product) == 1
    assert count_rows(store, MerchantProduct) == 2
    with store.session() as db:
        assert db.query(Product).one().name == "Nombre maestro"
        vea_snapshot = db.query(MerchantProduct).filter(MerchantProduct.merchant_id == vea_id).one()
        assert vea_snapshot.price == 95.0


class FailingStore(CatalogStore):
    def __init__(self, session_factory, error):
        super().__init__(session_factory)
        self.error = error

    def upsert_product(self, db, product):
        raise self.error


@pytest.mark.asyncio
@pytest.mark.parametrize("error, reason", [
    (PersistenceError("disk I/O error"), DB_ERROR),
    (RuntimeError("unexpected"), EXCEPTION),
])
async def test_save_reports_failures(session_factory, raw_entry, error, reason):
    store = FailingStore(session_factory, error)
    merchant_id = store.get_or_create_merchant("Disco")

    result = await MasterSavePolicy(store).save(product_from(raw_entry()), merchant_id)

    assert not result.saved
    assert result.reason == reason
    assert count_rows(store, MerchantProduct) == 0


def test_get_or_create_merchant_is_stable(store):
    first = store.get_or_create_merchant("Disco")
    assert store.get_or_create_merchant("Disco") == first
    assert store.get_or_create_merchant("Vea") != first
