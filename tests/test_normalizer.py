import pytest
from pricewatch.schemas.product_schemas import NormalizedProduct, NormalizationSkip, SkipReason
from pricewatch.services.normalizer import normalize_product

BASE_URL = "https://www.disco.com.ar/"


def test_normalize_valid_entry(raw_entry):
    """A complete entry maps every canonical field."""
    result = normalize_product(raw_entry(), BASE_URL, "disco")

    assert isinstance(result, NormalizedProduct)
    assert result.code == "7790001000011"
    assert result.external_id == "1001"
    assert result.source == "disco"
    assert result.price == 100.0
    assert result.list_price == 120.0
    assert result.reference_price == 100.0
    assert result.reference_unit == "un"
    assert result.is_available is True
    assert result.link == "https://www.disco.com.ar/producto-7790001000011/p"
    assert result.image == "https://img.example.com/7790001000011.jpg"
    assert result.images == [result.image]
    assert result.category == "/Almacen/Aceites/"


def test_normalize_is_deterministic(raw_entry):
    raw = raw_entry()
    assert normalize_product(raw, BASE_URL, "disco") == normalize_product(raw, BASE_URL, "disco")


@pytest.mark.parametrize("mutate, reason", [
    (lambda raw: raw.update(items=[]), SkipReason.NO_ITEMS),
    (lambda raw: raw["items"][0].update(images=[]), SkipReason.NO_IMAGES),
    (lambda raw: raw.pop("priceRange"), SkipReason.NO_PRICE_RANGE),
    (lambda raw: raw["items"][0].update(ean=None), SkipReason.NO_CODE),
])
def test_normalize_skips_incomplete_entries(raw_entry, mutate, reason):
    raw = raw_entry()
    mutate(raw)

    result = normalize_product(raw, BASE_URL, "disco")

    assert isinstance(result, NormalizationSkip)
    assert result.reason == reason
    assert result.external_id == "1001"


def test_normalize_checks_images_before_code(raw_entry):
    raw = raw_entry(with_images=False)
    raw["items"][0]["ean"] = None

    result = normalize_product(raw, BASE_URL, "disco")

    assert result.reason == SkipReason.NO_IMAGES


@pytest.mark.parametrize("brand", ["Disco", " CHECK ", "cuisine & co"])
def test_normalize_excludes_private_labels(raw_entry, brand):
    result = normalize_product(raw_entry(brand=brand), BASE_URL, "disco")

    assert isinstance(result, NormalizationSkip)
    assert result.reason == SkipReason.EXCLUDED_BRAND


def test_normalize_custom_exclusion_list(raw_entry):
    result = normalize_product(raw_entry(brand="Disco"), BASE_URL, "disco", excluded_brands=["marolio"])
    assert isinstance(result, NormalizedProduct)


def test_normalize_prefers_default_seller(raw_entry):
    raw = raw_entry()
    default_seller = raw["items"][0]["sellers"][0]
    other_seller = {
        "sellerId": "2",
        "sellerDefault": False,
        "commertialOffer": {"Price": 90.0, "PriceWithoutDiscount": 95.0, "AvailableQuantity": 3},
    }
    raw["items"][0]["sellers"] = [other_seller, default_seller]

    result = normalize_product(raw, BASE_URL, "disco")

    assert result.price == 100.0
    assert result.list_price == 120.0


def test_normalize_falls_back_to_price_range(raw_entry):
    raw = raw_entry(price=80.0, list_price=90.0)
    raw["items"][0]["sellers"] = []

    result = normalize_product(raw, BASE_URL, "disco")

    assert result.price == 80.0
    assert result.list_price == 90.0
    assert result.is_available is True


def test_normalize_offer_without_price_uses_price_range(raw_entry):
    raw = raw_entry(price=80.0, list_price=90.0)
    del raw["items"][0]["sellers"][0]["commertialOffer"]["Price"]

    result = normalize_product(raw, BASE_URL, "disco")

    assert result.price == 80.0
    assert result.list_price == 90.0
    assert result.is_available is True


def test_normalize_skips_entry_without_any_price(raw_entry):
    raw = raw_entry()
    del raw["items"][0]["sellers"][0]["commertialOffer"]["Price"]
    raw["priceRange"]["sellingPrice"]["lowPrice"] = None

    result = normalize_product(raw, BASE_URL, "disco")

    assert result.reason == SkipReason.NO_PRICE_RANGE


def test_normalize_list_price_defaults_to_selling_price(raw_entry):
    raw = raw_entry()
    raw["items"][0]["sellers"][0]["commertialOffer"]["PriceWithoutDiscount"] = None

    result = normalize_product(raw, BASE_URL, "disco")

    assert result.list_price == result.price


def test_normalize_unavailable_when_out_of_stock(raw_entry):
    result = normalize_product(raw_entry(available_quantity=0), BASE_URL, "disco")
    assert result.is_available is False


def test_normalize_reference_price_uses_unit_multiplier(raw_entry):
    raw = raw_entry(price=100.0)
    raw["items"][0]["unitMultiplier"] = 0.5

    result = normalize_product(raw, BASE_URL, "disco")

    assert result.reference_price == 200.0


def test_normalize_without_unit_multiplier(raw_entry):
    raw = raw_entry()
    raw["items"][0]["unitMultiplier"] = 0

    result = normalize_product(raw, BASE_URL, "disco")

    assert result.reference_price is None
