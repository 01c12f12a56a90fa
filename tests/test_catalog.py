import pytest

from catalog import Catalog
from errors import NotFoundError
from schemas import ProductUpdate
from tests.conftest import make_product


def titles(products):
    return sorted(p.title for p in products)


def test_list_without_filters_returns_everything(catalog):
    assert len(catalog.list()) == 6


def test_category_match_is_case_insensitive_and_exact(catalog):
    women = catalog.list(category="WOMEN")
    assert titles(women) == [
        "Classic Beige Trousers",
        "Linen Blend Dress",
        "Oversized Cotton Shirt",
        "Soft Linen Blend Blazer",
    ]
    assert catalog.list(category="wom") == []


def test_category_and_subcategory_combine(catalog):
    assert titles(catalog.list(category="women", sub_category="Blazers")) == ["Soft Linen Blend Blazer"]
    assert catalog.list(category="men", sub_category="blazers") == []


def test_search_matches_title_or_description(catalog):
    assert titles(catalog.search("LINEN")) == ["Linen Blend Dress", "Soft Linen Blend Blazer"]
    # "cotton" is in one title and one description
    assert titles(catalog.search("cotton")) == ["Classic Beige Trousers", "Oversized Cotton Shirt"]


def test_search_treats_query_literally(catalog):
    assert catalog.search("(.*") == []


def test_get_by_id(catalog):
    product = catalog.list(sub_category="jeans")[0]
    assert catalog.get_by_id(product.id).title == "Slim Fit Jeans"


@pytest.mark.parametrize("bad_id", ["not-an-id", "123", "ffffffffffffffffffffffff"])
def test_unknown_or_malformed_id_is_not_found(catalog, bad_id):
    assert catalog.find(bad_id) is None
    with pytest.raises(NotFoundError):
        catalog.get_by_id(bad_id)


def test_flag_queries_are_independent(catalog):
    assert titles(catalog.list_featured()) == ["Linen Blend Dress", "Slim Fit Jeans", "Soft Linen Blend Blazer"]
    assert titles(catalog.list_new_arrivals()) == ["Linen Blend Dress", "Structured Handbag"]
    assert titles(catalog.list_on_sale()) == ["Oversized Cotton Shirt", "Soft Linen Blend Blazer"]


def test_single_sale_product_and_its_discount(storage):
    make_product(storage, title="Wool Blazer", category="women", sub_category="blazers",
                 price=12900, original_price=14900, on_sale=True)
    sale = Catalog(storage).list_on_sale()
    assert [p.title for p in sale] == ["Wool Blazer"]
    assert sale[0].discount_percent == 13


def test_no_discount_without_higher_original_price(storage):
    assert make_product(storage).discount_percent is None
    assert make_product(storage, price=5000, original_price=5000).discount_percent is None


def test_update_and_delete(storage):
    catalog = Catalog(storage)
    product = make_product(storage)
    updated = catalog.update(product.id, ProductUpdate(price=1999, featured=True))
    assert updated.price == 1999
    assert updated.featured is True
    assert updated.title == "Plain Tee"

    catalog.delete(product.id)
    with pytest.raises(NotFoundError):
        catalog.delete(product.id)
    with pytest.raises(NotFoundError):
        catalog.update(product.id, ProductUpdate(price=1))
