import pytest

from tienda.errors import InvalidInput
from tienda.productos.queries import (
    CatalogQuery,
    SortDirection,
    SortField,
    parse_sort_field,
    search_products,
)


@pytest.fixture
def catalog(make_product):
    products = []
    for i in range(12):
        products.append(make_product(name=f"Smartphone {i:02d}", price=f"{100 + i}.00"))
    products.append(make_product(name="PHONE case", price="9.99", in_stock=False))
    products.append(make_product(name="Laptop", price="1500.00"))
    products.append(make_product(name="100% cotton shirt", price="20.00"))
    return products


def test_search_phone_in_stock_paginated(client, catalog):
    r = client.get("/products", params={"search": "phone", "inStock": "true", "page": 1, "limit": 5})
    assert r.status_code == 200
    body = r.json()
    assert len(body["items"]) == 5
    assert body["total_count"] == 12
    assert body["total_pages"] == 3
    assert body["page"] == 1
    assert body["page_size"] == 5


def test_search_is_case_insensitive(client, catalog):
    body = client.get("/products", params={"search": "PHONE", "limit": 100}).json()
    names = {p["name"] for p in body["items"]}
    assert "PHONE case" in names
    assert body["total_count"] == 13


def test_in_stock_false_filter(client, catalog):
    body = client.get("/products", params={"inStock": "false"}).json()
    assert [p["name"] for p in body["items"]] == ["PHONE case"]


def test_no_filters_returns_everything(client, catalog):
    body = client.get("/products", params={"limit": 100}).json()
    assert body["total_count"] == len(catalog)


def test_default_order_is_newest_first(client, catalog):
    body = client.get("/products", params={"limit": 100}).json()
    ids = [p["id"] for p in body["items"]]
    # mismo created_at dentro del segundo: desempata el id
    assert ids == sorted(ids, reverse=True)


def test_sort_by_price_ascending(client, catalog):
    body = client.get("/products", params={"sortBy": "price", "sortOrder": "asc", "limit": 3}).json()
    assert [p["price"] for p in body["items"]] == ["9.99", "20.00", "100.00"]


def test_sort_by_name_descending(client, catalog):
    body = client.get("/products", params={"sortBy": "name", "sortOrder": "desc", "limit": 1}).json()
    assert body["items"][0]["name"] == "Smartphone 11"


def test_unknown_sort_field_falls_back_to_created_at(client, catalog):
    default = client.get("/products", params={"limit": 100}).json()
    odd = client.get("/products", params={"limit": 100, "sortBy": "password_hash; DROP TABLE products"}).json()
    assert odd["items"] == default["items"]


def test_same_query_twice_is_identical(client, catalog):
    params = {"search": "phone", "inStock": "true", "sortBy": "price", "sortOrder": "asc", "page": 2, "limit": 4}
    first = client.get("/products", params=params).json()
    second = client.get("/products", params=params).json()
    assert first == second


def test_page_beyond_last_is_empty(client, catalog):
    r = client.get("/products", params={"search": "phone", "page": 99, "limit": 5})
    assert r.status_code == 200
    body = r.json()
    assert body["items"] == []
    assert body["total_pages"] == 3


def test_search_wildcards_are_literal(client, catalog):
    body = client.get("/products", params={"search": "%"}).json()
    assert [p["name"] for p in body["items"]] == ["100% cotton shirt"]
    assert client.get("/products", params={"search": "_"}).json()["total_count"] == 0


@pytest.mark.parametrize("params", [{"limit": 0}, {"limit": -5}, {"page": 0}])
def test_invalid_paging_is_rejected(client, params):
    r = client.get("/products", params=params)
    assert r.status_code == 400


def test_page_size_is_capped(client, catalog, settings):
    body = client.get("/products", params={"limit": 5000}).json()
    assert body["page_size"] == settings.max_page_size


def test_empty_catalog_has_zero_pages(client):
    body = client.get("/products").json()
    assert body == {"items": [], "page": 1, "page_size": 10, "total_count": 0, "total_pages": 0}


def test_huge_page_number_is_empty_not_an_error(client, catalog):
    r = client.get("/products", params={"page": 10**19, "limit": 5})
    assert r.status_code == 200
    assert r.json()["items"] == []
    assert r.json()["total_count"] == len(catalog)


def test_search_folds_accented_letters(client, make_product):
    make_product(name="CAMIÓN de juguete", price="30.00")
    make_product(name="Avión", price="45.00")
    body = client.get("/products", params={"search": "camión"}).json()
    assert [p["name"] for p in body["items"]] == ["CAMIÓN de juguete"]
    assert body["total_count"] == 1
    assert client.get("/products", params={"search": "AVIÓN"}).json()["total_count"] == 1


def test_parse_defaults():
    q = CatalogQuery.parse()
    assert q.sort_field is SortField.CREATED_AT
    assert q.sort_direction is SortDirection.DESC
    assert (q.page, q.page_size) == (1, 10)
    assert q.search is None
    assert CatalogQuery.parse(search="   ").search is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("name", SortField.NAME),
        ("Price", SortField.PRICE),
        ("createdAt", SortField.CREATED_AT),
        ("created_at", SortField.CREATED_AT),
        ("id", SortField.CREATED_AT),
        ("__class__", SortField.CREATED_AT),
        (None, SortField.CREATED_AT),
    ],
)
def test_sort_field_allow_list(raw, expected):
    assert parse_sort_field(raw) is expected


def test_parse_rejects_zero_page_size():
    with pytest.raises(InvalidInput):
        CatalogQuery.parse(page_size=0)


def test_count_matches_filter(db, catalog):
    page = search_products(db, CatalogQuery.parse(search="smart", page_size=5, page=3))
    assert page.total_count == 12
    assert len(page.items) == 2
    assert page.total_pages == 3


def test_get_product(client, phone):
    r = client.get(f"/products/{phone.id}")
    assert r.status_code == 200
    assert r.json()["name"] == "Phone X"
    assert r.json()["price"] == "100.00"


def test_get_missing_product(client):
    assert client.get("/products/999").status_code == 404
