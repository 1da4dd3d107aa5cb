import csv
import json

import pytest

from storefront.core.exceptions import CatalogUnavailableError
from storefront.services.catalog_io import (
    EXPORT_COLUMNS,
    export_csv,
    export_json,
    import_file,
    import_records,
    parse_record,
    product_to_row,
    read_records,
)


class RecordingCatalog:
    def __init__(self, fail_on=None):
        self.created = []
        self.fail_on = fail_on

    async def create_product(self, payload):
        if payload.name == self.fail_on:
            raise CatalogUnavailableError("insert failed", operation="create_product", status=500)
        self.created.append(payload)
        return payload


def test_product_to_row_restores_gallery(make_product):
    product = make_product(id=3, image1_url="a.jpg", image2_url="b.jpg")
    row = product_to_row(product)

    assert list(row) == EXPORT_COLUMNS
    assert row["id"] == "3"
    assert row["image1_url"] == "a.jpg"
    assert row["image2_url"] == "b.jpg"
    assert row["image3_url"] is None


def test_export_csv_semicolon(tmp_path, make_product):
    path = tmp_path / "productos.csv"
    count = export_csv([make_product(id=1), make_product(id=2, sale_price=None)], path)

    assert count == 2
    with open(path, encoding="utf-8") as f:
        rows = list(csv.DictReader(f, delimiter=";"))
    assert [r["id"] for r in rows] == ["1", "2"]
    assert rows[1]["sale_price"] == ""
    assert rows[0]["category"] == "Climatización"


def test_export_json(tmp_path, make_product):
    path = tmp_path / "productos.json"
    export_json([make_product(id=9, name="Ñandú")], path)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data[0]["id"] == "9"
    assert data[0]["name"] == "Ñandú"


def test_parse_record_coerces_types():
    payload = parse_record({
        "id": "123",
        "name": " Heladera ",
        "price": "$1500.5",
        "sale_price": "",
        "on_sale": "true",
        "featured": "false",
        "stock": "4",
        "installments": "",
        "category": "Electrodomesticos",
        "unknown": "ignored",
    })

    assert payload.name == "Heladera"
    assert payload.price == 1500.5
    assert payload.sale_price is None
    assert payload.on_sale is True
    assert payload.featured is False
    assert payload.stock == 4
    assert payload.installments is None
    assert "id" not in payload.model_dump(exclude_none=True)


def test_read_records_csv(tmp_path):
    path = tmp_path / "in.csv"
    path.write_text("name;price;on_sale\nTostadora;80;false\n;;\nPava;45;true\n", encoding="utf-8")

    records = read_records(path)
    assert [r["name"] for r in records] == ["Tostadora", "Pava"]


def test_read_records_json_must_be_list(tmp_path):
    path = tmp_path / "in.json"
    path.write_text('{"name": "x"}', encoding="utf-8")

    with pytest.raises(ValueError):
        read_records(path)


def test_read_records_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_records(tmp_path / "nope.csv")


@pytest.mark.asyncio
async def test_import_records_counts_errors():
    catalog = RecordingCatalog(fail_on="Rota")
    stats = await import_records(catalog, [
        {"name": "Tostadora", "price": "80"},
        {"name": "", "price": "10"},
        {"name": "Rota", "price": "5"},
        {"name": "Negativa", "price": "-3"},
        {"name": "Pava", "price": "45"},
    ])

    assert stats.total_rows == 5
    assert stats.inserted == 2
    assert stats.errors == 3
    assert [p.name for p in catalog.created] == ["Tostadora", "Pava"]
    assert stats.to_dict()["error_samples"][0].startswith("Row 2:")


@pytest.mark.asyncio
async def test_import_file_roundtrip_from_export(tmp_path, make_product):
    path = tmp_path / "productos.csv"
    export_csv([make_product(id=1, name="Split"), make_product(id=2, name="Ventilador")], path)

    catalog = RecordingCatalog()
    stats = await import_file(catalog, path)

    assert stats.inserted == 2
    assert catalog.created[0].category == "Climatización"
    assert catalog.created[1].name == "Ventilador"
