"""
Catalog import/export

Bulk CSV and JSON transfer of the products table, using the same column set
as the admin panel. CSV files are semicolon-separated; empty cells are NULL.

Usage:
    client = SupabaseCatalogClient.from_settings(settings)
    products = await client.fetch_all()
    export_csv(products, "productos.csv")

    stats = await import_file(client, "productos.csv")
"""
import csv
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from storefront.adapters.supabase_catalog import SupabaseCatalogClient
from storefront.core.exceptions import CatalogError
from storefront.core.utils import utcnow
from storefront.schemas.product import PRODUCT_COLUMNS, Product, ProductWrite

logger = logging.getLogger(__name__)

CSV_DELIMITER = ";"
EXPORT_COLUMNS = PRODUCT_COLUMNS + ["created_at"]

NUMERIC_FIELDS = ("price", "sale_price")
INTEGER_FIELDS = ("stock", "installments")
BOOLEAN_FIELDS = ("on_sale", "featured")


@dataclass
class ImportStats:
    total_rows: int = 0
    inserted: int = 0
    errors: int = 0
    error_samples: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "total_rows": self.total_rows,
            "inserted": self.inserted,
            "errors": self.errors,
            "error_samples": self.error_samples[:10],
        }


# ----- value parsers -----


def parse_decimal(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace("$", "").strip())
    except ValueError:
        return None


def parse_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(str(value)))
    except ValueError:
        return None


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower().strip() in {"true", "yes", "1", "t", "y", "si", "sí"}


def clean_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned if cleaned else None


def parse_record(record: Dict[str, Any]) -> ProductWrite:
    """Coerce a loose CSV/JSON record into an insert payload. Unknown keys are ignored."""
    data: Dict[str, Any] = {}
    for key, value in record.items():
        if key is None:
            continue
        name = key.strip()
        if name in ("id", "created_at") or name not in PRODUCT_COLUMNS:
            continue
        if name in NUMERIC_FIELDS:
            data[name] = parse_decimal(value)
        elif name in INTEGER_FIELDS:
            data[name] = parse_int(value)
        elif name in BOOLEAN_FIELDS:
            data[name] = parse_bool(value)
        else:
            data[name] = clean_string(value)
    return ProductWrite.model_validate(data)


# ----- export -----


def product_to_row(product: Product) -> Dict[str, Any]:
    """Inverse of product_from_row: gallery images back into image1..3 columns."""
    row = product.model_dump(mode="json", exclude={"images"})
    for i in range(3):
        row[f"image{i + 1}_url"] = product.images[i] if i < len(product.images) else None
    return {col: row.get(col) for col in EXPORT_COLUMNS}


def export_csv(products: Iterable[Product], path: Union[str, Path]) -> int:
    rows = [product_to_row(p) for p in products]
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=EXPORT_COLUMNS, delimiter=CSV_DELIMITER)
        writer.writeheader()
        for row in rows:
            writer.writerow({k: "" if v is None else v for k, v in row.items()})
    logger.info(f"[CATALOG_IO] Exported {len(rows)} products to {path}")
    return len(rows)


def export_json(products: Iterable[Product], path: Union[str, Path]) -> int:
    rows = [product_to_row(p) for p in products]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(rows, f, ensure_ascii=False, indent=2)
    logger.info(f"[CATALOG_IO] Exported {len(rows)} products to {path}")
    return len(rows)


# ----- import -----


def read_records(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Load raw records from a .csv or .json file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Import file not found: {path}")

    if path.suffix.lower() == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{path} must contain a JSON array of products")
        return data

    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        return [row for row in csv.DictReader(f, delimiter=CSV_DELIMITER) if any(row.values())]


async def import_records(
    client: SupabaseCatalogClient,
    records: List[Dict[str, Any]],
    error_threshold: int = 100,
) -> ImportStats:
    stats = ImportStats(total_rows=len(records), started_at=utcnow())

    for index, record in enumerate(records, start=1):
        try:
            payload = parse_record(record)
            if not payload.name:
                raise ValueError("name is required")
            await client.create_product(payload)
            stats.inserted += 1
        except (ValidationError, ValueError, CatalogError) as e:
            stats.errors += 1
            if len(stats.error_samples) < 10:
                stats.error_samples.append(f"Row {index}: {e}")
            if stats.errors >= error_threshold:
                logger.error("[CATALOG_IO] Error threshold reached, stopping")
                break

    stats.completed_at = utcnow()
    logger.info(
        f"[CATALOG_IO] Import complete: {stats.inserted} inserted, "
        f"{stats.errors} errors of {stats.total_rows} rows"
    )
    return stats


async def import_file(client: SupabaseCatalogClient, path: Union[str, Path]) -> ImportStats:
    return await import_records(client, read_records(path))
