#!/usr/bin/env python3
"""
Catalog Admin CLI

Bulk operations on the Supabase products table.

Usage:
    # Export the catalog
    python scripts/catalog_admin.py export --format csv --output productos.csv
    python scripts/catalog_admin.py export --format json --output productos.json

    # Import products from a CSV (semicolon-separated) or JSON file
    python scripts/catalog_admin.py import --file productos.csv

    # Delete one product
    python scripts/catalog_admin.py delete 42 --force

Environment:
    SUPABASE_URL, SUPABASE_ANON_KEY - same settings as the API (.env is read)
"""

import argparse
import asyncio
import logging
import sys

from storefront.adapters.supabase_catalog import SupabaseCatalogClient
from storefront.core.config import settings
from storefront.core.exceptions import CatalogError
from storefront.services.catalog_io import export_csv, export_json, import_file

logger = logging.getLogger("catalog_admin")


# =============================================================================
# COMMANDS
# =============================================================================


async def cmd_export(args, client: SupabaseCatalogClient) -> int:
    products = await client.fetch_all()
    output = args.output or f"productos.{args.format}"
    if args.format == "json":
        count = export_json(products, output)
    else:
        count = export_csv(products, output)
    print(f"Exported {count:,} products to {output}")
    return 0


async def cmd_import(args, client: SupabaseCatalogClient) -> int:
    print(f"\nImporting: {args.file}")
    stats = await import_file(client, args.file)

    print("\nResults:")
    print(f"  Total rows: {stats.total_rows:,}")
    print(f"  Inserted: {stats.inserted:,}")
    print(f"  Errors: {stats.errors:,}")
    for sample in stats.error_samples:
        print(f"    {sample}")
    return 1 if stats.errors else 0


async def cmd_delete(args, client: SupabaseCatalogClient) -> int:
    product = await client.fetch_one(args.product_id)
    if not args.force:
        answer = input(f"Delete product {product.id} '{product.name}'? [y/N] ")
        if answer.strip().lower() not in ("y", "yes", "s", "si"):
            print("Cancelled")
            return 1
    await client.delete_product(product.id)
    print(f"Deleted product {product.id}")
    return 0


# =============================================================================
# MAIN
# =============================================================================


async def run(args) -> int:
    client = SupabaseCatalogClient.from_settings(settings)
    try:
        return await args.func(args, client)
    except CatalogError as e:
        print(f"Failed: {e.code} - {e.message}")
        return 1
    except (OSError, ValueError) as e:
        print(f"Failed: {e}")
        return 1
    finally:
        await client.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Storefront catalog admin CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s export --format csv              # Dump products to productos.csv
  %(prog)s import --file productos.json     # Insert products from a file
  %(prog)s delete 42                        # Delete a product (asks first)
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    export_parser = subparsers.add_parser("export", help="Export the catalog")
    export_parser.add_argument("--format", choices=["csv", "json"], default="csv", help="Output format")
    export_parser.add_argument("--output", "-o", help="Output file (default: productos.<format>)")
    export_parser.set_defaults(func=cmd_export)

    import_parser = subparsers.add_parser("import", help="Import products from CSV or JSON")
    import_parser.add_argument("--file", required=True, help="CSV (;-separated) or JSON file")
    import_parser.set_defaults(func=cmd_import)

    delete_parser = subparsers.add_parser("delete", help="Delete a product by id")
    delete_parser.add_argument("product_id", help="Product id")
    delete_parser.add_argument("--force", action="store_true", help="Skip confirmation")
    delete_parser.set_defaults(func=cmd_delete)

    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
