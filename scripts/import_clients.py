"""
Bulk import of clients from a spreadsheet.

Reads an Excel or CSV file, inserts one client per row and gives every
new client a placeholder upcoming order. Placeholder order numbers are
allocated as one contiguous block.

Usage:
    python scripts/import_clients.py --file clients.xlsx
    python scripts/import_clients.py --file clients.csv --service-type Custom --dry-run

Expected columns (case-insensitive): name, email, phone, address,
service_type. Only name is required.
"""
import argparse
import os
import sys

# Allow imports from the project root when running as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd

from models.order_config import ServiceType
from services.client_service import get_client_service
from services.reconcile_service import get_reconcile_service

OPTIONAL_COLUMNS = ["email", "phone", "address"]


def read_clients(file_path: str, default_service_type: ServiceType) -> list[dict]:
    """Client rows from the file; rows without a name are skipped."""
    if file_path.lower().endswith(".csv"):
        df = pd.read_csv(file_path, dtype=str)
    else:
        df = pd.read_excel(file_path, dtype=str)

    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    if "name" not in df.columns:
        raise SystemExit(f"Missing 'name' column in {file_path}")

    df = df.fillna("")
    df["name"] = df["name"].str.strip()
    df = df[df["name"] != ""]

    rows = []
    for _, record in df.iterrows():
        service_type = ServiceType.from_label(record.get("service_type")) or default_service_type
        row = {"name": record["name"], "service_type": service_type.value}
        for column in OPTIONAL_COLUMNS:
            value = str(record.get(column, "")).strip()
            if value:
                row[column] = value
        rows.append(row)

    return rows


def main():
    parser = argparse.ArgumentParser(description="Import clients and create their placeholder orders.")
    parser.add_argument("--file", required=True, help="Excel (.xlsx/.xls) or CSV file")
    parser.add_argument(
        "--service-type",
        default=ServiceType.FOOD.value,
        choices=[s.value for s in ServiceType],
        help="Service type for rows without one",
    )
    parser.add_argument("--updated-by", default="import", help="Audit actor for placeholder orders")
    parser.add_argument("--dry-run", action="store_true", help="Parse only, write nothing")
    args = parser.parse_args()

    print("=" * 60)
    print("CLIENT IMPORT")
    print("=" * 60)
    print(f"File: {args.file}")

    rows = read_clients(args.file, ServiceType(args.service_type))
    print(f"Parsed {len(rows)} clients")

    by_type: dict[str, int] = {}
    for row in rows:
        by_type[row["service_type"]] = by_type.get(row["service_type"], 0) + 1
    for service_type, count in sorted(by_type.items()):
        print(f"  {service_type}: {count}")

    if args.dry_run or not rows:
        print("\nNothing written.")
        return

    created = get_client_service().create_clients(rows)
    print(f"\nInserted {len(created)} clients")

    reconciler = get_reconcile_service()
    placeholders = 0
    for service_type in (ServiceType.FOOD, ServiceType.CUSTOM):
        client_ids = [c["id"] for c in created if c.get("service_type") == service_type.value]
        orders = reconciler.create_placeholders(client_ids, service_type, updated_by=args.updated_by)
        placeholders += len(orders)
        if orders:
            numbers = [o["order_number"] for o in orders]
            print(f"  {service_type.value} placeholders: {len(orders)} (#{min(numbers)}-#{max(numbers)})")

    print(f"\nCreated {placeholders} placeholder orders")


if __name__ == "__main__":
    main()
