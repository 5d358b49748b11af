"""CSV parsing and importers for transactions and balance snapshots."""

from networth.importing.csv_parser import parse_csv, parse_csv_rows
from networth.importing.base import RowImporter, numbered_rows
from networth.importing.transactions import TransactionImporter
from networth.importing.snapshots import SnapshotImporter

__all__ = [
    "RowImporter",
    "SnapshotImporter",
    "TransactionImporter",
    "numbered_rows",
    "parse_csv",
    "parse_csv_rows",
]
