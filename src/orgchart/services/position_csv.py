"""CSV export/import adapter for org charts.

CSV Format:
    id,title,employee_name,email,phone,department,department_id,parent_id,level
    3f0c...,Chief Executive Officer,John Smith,john@acme.com,,Executive,,,0

Imports additionally accept ``key`` and ``parent_key`` columns for rows that
do not exist yet. Re-importing an export for the same client overwrites the
exported positions in place.
"""

import csv
import io
import logging
from typing import Iterable

from .errors import ValidationError
from .hierarchy_builder import PositionNode

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "id",
    "title",
    "employee_name",
    "email",
    "phone",
    "department",
    "department_id",
    "parent_id",
    "level",
]
IMPORT_COLUMNS = EXPORT_COLUMNS + ["key", "parent_key"]


def export_csv(positions: Iterable[PositionNode]) -> str:
    """Serialise positions (already in display order) to CSV text."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for node in positions:
        data = node.to_dict(include_children=False)
        writer.writerow({
            column: "" if data.get(column) is None else data[column]
            for column in EXPORT_COLUMNS
        })
    return buffer.getvalue()


def parse_csv(text: str) -> list[dict]:
    """Parse CSV text into import rows.

    Header names are matched case-insensitively; unknown columns are ignored
    and empty cells are treated as absent.

    Raises:
        ValidationError: If the text has no header or no ``title`` column.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise ValidationError("CSV file is empty or has no header row")

    header = {name: name.strip().lower() for name in reader.fieldnames if name}
    if "title" not in header.values():
        raise ValidationError("CSV header must include a 'title' column")

    ignored = sorted(v for v in header.values() if v not in IMPORT_COLUMNS)
    if ignored:
        logger.info(f"CSV import ignoring unknown columns: {', '.join(ignored)}")

    rows = []
    for raw in reader:
        row = {}
        for name, column in header.items():
            if column not in IMPORT_COLUMNS:
                continue
            value = (raw.get(name) or "").strip()
            if value:
                row[column] = value
        rows.append(row)
    return rows
