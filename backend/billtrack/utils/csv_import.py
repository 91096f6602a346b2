"""CSV parsing + per-row coercion for bulk billing uploads."""

import csv
import io
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable

from billtrack.utils.money import to_money


@dataclass
class FieldDef:
    """Definition for a single CSV column."""
    column: str
    db_field: str
    required: bool = False
    coerce: Callable[[str], Any] | None = None


@dataclass
class RowError:
    row: int
    errors: list[str]


@dataclass
class ParseResult:
    rows: list[dict[str, Any]] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    total_rows: int = 0


def coerce_int(val: str) -> int | None:
    if not val.strip():
        return None
    return int(val)


def coerce_decimal(val: str) -> Decimal | None:
    if not val.strip():
        return None
    # thousands separators are common in spreadsheet exports
    return to_money(val.replace(",", "").strip())


def coerce_date(val: str) -> date | None:
    """ISO dates only: '2024-03-31'."""
    if not val.strip():
        return None
    return date.fromisoformat(val.strip())


def parse_csv(content: bytes, field_defs: list[FieldDef]) -> ParseResult:
    """Decode an uploaded CSV, check required columns and coerce types."""
    text = content.decode("utf-8-sig")  # handle BOM from Excel
    reader = csv.DictReader(io.StringIO(text))

    result = ParseResult()

    for row_num, raw_row in enumerate(reader, start=2):  # row 1 = header
        if not any((v or "").strip() for v in raw_row.values()):
            continue
        result.total_rows += 1
        row_errors: list[str] = []
        parsed: dict[str, Any] = {"row": row_num}

        for fd in field_defs:
            raw_val = (raw_row.get(fd.column) or "").strip()

            if fd.required and not raw_val:
                row_errors.append(f"'{fd.column}' is required")
                continue

            if not raw_val:
                parsed[fd.db_field] = None
                continue

            if fd.coerce:
                try:
                    parsed[fd.db_field] = fd.coerce(raw_val)
                except (ValueError, TypeError):
                    row_errors.append(f"'{fd.column}': invalid value '{raw_val}'")
                    continue
            else:
                parsed[fd.db_field] = raw_val

        if row_errors:
            result.errors.append(RowError(row=row_num, errors=row_errors))
        else:
            result.rows.append(parsed)

    return result


def generate_template_csv(
    field_defs: list[FieldDef],
    sample_row: dict[str, str] | None = None,
) -> str:
    """Generate CSV template string with headers and optional sample row."""
    output = io.StringIO()
    headers = [fd.column for fd in field_defs]
    writer = csv.writer(output)
    writer.writerow(headers)
    if sample_row:
        writer.writerow([sample_row.get(h, "") for h in headers])
    return output.getvalue()
