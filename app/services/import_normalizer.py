"""Turn raw spreadsheet rows into work order payloads.

Pure functions only: no database access, no clock reads. Callers pass
``today`` so relative date words resolve deterministically.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any

from app.services.columns import FIELD_KINDS, field_for_header
from app.services.import_parser import SourceRow
from app.services.status_machine import DEFAULT_JOB_STATUS, DEFAULT_STATUS

logger = logging.getLogger(__name__)

RELATIVE_DAYS = {
    "today": 0, "todays": 0, "now": 0,
    "tomorrow": 1, "tomorrows": 1, "tommorow": 1, "tommorrow": 1, "tomorow": 1, "tmrw": 1,
    "yesterday": -1, "yesterdays": -1, "yestarday": -1,
}

# Excel's day zero, accounting for its fictitious 1900-02-29.
EXCEL_EPOCH = datetime(1899, 12, 30)
_MAX_SERIAL = 2958465  # 9999-12-31

# Text serials are five digits; shorter digit runs such as "2025" are not dates.
_SERIAL_RE = re.compile(r"^\d{5}(\.\d+)?$")

DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%d.%m.%Y",
    "%Y/%m/%d",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)


class InvalidCell(ValueError):
    pass


@dataclass
class NormalizedRow:
    row: int
    data: dict[str, Any] = field(default_factory=dict)
    parse_errors: list[str] = field(default_factory=list)
    populated: int = 0
    skip_reason: str | None = None

    @property
    def warning(self) -> str | None:
        if not self.parse_errors:
            return None
        return "Parse errors: " + "; ".join(self.parse_errors)


def _from_serial(serial: float) -> datetime:
    if not 1 <= serial <= _MAX_SERIAL:
        raise InvalidCell(serial)
    return EXCEL_EPOCH + timedelta(days=serial)


def parse_date(value: Any, today: date) -> datetime | None:
    """Parse a spreadsheet date cell into a naive datetime.

    Accepts native date values, Excel serial numbers, relative words such
    as "tomorrow" and a handful of common written formats. Blank cells
    give None; anything else unparseable raises InvalidCell.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.astimezone().replace(tzinfo=None) if value.tzinfo else value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, bool):
        raise InvalidCell(value)
    if isinstance(value, (int, float)):
        return _from_serial(float(value))

    text = str(value).strip()
    if not text:
        return None

    word = text.lower().rstrip(".!")
    if word in RELATIVE_DAYS:
        return datetime.combine(today + timedelta(days=RELATIVE_DAYS[word]), time.min)

    if _SERIAL_RE.match(text):
        return _from_serial(float(text))

    try:
        parsed = datetime.fromisoformat(text)
        return parsed.astimezone().replace(tzinfo=None) if parsed.tzinfo else parsed
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    raise InvalidCell(value)


def parse_number(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidCell(value)
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        raise InvalidCell(value)
    if not math.isfinite(number):
        raise InvalidCell(value)
    return number


def cell_text(value: Any) -> str | None:
    """Cell as trimmed text; whole floats lose their ".0" (phone numbers, codes)."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    elif isinstance(value, datetime):
        value = value.date().isoformat() if value.time() == time.min else value.isoformat()
    elif isinstance(value, date):
        value = value.isoformat()
    text = str(value).strip()
    return text or None


def map_headers(headers: list[str]) -> tuple[dict[str, str], list[str]]:
    """Split source headers into {header: field} and the unrecognised rest."""
    mapping: dict[str, str] = {}
    unmapped: list[str] = []
    for header in headers:
        if not header:
            continue
        target = field_for_header(header)
        if target:
            mapping[header] = target
        else:
            unmapped.append(header)
    return mapping, unmapped


def normalize_row(
    source: SourceRow,
    mapping: dict[str, str],
    *,
    today: date,
    agent_name: str | None = None,
    min_populated_fields: int = 3,
) -> NormalizedRow:
    """Map, parse and default one row.

    Only values taken from the file count towards ``min_populated_fields``;
    the injected agent name and status defaults are applied afterwards.
    """
    result = NormalizedRow(row=source.row)

    for header, raw in source.values.items():
        target = mapping.get(header)
        if target is None:
            continue
        kind = FIELD_KINDS[target]
        try:
            if kind == "date":
                value = parse_date(raw, today)
            elif kind == "number":
                value = parse_number(raw)
            else:
                value = cell_text(raw)
        except InvalidCell:
            label = "Invalid date format" if kind == "date" else "Invalid number"
            result.parse_errors.append(f'{header}: {label} "{cell_text(raw) or raw}"')
            continue
        # A later alias column only fills a gap left by an earlier one.
        if value is not None or target not in result.data:
            result.data[target] = value

    result.data = {k: v for k, v in result.data.items() if v is not None}
    result.populated = len(result.data)

    if agent_name and not result.data.get("agent_name"):
        result.data["agent_name"] = agent_name
    result.data.setdefault("work_order_status", DEFAULT_STATUS)
    result.data.setdefault("job_status", DEFAULT_JOB_STATUS)

    if result.populated < min_populated_fields:
        result.skip_reason = (
            f"Insufficient data: {result.populated} of {min_populated_fields} "
            "required fields populated"
        )
    return result


def normalize_rows(
    rows: list[SourceRow],
    headers: list[str],
    *,
    today: date,
    agent_name: str | None = None,
    min_populated_fields: int = 3,
) -> list[NormalizedRow]:
    mapping, unmapped = map_headers(headers)
    if unmapped:
        logger.info("Ignoring unmapped import columns: %s", ", ".join(unmapped))
    return [
        normalize_row(
            r, mapping, today=today, agent_name=agent_name,
            min_populated_fields=min_populated_fields,
        )
        for r in rows
    ]
