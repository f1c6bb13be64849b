"""Read an uploaded CSV, XLSX or legacy XLS file into header-keyed rows."""

from __future__ import annotations

import csv
import io
import struct
from dataclasses import dataclass, field
from typing import Any
from zipfile import BadZipFile

import openpyxl
import xlrd
from openpyxl.utils.exceptions import InvalidFileException
from xlrd.compdoc import CompDocError

from app.exceptions import ImportFileError


@dataclass
class SourceRow:
    row: int  # spreadsheet row number; the header is row 1
    values: dict[str, Any]


@dataclass
class ParsedSheet:
    headers: list[str]
    rows: list[SourceRow] = field(default_factory=list)


def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def _is_blank(cells) -> bool:
    return all(c is None or (isinstance(c, str) and not c.strip()) for c in cells)


def _build(records: list[list[Any]]) -> ParsedSheet:
    if not records or _is_blank(records[0]):
        raise ImportFileError("File has no header row")

    headers = [str(h).strip() if h is not None else "" for h in records[0]]
    sheet = ParsedSheet(headers=headers)
    for index, cells in enumerate(records[1:], start=2):
        if _is_blank(cells):
            continue
        values: dict[str, Any] = {}
        for header, value in zip(headers, cells):
            if header and header not in values:
                values[header] = value
        sheet.rows.append(SourceRow(row=index, values=values))
    return sheet


def parse_csv(content: bytes) -> ParsedSheet:
    text = _decode(content)
    try:
        records = list(csv.reader(io.StringIO(text), delimiter=",", quotechar='"'))
    except csv.Error as exc:
        raise ImportFileError(f"Failed to parse CSV file: {exc}") from exc
    return _build(records)


def parse_xlsx(content: bytes) -> ParsedSheet:
    """First worksheet only; cell values as stored (dates come back as datetimes)."""
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as exc:
        raise ImportFileError(f"Failed to parse Excel file: {exc}") from exc
    try:
        if not wb.worksheets:
            raise ImportFileError("Workbook has no worksheets")
        records = [list(r) for r in wb.worksheets[0].iter_rows(values_only=True)]
    finally:
        wb.close()
    return _build(records)


def _xls_value(cell, datemode: int) -> Any:
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(cell.value, datemode)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return None
    return cell.value


def parse_xls(content: bytes) -> ParsedSheet:
    """Legacy BIFF workbook, first worksheet only."""
    try:
        book = xlrd.open_workbook(file_contents=content, on_demand=True)
    except (xlrd.XLRDError, CompDocError, struct.error, ValueError) as exc:
        raise ImportFileError(f"Failed to parse Excel file: {exc}") from exc
    try:
        if not book.nsheets:
            raise ImportFileError("Workbook has no worksheets")
        sheet = book.sheet_by_index(0)
        records = [
            [_xls_value(cell, book.datemode) for cell in sheet.row(index)]
            for index in range(sheet.nrows)
        ]
    finally:
        book.release_resources()
    return _build(records)


def parse_import_file(content: bytes, filename: str, max_bytes: int | None = None) -> ParsedSheet:
    """Dispatch on file extension. Any failure here aborts the whole import."""
    if not content:
        raise ImportFileError("Uploaded file is empty")
    if max_bytes is not None and len(content) > max_bytes:
        raise ImportFileError(f"File exceeds the {max_bytes} byte upload limit")

    name = (filename or "").lower()
    if name.endswith(".csv"):
        return parse_csv(content)
    if name.endswith((".xlsx", ".xlsm")):
        return parse_xlsx(content)
    if name.endswith(".xls"):
        return parse_xls(content)
    raise ImportFileError("Please upload a CSV or Excel file (.csv, .xlsx, .xls)")
