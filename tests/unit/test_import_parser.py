import io
from datetime import datetime

import pytest
from openpyxl import Workbook

from app.exceptions import ImportFileError
from app.services.import_parser import parse_import_file


def test_csv_rows_are_keyed_by_header_and_numbered_from_two():
    content = (
        "\ufeffCustomer Name,Phone,Description\n"
        'Sara,0501,"Leak, under sink"\n'
        ",,\n"
        "Omar,0502,Check pump\n"
    ).encode("utf-8")
    sheet = parse_import_file(content, "orders.csv")
    assert sheet.headers == ["Customer Name", "Phone", "Description"]
    assert [r.row for r in sheet.rows] == [2, 4]
    assert sheet.rows[0].values["Description"] == "Leak, under sink"


def test_csv_latin1_fallback():
    content = "Customer Name,Area\nJos\xe9,Deira\n".encode("latin-1")
    sheet = parse_import_file(content, "orders.CSV")
    assert sheet.rows[0].values["Customer Name"] == "José"


def test_xlsx_first_sheet_is_read():
    wb = Workbook()
    ws = wb.active
    ws.append(["WO Number", "Customer Name", "Visit Date"])
    ws.append(["WO1", "Sara", datetime(2025, 1, 10)])
    buf = io.BytesIO()
    wb.save(buf)

    sheet = parse_import_file(buf.getvalue(), "orders.xlsx")
    assert sheet.headers == ["WO Number", "Customer Name", "Visit Date"]
    assert sheet.rows[0].values["Visit Date"] == datetime(2025, 1, 10)


def test_legacy_xls_first_sheet_is_read():
    xlwt = pytest.importorskip("xlwt")
    book = xlwt.Workbook()
    ws = book.add_sheet("Orders")
    date_style = xlwt.easyxf(num_format_str="YYYY-MM-DD")
    for col, header in enumerate(["WO Number", "Customer Name", "Phone", "Visit Date"]):
        ws.write(0, col, header)
    ws.write(1, 0, "WO1")
    ws.write(1, 1, "Sara")
    ws.write(1, 2, 501234567)
    ws.write(1, 3, datetime(2025, 1, 10), date_style)
    ws.write(3, 1, "Omar")
    book.add_sheet("Ignored").write(0, 0, "Other")
    buf = io.BytesIO()
    book.save(buf)

    sheet = parse_import_file(buf.getvalue(), "orders.XLS")
    assert sheet.headers == ["WO Number", "Customer Name", "Phone", "Visit Date"]
    assert [r.row for r in sheet.rows] == [2, 4]
    first = sheet.rows[0].values
    assert first["Visit Date"] == datetime(2025, 1, 10)
    assert first["Phone"] == 501234567.0
    assert sheet.rows[1].values["WO Number"] is None


@pytest.mark.parametrize("content,filename,message", [
    (b"", "a.csv", "empty"),
    (b"a,b\n1,2\n", "a.txt", "CSV or Excel"),
    (b"a,b\n1,2\n", "a.xls", "Excel"),
    (b"\n\n", "a.csv", "header"),
    (b"not a zip", "a.xlsx", "Excel"),
])
def test_unusable_files_are_rejected(content, filename, message):
    with pytest.raises(ImportFileError) as exc_info:
        parse_import_file(content, filename)
    assert message in exc_info.value.message


def test_upload_size_limit():
    with pytest.raises(ImportFileError):
        parse_import_file(b"a,b\n" * 100, "a.csv", max_bytes=10)
