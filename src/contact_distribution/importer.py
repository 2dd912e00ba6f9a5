"""Row sources - decode CSV and XLSX uploads into normalized row mappings."""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

from contact_distribution.core.errors import FileDecodeError, UnsupportedFileType

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {".csv"}
XLSX_EXTENSIONS = {".xlsx", ".xlsm"}


def normalize_header(name: Any) -> str:
    return "" if name is None else str(name).strip().lower()


class DecodedFile:
    """Header and data rows of one decoded file.

    Rows keep their file position (blank rows included) so that row numbers in
    validation messages line up with the source.
    """

    def __init__(self, header: list[str], rows: list[dict[str, Any]], source: str = ""):
        self.header = header
        self.rows = rows
        self.source = source

    def __repr__(self) -> str:
        return f"DecodedFile(source={self.source!r}, columns={self.header}, rows={len(self.rows)})"


def _rows_from_cells(
    header: list[str], data: list[list[Any]] | list[tuple[Any, ...]]
) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for cells in data:
        row: dict[str, Any] = {}
        for index, column in enumerate(header):
            if not column:
                continue
            value = cells[index] if index < len(cells) else None
            row[column] = "" if value is None else value
        rows.append(row)
    return rows


def read_csv_string(content: str, source: str = "csv_string") -> DecodedFile:
    """Decode CSV text. The first line is the header."""
    try:
        reader = csv.reader(io.StringIO(content))
        lines = list(reader)
    except csv.Error as e:
        raise FileDecodeError(f"CSV parsing failed: {e}") from e

    if not lines:
        return DecodedFile(header=[], rows=[], source=source)

    header = [normalize_header(h) for h in lines[0]]
    return DecodedFile(header=header, rows=_rows_from_cells(header, lines[1:]), source=source)


def read_xlsx_bytes(content: bytes, source: str = "xlsx_bytes") -> DecodedFile:
    """Decode the first worksheet of an XLSX workbook. The first row is the header."""
    try:
        workbook = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise FileDecodeError(f"Excel parsing failed: {e}") from e

    try:
        sheet = workbook.worksheets[0]
        lines = [list(r) for r in sheet.iter_rows(values_only=True)]
    except Exception as e:
        raise FileDecodeError(f"Excel sheet could not be read: {e}") from e
    finally:
        workbook.close()

    if not lines:
        raise FileDecodeError("Excel file must contain at least a header row")

    header = [normalize_header(h) for h in lines[0]]
    return DecodedFile(header=header, rows=_rows_from_cells(header, lines[1:]), source=source)


def decode_upload(file_name: str, content: bytes) -> DecodedFile:
    """Decode uploaded bytes, choosing the format from the file extension."""
    suffix = Path(file_name).suffix.lower()
    if suffix in CSV_EXTENSIONS:
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise FileDecodeError(f"CSV file is not valid UTF-8: {e}") from e
        decoded = read_csv_string(text, source=file_name)
    elif suffix in XLSX_EXTENSIONS:
        decoded = read_xlsx_bytes(content, source=file_name)
    else:
        raise UnsupportedFileType(suffix)

    logger.info("Decoded %s: %d columns, %d rows", file_name, len(decoded.header), len(decoded.rows))
    return decoded


def read_file(file_path: str | Path) -> DecodedFile:
    path = Path(file_path)
    return decode_upload(path.name, path.read_bytes())
