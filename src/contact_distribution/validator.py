"""Row validation - normalize raw rows into contact records or row-level rejections."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping, Sequence

from contact_distribution.core.config import Settings
from contact_distribution.core.errors import EmptyInput, RowValidationError, SchemaError
from contact_distribution.core.models import ContactRecord, RowRejection

logger = logging.getLogger(__name__)

# Normalized column key -> display name
REQUIRED_COLUMNS: dict[str, str] = {
    "firstname": "First Name",
    "phone": "Phone",
}
NOTES_COLUMN = "notes"

# Optional leading "+", then digits, whitespace, parentheses and hyphens only
PHONE_PATTERN = re.compile(r"^\+?[\d\s()-]+$", re.ASCII)

# Spreadsheet data rows start after the header row
FIRST_DATA_ROW = 2


def normalize_column(name: Any) -> str:
    """Case- and whitespace-insensitive column key ("First Name" -> "firstname")."""
    return "".join(str(name).split()).lower()


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    # Spreadsheet cells holding phone numbers come back as floats
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _is_blank(row: Mapping[str, Any]) -> bool:
    return not any(_cell_text(v) for v in row.values())


class RowValidator:
    """Validates decoded rows against the contact schema."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()

    def check_header(self, columns: Iterable[Any]) -> None:
        """Raise SchemaError if a required column is absent."""
        present = {normalize_column(c) for c in columns}
        missing = [label for key, label in REQUIRED_COLUMNS.items() if key not in present]
        if missing:
            raise SchemaError(missing)

    def validate_row(
        self, row: Mapping[str, Any], row_number: int
    ) -> ContactRecord | RowRejection:
        """Validate one row. The first failing rule decides the rejection reason."""
        cells = {normalize_column(k): v for k, v in row.items()}

        first_name = _cell_text(cells.get("firstname"))
        if not first_name:
            return RowRejection(row_number=row_number, reason="First name is required")
        if len(first_name) > self.settings.first_name_max_length:
            return RowRejection(
                row_number=row_number,
                reason=(
                    f"First name cannot exceed "
                    f"{self.settings.first_name_max_length} characters"
                ),
            )

        phone = _cell_text(cells.get("phone"))
        if not phone:
            return RowRejection(row_number=row_number, reason="Phone is required")
        if not PHONE_PATTERN.match(phone):
            return RowRejection(row_number=row_number, reason="Invalid phone number format")

        notes = _cell_text(cells.get(NOTES_COLUMN))[: self.settings.notes_max_length]

        return ContactRecord(first_name=first_name, phone=phone, notes=notes)

    def validate(
        self,
        rows: Sequence[Mapping[str, Any]],
        header: Iterable[Any] | None = None,
    ) -> list[ContactRecord]:
        """Validate every row; all-or-nothing.

        Blank rows are skipped but keep their position for row numbering.
        Raises SchemaError, EmptyInput or RowValidationError (listing every
        offending row).
        """
        if header is not None:
            self.check_header(header)

        numbered = [
            (index + FIRST_DATA_ROW, row)
            for index, row in enumerate(rows)
            if not _is_blank(row)
        ]
        if not numbered:
            raise EmptyInput()

        if header is None:
            self.check_header(numbered[0][1].keys())

        records: list[ContactRecord] = []
        rejections: list[RowRejection] = []
        for row_number, row in numbered:
            result = self.validate_row(row, row_number)
            if isinstance(result, RowRejection):
                rejections.append(result)
            else:
                records.append(result)

        if rejections:
            logger.info("Rejected %d of %d rows", len(rejections), len(numbered))
            raise RowValidationError(rejections)

        return records
