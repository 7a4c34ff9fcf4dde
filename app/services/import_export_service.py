"""
Import / Export Service.

Reads CSV and Excel (``.xlsx``) uploads of transactions, categories or
budgets and writes the same shapes back out.

Import rules:
    - Header names are matched case-insensitively after snake_case
      normalization (``Budget Amount`` -> ``budget_amount``).
    - Each row is validated and saved on its own; a bad row never stops
      the run.  ``imported + updated + skipped + failed == total_rows``.
    - Transactions resolve their category by id or by name.  With
      ``skip_duplicates`` a row identical to a stored transaction (type,
      amount, description, category, date) is skipped.
    - Categories and budgets that already exist are skipped, or updated
      in place with ``update_existing``.

Excel reading follows the usual openpyxl pattern: ``read_only`` and
``data_only`` workbook, first row as header, a run of empty rows ends
the table.
"""

from __future__ import annotations

import csv
import io
from datetime import date
from typing import Optional, Union

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from pydantic import BaseModel, ValidationError

from app.config import AppConfig
from app.logger import StructuredLogger
from app.models.budget import BudgetCreate, BudgetUpdate
from app.models.category import Category, CategoryCreate, CategoryUpdate
from app.models.enums import DataType, ErrorCode, FileFormat, ImportOutcome, SortOrder, TransactionType
from app.models.fields import is_valid_uuid
from app.models.service_models import ImportResult, ImportRowError, ListOptions, ServiceResult
from app.models.transaction import TransactionCreate
from app.repositories.budget_repository import BudgetRepository
from app.repositories.category_repository import CategoryRepository
from app.repositories.transaction_repository import TransactionRepository
from app.services.base_service import BaseService
from app.services.budget_service import BudgetService
from app.services.category_service import CategoryService
from app.services.transaction_service import TransactionService
from app.utils.audit import log_audit_event
from app.utils.general import convert_to_json_safe
from app.utils.string_helpers import to_snake_case

CellValue = Union[str, int, float, bool, date, None]
RawRow = dict[str, CellValue]

MAX_EMPTY_ROWS: int = 5
_TRUE_STRINGS = frozenset({"true", "yes", "1", "y", "active"})
_EXCEL_ERRORS = frozenset({"#N/A", "#VALUE!", "#REF!", "#DIV/0!", "#NUM!", "#NAME?", "#NULL!"})

MEDIA_TYPES: dict[FileFormat, str] = {
    FileFormat.CSV: "text/csv",
    FileFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

EXPORT_COLUMNS: dict[DataType, tuple[str, ...]] = {
    DataType.TRANSACTIONS: ("date", "type", "description", "amount", "category", "category_id"),
    DataType.CATEGORIES: ("name", "type", "color", "icon", "description", "parent", "is_active", "is_default"),
    DataType.BUDGETS: (
        "name", "category", "amount", "period", "start_date", "end_date",
        "alert_threshold", "is_active",
    ),
}

REQUIRED_COLUMNS: dict[DataType, tuple[str, ...]] = {
    DataType.TRANSACTIONS: ("amount", "description", "category", "date"),
    DataType.CATEGORIES: ("name", "type"),
    DataType.BUDGETS: ("category", "amount", "period", "start_date"),
}

# Accepted header spellings (after snake_case) mapped to canonical column names.
COLUMN_ALIASES: dict[str, str] = {
    "transaction_type": "type",
    "transaction_date": "date",
    "category_name": "category",
    "budget_amount": "amount",
    "budget_name": "name",
    "category_type": "type",
    "parent_name": "parent",
    "parent_category": "parent",
    "active": "is_active",
    "threshold": "alert_threshold",
}

TEMPLATE_ROWS: dict[DataType, tuple[RawRow, ...]] = {
    DataType.TRANSACTIONS: (
        {"date": "2024-01-15", "type": "expense", "description": "Groceries", "amount": 45.0,
         "category": "Food & Dining", "category_id": None},
        {"date": "2024-01-31", "type": "income", "description": "Monthly salary", "amount": 3200.0,
         "category": "Salary", "category_id": None},
    ),
    DataType.CATEGORIES: (
        {"name": "Groceries", "type": "expense", "color": "#FF6B6B", "icon": "shopping-cart",
         "description": "Supermarket purchases", "parent": "Food & Dining", "is_active": True,
         "is_default": False},
        {"name": "Bonus", "type": "income", "color": "#2ECC71", "icon": "gift",
         "description": None, "parent": None, "is_active": True, "is_default": False},
    ),
    DataType.BUDGETS: (
        {"name": "Monthly food", "category": "Food & Dining", "amount": 500.0, "period": "monthly",
         "start_date": "2024-01-01", "end_date": None, "alert_threshold": 80, "is_active": True},
        {"name": "Yearly transport", "category": "Transportation", "amount": 2400.0,
         "period": "yearly", "start_date": "2024-01-01", "end_date": None, "alert_threshold": 90,
         "is_active": True},
    ),
}


class ExportFile(BaseModel):
    """A rendered export or template ready to stream to the client."""

    file_name: str
    media_type: str
    content: bytes


# ---------------------------------------------------------------------------
# Module-level file helpers
# ---------------------------------------------------------------------------

def detect_format(file_name: str) -> Optional[FileFormat]:
    suffix = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    try:
        return FileFormat(suffix)
    except ValueError:
        return None


def _canonical_header(header: object) -> str:
    key = to_snake_case(str(header or "").strip())
    return COLUMN_ALIASES.get(key, key)


def _clean_cell(value: object) -> CellValue:
    """Blank strings become ``None``; Excel error strings (``#VALUE!``) too."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text or text.upper() in _EXCEL_ERRORS:
            return None
        return text
    if hasattr(value, "date") and callable(value.date):
        return value.date()
    return value


def read_csv_rows(content: bytes) -> list[RawRow]:
    """Rows of a CSV file keyed by canonical header; fully blank rows are dropped."""
    text = content.decode("utf-8-sig")
    reader = csv.reader(io.StringIO(text))
    try:
        headers = [_canonical_header(h) for h in next(reader)]
    except StopIteration:
        return []
    rows: list[RawRow] = []
    for values in reader:
        row = {header: _clean_cell(value) for header, value in zip(headers, values) if header}
        if any(value is not None for value in row.values()):
            rows.append(row)
    return rows


def read_xlsx_rows(content: bytes) -> list[RawRow]:
    """Rows of the first worksheet keyed by canonical header.

    Reading stops after ``MAX_EMPTY_ROWS`` consecutive empty rows.
    """
    workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        worksheet = workbook.worksheets[0]
        row_iter = worksheet.iter_rows(values_only=True)
        header_row = next(row_iter, None)
        if header_row is None:
            return []
        headers = [_canonical_header(h) for h in header_row]

        rows: list[RawRow] = []
        empty_row_count = 0
        for values in row_iter:
            row = {header: _clean_cell(value) for header, value in zip(headers, values) if header}
            if all(value is None for value in row.values()):
                empty_row_count += 1
                if empty_row_count >= MAX_EMPTY_ROWS:
                    break
                continue
            empty_row_count = 0
            rows.append(row)
        return rows
    finally:
        workbook.close()


def write_csv(columns: tuple[str, ...], rows: list[RawRow]) -> bytes:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(columns), extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({key: "" if value is None else value for key, value in row.items()})
    return buffer.getvalue().encode("utf-8")


def write_xlsx(columns: tuple[str, ...], rows: list[RawRow], sheet_title: str) -> bytes:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = sheet_title[:31]
    worksheet.append(list(columns))
    for cell in worksheet[1]:
        cell.font = Font(bold=True)
    for row in rows:
        worksheet.append([row.get(column) for column in columns])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _as_bool(value: CellValue, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_STRINGS


def _as_lower(value: CellValue) -> Optional[str]:
    return str(value).strip().lower() if value is not None else None


class _RowFailure(Exception):
    """A single import row could not be saved."""


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ImportExportService(BaseService):
    """
    Service layer for file import and export.

    Writes go through the entity services so imported rows obey the
    same business rules as API requests.
    """

    def __init__(
        self,
        transaction_service: TransactionService,
        category_service: CategoryService,
        budget_service: BudgetService,
        transaction_repo: TransactionRepository,
        category_repo: CategoryRepository,
        budget_repo: BudgetRepository,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._transaction_service = transaction_service
        self._category_service = category_service
        self._budget_service = budget_service
        self._transaction_repo = transaction_repo
        self._category_repo = category_repo
        self._budget_repo = budget_repo
        self._config = config

    def get_config(self) -> ServiceResult:
        """Supported formats, data types, columns and the upload size limit."""
        return ServiceResult(
            success=True,
            data={
                "supported_formats": [f.value for f in FileFormat],
                "data_types": [d.value for d in DataType],
                "max_file_size": self._config.MAX_FILE_SIZE,
                "columns": {d.value: list(EXPORT_COLUMNS[d]) for d in DataType},
                "required_columns": {d.value: list(REQUIRED_COLUMNS[d]) for d in DataType},
            },
        )

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_file(
        self,
        file_name: str,
        content: bytes,
        data_type: DataType,
        skip_duplicates: bool = True,
        update_existing: bool = False,
    ) -> ServiceResult:
        """
        Import every row of an uploaded file.

        Steps:
            1. Check size and format.
            2. Parse the file into header-keyed rows.
            3. Check required columns.
            4. Save each row independently and tally the outcome.
        """
        # 1. Size and format
        if len(content) > self._config.MAX_FILE_SIZE:
            return self._fail(
                f"File exceeds the maximum size of {self._config.MAX_FILE_SIZE} bytes",
                ErrorCode.FILE_TOO_LARGE,
                413,
            )
        file_format = detect_format(file_name)
        if file_format is None:
            return self._fail(
                "Unsupported file format. Upload a .csv or .xlsx file.",
                ErrorCode.UNSUPPORTED_FORMAT,
            )

        # 2. Parse
        try:
            rows = read_csv_rows(content) if file_format == FileFormat.CSV else read_xlsx_rows(content)
        except Exception as exc:
            self._logger.warning("Could not parse import file %s: %s", file_name, exc)
            return self._fail(f"Could not read file: {exc}", ErrorCode.IMPORT_FAILED)

        # 3. Required columns
        present = set().union(*(row.keys() for row in rows)) if rows else set()
        aliases = {"category": {"category", "category_id"}}
        missing = [
            column for column in REQUIRED_COLUMNS[data_type]
            if not (aliases.get(column, {column}) & present)
        ]
        if rows and missing:
            return self._fail(
                f"Missing required columns: {', '.join(missing)}",
                ErrorCode.IMPORT_FAILED,
                details={"missing_columns": missing},
            )

        # 4. Rows
        result = ImportResult(data_type=data_type, file_name=file_name, total_rows=len(rows))
        categories = self._load_categories()
        if categories is None:
            return self._fail("Failed to load categories", ErrorCode.DATABASE_ERROR, 500)

        for offset, row in enumerate(rows):
            row_number = offset + 2  # header is row 1
            try:
                if data_type == DataType.TRANSACTIONS:
                    outcome = self._import_transaction(row, categories, skip_duplicates)
                elif data_type == DataType.CATEGORIES:
                    outcome = self._import_category(row, categories, update_existing)
                else:
                    outcome = self._import_budget(row, categories, update_existing)
            except ValidationError as exc:
                failure = self._invalid(exc)
                result.errors.append(ImportRowError(
                    row=row_number, error=failure.error, data=convert_to_json_safe(row),
                ))
                continue
            except _RowFailure as exc:
                result.errors.append(ImportRowError(
                    row=row_number, error=str(exc), data=convert_to_json_safe(row),
                ))
                continue

            if outcome == ImportOutcome.IMPORTED:
                result.imported += 1
            elif outcome == ImportOutcome.UPDATED:
                result.updated += 1
            else:
                result.skipped += 1

        result.failed = len(result.errors)
        self._logger.info(
            "Import of %s (%s): %d imported, %d updated, %d skipped, %d failed",
            file_name, data_type, result.imported, result.updated, result.skipped, result.failed,
        )
        log_audit_event(
            logger=self._logger,
            action="IMPORT",
            entity_type=data_type.value,
            entity_id=file_name,
            details={
                "imported": result.imported,
                "updated": result.updated,
                "skipped": result.skipped,
                "failed": result.failed,
            },
        )
        return ServiceResult(success=True, data=result)

    def _load_categories(self) -> Optional[list[Category]]:
        result = self._category_repo.find_all()
        if not result.ok:
            self._logger.error("Could not load categories for import: %s", result.error)
            return None
        return result.data

    @staticmethod
    def _resolve_category(
        row: RawRow,
        categories: list[Category],
        wanted_type: Optional[str] = None,
    ) -> Category:
        """Match the row's category by id, else by case-insensitive name."""
        reference = row.get("category_id") or row.get("category")
        if reference is None:
            raise _RowFailure("Category is required")
        text = str(reference).strip()
        if is_valid_uuid(text):
            for category in categories:
                if category.id == text.lower():
                    return category
        matches = [c for c in categories if c.name.casefold() == text.casefold()]
        if wanted_type:
            matches = [c for c in matches if c.type.value == wanted_type] or matches
        if not matches:
            raise _RowFailure(f"Category '{text}' not found")
        return matches[0]

    def _raise_on_failure(self, result: ServiceResult) -> None:
        if not result.success:
            raise _RowFailure(result.error or "Row could not be saved")

    def _import_transaction(
        self, row: RawRow, categories: list[Category], skip_duplicates: bool
    ) -> ImportOutcome:
        category = self._resolve_category(row, categories, _as_lower(row.get("type")))
        payload = TransactionCreate.model_validate({
            "type": _as_lower(row.get("type")) or category.type.value,
            "amount": row.get("amount"),
            "description": row.get("description"),
            "category_id": category.id,
            "date": row.get("date"),
        })

        if skip_duplicates:
            duplicate = self._transaction_repo.find_duplicate(
                payload.type, payload.amount, payload.description, payload.category_id, payload.date,
            )
            if not duplicate.ok:
                raise _RowFailure(f"Duplicate check failed: {duplicate.error}")
            if duplicate.data is not None:
                return ImportOutcome.SKIPPED

        self._raise_on_failure(self._transaction_service.create_transaction(payload))
        return ImportOutcome.IMPORTED

    def _import_category(
        self, row: RawRow, categories: list[Category], update_existing: bool
    ) -> ImportOutcome:
        category_type = _as_lower(row.get("type"))
        parent_id: Optional[str] = None
        if row.get("parent"):
            parent = self._resolve_category({"category": row["parent"]}, categories, category_type)
            parent_id = parent.id

        name = str(row.get("name") or "").strip()
        existing = next(
            (
                c for c in categories
                if c.name.casefold() == name.casefold() and c.type.value == category_type
            ),
            None,
        )
        if existing is not None:
            if not update_existing:
                return ImportOutcome.SKIPPED
            fields = {
                key: row[key] for key in ("color", "icon", "description") if row.get(key) is not None
            }
            if row.get("is_active") is not None:
                fields["is_active"] = _as_bool(row["is_active"])
            if not fields:
                return ImportOutcome.SKIPPED
            result = self._category_service.update_category(
                existing.id, CategoryUpdate.model_validate(fields),
            )
            self._raise_on_failure(result)
            categories[categories.index(existing)] = result.data
            return ImportOutcome.UPDATED

        payload = CategoryCreate.model_validate({
            "name": name,
            "type": category_type,
            "color": row.get("color") or "#95A5A6",
            "icon": row.get("icon") or "ellipsis-h",
            "description": row.get("description"),
            "parent_id": parent_id,
        })
        result = self._category_service.create_category(payload)
        self._raise_on_failure(result)
        categories.append(result.data)
        return ImportOutcome.IMPORTED

    def _import_budget(
        self, row: RawRow, categories: list[Category], update_existing: bool
    ) -> ImportOutcome:
        category = self._resolve_category(row, categories, TransactionType.EXPENSE.value)
        fields: dict[str, object] = {
            "category_id": category.id,
            "amount": row.get("amount"),
            "period": _as_lower(row.get("period")),
            "start_date": row.get("start_date"),
            "is_active": _as_bool(row.get("is_active")),
        }
        for key in ("name", "end_date", "alert_threshold"):
            if row.get(key) is not None:
                fields[key] = row[key]
        payload = BudgetCreate.model_validate(fields)

        existing = self._budget_repo.find_one({
            "category_id": category.id, "start_date": payload.start_date,
        })
        if not existing.ok:
            raise _RowFailure(f"Budget lookup failed: {existing.error}")
        if existing.data is not None:
            if not update_existing:
                return ImportOutcome.SKIPPED
            update = BudgetUpdate.model_validate(
                payload.model_dump(exclude_none=True, exclude={"category_id", "start_date"})
            )
            self._raise_on_failure(self._budget_service.update_budget(existing.data.id, update))
            return ImportOutcome.UPDATED

        self._raise_on_failure(self._budget_service.create_budget(payload))
        return ImportOutcome.IMPORTED

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_data(
        self,
        data_type: DataType,
        file_format: FileFormat = FileFormat.CSV,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> ServiceResult:
        """Render every row of *data_type* (optionally within a date range) as a file."""
        categories = self._load_categories()
        if categories is None:
            return self._fail("Failed to load categories", ErrorCode.DATABASE_ERROR, 500)
        names = {c.id: c.name for c in categories}

        if data_type == DataType.TRANSACTIONS:
            result = self._transaction_repo.find_by_date_range(start_date, end_date)
            if not result.ok:
                return self._storage_failure("export transactions", result)
            rows = [
                {
                    "date": t.date, "type": t.type.value, "description": t.description,
                    "amount": float(t.amount), "category": names.get(t.category_id),
                    "category_id": t.category_id,
                }
                for t in result.data
            ]
        elif data_type == DataType.CATEGORIES:
            rows = [
                {
                    "name": c.name, "type": c.type.value, "color": c.color, "icon": c.icon,
                    "description": c.description, "parent": names.get(c.parent_id or ""),
                    "is_active": c.is_active, "is_default": c.is_default,
                }
                for c in sorted(categories, key=lambda c: (c.type.value, c.name.casefold()))
            ]
        else:
            result = self._budget_repo.find_all(
                {"gte_start_date": start_date, "lte_start_date": end_date},
                ListOptions(sort="start_date", order=SortOrder.ASC),
            )
            if not result.ok:
                return self._storage_failure("export budgets", result)
            rows = [
                {
                    "name": b.name, "category": names.get(b.category_id), "amount": float(b.amount),
                    "period": b.period.value, "start_date": b.start_date, "end_date": b.end_date,
                    "alert_threshold": float(b.alert_threshold), "is_active": b.is_active,
                }
                for b in result.data
            ]

        stamp = date.today().isoformat()
        export = self._render(data_type, file_format, rows, f"{data_type.value}_{stamp}")
        log_audit_event(
            logger=self._logger,
            action="EXPORT",
            entity_type=data_type.value,
            entity_id=export.file_name,
            details={"rows": len(rows), "format": file_format.value},
        )
        return ServiceResult(success=True, data=export)

    def get_template(self, data_type: DataType, file_format: FileFormat = FileFormat.CSV) -> ServiceResult:
        """Header row plus example rows for *data_type*."""
        rows = list(TEMPLATE_ROWS[data_type])
        return ServiceResult(
            success=True,
            data=self._render(data_type, file_format, rows, f"{data_type.value}_template"),
        )

    @staticmethod
    def _render(
        data_type: DataType, file_format: FileFormat, rows: list[RawRow], base_name: str
    ) -> ExportFile:
        columns = EXPORT_COLUMNS[data_type]
        if file_format == FileFormat.XLSX:
            content = write_xlsx(columns, rows, data_type.value.capitalize())
        else:
            content = write_csv(columns, rows)
        return ExportFile(
            file_name=f"{base_name}.{file_format.value}",
            media_type=MEDIA_TYPES[file_format],
            content=content,
        )
