"""Bank statement CSV parsing.

Turns raw upload bytes into `ParsedRow` values: decoding with Japanese bank
encodings, template detection, formula-injection escaping, column mapping and
date/amount coercion.
"""

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Sequence

from tallybook.domain.entities import CsvTemplate, ParsedRow, TransactionType
from tallybook.domain.errors import ValidationError
from tallybook.utils.amount_parser import parse_amount
from tallybook.utils.date_parser import parse_date

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 1000
MAX_FILE_SIZE = 10 * 1024 * 1024

# Template encoding names mapped to Python codecs
_CODECS = {
    "UTF-8": "utf-8-sig",
    "SHIFT-JIS": "cp932",
    "SHIFT_JIS": "cp932",
    "SJIS": "cp932",
    "EUC-JP": "euc_jp",
    "ISO-2022-JP": "iso2022_jp",
}

_FORMULA_PREFIXES = ("=", "+", "-", "@", "|", "%")
_PLAIN_NEGATIVE = re.compile(r"-\d+(\.\d+)?")

_DATE_COLUMNS = ("date", "Date", "日付", "取引日")
_DESCRIPTION_COLUMNS = ("description", "Description", "摘要", "内容", "お取引内容")
_AMOUNT_COLUMNS = ("amount", "Amount", "金額", "利用金額")

_INCOME_MARKERS = ("入金", "入", "収入", "deposit", "credit", "in")
_EXPENSE_MARKERS = ("出金", "出", "支出", "引き落とし", "withdrawal", "debit", "out")


@dataclass(frozen=True)
class CsvParseOptions:
    """How to read one file."""

    encoding: str = "UTF-8"
    delimiter: str = ","
    skip_rows: int = 0
    max_rows: Optional[int] = DEFAULT_MAX_ROWS

    @classmethod
    def from_template(cls, template: Optional[CsvTemplate]) -> "CsvParseOptions":
        if template is None:
            return cls()
        return cls(
            encoding=template.encoding or "UTF-8",
            delimiter=template.delimiter or ",",
            skip_rows=template.skip_rows or 0,
        )


@dataclass
class CsvParseResult:
    """Column maps read from the file plus per-line problems."""

    data: list[dict[str, str]] = field(default_factory=list)
    columns: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class ConversionResult:
    """Canonical rows plus the reasons rows were dropped."""

    rows: list[ParsedRow] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def python_codec(encoding: str) -> str:
    """Map a template encoding name to a Python codec name."""
    return _CODECS.get(encoding.strip().upper(), encoding)


def decode_content(content: bytes, encoding: str = "UTF-8") -> str:
    """Decode upload bytes, replacing undecodable sequences."""
    try:
        return content.decode(python_codec(encoding), errors="replace")
    except LookupError as e:
        raise ValidationError(f"Unsupported file encoding '{encoding}'") from e


def sanitize_csv_value(value: str) -> str:
    """Escape values a spreadsheet would evaluate as a formula.

    Plain negative numbers such as "-123.45" are left alone.
    """
    stripped = value.lstrip()
    if not stripped.startswith(_FORMULA_PREFIXES):
        return value
    if _PLAIN_NEGATIVE.fullmatch(stripped):
        return value
    return f"'{value}"


def validate_csv_file(file_name: str, file_size: int) -> None:
    """Check the file name and size of an upload.

    Raises:
        ValidationError: If the file is not a .csv file or is larger than 10MB
    """
    problems = []
    if not file_name.lower().endswith(".csv"):
        problems.append("File must be a CSV file")
    if file_size > MAX_FILE_SIZE:
        problems.append(f"File size exceeds 10MB limit (current: {file_size / 1024 / 1024:.2f}MB)")
    if problems:
        raise ValidationError(", ".join(problems))


def validate_csv_content(content: bytes) -> None:
    """Reject uploads that cannot be a CSV file before parsing them.

    Raises:
        ValidationError: If the content is empty or has no delimiter in its first 3 lines
    """
    if not content:
        raise ValidationError("The uploaded file is empty.")

    text = content.decode("utf-8", errors="replace").strip()
    if not text:
        raise ValidationError("The uploaded file has no content.")

    head = "\n".join(text.split("\n")[:3])
    if not any(delimiter in head for delimiter in (",", "\t", ";")):
        raise ValidationError(
            "The file is not recognized as CSV: no delimiter (comma, tab or semicolon) found."
        )


def parse_csv_data(content: bytes, options: Optional[CsvParseOptions] = None) -> CsvParseResult:
    """Read the file into one dict per data line, keyed by header.

    Lines whose column count differs from the header are reported in
    `errors` and skipped. Blank lines are ignored.

    Args:
        content: Raw file bytes
        options: Encoding, delimiter, leading lines to skip and row cap

    Returns:
        CsvParseResult with the rows, header columns and line errors
    """
    options = options or CsvParseOptions()
    result = CsvParseResult()

    text = decode_content(content, options.encoding)
    lines = text.splitlines()[options.skip_rows:]

    try:
        reader = csv.reader(lines, delimiter=options.delimiter)
        header: Optional[list[str]] = None
        for line_number, values in enumerate(reader, start=options.skip_rows + 1):
            if not any(v.strip() for v in values):
                continue
            values = [v.strip() for v in values]
            if header is None:
                header = values
                result.columns = list(header)
                continue
            if options.max_rows is not None and len(result.data) >= options.max_rows:
                break
            if len(values) != len(header):
                result.errors.append(
                    f"Line {line_number}: expected {len(header)} columns, found {len(values)}"
                )
                continue
            result.data.append({key: sanitize_csv_value(value) for key, value in zip(header, values)})
    except csv.Error as e:
        result.errors.append(f"CSV parse error: {e}")

    return result


def detect_csv_template(content: bytes, templates: Sequence[CsvTemplate]) -> Optional[CsvTemplate]:
    """Find the first active template whose required columns are in the header.

    Each template's header is read with that template's own encoding,
    delimiter and skip rows, so a match can always be parsed with it.
    """
    headers: dict[tuple[str, str, int], set[str]] = {}

    def header_for(encoding: str, delimiter: str, skip_rows: int) -> set[str]:
        key = (encoding, delimiter, skip_rows)
        if key not in headers:
            options = CsvParseOptions(encoding=encoding, delimiter=delimiter, skip_rows=skip_rows, max_rows=1)
            headers[key] = set(parse_csv_data(content, options).columns)
        return headers[key]

    for template in templates:
        if not template.is_active:
            continue
        mapping = template.column_mapping
        required = [
            mapping.get("date"),
            mapping.get("description"),
            mapping.get("amount") or mapping.get("deposit") or mapping.get("withdrawal"),
        ]
        if not all(required):
            continue
        columns = header_for(template.encoding or "UTF-8", template.delimiter or ",", template.skip_rows or 0)
        if all(col in columns for col in required):
            logger.debug("Detected CSV template %s", template.template_name)
            return template
    return None


def determine_transaction_type(value: str) -> Optional[TransactionType]:
    """Classify a type column value such as "入金" or "debit"."""
    value = value.lower().strip()
    if value == "+" or any(marker in value for marker in _INCOME_MARKERS):
        return TransactionType.INCOME
    if value == "-" or any(marker in value for marker in _EXPENSE_MARKERS):
        return TransactionType.EXPENSE
    return None


def _first_present(raw_row: dict[str, str], candidates: Sequence[str]) -> Optional[str]:
    for column in candidates:
        if raw_row.get(column):
            return raw_row[column]
    return None


def _amount_or_zero(value: Optional[str]) -> Decimal:
    if value is None or not value.strip() or value.strip() == "-":
        return Decimal("0")
    return parse_amount(value)


def _convert_row(
    row_index: int, raw_row: dict[str, str], mapping: dict[str, str], date_format: str
) -> ParsedRow:
    date_value = raw_row.get(mapping["date"]) if mapping.get("date") else _first_present(raw_row, _DATE_COLUMNS)
    if not date_value:
        raise ValueError("missing date")
    row_date = parse_date(date_value, date_format)

    description = (
        raw_row.get(mapping["description"])
        if mapping.get("description")
        else _first_present(raw_row, _DESCRIPTION_COLUMNS)
    )
    if not description:
        raise ValueError("missing description")
    description = sanitize_csv_value(description).strip()

    deposit_col = mapping.get("deposit")
    withdrawal_col = mapping.get("withdrawal")
    if deposit_col and withdrawal_col and deposit_col in raw_row and withdrawal_col in raw_row:
        deposit = _amount_or_zero(raw_row[deposit_col])
        withdrawal = _amount_or_zero(raw_row[withdrawal_col])
        if deposit > 0:
            amount, row_type = deposit, TransactionType.INCOME
        elif withdrawal > 0:
            amount, row_type = withdrawal, TransactionType.EXPENSE
        else:
            raise ValueError("no deposit or withdrawal amount")
    else:
        amount_value = (
            raw_row.get(mapping["amount"]) if mapping.get("amount") else _first_present(raw_row, _AMOUNT_COLUMNS)
        )
        if not amount_value:
            raise ValueError("missing amount")
        amount = parse_amount(amount_value)
        row_type = None
        type_col = mapping.get("type")
        if type_col and raw_row.get(type_col):
            row_type = determine_transaction_type(raw_row[type_col])
        if row_type is None:
            row_type = TransactionType.EXPENSE if amount < 0 else TransactionType.INCOME
        amount = abs(amount)

    balance = None
    balance_col = mapping.get("balance")
    if balance_col and raw_row.get(balance_col):
        balance = parse_amount(raw_row[balance_col])

    return ParsedRow(
        row_index=row_index,
        date=row_date,
        description=description,
        amount=amount,
        type=row_type,
        original_row=dict(raw_row),
        balance=balance,
    )


def convert_to_parsed_rows(
    raw_rows: Sequence[dict[str, str]],
    template: Optional[CsvTemplate] = None,
    date_format: str = "YYYY-MM-DD",
) -> ConversionResult:
    """Map raw column dicts to canonical rows.

    Rows whose date, description or amount cannot be coerced are dropped and
    reported. Surviving rows are numbered consecutively from 0 so that
    `row_index` is the row's position in the stored payload.
    """
    mapping = dict(template.column_mapping) if template is not None else {}
    result = ConversionResult()
    for line_index, raw_row in enumerate(raw_rows):
        try:
            row = _convert_row(len(result.rows), raw_row, mapping, date_format)
        except ValueError as e:
            result.errors.append(f"Row {line_index + 1}: {e}")
            continue
        result.rows.append(row)
    if result.errors:
        logger.info("Dropped %d of %d CSV rows", len(result.errors), len(raw_rows))
    return result
