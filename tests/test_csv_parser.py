"""Tests for bank CSV parsing."""

from datetime import date
from decimal import Decimal

import pytest

from tallybook.domain.csv_parser import (
    CsvParseOptions,
    convert_to_parsed_rows,
    detect_csv_template,
    determine_transaction_type,
    parse_csv_data,
    sanitize_csv_value,
    validate_csv_content,
    validate_csv_file,
)
from tallybook.domain.entities import CsvTemplate, TransactionType
from tallybook.domain.errors import ValidationError


def _template(template_id, name, mapping, encoding="UTF-8", date_format="YYYY/MM/DD", is_active=True):
    return CsvTemplate(
        id=template_id,
        bank_name=name,
        template_name=name,
        column_mapping=mapping,
        date_format=date_format,
        encoding=encoding,
        is_active=is_active,
    )


RAKUTEN = _template(
    1,
    "rakuten_bank",
    {"date": "取引日", "description": "摘要", "amount": "金額", "balance": "残高", "type": "入出金区分"},
    encoding="Shift-JIS",
)
MUFG = _template(
    2,
    "mufg_bank",
    {
        "date": "日付",
        "description": "摘要",
        "amount": "金額",
        "balance": "残高",
        "deposit": "入金額",
        "withdrawal": "出金額",
    },
    encoding="Shift-JIS",
)


class TestValidateContent:
    def test_empty_file_rejected(self):
        with pytest.raises(ValidationError, match="empty"):
            validate_csv_content(b"")

    def test_whitespace_only_rejected(self):
        with pytest.raises(ValidationError, match="no content"):
            validate_csv_content(b"  \n \n")

    def test_no_delimiter_in_first_lines_rejected(self):
        with pytest.raises(ValidationError, match="not recognized as CSV"):
            validate_csv_content(b"just some text\nmore text\nand more\n")

    @pytest.mark.parametrize("content", [b"a,b\n1,2", b"a\tb\n1\t2", b"a;b\n1;2"])
    def test_any_supported_delimiter_accepted(self, content):
        validate_csv_content(content)

    def test_file_name_and_size_checked(self):
        with pytest.raises(ValidationError) as excinfo:
            validate_csv_file("statement.xlsx", 11 * 1024 * 1024)
        message = str(excinfo.value)
        assert "CSV file" in message
        assert "10MB" in message


class TestParseCsvData:
    def test_rows_keyed_by_header(self):
        result = parse_csv_data(b"date,description,amount\n2024-01-15,Coffee,-450\n2024-01-16,Salary,300000\n")
        assert result.columns == ["date", "description", "amount"]
        assert result.data == [
            {"date": "2024-01-15", "description": "Coffee", "amount": "-450"},
            {"date": "2024-01-16", "description": "Salary", "amount": "300000"},
        ]
        assert result.errors == []

    def test_wrong_column_count_reported_and_skipped(self):
        result = parse_csv_data(b"date,description,amount\n2024-01-15,Coffee\n2024-01-16,Salary,300000\n")
        assert len(result.data) == 1
        assert result.errors == ["Line 2: expected 3 columns, found 2"]

    def test_quoted_fields_and_blank_lines(self):
        content = b'date,description,amount\n\n2024-01-15,"Lunch, with team","1,200"\n'
        result = parse_csv_data(content)
        assert result.data == [{"date": "2024-01-15", "description": "Lunch, with team", "amount": "1,200"}]

    def test_shift_jis_with_skip_rows_and_row_cap(self):
        content = "口座番号 1234567\n取引日,摘要,金額\n2024/01/15,振込 ヤマダ,10000\n2024/01/16,ATM,-5000\n".encode("cp932")
        options = CsvParseOptions(encoding="Shift-JIS", skip_rows=1, max_rows=1)
        result = parse_csv_data(content, options)
        assert result.columns == ["取引日", "摘要", "金額"]
        assert result.data == [{"取引日": "2024/01/15", "摘要": "振込 ヤマダ", "金額": "10000"}]

    def test_formula_cells_escaped(self):
        result = parse_csv_data(b"date,description,amount\n2024-01-15,=HYPERLINK(1),-450\n")
        assert result.data[0]["description"] == "'=HYPERLINK(1)"
        assert result.data[0]["amount"] == "-450"


def test_sanitize_leaves_plain_negative_numbers():
    assert sanitize_csv_value("-123.45") == "-123.45"
    assert sanitize_csv_value("@SUM(A1)") == "'@SUM(A1)"
    assert sanitize_csv_value("Coffee") == "Coffee"


class TestDetectTemplate:
    def test_detects_shift_jis_header(self):
        content = "取引日,摘要,金額,残高,入出金区分\n2024/01/15,ATM,5000,10000,出金\n".encode("cp932")
        assert detect_csv_template(content, [MUFG, RAKUTEN]) == RAKUTEN

    def test_inactive_templates_ignored(self):
        inactive = _template(3, "old", dict(RAKUTEN.column_mapping), is_active=False)
        content = "取引日,摘要,金額\n2024/01/15,ATM,5000\n".encode("utf-8")
        assert detect_csv_template(content, [inactive]) is None

    def test_header_read_with_template_encoding_only(self):
        utf8_rakuten = _template(4, "utf8_rakuten", dict(RAKUTEN.column_mapping))
        content = "取引日,摘要,金額,残高,入出金区分\n2024/01/15,ATM,5000,10000,出金\n".encode("utf-8")
        assert detect_csv_template(content, [RAKUTEN]) is None
        assert detect_csv_template(content, [RAKUTEN, utf8_rakuten]) == utf8_rakuten

    def test_no_match_returns_none(self):
        assert detect_csv_template(b"foo,bar\n1,2\n", [RAKUTEN, MUFG]) is None


@pytest.mark.parametrize(
    "value,expected",
    [
        ("入金", TransactionType.INCOME),
        ("出金", TransactionType.EXPENSE),
        ("Deposit", TransactionType.INCOME),
        ("withdrawal", TransactionType.EXPENSE),
        ("+", TransactionType.INCOME),
        ("?", None),
    ],
)
def test_determine_transaction_type(value, expected):
    assert determine_transaction_type(value) == expected


class TestConvertRows:
    def test_signed_amount_sets_type_and_absolute_amount(self):
        raw = [
            {"date": "2024-01-15", "description": "Coffee", "amount": "-450"},
            {"date": "2024-01-16", "description": "Salary", "amount": "300,000"},
        ]
        result = convert_to_parsed_rows(raw)
        assert [(r.row_index, r.type, r.amount) for r in result.rows] == [
            (0, TransactionType.EXPENSE, Decimal("450")),
            (1, TransactionType.INCOME, Decimal("300000")),
        ]

    def test_type_column_wins_over_sign(self):
        raw = [{"取引日": "2024/01/15", "摘要": "ATM", "金額": "5,000", "残高": "¥95,000", "入出金区分": "出金"}]
        [row] = convert_to_parsed_rows(raw, RAKUTEN, RAKUTEN.date_format).rows
        assert row.type == TransactionType.EXPENSE
        assert row.amount == Decimal("5000")
        assert row.balance == Decimal("95000")
        assert row.date == date(2024, 1, 15)

    def test_deposit_and_withdrawal_columns(self):
        raw = [
            {"日付": "2024/02/01", "摘要": "給与", "金額": "", "残高": "", "入金額": "250,000", "出金額": ""},
            {"日付": "2024/02/02", "摘要": "電気", "金額": "", "残高": "", "入金額": "", "出金額": "8,200"},
            {"日付": "2024/02/03", "摘要": "空行", "金額": "", "残高": "", "入金額": "", "出金額": ""},
        ]
        result = convert_to_parsed_rows(raw, MUFG, MUFG.date_format)
        assert [(r.type, r.amount) for r in result.rows] == [
            (TransactionType.INCOME, Decimal("250000")),
            (TransactionType.EXPENSE, Decimal("8200")),
        ]
        assert result.errors == ["Row 3: no deposit or withdrawal amount"]

    def test_bad_rows_dropped_and_survivors_renumbered(self):
        raw = [
            {"date": "not a date", "description": "Broken", "amount": "100"},
            {"date": "2024-01-15", "description": "", "amount": "100"},
            {"date": "2024-01-16", "description": "Fine", "amount": "abc"},
            {"date": "2024-01-17", "description": "Kept", "amount": "100"},
        ]
        result = convert_to_parsed_rows(raw)
        assert [(r.row_index, r.description) for r in result.rows] == [(0, "Kept")]
        assert len(result.errors) == 3
        assert result.errors[1] == "Row 2: missing description"

    def test_relative_date_words_are_not_statement_dates(self):
        raw = [
            {"date": "today", "description": "Odd export", "amount": "100"},
            {"date": "2024-01-17", "description": "Kept", "amount": "100"},
        ]
        result = convert_to_parsed_rows(raw)
        assert [r.description for r in result.rows] == ["Kept"]
        assert result.errors[0].startswith("Row 1:")
