from datetime import date

import pytest

from comissoes_app.errors import ValidationError
from comissoes_app.normalization import (
    DEFAULT_COLUMNS,
    ColumnMapping,
    clean_text,
    compute_sale_totals,
    detect_columns,
    detect_delimiter,
    format_date,
    normalize_header_token,
    normalize_order_number,
    parse_currency,
    parse_date,
    parse_money,
    round_currency,
    split_line,
    strip_artifacts,
)


def test_round_currency_half_up():
    assert round_currency(0.125) == 0.13
    assert round_currency(2.675) == 2.68
    assert round_currency(10) == 10.0


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.234,56", 1234.56),
        ("1,234.56", 1234.56),
        ("R$ 10,5", 10.5),
        ("1000", 1000.0),
        ("0", 0.0),
        (250, 250.0),
        (99.999, 100.0),
    ],
)
def test_parse_currency_formats(raw, expected):
    assert parse_currency(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   ", "abc", "1,2,3", float("nan"), float("inf")])
def test_parse_currency_rejects_garbage(raw):
    assert parse_currency(raw) is None


def test_parse_money_rejects_negative_and_blank():
    with pytest.raises(ValidationError) as exc:
        parse_money("-5", "Valor bruto")
    assert exc.value.message == "Valor bruto deve ser um numero maior ou igual a zero."
    with pytest.raises(ValidationError):
        parse_money("", "Valor bruto")


def test_parse_money_default_for_blank_discount():
    assert parse_money("", "Desconto", default=0.0) == 0.0
    assert parse_money(None, "Desconto", default=0.0) == 0.0
    assert parse_money("12,30", "Desconto", default=0.0) == 12.3


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("05/03/2024", date(2024, 3, 5)),
        ("5-3-24", date(2024, 3, 5)),
        ("05/03/2024 10:30", date(2024, 3, 5)),
        ("2024-03-05", date(2024, 3, 5)),
        (date(2024, 3, 5), date(2024, 3, 5)),
    ],
)
def test_parse_date_accepted_formats(raw, expected):
    assert parse_date(raw) == expected


def test_parse_date_errors():
    with pytest.raises(ValidationError, match="Informe a data"):
        parse_date("  ")
    with pytest.raises(ValidationError, match="Data invalida"):
        parse_date("2024/03/05")
    with pytest.raises(ValidationError, match="Data inexistente"):
        parse_date("31/02/2024")
    with pytest.raises(ValidationError, match="Data inexistente"):
        parse_date("29/02/2023")


def test_format_and_parse_date_roundtrip_across_centuries():
    for year in (1900, 1955, 1999, 2000, 2024, 2099):
        for month, day in ((1, 1), (2, 28), (12, 31)):
            value = date(year, month, day)
            assert parse_date(format_date(value)) == value


def test_strip_artifacts_and_order_number():
    assert strip_artifacts("\ufeff PED-1\u200b ") == "PED-1"
    assert strip_artifacts(12.0) == "12"
    assert normalize_order_number("  ped-1 ") == "PED-1"
    assert normalize_order_number("   ") is None


def test_clean_text_normalizes_line_endings_and_bom():
    assert clean_text("\ufeffa\r\nb\rc") == ["a", "b", "c"]
    assert clean_text("x\x00y\tz") == ["xy\tz"]


def test_detect_delimiter_priority():
    assert detect_delimiter("a\tb;c,d") == "\t"
    assert detect_delimiter("a;b,c") == ";"
    assert detect_delimiter("a,b") == ","
    assert detect_delimiter("a b") is None


def test_split_line_respects_quotes_and_whitespace():
    assert split_line('PED-1;"CUP;OM";01/01/2024', ";") == ["PED-1", "CUP;OM", "01/01/2024"]
    assert split_line("PED-1   CUPOM10  01/01/2024", None) == ["PED-1", "CUPOM10", "01/01/2024"]


def test_header_detection_with_aliases():
    assert normalize_header_token("Número do Pédido") == "numerodopedido"
    assert detect_columns(["Pedido", "Cupom", "Data", "Valor Bruto", "Desconto"]) == DEFAULT_COLUMNS
    assert detect_columns(["Data", "Numero do Pedido", "Cupom", "Desconto", "Valor"]) == ColumnMapping(
        order_number=1, coupon=2, date=0, gross_value=4, discount=3
    )


def test_data_row_is_not_a_header():
    assert detect_columns(["PED-1", "CUPOM10", "01/01/2024", "1000", "0"]) is None


@pytest.mark.parametrize("code", ["PEDIDO-1", "ORDER-77", "ORDER123", "pedido_2024"])
def test_order_codes_with_keywords_are_not_headers(code):
    assert detect_columns([code, "CUPOM10", "01/01/2024", "1000", "0"]) is None


def test_wide_gaps_keep_multi_word_labels_together():
    assert split_line("Numero do Pedido  Cupom  Data  Valor Bruto", None) == [
        "Numero do Pedido",
        "Cupom",
        "Data",
        "Valor Bruto",
    ]
    assert split_line("  PED-1 CUPOM10 01/01/2024 ", None) == ["PED-1", "CUPOM10", "01/01/2024"]


def test_compute_sale_totals():
    assert compute_sale_totals(1000, 100, 12.5) == (900.0, 112.5)
    assert compute_sale_totals(1000, 50, 12.5) == (950.0, 118.75)
    assert compute_sale_totals(10, 0, 0) == (10.0, 0.0)
