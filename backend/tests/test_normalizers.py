import pytest

from fiscal_receipt.utils.normalizers import (
    fold_text,
    normalize_date,
    normalize_link,
    normalize_value,
    parse_amount,
)


def test_normalize_link_adds_https_and_trims():
    assert normalize_link("  portal.example/nfce?p=1  ") == "https://portal.example/nfce?p=1"


def test_normalize_link_keeps_existing_scheme():
    assert normalize_link("http://portal.example/") == "http://portal.example/"
    assert normalize_link("HTTPS://portal.example/") == "HTTPS://portal.example/"


def test_normalize_link_never_fails_on_empty_input():
    assert normalize_link("") == "https://"
    assert normalize_link(None) == "https://"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1234,50", "1234,50"),
        ("1.234,50", "1234,50"),
        ("R$ 25,98", "25,98"),
        ("150.00", "150,00"),
        ("150.5", "150,50"),
        ("1.234", "1234,00"),
        ("1,234.56", "1234,56"),
        ("7", "7,00"),
        (" 10,005 ", "10,01"),
    ],
)
def test_normalize_value_formats_with_comma_and_two_digits(raw, expected):
    assert normalize_value(raw) == expected


def test_normalize_value_is_idempotent():
    once = normalize_value("1234,50")
    assert normalize_value(once) == once


@pytest.mark.parametrize(
    "raw", ["-5,00", "0,00", "0,001", "abc", "", None, "12a,00", "NaN", "inf", "25,98,", "150.00.", ",50"]
)
def test_normalize_value_drops_invalid_or_non_positive(raw):
    assert normalize_value(raw) is None


def test_parse_amount_keeps_sign():
    assert str(parse_amount("-5,00")) == "-5.00"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2024-05-04", "04/05/2024"),
        ("2024/05/04", "04/05/2024"),
        ("20240504153443", "04/05/2024"),
        ("20240504", "04/05/2024"),
        ("04/05/2024", "04/05/2024"),
        ("04-05-2024", "04/05/2024"),
        ("04.05.2024", "04/05/2024"),
        ("04/05/2024 15:34:43", "04/05/2024"),
        ("2024-05-04T12:00:00-03:00", "04/05/2024"),
    ],
)
def test_normalize_date_recognized_shapes(raw, expected):
    assert normalize_date(raw) == expected


def test_normalize_date_is_idempotent():
    once = normalize_date("20240504153443")
    assert normalize_date(once) == once


@pytest.mark.parametrize("raw", ["31/02/2024", "2024-13-01", "May 4, 2024", "", None, "123456789012"])
def test_normalize_date_discards_unknown_or_impossible(raw):
    assert normalize_date(raw) is None


def test_fold_text_strips_accents_and_case():
    assert fold_text("  Informações   Gerais da NOTA ") == "informacoes gerais da nota"
