from __future__ import annotations

from fiscal_receipt.models.enums import ConfidenceTier, ExtractionField
from fiscal_receipt.services.strategies import (
    ExtractionSource,
    LinkPatternExtractor,
    UrlParameterExtractor,
)

VALUE = ExtractionField.VALUE
DATE = ExtractionField.DATE


def _by_field(candidates):
    return {c.field: c for c in candidates}


def test_link_pattern_reads_key_value_tokens():
    link = "https://portal.example/consulta;vNF=89,90;dhEmi=2024-05-04"
    found = _by_field(LinkPatternExtractor().extract(ExtractionSource(link=link)))
    assert found[VALUE].value == "89,90"
    assert found[VALUE].tier is ConfidenceTier.LINK_PATTERN
    assert found[DATE].value == "04/05/2024"


def test_link_pattern_currency_prefix_and_keyword_text():
    link = "https://portal.example/recibo R$ 1.234,56 Emissão: 03/02/2024"
    found = _by_field(LinkPatternExtractor().extract(ExtractionSource(link=link)))
    assert found[VALUE].value == "1234,56"
    assert found[DATE].value == "03/02/2024"


def test_link_pattern_bare_amount_at_end_of_string():
    found = _by_field(LinkPatternExtractor().extract(ExtractionSource(link="https://portal.example/nota/42,50")))
    assert found[VALUE].value == "42,50"


def test_link_pattern_timestamp_is_sliced_into_date():
    found = _by_field(LinkPatternExtractor().extract(ExtractionSource(link="https://portal.example/x/20240504153443")))
    assert found[DATE].value == "04/05/2024"


def test_link_pattern_decodes_percent_encoded_link():
    link = "https://portal.example/q?data=04%2F05%2F2024"
    found = _by_field(LinkPatternExtractor().extract(ExtractionSource(link=link)))
    assert found[DATE].value == "04/05/2024"


def test_link_pattern_reads_amount_with_encoded_decimal_comma():
    found = _by_field(LinkPatternExtractor().extract(ExtractionSource(link="https://portal.example/nfce/vNF=1%2C50")))
    assert found[VALUE].value == "1,50"


def test_link_pattern_first_finite_number_decides_even_if_rejected():
    # vNF carries a negative amount: it is the first parseable match, so the
    # later valor= token is not consulted and the field stays absent.
    link = "https://portal.example/a;vNF=-5,00;valor=10,00"
    found = _by_field(LinkPatternExtractor().extract(ExtractionSource(link=link)))
    assert VALUE not in found


def test_link_pattern_ignores_forty_four_digit_access_key():
    link = "https://portal.example/?chNFe=31240512345678000190650010000012341000012345"
    found = _by_field(LinkPatternExtractor().extract(ExtractionSource(link=link)))
    assert DATE not in found


def test_url_parameters_are_read_case_insensitively():
    link = "https://portal.example/nfce?VNF=150,00&DHEMI=20240504120000"
    found = _by_field(UrlParameterExtractor().extract(ExtractionSource(link=link)))
    assert found[VALUE].value == "150,00"
    assert found[VALUE].tier is ConfidenceTier.URL_PARAMETER
    assert found[DATE].value == "04/05/2024"


def test_url_parameters_priority_order():
    link = "https://portal.example/?total=10,00&vNF=200,00"
    found = _by_field(UrlParameterExtractor().extract(ExtractionSource(link=link)))
    assert found[VALUE].value == "200,00"
    assert found[VALUE].source == "url_parameter:vNF"


def test_url_parameters_skip_invalid_and_try_next_key():
    link = "https://portal.example/?vNF=abc&valor=12,30&dhEmi=nope&data=2024-01-31"
    found = _by_field(UrlParameterExtractor().extract(ExtractionSource(link=link)))
    assert found[VALUE].value == "12,30"
    assert found[DATE].value == "31/01/2024"


def test_url_parameters_from_fragment():
    link = "https://portal.example/nfce#vNF=9.99&dhEmi=2024-02-29T10:00:00-03:00"
    found = _by_field(UrlParameterExtractor().extract(ExtractionSource(link=link)))
    assert found[VALUE].value == "9,99"
    assert found[DATE].value == "29/02/2024"


def test_url_parameters_offline_compact_payload_total():
    link = "https://portal.fazenda.mg.gov.br/portalnfce/sistema/qrcode.xhtml?p=31240512345678000190650010000012341000012345|2|1|04|37.45|6a6b|1|ABCDEF"
    found = _by_field(UrlParameterExtractor().extract(ExtractionSource(link=link)))
    assert found[VALUE].value == "37,45"
    assert DATE not in found


def test_url_parameters_online_compact_payload_has_no_total():
    link = "https://portal.fazenda.mg.gov.br/portalnfce/sistema/qrcode.xhtml?p=31240512345678000190650010000012341000012345|2|1|1|ABCDEF"
    assert UrlParameterExtractor().extract(ExtractionSource(link=link)) == []


def test_url_parameter_stage_is_skipped_for_non_urls():
    assert UrlParameterExtractor().extract(ExtractionSource(link="not-a-url-at-all")) == []
    assert UrlParameterExtractor().extract(ExtractionSource(link="https://")) == []
