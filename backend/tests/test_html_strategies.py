from __future__ import annotations

from fiscal_receipt.models.enums import ConfidenceTier, ExtractionField
from fiscal_receipt.services.strategies import (
    ExtractionSource,
    KeywordHeuristicExtractor,
    RawRegexFallbackExtractor,
    ReceiptDocument,
    StructuralSelectorExtractor,
)

VALUE = ExtractionField.VALUE
DATE = ExtractionField.DATE
DOCUMENT_NUMBER = ExtractionField.DOCUMENT_NUMBER

LINK = "https://portal.fazenda.mg.gov.br/portalnfce/sistema/qrcode.xhtml?p=123"

PORTAL_PAGE = """
<html>
<head><title>NFC-e</title></head>
<body>
<div id="conteudo">
  <div class="txtCenter"><div id="u20" class="txtTopo">SUPERMERCADO EXEMPLO LTDA</div></div>
  <table id="tabResult">
    <tr id="Item + 1">
      <td><span class="txtTit">ARROZ 5KG</span></td>
      <td class="txtTit noWrap">Vl. Total <span class="valor">22,90</span></td>
    </tr>
  </table>
  <div id="totalNota" class="txtRight">
    <div id="linhaTotal"><label>Qtd. total de itens:</label><span class="totalNumb">2</span></div>
    <div id="linhaTotal"><label>Valor total R$:</label><span class="totalNumb">27,98</span></div>
    <div id="linhaTotal"><label>Descontos R$:</label><span class="totalNumb">2,00</span></div>
    <div id="linhaTotal" class="linhaShade"><label>Valor a pagar R$:</label><span class="totalNumb txtMax">25,98</span></div>
  </div>
</div>
<table class="table table-hover">
  <thead><tr><th colspan="4">Informações gerais da Nota</th></tr></thead>
  <tbody>
    <tr><td>Modelo</td><td>Série</td><td>Número</td><td>Data Emissão</td></tr>
    <tr><td>65</td><td>1</td><td>123456</td><td>04/05/2024 15:34:43</td></tr>
  </tbody>
</table>
</body>
</html>
"""

KEYWORD_PAGE = """
<html><body>
<table>
  <tr><td>Loja</td><td>Padaria Central</td></tr>
  <tr><td>Total da compra</td><td>R$ 1.049,90</td></tr>
  <tr><td>Data de emissão</td><td>12/03/2024 10:11:12</td></tr>
</table>
</body></html>
"""

PLAIN_TEXT_PAGE = """
<html><body><pre>CUPOM FISCAL Nº 004512
TOTAL R$ 57,30
EMISSAO 07/06/2024</pre></body></html>
"""


def _source(html: str) -> ExtractionSource:
    return ExtractionSource(link=LINK, document=ReceiptDocument(html))


def _by_field(candidates):
    return {c.field: c for c in candidates}


def test_structural_reads_amount_to_pay_caption():
    found = _by_field(StructuralSelectorExtractor().extract(_source(PORTAL_PAGE)))
    assert found[VALUE].value == "25,98"
    assert found[VALUE].tier is ConfidenceTier.STRUCTURAL
    assert found[VALUE].source == "structural:caption"


def test_structural_reads_date_from_general_information_table():
    found = _by_field(StructuralSelectorExtractor().extract(_source(PORTAL_PAGE)))
    assert found[DATE].value == "04/05/2024"
    assert found[DATE].source == "structural:general_info"


def test_structural_selector_without_caption():
    html = '<html><body><div id="linhaTotal"><span class="totalNumb txtMax">R$ 13,40</span></div></body></html>'
    found = _by_field(StructuralSelectorExtractor().extract(_source(html)))
    assert found[VALUE].value == "13,40"
    assert found[VALUE].source == "structural:selector"


def test_structural_reads_strong_emission_label():
    html = (
        '<html><body><div id="infos"><ul><li><strong>Emissão: </strong>'
        "09/10/2024 08:15:00-03:00 - Via Consumidor</li></ul></div></body></html>"
    )
    found = _by_field(StructuralSelectorExtractor().extract(_source(html)))
    assert found[DATE].value == "09/10/2024"


def test_structural_finds_nothing_on_unknown_template():
    assert StructuralSelectorExtractor().extract(_source(KEYWORD_PAGE)) == []


def test_keyword_heuristic_uses_next_sibling_cells():
    found = _by_field(KeywordHeuristicExtractor().extract(_source(KEYWORD_PAGE)))
    assert found[VALUE].value == "1049,90"
    assert found[VALUE].tier is ConfidenceTier.KEYWORD_HEURISTIC
    assert found[DATE].value == "12/03/2024"


def test_keyword_heuristic_ignores_item_counts():
    html = "<html><body><div><label>Qtd. total de itens:</label><span>3</span></div></body></html>"
    assert KeywordHeuristicExtractor().extract(_source(html)) == []


def test_keyword_heuristic_reads_own_text():
    html = "<html><body><p>Valor pago: R$ 19,99</p></body></html>"
    found = _by_field(KeywordHeuristicExtractor().extract(_source(html)))
    assert found[VALUE].value == "19,99"
    assert found[VALUE].source == "keyword:own"


def test_raw_regex_fallback_over_plain_text():
    found = _by_field(RawRegexFallbackExtractor().extract(_source(PLAIN_TEXT_PAGE)))
    assert found[VALUE].value == "57,30"
    assert found[VALUE].tier is ConfidenceTier.RAW_REGEX
    assert found[DATE].value == "07/06/2024"
    assert found[DOCUMENT_NUMBER].value == "004512"


def test_raw_regex_reads_values_embedded_in_scripts():
    html = '<html><head><script>window.nota = {"valorTotal": "88,10"};</script></head><body><p>ok</p></body></html>'
    found = _by_field(RawRegexFallbackExtractor().extract(_source(html), [VALUE]))
    assert found[VALUE].value == "88,10"


def test_raw_regex_bare_amount_takes_last_occurrence():
    html = "<html><body><p>ITEM A 3,50</p><p>ITEM B 1.200,00</p><p>obrigado</p></body></html>"
    found = _by_field(RawRegexFallbackExtractor().extract(_source(html), [VALUE]))
    assert found[VALUE].value == "1200,00"
    assert found[VALUE].source == "raw_regex:bare"


def test_html_strategies_do_nothing_without_document():
    source = ExtractionSource(link=LINK)
    for strategy in (StructuralSelectorExtractor(), KeywordHeuristicExtractor(), RawRegexFallbackExtractor()):
        assert strategy.extract(source) == []


def test_document_text_excludes_scripts():
    document = ReceiptDocument("<html><head><script>var total = 1;</script></head><body><p>Olá</p></body></html>")
    assert document.text == "Olá"


def test_raw_regex_stops_amount_before_sentence_punctuation():
    html = "<html><head><script>var resumo = 'Total R$ 25,98.';</script></head><body><p>ok</p></body></html>"
    found = _by_field(RawRegexFallbackExtractor().extract(_source(html), [VALUE]))
    assert found[VALUE].value == "25,98"
    assert found[VALUE].raw == "25,98"
