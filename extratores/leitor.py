"""Pontos de entrada da leitura de XML fiscal.

``parse_invoice_xml`` atende quem só espera NF-e; ``parse_upload_xml``
aceita qualquer um dos quatro tipos e devolve ``ParseResult(kind, data)``.
Ambos levantam ``ErroDocumentoFiscal`` em caso de falha.
"""

import logging
from typing import Union

from extratores.arvore_xml import carregar_arvore
from extratores.classificador import classificar_com_evento, e_documento_nfse
from extratores.cte import extrair_cte
from extratores.modelos import ParsedInvoice, ParseResult, ResultadoIgnorado, TipoDocumento
from extratores.nfe import extrair_nfe

log = logging.getLogger(__name__)

XmlEntrada = Union[str, bytes]


def parse_invoice_xml(xml: XmlEntrada) -> Union[ParsedInvoice, ResultadoIgnorado]:
    arvore = carregar_arvore(xml)
    if e_documento_nfse(arvore):
        log.debug("NFS-e ignorada sem extração de campos")
        return ResultadoIgnorado()
    return extrair_nfe(arvore)


def parse_upload_xml(xml: XmlEntrada) -> ParseResult:
    arvore = carregar_arvore(xml)
    tipo, evento = classificar_com_evento(arvore)

    if tipo == TipoDocumento.NFSE:
        return ParseResult(tipo, ResultadoIgnorado())
    if tipo == TipoDocumento.CANCELLATION:
        return ParseResult(tipo, evento)
    if tipo == TipoDocumento.CTE:
        return ParseResult(tipo, extrair_cte(arvore))
    return ParseResult(tipo, extrair_nfe(arvore))
