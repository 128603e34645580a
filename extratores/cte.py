"""Extração do CT-e: cabeçalho, partes, valores da prestação, carga e protocolo."""

import logging

from extratores.arvore_xml import no_estrutural, obter, primeiro_caminho, primeiro_valor, texto
from extratores.configuracao import CODIGOS_CANCELAMENTO_CTE
from extratores.erros import ErroDocumentoFiscal, LAYOUT_UNSUPPORTED, MISSING_INF_CTE
from extratores.modelos import ParsedCte
from extratores.nfe import extrair_chave, extrair_protocolo
from extratores.normalizadores import normalizar_decimal, normalizar_documento, parse_date

log = logging.getLogger(__name__)

CAMINHOS_INF_CTE = (
    (("cteProc", "CTe", "infCte"), ("cteProc",)),
    (("cteProc", "infCte"), ("cteProc",)),
    (("CTe", "infCte"), ()),
    (("cte", "infCte"), ()),
    (("cteOSProc", "CTeOS", "infCte"), ("cteOSProc",)),
    (("CTeOS", "infCte"), ()),
)
CAMINHOS_PROTOCOLO_CTE = (
    ("protCTe", "infProt"),
    ("cteProc", "protCTe", "infProt"),
    ("cteOSProc", "protCTe", "infProt"),
)


def _extrair(bloco: dict, envelope: dict) -> ParsedCte:
    no_protocolo = no_estrutural(primeiro_valor(envelope, CAMINHOS_PROTOCOLO_CTE))
    chave = extrair_chave(no_protocolo, bloco, "chCTe", "CTe")
    if not chave:
        raise ErroDocumentoFiscal("faltando infCte/Id", MISSING_INF_CTE)

    ide = no_estrutural(bloco.get("ide")) or {}
    emissao = parse_date(primeiro_valor(ide, (("dhEmi",), ("dEmi",))), required=True)

    nat_op = texto(ide.get("natOp"))
    if not nat_op:
        raise ErroDocumentoFiscal("natureza da operação ausente", LAYOUT_UNSUPPORTED)

    emit = no_estrutural(bloco.get("emit")) or {}
    dest = no_estrutural(bloco.get("dest")) or {}
    v_prest = no_estrutural(bloco.get("vPrest")) or {}
    inf_q = obter(bloco, "infCTeNorm", "infCarga", "infQ")

    protocolo = extrair_protocolo(no_protocolo)

    return ParsedCte(
        chave=chave,
        emissao=emissao,
        cfop=texto(ide.get("CFOP")),
        nat_op=nat_op,
        modelo=texto(ide.get("mod")),
        serie=texto(ide.get("serie")),
        numero=texto(ide.get("nCT")),
        emit_cnpj=normalizar_documento(primeiro_valor(emit, (("CNPJ",), ("CPF",)))),
        emit_nome=texto(emit.get("xNome")),
        emit_uf=texto(obter(emit, "enderEmit", "UF")),
        emit_mun=texto(obter(emit, "enderEmit", "xMun")),
        dest_cnpj=normalizar_documento(primeiro_valor(dest, (("CNPJ",), ("CPF",)))),
        dest_nome=texto(dest.get("xNome")),
        dest_uf=texto(obter(dest, "enderDest", "UF")),
        dest_mun=texto(obter(dest, "enderDest", "xMun")),
        valor_prestacao=normalizar_decimal(v_prest.get("vTPrest")),
        valor_receber=normalizar_decimal(v_prest.get("vRec"), allow_null=True),
        peso_bruto=normalizar_decimal(obter(inf_q, "qCarga"), allow_null=True),
        unidade_peso=texto(obter(inf_q, "tpMed")),
        protocol=protocolo,
        is_cancelled=bool(protocolo.status_code and protocolo.status_code in CODIGOS_CANCELAMENTO_CTE),
    )


def extrair_cte(arvore: dict) -> ParsedCte:
    """Extrai o CT-e. Não há regra de nota ignorada para CT-e."""
    encontrado = primeiro_caminho(arvore, CAMINHOS_INF_CTE)
    if encontrado is None:
        raise ErroDocumentoFiscal("faltando infCte/Id", MISSING_INF_CTE)
    bloco, envelope = encontrado

    try:
        cte = _extrair(bloco, envelope)
    except ErroDocumentoFiscal:
        raise
    except Exception as e:
        raise ErroDocumentoFiscal(
            str(e) or "layout CTe não suportado", LAYOUT_UNSUPPORTED, {"error": repr(e)}
        ) from e

    log.debug(f"CT-e {cte.chave} extraído")
    return cte
