"""Extração da NF-e (modelo 55/65): cabeçalho, itens, tributos e protocolo."""

import re
import logging
from typing import Any, Iterable, List, Optional, Sequence

from extratores.arvore_xml import (
    como_lista,
    no_estrutural,
    obter,
    primeiro_caminho,
    primeiro_valor,
    texto,
)
from extratores.configuracao import (
    CFOP_BLOQUEADO,
    CODIGOS_CANCELAMENTO_NFE,
    MOTIVO_NOTA_IGNORADA,
    SERIE_BLOQUEADA,
)
from extratores.erros import ErroDocumentoFiscal, LAYOUT_UNSUPPORTED, MISSING_INF_NFE
from extratores.impostos import extrair_cofins, extrair_icms, extrair_ipi, extrair_pis
from extratores.modelos import ParsedInvoice, ParsedInvoiceItem, Protocolo
from extratores.normalizadores import (
    normalizar_decimal,
    normalizar_documento,
    parse_date,
    parse_datetime,
)

log = logging.getLogger(__name__)

# (caminho do infNFe, caminho do envelope que guarda o protocolo)
CAMINHOS_INF_NFE = (
    (("nfeProc", "NFe", "infNFe"), ("nfeProc",)),
    (("nfeProc", "nfeProc", "NFe", "infNFe"), ("nfeProc",)),
    (("NFe", "infNFe"), ()),
)
CAMINHOS_PROTOCOLO_NFE = (
    ("protNFe", "infProt"),
    ("nfeProc", "protNFe", "infProt"),
)
TIPOS_NF = ("0", "1")
CFOP_RE = re.compile(r'^\d{4}$')


def extrair_protocolo(no_protocolo: Any) -> Protocolo:
    no = no_estrutural(no_protocolo)
    if no is None:
        return Protocolo()
    return Protocolo(
        status_code=texto(no.get("cStat")),
        status_message=texto(no.get("xMotivo")),
        protocol_number=texto(no.get("nProt")),
        received_at=parse_datetime(no.get("dhRecbto")),
    )


def extrair_chave(no_protocolo: Any, bloco: dict, campo_chave: str, prefixo: str) -> Optional[str]:
    """Chave do protocolo; sem protocolo, o ``Id`` do bloco sem o prefixo."""
    chave = texto(obter(no_protocolo, campo_chave))
    if chave:
        return chave
    identificador = texto(bloco.get("@Id"))
    if identificador:
        chave = re.sub(rf'^{prefixo}', '', identificador, flags=re.IGNORECASE).strip()
        return chave or None
    return None


def _primeiro_no(envelope: dict, caminhos: Iterable[Sequence[str]]) -> Optional[dict]:
    return no_estrutural(primeiro_valor(envelope, caminhos))


def extrair_itens(dets: List[Any]) -> List[ParsedInvoiceItem]:
    itens = []
    for i, det in enumerate(dets, 1):
        det = no_estrutural(det) or {}
        prod = no_estrutural(det.get("prod")) or {}
        imposto = no_estrutural(det.get("imposto")) or {}

        cfop = texto(prod.get("CFOP"))
        if not cfop:
            raise ErroDocumentoFiscal(f"item {i}: CFOP ausente", LAYOUT_UNSUPPORTED, {"item": i})
        if not CFOP_RE.match(cfop):
            raise ErroDocumentoFiscal(
                f"item {i}: CFOP inválido", LAYOUT_UNSUPPORTED, {"item": i, "value": cfop}
            )

        try:
            qty = normalizar_decimal(prod.get("qCom"))
            unit_price = normalizar_decimal(prod.get("vUnCom"))
            gross = normalizar_decimal(prod.get("vProd"))
            discount = normalizar_decimal(prod.get("vDesc"), default="0")

            icms = extrair_icms(imposto.get("ICMS"))
            ipi_variant, ipi = extrair_ipi(imposto.get("IPI"))
            pis_variant, pis = extrair_pis(imposto.get("PIS"))
            cofins_variant, cofins = extrair_cofins(imposto.get("COFINS"))

            item = ParsedInvoiceItem(
                numero_item=i,
                cfop_code=cfop,
                qty=qty,
                unit_price=unit_price,
                gross=gross,
                discount=discount,
                ncm=texto(prod.get("NCM")),
                cst=icms.cst,
                csosn=icms.csosn,
                product_code=texto(prod.get("cProd")),
                description=texto(prod.get("xProd")),
                unit=texto(prod.get("uCom")),
                icms_value=normalizar_decimal(icms.v_icms, allow_null=True),
                ipi_value=normalizar_decimal(ipi, allow_null=True),
                pis_value=normalizar_decimal(pis, allow_null=True),
                cofins_value=normalizar_decimal(cofins, allow_null=True),
                v_bc=normalizar_decimal(icms.v_bc, allow_null=True),
                v_icms_deson=normalizar_decimal(icms.v_icms_deson, allow_null=True),
                v_bcst=normalizar_decimal(icms.v_bcst, allow_null=True),
                v_st=normalizar_decimal(icms.v_st, allow_null=True),
                v_tot_trib=normalizar_decimal(imposto.get("vTotTrib"), allow_null=True),
                icms_variant=icms.variante,
                ipi_variant=ipi_variant,
                pis_variant=pis_variant,
                cofins_variant=cofins_variant,
            )
        except ErroDocumentoFiscal as e:
            raise ErroDocumentoFiscal(
                f"item {i}: {e.message}", e.code, {"item": i, **(e.details or {})}
            ) from e
        itens.append(item)
    return itens


def nota_ignorada(itens: Iterable[ParsedInvoiceItem], serie: Optional[str]) -> bool:
    """CFOP bloqueado em algum item E série bloqueada, as duas juntas."""
    tem_cfop_bloqueado = any(item.cfop_code == CFOP_BLOQUEADO for item in itens)
    return tem_cfop_bloqueado and serie == SERIE_BLOQUEADA


def _extrair(bloco: dict, envelope: dict) -> ParsedInvoice:
    no_protocolo = _primeiro_no(envelope, CAMINHOS_PROTOCOLO_NFE)
    chave = extrair_chave(no_protocolo, bloco, "chNFe", "NFe")
    if not chave:
        raise ErroDocumentoFiscal("faltando infNFe/Id", MISSING_INF_NFE)

    ide = no_estrutural(bloco.get("ide")) or {}
    emissao = parse_date(primeiro_valor(ide, (("dhEmi",), ("dEmi",))), required=True)
    entrada_saida = parse_date(primeiro_valor(ide, (("dhSaiEnt",), ("dSaiEnt",))), required=False)

    tp_nf = texto(ide.get("tpNF"))
    if tp_nf and tp_nf not in TIPOS_NF:
        raise ErroDocumentoFiscal("tpNF inválido", LAYOUT_UNSUPPORTED, {"value": tp_nf})

    nat_op = texto(ide.get("natOp"))
    if not nat_op:
        raise ErroDocumentoFiscal("natureza da operação ausente", LAYOUT_UNSUPPORTED)

    emit = no_estrutural(bloco.get("emit")) or {}
    issuer_cnpj = normalizar_documento(primeiro_valor(emit, (("CNPJ",), ("CPF",))))
    if not issuer_cnpj:
        raise ErroDocumentoFiscal("emitente inválido", LAYOUT_UNSUPPORTED)

    dest = no_estrutural(bloco.get("dest")) or {}
    recipient_cnpj = normalizar_documento(primeiro_valor(dest, (("CNPJ",), ("CPF",))))
    if not recipient_cnpj:
        raise ErroDocumentoFiscal("destinatário inválido", LAYOUT_UNSUPPORTED)

    total_nfe = normalizar_decimal(obter(bloco, "total", "ICMSTot", "vNF"))

    dets = como_lista(bloco.get("det"))
    if not dets:
        raise ErroDocumentoFiscal("NF-e sem itens", LAYOUT_UNSUPPORTED)
    itens = extrair_itens(dets)

    serie = texto(ide.get("serie"))
    protocolo = extrair_protocolo(no_protocolo)
    ignorada = nota_ignorada(itens, serie)

    return ParsedInvoice(
        chave=chave,
        emissao=emissao,
        entrada_saida=entrada_saida,
        tp_nf=tp_nf,
        nat_op=nat_op,
        issuer_cnpj=issuer_cnpj,
        issuer_name=texto(emit.get("xNome")),
        recipient_cnpj=recipient_cnpj,
        recipient_name=texto(dest.get("xNome")),
        recipient_city=texto(primeiro_valor(dest, (("xMun",), ("enderDest", "xMun")))),
        recipient_state=texto(primeiro_valor(dest, (("UF",), ("enderDest", "UF")))),
        total_nfe=total_nfe,
        items=tuple(itens),
        protocol=protocolo,
        is_cancelled=bool(protocolo.status_code and protocolo.status_code in CODIGOS_CANCELAMENTO_NFE),
        numero=texto(ide.get("nNF")),
        serie=serie,
        ignored=ignorada,
        ignore_reason=MOTIVO_NOTA_IGNORADA if ignorada else None,
    )


def extrair_nfe(arvore: dict) -> ParsedInvoice:
    """Extrai a NF-e completa. Toda falha sai como ``ErroDocumentoFiscal``."""
    encontrado = primeiro_caminho(arvore, CAMINHOS_INF_NFE)
    if encontrado is None:
        raise ErroDocumentoFiscal("faltando infNFe/Id", MISSING_INF_NFE)
    bloco, envelope = encontrado

    try:
        nota = _extrair(bloco, envelope)
    except ErroDocumentoFiscal:
        raise
    except Exception as e:
        raise ErroDocumentoFiscal(
            str(e) or "layout não suportado", LAYOUT_UNSUPPORTED, {"error": repr(e)}
        ) from e

    log.debug(f"NF-e {nota.chave} extraída com {len(nota.items)} item(ns)")
    return nota
