"""Grupos de tributação do item (ICMS, IPI, PIS, COFINS).

Cada grupo traz exatamente uma variante (ICMS00, ICMSSN102, IPITrib,
PISAliq...). As variantes conhecidas ficam enumeradas aqui e
``resolver_variante`` devolve a primeira preenchida, na ordem declarada.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from extratores.arvore_xml import no_estrutural, texto

log = logging.getLogger(__name__)

ICMS = "ICMS"
IPI = "IPI"
PIS = "PIS"
COFINS = "COFINS"

VARIANTES: Dict[str, Tuple[str, ...]] = {
    ICMS: (
        "ICMS00", "ICMS02", "ICMS10", "ICMS15", "ICMS20", "ICMS30", "ICMS40",
        "ICMS51", "ICMS53", "ICMS60", "ICMS61", "ICMS70", "ICMS90",
        "ICMSPart", "ICMSST",
        "ICMSSN101", "ICMSSN102", "ICMSSN201", "ICMSSN202", "ICMSSN500", "ICMSSN900",
    ),
    IPI: ("IPITrib", "IPINT"),
    PIS: ("PISAliq", "PISQtde", "PISNT", "PISOutr"),
    COFINS: ("COFINSAliq", "COFINSQtde", "COFINSNT", "COFINSOutr"),
}


@dataclass(frozen=True)
class VarianteImposto:
    grupo: str
    tipo: str
    campos: Dict[str, Any]

    def valor(self, campo: str) -> Optional[str]:
        return texto(self.campos.get(campo))


@dataclass(frozen=True)
class DadosICMS:
    variante: Optional[str] = None
    cst: Optional[str] = None
    csosn: Optional[str] = None
    v_bc: Optional[str] = None
    v_icms: Optional[str] = None
    v_icms_deson: Optional[str] = None
    v_bcst: Optional[str] = None
    v_st: Optional[str] = None


def resolver_variante(no_grupo: Any, grupo: str) -> Optional[VarianteImposto]:
    """Primeira variante preenchida (nó não vazio) do grupo de imposto."""
    no = no_estrutural(no_grupo)
    if no is None:
        return None
    for tipo in VARIANTES[grupo]:
        campos = no_estrutural(no.get(tipo))
        if campos:
            return VarianteImposto(grupo, tipo, campos)
    log.debug(f"Nenhuma variante conhecida de {grupo} em {list(no.keys())}")
    return None


def extrair_icms(no_icms: Any) -> DadosICMS:
    variante = resolver_variante(no_icms, ICMS)
    if variante is None:
        return DadosICMS()
    return DadosICMS(
        variante=variante.tipo,
        cst=variante.valor("CST"),
        csosn=variante.valor("CSOSN"),
        v_bc=variante.valor("vBC"),
        v_icms=variante.valor("vICMS"),
        v_icms_deson=variante.valor("vICMSDeson"),
        v_bcst=variante.valor("vBCST"),
        v_st=variante.valor("vST") or variante.valor("vICMSST"),
    )


def extrair_valor_imposto(no_grupo: Any, grupo: str, campo: str) -> Tuple[Optional[str], Optional[str]]:
    """``(variante, valor)`` do campo na variante resolvida do grupo."""
    variante = resolver_variante(no_grupo, grupo)
    if variante is None:
        return None, None
    return variante.tipo, variante.valor(campo)


def extrair_ipi(no_ipi: Any) -> Tuple[Optional[str], Optional[str]]:
    return extrair_valor_imposto(no_ipi, IPI, "vIPI")


def extrair_pis(no_pis: Any) -> Tuple[Optional[str], Optional[str]]:
    return extrair_valor_imposto(no_pis, PIS, "vPIS")


def extrair_cofins(no_cofins: Any) -> Tuple[Optional[str], Optional[str]]:
    return extrair_valor_imposto(no_cofins, COFINS, "vCOFINS")
