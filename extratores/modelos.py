"""Registros imutáveis produzidos pelos extratores."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Union

from extratores.configuracao import NFSE_REASON


class TipoDocumento(str, Enum):
    NFSE = "NFSE"
    CTE = "CTE"
    CANCELLATION = "CANCELLATION"
    INVOICE = "INVOICE"


@dataclass(frozen=True)
class Protocolo:
    status_code: Optional[str] = None
    status_message: Optional[str] = None
    protocol_number: Optional[str] = None
    received_at: Optional[datetime] = None


@dataclass(frozen=True)
class ParsedInvoiceItem:
    numero_item: int
    cfop_code: str
    qty: str
    unit_price: str
    gross: str
    discount: str = "0"
    ncm: Optional[str] = None
    cst: Optional[str] = None
    csosn: Optional[str] = None
    product_code: Optional[str] = None
    description: Optional[str] = None
    unit: Optional[str] = None
    icms_value: Optional[str] = None
    ipi_value: Optional[str] = None
    pis_value: Optional[str] = None
    cofins_value: Optional[str] = None
    v_bc: Optional[str] = None
    v_icms_deson: Optional[str] = None
    v_bcst: Optional[str] = None
    v_st: Optional[str] = None
    v_tot_trib: Optional[str] = None
    icms_variant: Optional[str] = None
    ipi_variant: Optional[str] = None
    pis_variant: Optional[str] = None
    cofins_variant: Optional[str] = None


@dataclass(frozen=True)
class ParsedInvoice:
    chave: str
    emissao: datetime
    nat_op: str
    issuer_cnpj: str
    recipient_cnpj: str
    total_nfe: str
    items: Tuple[ParsedInvoiceItem, ...]
    protocol: Protocolo
    entrada_saida: Optional[datetime] = None
    tp_nf: Optional[str] = None
    issuer_name: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_city: Optional[str] = None
    recipient_state: Optional[str] = None
    numero: Optional[str] = None
    serie: Optional[str] = None
    is_cancelled: bool = False
    ignored: bool = False
    ignore_reason: Optional[str] = None


@dataclass(frozen=True)
class ParsedCte:
    chave: str
    emissao: datetime
    nat_op: str
    valor_prestacao: str
    protocol: Protocolo
    cfop: Optional[str] = None
    modelo: Optional[str] = None
    serie: Optional[str] = None
    numero: Optional[str] = None
    emit_cnpj: Optional[str] = None
    emit_nome: Optional[str] = None
    emit_uf: Optional[str] = None
    emit_mun: Optional[str] = None
    dest_cnpj: Optional[str] = None
    dest_nome: Optional[str] = None
    dest_uf: Optional[str] = None
    dest_mun: Optional[str] = None
    valor_receber: Optional[str] = None
    peso_bruto: Optional[str] = None
    unidade_peso: Optional[str] = None
    is_cancelled: bool = False


@dataclass(frozen=True)
class CancellationEvent:
    chave: str
    is_approved: bool
    event_type: Optional[str] = None
    event_sequence: Optional[int] = None
    status_code: Optional[str] = None
    status_message: Optional[str] = None
    protocol_number: Optional[str] = None
    event_timestamp: Optional[datetime] = None
    received_at: Optional[datetime] = None
    justification: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class ResultadoIgnorado:
    """Documento reconhecido mas fora da extração (NFS-e)."""

    reason: str = NFSE_REASON
    ignored: bool = True


@dataclass(frozen=True)
class ParseResult:
    kind: TipoDocumento
    data: Union[ParsedInvoice, ParsedCte, CancellationEvent, ResultadoIgnorado]
