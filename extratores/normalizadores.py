import re
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import pandas as pd

from extratores.arvore_xml import unwrap
from extratores.erros import ErroDocumentoFiscal, LAYOUT_UNSUPPORTED

log = logging.getLogger(__name__)

DECIMAL_RE = re.compile(r'^[-+]?\d+(\.\d+)?$')
DATA_COMPACTA_RE = re.compile(r'^(\d{4})(\d{2})(\d{2})$')
DATA_ISO_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')


def _bruto(valor: Any) -> Optional[str]:
    bruto = unwrap(valor)
    # elemento só com atributos (xsi:nil, moeda) não tem valor
    if bruto is None or isinstance(bruto, (dict, list)):
        return None
    bruto = str(bruto).strip()
    return bruto or None


def normalizar_decimal(valor: Any, allow_null: bool = False, default: Optional[str] = None) -> Optional[str]:
    """Normaliza um decimal para a forma ``[-+]?\\d+(\\.\\d+)?``.

    A vírgula decimal vira ponto; qualquer outro formato é rejeitado com
    ``LAYOUT_UNSUPPORTED``. Campo ausente: ``None`` se ``allow_null``,
    senão ``default`` quando informado, senão erro (campo obrigatório).
    """
    bruto = _bruto(valor)
    if bruto is None:
        if allow_null:
            return None
        if default is not None:
            return default
        raise ErroDocumentoFiscal("valor decimal ausente", LAYOUT_UNSUPPORTED, {"value": valor})

    normalizado = bruto.replace(',', '.', 1)
    if not DECIMAL_RE.match(normalizado):
        raise ErroDocumentoFiscal("valor decimal inválido", LAYOUT_UNSUPPORTED, {"value": bruto})
    return normalizado


def _data_utc(ano: str, mes: str, dia: str, bruto: str) -> datetime:
    try:
        return datetime(int(ano), int(mes), int(dia), tzinfo=timezone.utc)
    except ValueError as e:
        raise ErroDocumentoFiscal("data inválida", LAYOUT_UNSUPPORTED, {"value": bruto}) from e


def _converter_pandas(bruto: str) -> Optional[datetime]:
    try:
        convertido = pd.to_datetime(bruto, utc=True, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(convertido):
        return None
    return convertido.to_pydatetime()


def parse_date(valor: Any, required: bool = True) -> Optional[datetime]:
    """Converte datas ``aaaammdd``, ``aaaa-mm-dd`` ou texto livre para UTC."""
    bruto = _bruto(valor)
    if bruto is None:
        if not required:
            return None
        raise ErroDocumentoFiscal("data ausente", LAYOUT_UNSUPPORTED, {"value": valor})

    match = DATA_COMPACTA_RE.match(bruto) or DATA_ISO_RE.match(bruto)
    if match:
        return _data_utc(*match.groups(), bruto)

    convertido = _converter_pandas(bruto)
    if convertido is None:
        raise ErroDocumentoFiscal("data inválida", LAYOUT_UNSUPPORTED, {"value": bruto})
    return convertido


def parse_datetime(valor: Any) -> Optional[datetime]:
    """Data/hora informativa: devolve None em vez de falhar."""
    bruto = _bruto(valor)
    if bruto is None:
        return None
    convertido = _converter_pandas(bruto)
    if convertido is None:
        log.debug(f"Data/hora ignorada: {bruto!r}")
    return convertido


def normalizar_documento(valor: Any) -> Optional[str]:
    """Mantém apenas dígitos; aceita CPF (11) ou CNPJ (14)."""
    bruto = unwrap(valor)
    if bruto is None or isinstance(bruto, (dict, list)):
        return None
    digitos = re.sub(r'\D', '', str(bruto))
    if len(digitos) in (11, 14):
        return digitos
    return None
