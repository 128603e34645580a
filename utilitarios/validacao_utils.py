import logging
from typing import Iterable, Optional

import pandas as pd

REQUIRED_COLUMNS = [
    "Chave",
    "CFOP",
    "Data Emissão",
    "Quantidade",
    "Valor Bruto",
]
NUMERIC_COLUMNS = ["Quantidade", "Valor Bruto"]

log = logging.getLogger(__name__)


def _falhar(msg: str) -> None:
    log.error(msg)
    raise ValueError(msg)


def validar_campos_obrigatorios(df: pd.DataFrame, colunas: Optional[Iterable[str]] = None) -> None:
    """Confere as colunas obrigatórias da aba de itens antes da exportação.

    Lança ``ValueError`` se faltar coluna, se houver célula nula/vazia ou se
    uma coluna numérica tiver valor não numérico.
    """
    colunas = list(colunas or REQUIRED_COLUMNS)

    missing = [col for col in colunas if col not in df.columns]
    if missing:
        _falhar(f"Colunas obrigatórias ausentes: {', '.join(missing)}")

    vazio_cols = [
        col for col in colunas
        if df[col].isna().any() or (df[col].astype(str).str.strip() == "").any()
    ]
    if vazio_cols:
        _falhar("Valores ausentes nas colunas obrigatórias: " + ", ".join(vazio_cols))

    nao_numericas = [
        col for col in NUMERIC_COLUMNS
        if col in colunas and pd.to_numeric(df[col], errors="coerce").isna().any()
    ]
    if nao_numericas:
        _falhar("Valores não numéricos em: " + ", ".join(nao_numericas))
