import re
from typing import Dict, Iterable, Optional

from extratores.modelos import ParsedInvoiceItem

EXCECOES_TITULO = {"DA", "DE", "DO", "DOS", "DAS", "E"}


def sanitizar_nat_op(valor) -> Optional[str]:
    """Colapsa espaços; texto vazio vira None."""
    if valor is None:
        return None
    limpo = re.sub(r'\s+', ' ', str(valor)).strip()
    return limpo or None


def normalizar_nat_op(valor) -> Optional[str]:
    """``VENDA DE MERCADORIA`` -> ``Venda de Mercadoria``."""
    limpo = sanitizar_nat_op(valor)
    if not limpo:
        return None

    palavras = []
    for i, palavra in enumerate(limpo.split(' ')):
        if i > 0 and palavra.upper() in EXCECOES_TITULO:
            palavras.append(palavra.lower())
        else:
            palavras.append(palavra[:1].upper() + palavra[1:].lower())
    return ' '.join(palavras)


def montar_cfop_composto(cfop, descricao_nat_op) -> Optional[str]:
    codigo = sanitizar_nat_op(cfop)
    if not codigo:
        return None
    descricao = sanitizar_nat_op(descricao_nat_op)
    if not descricao:
        return codigo
    return f"{codigo} - {descricao}"


def determinar_cfop_principal(itens: Iterable[ParsedInvoiceItem]) -> Optional[str]:
    """CFOP mais frequente; empate pelo maior valor bruto, depois pelo código."""
    estatisticas: Dict[str, Dict[str, float]] = {}
    for item in itens:
        codigo = sanitizar_nat_op(item.cfop_code)
        if not codigo:
            continue
        try:
            bruto = float(item.gross or 0)
        except ValueError:
            bruto = 0.0
        stats = estatisticas.setdefault(codigo, {"quantidade": 0, "bruto": 0.0})
        stats["quantidade"] += 1
        stats["bruto"] += bruto

    if not estatisticas:
        return None

    ordenado = sorted(
        estatisticas.items(),
        key=lambda par: (-par[1]["quantidade"], -par[1]["bruto"], par[0]),
    )
    return ordenado[0][0]
