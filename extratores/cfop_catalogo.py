import os
import csv
import logging
from typing import Dict, Optional

from extratores.configuracao import CONFIG_PATH

log = logging.getLogger(__name__)

CAMINHO_CATALOGO = os.path.join(CONFIG_PATH, 'cfop.csv')

# Preenchido no primeiro uso e nunca invalidado
_catalogo: Optional[Dict[str, str]] = None


def _ler_catalogo(caminho: str) -> Dict[str, str]:
    catalogo = {}
    try:
        with open(caminho, encoding='utf-8', newline='') as f:
            for linha in csv.reader(f, delimiter=';'):
                if not linha:
                    continue
                codigo = linha[0].strip()
                descricao = linha[1].strip() if len(linha) > 1 else ""
                if codigo and descricao:
                    catalogo[codigo] = descricao
    except OSError as e:
        log.warning(f"Catálogo de CFOP indisponível em {caminho}: {e}")
        return {}
    log.info(f"Catálogo de CFOP carregado com {len(catalogo)} códigos")
    return catalogo


def carregar_catalogo() -> Dict[str, str]:
    """Mapa CFOP -> descrição, montado uma única vez por processo.

    O mapa é construído inteiro antes de ser publicado; uma corrida na
    primeira chamada apenas reconstrói o mesmo mapa.
    """
    global _catalogo
    if _catalogo is None:
        _catalogo = _ler_catalogo(CAMINHO_CATALOGO)
    return _catalogo


def obter_descricao_cfop(codigo) -> Optional[str]:
    if codigo is None:
        return None
    codigo = str(codigo).strip()
    if not codigo:
        return None
    return carregar_catalogo().get(codigo)
