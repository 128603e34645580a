"""Leitura do XML para uma árvore de dicionários e acesso seguro aos valores.

A conversão genérica de XML para dicionário (``xmltodict``) produz formas
ambíguas para o mesmo campo: texto puro, lista com um elemento, nó com
atributos e ``#text``. Todo acesso a campo nos extratores passa por
``unwrap``/``texto`` para enxergar apenas "escalar ou None".
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union
from xml.parsers.expat import ExpatError

import xmltodict

from extratores.erros import ErroDocumentoFiscal, XML_MALFORMED

log = logging.getLogger(__name__)

ATTR_PREFIX = "@"
TEXT_KEY = "#text"
# Ordem de prioridade das chaves de texto
CHAVES_TEXTO = (TEXT_KEY, "__cdata", "$text")


def _remover_namespace(path, key: str, value):
    """Remove prefixos de namespace (``nfe:infNFe``) e descarta ``xmlns``."""
    if key.startswith(ATTR_PREFIX):
        nome = key[len(ATTR_PREFIX):]
        if nome == "xmlns" or nome.startswith("xmlns:"):
            return None
        return ATTR_PREFIX + nome.split(":")[-1], value
    if key in CHAVES_TEXTO:
        return key, value
    return key.split(":")[-1], value


def carregar_arvore(xml: Union[str, bytes]) -> dict:
    """Converte o XML em árvore de dicionários/listas.

    Elementos irmãos repetidos viram listas, atributos ficam sob ``@nome``
    e o texto de nós com atributos sob ``#text``.
    """
    if not isinstance(xml, (str, bytes)):
        raise ErroDocumentoFiscal("XML malformado", XML_MALFORMED, {"tipo": type(xml).__name__})
    try:
        arvore = xmltodict.parse(
            xml,
            attr_prefix=ATTR_PREFIX,
            cdata_key=TEXT_KEY,
            strip_whitespace=True,
            postprocessor=_remover_namespace,
        )
    except (ExpatError, ValueError) as e:
        raise ErroDocumentoFiscal("XML malformado", XML_MALFORMED, {"error": str(e)}) from e

    if not arvore or not isinstance(arvore, dict):
        raise ErroDocumentoFiscal("XML malformado", XML_MALFORMED)
    return arvore


def unwrap(valor: Any) -> Any:
    """Reduz um valor da árvore ao seu escalar.

    None continua None, escalares voltam como estão, listas usam o primeiro
    elemento e nós com texto usam o texto. Nós estruturais voltam inteiros.
    """
    if valor is None:
        return None
    if isinstance(valor, (str, int, float, bool)):
        return valor
    if isinstance(valor, list):
        if not valor:
            return None
        return unwrap(valor[0])
    if isinstance(valor, dict):
        for chave in CHAVES_TEXTO:
            if chave in valor:
                return unwrap(valor[chave])
    return valor


def texto(valor: Any) -> Optional[str]:
    """Texto do campo sem espaços nas pontas, ou None quando ausente/vazio."""
    bruto = unwrap(valor)
    if bruto is None or isinstance(bruto, (dict, list)):
        return None
    resultado = str(bruto).strip()
    return resultado or None


def como_lista(valor: Any) -> List[Any]:
    if valor is None:
        return []
    if isinstance(valor, list):
        return valor
    return [valor]


def no_estrutural(valor: Any) -> Optional[dict]:
    """Retorna o nó como dicionário (primeiro da lista, se repetido)."""
    if isinstance(valor, list):
        valor = valor[0] if valor else None
    return valor if isinstance(valor, dict) else None


def obter(no: Any, *chaves: str) -> Any:
    """Busca aninhada tolerante: ``obter(inf, 'dest', 'enderDest', 'UF')``.

    Listas intermediárias são percorridas pelo primeiro elemento; o valor
    final é devolvido sem alteração.
    """
    atual = no
    for chave in chaves:
        atual = no_estrutural(atual)
        if atual is None:
            return None
        atual = atual.get(chave)
    return atual


def primeiro_valor(no: Any, caminhos: Iterable[Sequence[str]]) -> Any:
    """Valor do primeiro caminho que existir (não None) em ``no``."""
    for caminho in caminhos:
        valor = obter(no, *caminho)
        if valor is not None:
            return valor
    return None


def primeiro_caminho(
    arvore: dict, caminhos: Iterable[Tuple[Sequence[str], Sequence[str]]]
) -> Optional[Tuple[dict, dict]]:
    """Procura um bloco estrutural em caminhos alternativos, por prioridade.

    Cada candidato é ``(caminho_bloco, caminho_envelope)``. Retorna
    ``(bloco, envelope)`` do primeiro caminho cujo bloco é um nó estrutural.
    """
    for caminho_bloco, caminho_envelope in caminhos:
        bloco = no_estrutural(obter(arvore, *caminho_bloco))
        if bloco is not None:
            envelope = no_estrutural(obter(arvore, *caminho_envelope)) if caminho_envelope else arvore
            log.debug(f"Bloco encontrado em {'/'.join(caminho_bloco)}")
            return bloco, envelope or arvore
    return None


def raiz_documento(arvore: Any) -> Tuple[Optional[str], Any]:
    """Nome e conteúdo do elemento raiz (ignora a declaração ``?xml``)."""
    if not isinstance(arvore, dict):
        return None, None
    for chave, valor in arvore.items():
        if chave == "?xml":
            continue
        return chave, valor
    return None, None
