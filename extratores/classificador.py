import logging
from typing import Any, Optional, Tuple

from extratores.arvore_xml import no_estrutural, raiz_documento
from extratores.cancelamento import extrair_evento_cancelamento
from extratores.modelos import CancellationEvent, TipoDocumento

log = logging.getLogger(__name__)

NOS_NFSE = ("CompNfse", "compNfse", "infNfse", "InfNfse", "nfseProc")


def e_documento_nfse(arvore: Any) -> bool:
    """NFS-e pelo nome da raiz ou por um nó típico logo abaixo dela."""
    nome_raiz, raiz = raiz_documento(arvore)
    if not nome_raiz:
        return False
    nome = nome_raiz.lower()
    if "nfse" in nome and "nfe" not in nome:
        return True
    raiz = no_estrutural(raiz)
    if raiz is None:
        return False
    return any(raiz.get(no) for no in NOS_NFSE)


def e_documento_cte(arvore: Any) -> bool:
    nome_raiz, _ = raiz_documento(arvore)
    return bool(nome_raiz and "cte" in nome_raiz.lower())


def classificar_com_evento(arvore: Any) -> Tuple[TipoDocumento, Optional[CancellationEvent]]:
    """Decide o tipo do documento antes de qualquer extração de campos.

    A ordem importa: eventos podem aparecer dentro de raízes parecidas com
    NF-e, por isso o cancelamento é testado antes de NF-e/CT-e. O evento
    encontrado volta junto para não ser extraído duas vezes.
    """
    evento = None
    if e_documento_nfse(arvore):
        tipo = TipoDocumento.NFSE
    else:
        evento = extrair_evento_cancelamento(arvore)
        if evento is not None:
            tipo = TipoDocumento.CANCELLATION
        elif e_documento_cte(arvore):
            tipo = TipoDocumento.CTE
        else:
            tipo = TipoDocumento.INVOICE
    log.debug(f"Documento classificado como {tipo.value} (raiz={raiz_documento(arvore)[0]})")
    return tipo, evento


def classificar_documento(arvore: Any) -> TipoDocumento:
    return classificar_com_evento(arvore)[0]
