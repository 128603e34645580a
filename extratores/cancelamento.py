"""Eventos de cancelamento de NF-e/CT-e.

O mesmo evento chega em formatos diferentes conforme o sistema emissor:

* ``procEventoNFe`` com ``evento`` e ``retEvento`` (listas paralelas);
* ``evento`` isolado, com ou sem ``retEvento`` ao lado (um único
  ``retEvento`` vale para todos os eventos do nível);
* ``retEvento`` isolado (apenas o retorno da SEFAZ), que também vira
  candidato próprio mesmo havendo ``evento`` ao lado;
* qualquer um dos anteriores um nível abaixo da raiz
  (``nfeProc``, ``envEvento``, ``retEnvEvento``).

Cada par evento/retorno vira um candidato; o primeiro homologado vence,
senão o primeiro encontrado.
"""

import re
import logging
from typing import Any, Iterator, List, Optional, Tuple

from extratores.arvore_xml import como_lista, no_estrutural, raiz_documento, texto
from extratores.configuracao import STATUS_EVENTO_HOMOLOGADO, TIPOS_EVENTO_CANCELAMENTO
from extratores.modelos import CancellationEvent
from extratores.normalizadores import parse_datetime

log = logging.getLogger(__name__)

CHAVES_PROC_EVENTO = ("procEventoNFe", "proceventoNFe", "procEventoCTe")
CHAVES_EVENTO = ("evento", "eventoCTe")
CHAVES_RET_EVENTO = ("retEvento", "retEventoCTe")
CHAVES_NO_EVENTO = CHAVES_PROC_EVENTO + CHAVES_EVENTO + CHAVES_RET_EVENTO

Par = Tuple[Optional[dict], Optional[dict]]


def _inf(no: Any) -> Optional[dict]:
    """``infEvento`` do nó, ou o próprio nó quando já é o bloco de dados."""
    no = no_estrutural(no)
    if no is None:
        return None
    return no_estrutural(no.get("infEvento")) or no


def _filhos(no: dict, chaves: Tuple[str, ...]) -> List[Any]:
    itens: List[Any] = []
    for chave in chaves:
        itens.extend(como_lista(no.get(chave)))
    return itens


def _pares_proc_evento(proc: Any) -> Iterator[Par]:
    proc = no_estrutural(proc)
    if proc is None:
        return
    eventos = _filhos(proc, CHAVES_EVENTO)
    retornos = _filhos(proc, CHAVES_RET_EVENTO)

    if not eventos and not retornos:
        yield no_estrutural(proc.get("infEvento")), no_estrutural(proc.get("retInfEvento"))
        return

    for i, evento in enumerate(eventos):
        retorno = retornos[i] if i < len(retornos) else None
        yield _inf(evento), _inf(retorno)

    if not eventos:
        for retorno in retornos:
            yield _inf(_filhos(no_estrutural(retorno) or {}, CHAVES_EVENTO)), _inf(retorno)


def _pares_no_nivel(no: Any) -> Iterator[Par]:
    """Todos os pares evento/retorno diretamente sob ``no``."""
    no = no_estrutural(no)
    if no is None:
        return

    for proc in _filhos(no, CHAVES_PROC_EVENTO):
        yield from _pares_proc_evento(proc)

    # Fora de procEvento o retorno só acompanha os eventos quando é único
    eventos = _filhos(no, CHAVES_EVENTO)
    retornos = _filhos(no, CHAVES_RET_EVENTO)
    retorno_unico = retornos[0] if len(retornos) == 1 else None
    for evento in eventos:
        yield _inf(evento), _inf(retorno_unico)

    for retorno in retornos:
        yield _inf(_filhos(no_estrutural(retorno) or {}, CHAVES_EVENTO)), _inf(retorno)


def localizar_pares(arvore: dict) -> Iterator[Par]:
    yield from _pares_no_nivel(arvore)
    nome_raiz, raiz = raiz_documento(arvore)
    if nome_raiz not in CHAVES_NO_EVENTO:
        yield from _pares_no_nivel(raiz)


def _campo(nome: str, *nos: Optional[dict]) -> Optional[str]:
    for no in nos:
        if no is not None and no.get(nome) is not None:
            return texto(no.get(nome))
    return None


def _sequencia(valor: Optional[str]) -> Optional[int]:
    if valor is None:
        return None
    match = re.match(r'\s*([-+]?\d+)', valor)
    return int(match.group(1)) if match else None


def montar_candidato(inf_evento: Optional[dict], ret_inf_evento: Optional[dict]) -> Optional[CancellationEvent]:
    """Monta o candidato se o par for um cancelamento com chave."""
    if inf_evento is None and ret_inf_evento is None:
        return None

    det_evento = no_estrutural(inf_evento.get("detEvento")) if inf_evento else None

    tipo_evento = _campo("tpEvento", inf_evento, ret_inf_evento)
    descricao = (
        _campo("descEvento", det_evento)
        or _campo("xEvento", inf_evento)
        or _campo("xEvento", ret_inf_evento)
    )
    status = _campo("cStat", ret_inf_evento, inf_evento)
    mensagem = _campo("xMotivo", ret_inf_evento, inf_evento)
    chave = (
        _campo("chNFe", inf_evento, ret_inf_evento)
        or _campo("chCTe", inf_evento, ret_inf_evento)
    )

    tipo_confere = bool(tipo_evento and tipo_evento in TIPOS_EVENTO_CANCELAMENTO)
    descricao_confere = "cancel" in (descricao or "").lower()
    if not (tipo_confere or descricao_confere) or not chave:
        return None

    status_confere = bool(status and status in STATUS_EVENTO_HOMOLOGADO)
    # Sem cStat, a descrição de cancelamento basta para considerar homologado
    homologado = status_confere or (descricao_confere and not status)

    return CancellationEvent(
        chave=chave,
        is_approved=homologado,
        event_type=tipo_evento,
        event_sequence=_sequencia(_campo("nSeqEvento", inf_evento, ret_inf_evento)),
        status_code=status,
        status_message=mensagem,
        protocol_number=_campo("nProt", ret_inf_evento, det_evento),
        event_timestamp=parse_datetime(inf_evento.get("dhEvento") if inf_evento else None),
        received_at=parse_datetime(ret_inf_evento.get("dhRegEvento") if ret_inf_evento else None),
        justification=_campo("xJust", det_evento),
        description=descricao,
    )


def extrair_evento_cancelamento(arvore: dict) -> Optional[CancellationEvent]:
    """Evento de cancelamento canônico do documento, ou None.

    Homologação confirmada por ``cStat`` encerra a busca. Homologação
    presumida só pela descrição (sem ``cStat``) vale apenas se nenhum
    candidato posterior trouxer status homologado.
    """
    primeiro = presumido = confirmado = None
    total = 0
    for inf_evento, ret_inf_evento in localizar_pares(arvore):
        candidato = montar_candidato(inf_evento, ret_inf_evento)
        if candidato is None:
            continue
        total += 1
        if primeiro is None:
            primeiro = candidato
        if candidato.is_approved and candidato.status_code:
            confirmado = candidato
            break
        if candidato.is_approved and presumido is None:
            presumido = candidato
    selecionado = confirmado or presumido or primeiro
    if selecionado is not None:
        log.debug(
            f"Cancelamento {selecionado.chave} selecionado entre {total} candidato(s), "
            f"homologado={selecionado.is_approved}"
        )
    return selecionado
