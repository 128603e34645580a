"""Processamento em lote de arquivos XML fiscais (pasta ou ZIP).

Cada arquivo passa por ``parse_upload_xml``; o resultado do lote guarda o
status por arquivo (inserted, duplicate, failed, cancelled) e os registros
aceitos. Falha em um arquivo nunca interrompe os demais.
"""

import os
import re
import logging
import posixpath
import zipfile
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from extratores.configuracao import (
    MAX_ARQUIVOS_LOTE,
    MAX_TAMANHO_ARQUIVO,
    NFSE_REASON,
    log_decisoes_habilitado,
)
from extratores.erros import (
    ErroDocumentoFiscal,
    MISSING_INF_CTE,
    MISSING_INF_NFE,
    XML_MALFORMED,
)
from extratores.leitor import parse_upload_xml
from extratores.modelos import CancellationEvent, ParsedCte, ParsedInvoice, TipoDocumento
from extratores.normalizadores import normalizar_documento

log = logging.getLogger(__name__)

INSERTED = "inserted"
DUPLICATE = "duplicate"
FAILED = "failed"
CANCELLED = "cancelled"

MOTIVO_GENERICO = "falha ao processar arquivo"
MOTIVO_LAYOUT = "layout não suportado"
MOTIVOS_POR_CODIGO = {
    XML_MALFORMED: "XML malformado",
    MISSING_INF_NFE: "faltando infNFe/Id",
    MISSING_INF_CTE: "faltando infCte/Id",
}

ENTRADA = "Entrada"
SAIDA = "Saída"
INDEFINIDO = "Indefinido"

ALERTA_AUTOEMISSAO = "Entrada emitida pela própria empresa, possível erro de emissão."
ALERTA_SEM_EMPRESA = "Nota não envolve a empresa. Verificar!"


def motivo_falha(erro: Exception) -> str:
    if isinstance(erro, ErroDocumentoFiscal):
        return MOTIVOS_POR_CODIGO.get(erro.code, MOTIVO_LAYOUT)
    return MOTIVO_GENERICO


def classificar_tipo_nota(
    emitente_cnpj: Optional[str],
    destinatario_cnpj: Optional[str],
    cnpj_empresa: Optional[str],
    tp_nf: Optional[str],
    *,
    retornar_alerta: bool = False,
) -> Union[str, Tuple[str, str]]:
    """Classifica a NF-e como ``Entrada``, ``Saída`` ou ``Indefinido``.

    Regras, em ordem:
    1. ``tpNF=0`` emitida pela empresa: ``Entrada`` própria (com alerta).
    2. ``tpNF=1`` destinada à empresa: ``Entrada``.
    3. ``tpNF=1`` emitida pela empresa: ``Saída``.
    4. Sem ``tpNF`` conclusivo: destinatário empresa é ``Entrada``,
       emitente empresa é ``Saída``.
    5. Nos demais casos, ``Indefinido``.
    """
    empresa = normalizar_documento(cnpj_empresa)
    emitente = normalizar_documento(emitente_cnpj)
    destinatario = normalizar_documento(destinatario_cnpj)

    tipo, alerta = INDEFINIDO, ""
    if not empresa or not emitente or not destinatario:
        alerta = "Documento da empresa, emitente ou destinatário inválido."
    elif tp_nf == "0" and emitente == empresa:
        tipo, alerta = ENTRADA, ALERTA_AUTOEMISSAO
    elif tp_nf == "1" and destinatario == empresa:
        tipo = ENTRADA
        if emitente == empresa:
            alerta = ALERTA_AUTOEMISSAO
    elif tp_nf == "1" and emitente == empresa:
        tipo = SAIDA
    elif destinatario == empresa:
        tipo = ENTRADA
        if emitente == empresa:
            alerta = ALERTA_AUTOEMISSAO
    elif emitente == empresa:
        tipo = SAIDA
    else:
        alerta = ALERTA_SEM_EMPRESA

    if retornar_alerta:
        return tipo, alerta
    return tipo


@dataclass
class ResultadoLote:
    inserted: int = 0
    duplicate: int = 0
    failed: int = 0
    cancelled: int = 0
    details: List[Dict[str, Any]] = field(default_factory=list)
    notas: Dict[str, ParsedInvoice] = field(default_factory=dict)
    tipos_nota: Dict[str, str] = field(default_factory=dict)
    ctes: Dict[str, ParsedCte] = field(default_factory=dict)
    cancelamentos: Dict[str, CancellationEvent] = field(default_factory=dict)

    def resumo(self) -> Dict[str, int]:
        return {
            "inserted": self.inserted,
            "duplicate": self.duplicate,
            "failed": self.failed,
            "cancelled": self.cancelled,
        }

    def como_dataframe(self) -> pd.DataFrame:
        colunas = ["file", "status", "type", "chave", "reason", "detail"]
        df = pd.DataFrame(self.details)
        for col in colunas:
            if col not in df.columns:
                df[col] = None
        return df[colunas]


class _ProcessadorLote:
    def __init__(self, cnpj_empresa: Optional[str]):
        self.cnpj_empresa = cnpj_empresa
        self.resultado = ResultadoLote()
        self.chaves_canceladas = set()
        # chave -> índice do detalhe inserido, para virar "cancelled"
        self.inseridas: Dict[str, int] = {}

    def _detalhe(self, arquivo: str, status: str, **extras) -> int:
        detalhe = {"file": arquivo, "status": status}
        detalhe.update({k: v for k, v in extras.items() if v is not None})
        self.resultado.details.append(detalhe)
        return len(self.resultado.details) - 1

    def falhar(self, arquivo: str, motivo: str, **extras) -> None:
        self.resultado.failed += 1
        self._detalhe(arquivo, FAILED, reason=motivo, **extras)
        log.warning(f"Falha em {arquivo}: {motivo}")

    def _registrar_cancelamento(
        self, chave: str, motivo: Optional[str], arquivo: str, incrementar: bool = True, registrar: bool = True
    ) -> None:
        motivo = motivo or "nota fiscal cancelada"
        resultado = self.resultado

        if chave in self.inseridas:
            indice = self.inseridas.pop(chave)
            resultado.inserted = max(0, resultado.inserted - 1)
            resultado.notas.pop(chave, None)
            resultado.tipos_nota.pop(chave, None)
            resultado.details[indice]["status"] = CANCELLED
            resultado.details[indice]["reason"] = motivo
            if incrementar:
                resultado.cancelled += 1
            return

        if incrementar:
            resultado.cancelled += 1
        if registrar:
            self._detalhe(arquivo, CANCELLED, reason=motivo, chave=chave)

    def processar(self, arquivo: str, conteudo: Union[str, bytes]) -> None:
        try:
            analise = parse_upload_xml(conteudo)
        except ErroDocumentoFiscal as e:
            self.falhar(arquivo, motivo_falha(e), detail=e.message)
            return
        except Exception as e:
            log.error(f"Erro inesperado em {arquivo}: {e}", exc_info=True)
            self.falhar(arquivo, MOTIVO_GENERICO, detail=str(e))
            return

        if analise.kind == TipoDocumento.NFSE:
            self.falhar(arquivo, analise.data.reason or NFSE_REASON, type=analise.kind.value)
        elif analise.kind == TipoDocumento.CANCELLATION:
            self._processar_cancelamento(arquivo, analise.data)
        elif analise.kind == TipoDocumento.CTE:
            self._processar_cte(arquivo, analise.data)
        else:
            self._processar_nota(arquivo, analise.data)

    def _processar_cancelamento(self, arquivo: str, evento: CancellationEvent) -> None:
        tipo = TipoDocumento.CANCELLATION.value
        if not evento.is_approved:
            self.falhar(
                arquivo, evento.status_message or "cancelamento não homologado", type=tipo, chave=evento.chave
            )
            return
        ja_cancelada = evento.chave in self.chaves_canceladas
        self.chaves_canceladas.add(evento.chave)
        self.resultado.cancelamentos[evento.chave] = evento
        self._registrar_cancelamento(
            evento.chave,
            evento.status_message,
            arquivo,
            incrementar=not ja_cancelada,
            registrar=not ja_cancelada,
        )

    def _processar_cte(self, arquivo: str, cte: ParsedCte) -> None:
        tipo = TipoDocumento.CTE.value
        if cte.chave in self.resultado.ctes:
            self.resultado.duplicate += 1
            self._detalhe(arquivo, DUPLICATE, reason="chave já existente", type=tipo, chave=cte.chave)
            return
        self.resultado.ctes[cte.chave] = cte
        self.resultado.inserted += 1
        self._detalhe(arquivo, INSERTED, type=tipo, chave=cte.chave)

    def _processar_nota(self, arquivo: str, nota: ParsedInvoice) -> None:
        tipo = TipoDocumento.INVOICE.value
        if nota.ignored:
            self.falhar(
                arquivo,
                nota.ignore_reason or "nota fiscal ignorada pelos critérios configurados",
                type=tipo,
                chave=nota.chave,
            )
            return

        if nota.is_cancelled:
            ja_cancelada = nota.chave in self.chaves_canceladas
            self.chaves_canceladas.add(nota.chave)
            self._registrar_cancelamento(
                nota.chave, nota.protocol.status_message, arquivo, incrementar=not ja_cancelada
            )
            return

        if nota.chave in self.chaves_canceladas:
            self._registrar_cancelamento(
                nota.chave, "nota fiscal cancelada (evento no mesmo upload)", arquivo, incrementar=False
            )
            return

        if nota.chave in self.resultado.notas:
            self.resultado.duplicate += 1
            self._detalhe(arquivo, DUPLICATE, reason="chave já existente", type=tipo, chave=nota.chave)
            return

        tipo_nota = None
        if self.cnpj_empresa:
            tipo_nota, alerta = classificar_tipo_nota(
                nota.issuer_cnpj, nota.recipient_cnpj, self.cnpj_empresa, nota.tp_nf, retornar_alerta=True
            )
            if log_decisoes_habilitado():
                log.info(
                    f"Decisão de direção: chave={nota.chave} tipo={tipo_nota} tpNF={nota.tp_nf} "
                    f"emitente={nota.issuer_cnpj} destinatario={nota.recipient_cnpj}"
                )
            if tipo_nota == INDEFINIDO:
                self.falhar(arquivo, alerta or MOTIVO_LAYOUT, type=tipo, chave=nota.chave)
                return
            if alerta:
                log.warning(f"{arquivo}: {alerta}")

        self.resultado.notas[nota.chave] = nota
        if tipo_nota:
            self.resultado.tipos_nota[nota.chave] = tipo_nota
        self.resultado.inserted += 1
        self.inseridas[nota.chave] = self._detalhe(arquivo, INSERTED, type=tipo, chave=nota.chave)


def processar_documentos(
    documentos: Iterable[Tuple[str, Union[str, bytes]]], cnpj_empresa: Optional[str] = None
) -> ResultadoLote:
    """Processa pares ``(nome_arquivo, conteúdo)`` na ordem recebida."""
    processador = _ProcessadorLote(cnpj_empresa)
    for arquivo, conteudo in documentos:
        processador.processar(arquivo, conteudo)
    resultado = processador.resultado
    log.info(f"Lote processado: {resultado.resumo()}")
    return resultado


def ler_arquivo_xml(xml_path: str) -> str:
    """Lê o XML tentando UTF-8 e depois Latin-1."""
    with open(xml_path, "rb") as f:
        data = f.read()
    for enc in ("utf-8", "latin-1"):
        try:
            return data.decode(enc)
        except UnicodeDecodeError:
            continue
    return data.decode("utf-8", errors="replace")


def processar_xmls(xml_paths: List[str], cnpj_empresa: Optional[str] = None) -> ResultadoLote:
    """Processa uma lista de arquivos XML do disco."""
    if not xml_paths:
        log.warning("Nenhum arquivo XML fornecido para processamento")
        return ResultadoLote()

    log.info(f"Iniciando processamento de {len(xml_paths)} arquivos XML")
    processador = _ProcessadorLote(cnpj_empresa)
    for i, xml_path in enumerate(xml_paths, 1):
        nome = os.path.basename(xml_path)
        if i > MAX_ARQUIVOS_LOTE:
            processador.falhar(nome, f"limite de {MAX_ARQUIVOS_LOTE} arquivos excedido")
            continue
        try:
            if os.path.getsize(xml_path) > MAX_TAMANHO_ARQUIVO:
                processador.falhar(nome, f"arquivo excede {MAX_TAMANHO_ARQUIVO // (1024 * 1024)} MB")
                continue
            conteudo = ler_arquivo_xml(xml_path)
        except OSError as e:
            processador.falhar(nome, MOTIVO_GENERICO, detail=str(e))
            continue
        processador.processar(nome, conteudo)

    resultado = processador.resultado
    log.info(f"Lote processado: {resultado.resumo()}")
    return resultado


def sanitizar_nome_entrada(nome: str) -> Optional[str]:
    """Caminho normalizado da entrada do ZIP, ou None se escapar da raiz."""
    normalizado = posixpath.normpath(nome.replace("\\", "/"))
    if normalizado.startswith("..") or posixpath.isabs(normalizado) or re.match(r'^[A-Za-z]:', normalizado):
        return None
    return normalizado


def processar_zip(zip_path: str, cnpj_empresa: Optional[str] = None) -> ResultadoLote:
    """Processa os XMLs de um ZIP em memória, protegido contra Zip Slip."""
    processador = _ProcessadorLote(cnpj_empresa)
    processados = 0

    try:
        with zipfile.ZipFile(zip_path, 'r') as zip_ref:
            for info in zip_ref.infolist():
                nome_exibicao = posixpath.basename(info.filename)
                nome_seguro = sanitizar_nome_entrada(info.filename)
                if not nome_seguro:
                    log.warning(f"Tentativa de Zip Slip detectada, ignorando: {info.filename}")
                    processador.falhar(info.filename, "caminho inválido no zip")
                    continue
                if info.is_dir() or not nome_seguro.lower().endswith(".xml"):
                    continue

                processados += 1
                if processados > MAX_ARQUIVOS_LOTE:
                    processador.falhar(nome_exibicao, f"limite de {MAX_ARQUIVOS_LOTE} arquivos excedido")
                    continue
                if info.file_size > MAX_TAMANHO_ARQUIVO:
                    processador.falhar(
                        nome_exibicao, f"arquivo excede {MAX_TAMANHO_ARQUIVO // (1024 * 1024)} MB"
                    )
                    continue

                try:
                    conteudo = zip_ref.read(info)
                except (zipfile.BadZipFile, OSError) as e:
                    processador.falhar(nome_exibicao, MOTIVO_GENERICO, detail=str(e))
                    continue
                processador.processar(nome_exibicao, conteudo)
    except zipfile.BadZipFile as e:
        log.error(f"Arquivo ZIP inválido: {zip_path} - {e}")
        raise

    resultado = processador.resultado
    log.info(f"Lote {os.path.basename(zip_path)} processado: {resultado.resumo()}")
    return resultado
