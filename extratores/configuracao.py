import os
import json
import logging

log = logging.getLogger(__name__)

# Caminho da pasta de configurações
CONFIG_PATH = os.path.join(os.path.dirname(__file__), '..', 'config')

REGRAS_PADRAO = {
    "nota_ignorada": {
        "cfop_bloqueado": "5949",
        "serie_bloqueada": "891",
        "motivo": "nota ignorada: CFOP 5949 e série 891"
    },
    "nfe_protocolo_cancelamento": ["101", "151", "155"],
    "cte_protocolo_cancelamento": ["101", "135", "136", "155"],
    "evento_tipos_cancelamento": ["110111", "110115"],
    "evento_status_homologado": ["101", "135", "136", "151", "155"],
    "lote": {
        "max_arquivos": 10000,
        "max_tamanho_mb": 5
    }
}

# Carregamento de configurações com fallback
try:
    with open(os.path.join(CONFIG_PATH, 'regras_fiscais.json'), encoding='utf-8') as f:
        REGRAS = {**REGRAS_PADRAO, **json.load(f)}
except (FileNotFoundError, json.JSONDecodeError) as exc:
    log.warning(f"Falha ao carregar regras_fiscais.json: {exc}")
    REGRAS = REGRAS_PADRAO

NFSE_REASON = "NFS-e"

CFOP_BLOQUEADO = str(REGRAS["nota_ignorada"]["cfop_bloqueado"])
SERIE_BLOQUEADA = str(REGRAS["nota_ignorada"]["serie_bloqueada"])
MOTIVO_NOTA_IGNORADA = REGRAS["nota_ignorada"]["motivo"]

CODIGOS_CANCELAMENTO_NFE = frozenset(str(c) for c in REGRAS["nfe_protocolo_cancelamento"])
CODIGOS_CANCELAMENTO_CTE = frozenset(str(c) for c in REGRAS["cte_protocolo_cancelamento"])
TIPOS_EVENTO_CANCELAMENTO = frozenset(str(c) for c in REGRAS["evento_tipos_cancelamento"])
STATUS_EVENTO_HOMOLOGADO = frozenset(str(c) for c in REGRAS["evento_status_homologado"])

MAX_ARQUIVOS_LOTE = int(REGRAS["lote"]["max_arquivos"])
MAX_TAMANHO_ARQUIVO = int(REGRAS["lote"]["max_tamanho_mb"]) * 1024 * 1024


def log_decisoes_habilitado() -> bool:
    """Registro das decisões de direção (entrada/saída) no lote."""
    return os.getenv("LEITOR_FISCAL_LOG_DECISOES", "false").strip().lower() == "true"
