import os
import json
import logging
from dataclasses import asdict
from typing import Dict, List

import pandas as pd

from extratores.cfop_catalogo import obter_descricao_cfop
from extratores.configuracao import CONFIG_PATH
from extratores.lote import ResultadoLote
from extratores.natureza_operacao import determinar_cfop_principal, montar_cfop_composto, normalizar_nat_op
from utilitarios.formatador_utils import formatar_data_curta, formatar_moeda
from utilitarios.validacao_utils import validar_campos_obrigatorios

log = logging.getLogger(__name__)

# Carregar layout com fallback
try:
    with open(os.path.join(CONFIG_PATH, 'layout_colunas.json'), encoding='utf-8') as f:
        LAYOUT = json.load(f)
except (FileNotFoundError, json.JSONDecodeError) as exc:
    log.warning(f"Falha ao carregar layout_colunas.json: {exc}")
    # Define um layout padrao caso ocorra erro na leitura
    LAYOUT = {
        "Chave": {"tipo": "str", "ordem": 1},
        "Número": {"tipo": "str", "ordem": 2},
        "Série": {"tipo": "str", "ordem": 3},
        "Data Emissão": {"tipo": "date", "ordem": 4},
        "Tipo Nota": {"tipo": "str", "ordem": 5},
        "Natureza Operação": {"tipo": "str", "ordem": 6},
        "CFOP Principal": {"tipo": "str", "ordem": 7},
        "Emitente CNPJ/CPF": {"tipo": "str", "ordem": 8},
        "Emitente": {"tipo": "str", "ordem": 9},
        "Destinatário CNPJ/CPF": {"tipo": "str", "ordem": 10},
        "Destinatário": {"tipo": "str", "ordem": 11},
        "Item": {"tipo": "int", "ordem": 12},
        "CFOP": {"tipo": "str", "ordem": 13},
        "Descrição CFOP": {"tipo": "str", "ordem": 14},
        "CFOP Composto": {"tipo": "str", "ordem": 15},
        "Código Produto": {"tipo": "str", "ordem": 16},
        "Produto": {"tipo": "str", "ordem": 17},
        "NCM": {"tipo": "str", "ordem": 18},
        "Unidade": {"tipo": "str", "ordem": 19},
        "Quantidade": {"tipo": "float", "ordem": 20},
        "Valor Unitário": {"tipo": "float", "ordem": 21},
        "Valor Bruto": {"tipo": "float", "ordem": 22},
        "Desconto": {"tipo": "float", "ordem": 23},
        "CST ICMS": {"tipo": "str", "ordem": 24},
        "CSOSN": {"tipo": "str", "ordem": 25},
        "ICMS Base": {"tipo": "float", "ordem": 26},
        "ICMS Valor": {"tipo": "float", "ordem": 27},
        "ICMS ST": {"tipo": "float", "ordem": 28},
        "IPI Valor": {"tipo": "float", "ordem": 29},
        "PIS Valor": {"tipo": "float", "ordem": 30},
        "COFINS Valor": {"tipo": "float", "ordem": 31},
        "Valor Total NF": {"tipo": "float", "ordem": 99},
    }


def _sem_fuso(serie: pd.Series) -> pd.Series:
    """Excel não aceita datas com fuso; converte para UTC sem fuso."""
    return pd.to_datetime(serie, errors='coerce', utc=True).dt.tz_localize(None)


def configurar_planilha(df: pd.DataFrame) -> pd.DataFrame:
    # Garantir todas as colunas do layout
    for col in LAYOUT.keys():
        if col not in df.columns:
            df[col] = None

    # Aplicar tipagem com logs de conversão
    for col, props in LAYOUT.items():
        tipo = props["tipo"]
        serie = df[col]
        antes_na = serie.isna().sum()
        if tipo == "float":
            convertido = pd.to_numeric(serie, errors='coerce')
        elif tipo == "int":
            convertido = pd.to_numeric(serie, errors='coerce').astype('Int64')
        elif tipo == "date":
            convertido = _sem_fuso(serie)
        else:
            convertido = serie.astype("string")
        depois_na = convertido.isna().sum()
        coercoes = max(0, depois_na - antes_na)
        if coercoes:
            log.warning(f"{coercoes} valores inválidos convertidos para NaN na coluna {col}")
        df[col] = convertido

    # Ordenar colunas conforme 'ordem', mantendo extras no final
    ordenadas = [col for col, _ in sorted(LAYOUT.items(), key=lambda x: x[1]['ordem'])]
    extras = [col for col in df.columns if col not in ordenadas]
    return df[ordenadas + extras]


def montar_itens_dataframe(resultado: ResultadoLote) -> pd.DataFrame:
    """Uma linha por item das NF-e aceitas no lote."""
    registros: List[Dict] = []
    for chave, nota in resultado.notas.items():
        natureza = normalizar_nat_op(nota.nat_op)
        cabecalho = {
            "Chave": chave,
            "Número": nota.numero,
            "Série": nota.serie,
            "Data Emissão": nota.emissao,
            "Tipo Nota": resultado.tipos_nota.get(chave),
            "Natureza Operação": natureza,
            "CFOP Principal": determinar_cfop_principal(nota.items),
            "Emitente CNPJ/CPF": nota.issuer_cnpj,
            "Emitente": nota.issuer_name,
            "Destinatário CNPJ/CPF": nota.recipient_cnpj,
            "Destinatário": nota.recipient_name,
            "Valor Total NF": nota.total_nfe,
        }
        for item in nota.items:
            registros.append({
                **cabecalho,
                "Item": item.numero_item,
                "CFOP": item.cfop_code,
                "Descrição CFOP": obter_descricao_cfop(item.cfop_code),
                "CFOP Composto": montar_cfop_composto(item.cfop_code, natureza),
                "Código Produto": item.product_code,
                "Produto": item.description,
                "NCM": item.ncm,
                "Unidade": item.unit,
                "Quantidade": item.qty,
                "Valor Unitário": item.unit_price,
                "Valor Bruto": item.gross,
                "Desconto": item.discount,
                "CST ICMS": item.cst,
                "CSOSN": item.csosn,
                "ICMS Base": item.v_bc,
                "ICMS Valor": item.icms_value,
                "ICMS ST": item.v_st,
                "IPI Valor": item.ipi_value,
                "PIS Valor": item.pis_value,
                "COFINS Valor": item.cofins_value,
            })
    log.info(f"{len(registros)} itens de {len(resultado.notas)} NF-e no lote")
    return configurar_planilha(pd.DataFrame(registros))


def montar_ctes_dataframe(resultado: ResultadoLote) -> pd.DataFrame:
    registros = []
    for cte in resultado.ctes.values():
        registro = asdict(cte)
        protocolo = registro.pop("protocol")
        registro["protocolo"] = protocolo["protocol_number"]
        registro["protocolo_status"] = protocolo["status_code"]
        registros.append(registro)
    df = pd.DataFrame(registros)
    if not df.empty:
        df["emissao"] = _sem_fuso(df["emissao"])
    return df


def montar_cancelamentos_dataframe(resultado: ResultadoLote) -> pd.DataFrame:
    df = pd.DataFrame([asdict(evento) for evento in resultado.cancelamentos.values()])
    for col in ("event_timestamp", "received_at"):
        if col in df.columns:
            df[col] = _sem_fuso(df[col])
    return df


def montar_resumo_dataframe(resultado: ResultadoLote) -> pd.DataFrame:
    total_nfe = sum(float(nota.total_nfe) for nota in resultado.notas.values())
    total_cte = sum(float(cte.valor_prestacao) for cte in resultado.ctes.values())
    emissoes = [nota.emissao for nota in resultado.notas.values()]
    linhas = [
        ("Inseridos", resultado.inserted),
        ("Duplicados", resultado.duplicate),
        ("Falhas", resultado.failed),
        ("Cancelados", resultado.cancelled),
        ("Valor Total NF-e", formatar_moeda(total_nfe)),
        ("Valor Total CT-e", formatar_moeda(total_cte)),
        ("Primeira Emissão", formatar_data_curta(min(emissoes)) if emissoes else ""),
        ("Última Emissão", formatar_data_curta(max(emissoes)) if emissoes else ""),
    ]
    return pd.DataFrame(linhas, columns=["Indicador", "Valor"])


def gerar_relatorio_excel(resultado: ResultadoLote, output_path: str) -> None:
    """Gera o Excel do lote com as abas Arquivos, Itens, CT-e, Cancelamentos e Resumo."""
    log.info(f"Gerando relatório Excel em: {output_path}")

    itens = montar_itens_dataframe(resultado)
    if not itens.empty:
        validar_campos_obrigatorios(itens)

    abas = {
        "Arquivos": resultado.como_dataframe(),
        "Itens": itens,
        "CT-e": montar_ctes_dataframe(resultado),
        "Cancelamentos": montar_cancelamentos_dataframe(resultado),
    }

    try:
        with pd.ExcelWriter(output_path, engine="xlsxwriter") as writer:
            for nome, df in abas.items():
                if df.empty:
                    log.info(f"Nenhum registro para a aba '{nome}'.")
                    continue
                df.to_excel(writer, sheet_name=nome, index=False)
                log.info(f"Aba '{nome}' adicionada.")
            montar_resumo_dataframe(resultado).to_excel(writer, sheet_name="Resumo", index=False)
        log.info("Relatório Excel gerado com sucesso.")
    except Exception as e:
        log.error(f"Erro ao salvar o arquivo Excel: {e}")
        raise
