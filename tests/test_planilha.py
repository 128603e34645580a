import re
import zipfile

import pandas as pd
import pytest

import extratores.planilha as planilha
from conftest import CHAVE_CTE, CHAVE_NFE, CNPJ_DESTINATARIO, ITEM_PADRAO
from extratores.lote import ResultadoLote, processar_documentos


@pytest.fixture
def resultado(nfe_xml, cte_xml, evento_xml):
    itens = [ITEM_PADRAO, {**ITEM_PADRAO, "cfop": "5405", "vProd": "20.00"}, ITEM_PADRAO]
    outra_chave = CHAVE_NFE[:-1] + "0"
    return processar_documentos(
        [
            ("nota.xml", nfe_xml(itens=itens, nat_op="VENDA DE MERCADORIA", v_nf="41.00")),
            ("cte.xml", cte_xml()),
            ("outra.xml", nfe_xml(chave=outra_chave)),
            ("evento.xml", evento_xml(chave=outra_chave)),
        ],
        cnpj_empresa=CNPJ_DESTINATARIO,
    )


def test_configurar_planilha_tipos_e_ordem(caplog):
    df = pd.DataFrame({"Extra": ["x"], "Quantidade": ["abc"], "CFOP": ["5102"], "Chave": ["1"]})
    df = planilha.configurar_planilha(df)
    ordenadas = [col for col, _ in sorted(planilha.LAYOUT.items(), key=lambda x: x[1]["ordem"])]
    assert list(df.columns) == ordenadas + ["Extra"]
    assert pd.isna(df.loc[0, "Quantidade"])
    assert "coluna Quantidade" in caplog.text


def test_configurar_planilha_remove_fuso():
    df = pd.DataFrame({"Data Emissão": [pd.Timestamp("2024-01-15T10:30:00-03:00")]})
    df = planilha.configurar_planilha(df)
    assert df.loc[0, "Data Emissão"] == pd.Timestamp("2024-01-15 13:30:00")
    assert df["Data Emissão"].dt.tz is None


def test_itens_dataframe(resultado):
    df = planilha.montar_itens_dataframe(resultado)
    assert len(df) == 3
    assert set(df["Chave"]) == {CHAVE_NFE}
    linha = df.iloc[0]
    assert linha["CFOP Principal"] == "5102"
    assert linha["Natureza Operação"] == "Venda de Mercadoria"
    assert linha["Descrição CFOP"] == "Venda de mercadoria adquirida ou recebida de terceiros"
    assert linha["CFOP Composto"] == "5102 - Venda de Mercadoria"
    assert linha["Tipo Nota"] == "Entrada"
    assert linha["Valor Bruto"] == 10.5
    assert list(df["Item"]) == [1, 2, 3]


def test_ctes_e_cancelamentos(resultado):
    ctes = planilha.montar_ctes_dataframe(resultado)
    assert list(ctes["chave"]) == [CHAVE_CTE]
    assert ctes.loc[0, "protocolo"] == "135240000000777"
    assert "protocol" not in ctes.columns

    cancelamentos = planilha.montar_cancelamentos_dataframe(resultado)
    assert len(cancelamentos) == 1
    assert cancelamentos["received_at"].dt.tz is None


def test_resumo(resultado):
    resumo = dict(planilha.montar_resumo_dataframe(resultado).values.tolist())
    assert resumo["Inseridos"] == 2
    assert resumo["Cancelados"] == 1
    assert resumo["Valor Total NF-e"] == "R$ 41,00"
    assert resumo["Valor Total CT-e"] == "R$ 1.500,00"
    assert resumo["Primeira Emissão"] == "15/01/2024"


def test_gerar_relatorio_excel(resultado, tmp_path):
    saida = tmp_path / "relatorio.xlsx"
    planilha.gerar_relatorio_excel(resultado, str(saida))
    with zipfile.ZipFile(saida) as xlsx:
        workbook = xlsx.read("xl/workbook.xml").decode("utf-8")
    abas = re.findall(r'<sheet name="([^"]+)"', workbook)
    assert abas == ["Arquivos", "Itens", "CT-e", "Cancelamentos", "Resumo"]


def test_gerar_relatorio_excel_lote_vazio(tmp_path):
    saida = tmp_path / "vazio.xlsx"
    planilha.gerar_relatorio_excel(ResultadoLote(), str(saida))
    assert saida.exists()
