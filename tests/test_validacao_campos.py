import pandas as pd
import pytest
from utilitarios.validacao_utils import validar_campos_obrigatorios


def _base_df():
    return pd.DataFrame(
        {
            "Chave": ["35240112345678000199550010000012341000012345"],
            "CFOP": ["5102"],
            "Data Emissão": ["2024-01-15"],
            "Quantidade": [1.0],
            "Valor Bruto": [10.5],
        }
    )


def test_validar_campos_obrigatorios_ok():
    df = _base_df()
    validar_campos_obrigatorios(df)  # não deve lançar


def test_validar_campos_obrigatorios_coluna_ausente(caplog):
    df = _base_df().drop(columns=["CFOP"])
    with pytest.raises(ValueError):
        validar_campos_obrigatorios(df)
    assert "CFOP" in caplog.text


def test_validar_campos_obrigatorios_valor_vazio(caplog):
    df = _base_df()
    df.loc[0, "Chave"] = "  "
    with pytest.raises(ValueError):
        validar_campos_obrigatorios(df)
    assert "Chave" in caplog.text


def test_validar_campos_obrigatorios_valor_nao_numerico(caplog):
    df = _base_df()
    df["Valor Bruto"] = ["dez"]
    with pytest.raises(ValueError, match="não numéricos"):
        validar_campos_obrigatorios(df)
    assert "Valor Bruto" in caplog.text


def test_validar_colunas_informadas():
    df = _base_df()[["Chave"]]
    validar_campos_obrigatorios(df, colunas=["Chave"])
