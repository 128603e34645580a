from datetime import datetime, timezone

import pytest

from extratores.arvore_xml import carregar_arvore
from extratores.erros import ErroDocumentoFiscal, LAYOUT_UNSUPPORTED
from extratores.normalizadores import (
    normalizar_decimal,
    normalizar_documento,
    parse_date,
    parse_datetime,
)


@pytest.mark.parametrize(
    "entrada,esperado",
    [
        ("10.50", "10.50"),
        ("10,50", "10.50"),
        (" 7 ", "7"),
        ("-3.2", "-3.2"),
        ("+0,001", "+0.001"),
        ({"#text": "99.9"}, "99.9"),
        (["1,5"], "1.5"),
    ],
)
def test_normalizar_decimal(entrada, esperado):
    assert normalizar_decimal(entrada) == esperado


@pytest.mark.parametrize("valor", ["0", "10.50", "-1.25", "123456789.0001"])
def test_normalizar_decimal_idempotente(valor):
    assert normalizar_decimal(normalizar_decimal(valor)) == normalizar_decimal(valor)


@pytest.mark.parametrize("entrada", ["1,,5", "1.2.3", "abc", "1,5,0", "1e3", ".5"])
def test_normalizar_decimal_invalido(entrada):
    with pytest.raises(ErroDocumentoFiscal) as exc:
        normalizar_decimal(entrada)
    assert exc.value.code == LAYOUT_UNSUPPORTED
    assert exc.value.message == "valor decimal inválido"


def test_normalizar_decimal_ausente():
    assert normalizar_decimal(None, allow_null=True) is None
    assert normalizar_decimal("", default="0") == "0"
    with pytest.raises(ErroDocumentoFiscal) as exc:
        normalizar_decimal(None)
    assert exc.value.code == LAYOUT_UNSUPPORTED


@pytest.mark.parametrize(
    "entrada,esperado",
    [
        ("111.444.777-35", "11144477735"),
        ("12.345.678/0001-99", "12345678000199"),
        ("12345678000199", "12345678000199"),
        ("123", None),
        ("", None),
        (None, None),
        ("1234567890123", None),
    ],
)
def test_normalizar_documento(entrada, esperado):
    assert normalizar_documento(entrada) == esperado


@pytest.mark.parametrize("entrada", ["20240115", "2024-01-15"])
def test_parse_date_formatos_fixos_em_utc(entrada):
    assert parse_date(entrada) == datetime(2024, 1, 15, tzinfo=timezone.utc)


def test_parse_date_texto_livre_converte_para_utc():
    data = parse_date("2024-01-15T22:30:00-03:00")
    assert data == datetime(2024, 1, 16, 1, 30, tzinfo=timezone.utc)


def test_parse_date_ausente():
    assert parse_date(None, required=False) is None
    with pytest.raises(ErroDocumentoFiscal) as exc:
        parse_date("  ")
    assert exc.value.message == "data ausente"


@pytest.mark.parametrize("entrada", ["20241332", "2024-02-30", "ontem"])
def test_parse_date_invalida(entrada):
    with pytest.raises(ErroDocumentoFiscal) as exc:
        parse_date(entrada)
    assert exc.value.code == LAYOUT_UNSUPPORTED
    assert exc.value.message == "data inválida"


def test_parse_datetime_nunca_falha():
    assert parse_datetime("lixo") is None
    assert parse_datetime(None) is None
    assert parse_datetime("2024-01-16T09:00:00-03:00") == datetime(2024, 1, 16, 12, 0, tzinfo=timezone.utc)


def test_elemento_so_com_atributos_conta_como_ausente():
    arvore = carregar_arvore(
        '<ICMS00 xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">'
        '<vICMSDeson xsi:nil="true"/><vBC moeda="BRL"/><dhEmi nil="true"/></ICMS00>'
    )["ICMS00"]
    assert normalizar_decimal(arvore["vICMSDeson"], allow_null=True) is None
    assert normalizar_decimal(arvore["vBC"], default="0") == "0"
    assert normalizar_decimal({"@moeda": "BRL"}, allow_null=True) is None
    assert parse_date(arvore["dhEmi"], required=False) is None
    assert parse_datetime(arvore["dhEmi"]) is None
    with pytest.raises(ErroDocumentoFiscal) as exc:
        normalizar_decimal(arvore["vBC"])
    assert exc.value.message == "valor decimal ausente"
