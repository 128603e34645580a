import pytest

from extratores.lote import classificar_tipo_nota

CNPJ = "41492247000150"
OUTRO = "12345678000199"
TERCEIRO = "98765432000188"


@pytest.mark.parametrize("tp_nf", ["0", "1", None])
def test_destinatario_prioritario_quando_ambos_sao_empresa(tp_nf):
    assert classificar_tipo_nota(CNPJ, CNPJ, CNPJ, tp_nf) == "Entrada"


def test_tpnf_saida_destinada_a_empresa_e_entrada():
    assert classificar_tipo_nota(OUTRO, CNPJ, CNPJ, "1") == "Entrada"


def test_tpnf_saida_emitida_pela_empresa():
    assert classificar_tipo_nota(CNPJ, OUTRO, CNPJ, "1") == "Saída"


def test_sem_tpnf_usa_as_partes():
    assert classificar_tipo_nota(OUTRO, CNPJ, CNPJ, None) == "Entrada"
    assert classificar_tipo_nota(CNPJ, OUTRO, CNPJ, None) == "Saída"


def test_documentos_formatados():
    assert classificar_tipo_nota("41.492.247/0001-50", OUTRO, CNPJ, "1") == "Saída"


def test_alerta_entrada_emitida_pela_empresa():
    tipo, alerta = classificar_tipo_nota(CNPJ, OUTRO, CNPJ, "0", retornar_alerta=True)
    assert tipo == "Entrada"
    assert alerta.startswith("Entrada emitida")


def test_nota_sem_empresa_indefinida():
    tipo, alerta = classificar_tipo_nota(OUTRO, TERCEIRO, CNPJ, "1", retornar_alerta=True)
    assert tipo == "Indefinido"
    assert alerta.startswith("Nota não envolve")


def test_documento_invalido_indefinido():
    tipo, alerta = classificar_tipo_nota("123", OUTRO, CNPJ, "1", retornar_alerta=True)
    assert tipo == "Indefinido"
    assert "inválido" in alerta
