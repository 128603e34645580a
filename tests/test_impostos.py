import pytest

from extratores.impostos import ICMS, PIS, VARIANTES, extrair_icms, extrair_pis, resolver_variante


def test_primeira_variante_preenchida_na_ordem_declarada():
    no = {"ICMS90": {"CST": "90"}, "ICMS00": {"CST": "00"}}
    assert resolver_variante(no, ICMS).tipo == "ICMS00"


def test_variante_vazia_e_ignorada():
    no = {"PISAliq": None, "PISOutr": {"vPIS": "1,00"}}
    assert extrair_pis(no) == ("PISOutr", "1,00")


def test_grupo_ausente_ou_desconhecido():
    assert resolver_variante(None, ICMS) is None
    assert resolver_variante({"ICMS99": {"CST": "99"}}, ICMS) is None
    assert extrair_icms(None).variante is None


@pytest.mark.parametrize("grupo", list(VARIANTES))
def test_todas_as_variantes_enumeradas_resolvem(grupo):
    for tipo in VARIANTES[grupo]:
        assert resolver_variante({tipo: {"x": "1"}}, grupo).tipo == tipo


def test_icms_st_prefere_vst():
    dados = extrair_icms({"ICMSSN201": {"CSOSN": "201", "vST": "3.00", "vICMSST": "9.00"}})
    assert dados.v_st == "3.00"
    assert dados.csosn == "201"


def test_pis_lista_usa_primeiro():
    assert resolver_variante([{"PISNT": {"CST": "04"}}], PIS).tipo == "PISNT"
