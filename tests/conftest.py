import os
import sys

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, ROOT)

CHAVE_NFE = "35240112345678000199550010000012341000012345"
CHAVE_CTE = "35240198765432000188570010000004561000004567"
CNPJ_EMITENTE = "12345678000199"
CNPJ_DESTINATARIO = "98765432000188"

ITEM_PADRAO = {
    "cfop": "5102",
    "qCom": "1",
    "vUnCom": "10.50",
    "vProd": "10.50",
    "imposto": "<ICMS><ICMS00><CST>00</CST><vBC>10.50</vBC><vICMS>1.89</vICMS></ICMS00></ICMS>",
}


def _det(i, item):
    cfop = f"<CFOP>{item['cfop']}</CFOP>" if item.get("cfop") is not None else ""
    desconto = f"<vDesc>{item['vDesc']}</vDesc>" if item.get("vDesc") is not None else ""
    return f"""
        <det nItem="{i}">
            <prod>
                <cProd>P{i}</cProd>
                <xProd>Produto {i}</xProd>
                <NCM>87032310</NCM>
                {cfop}
                <uCom>UN</uCom>
                <qCom>{item.get('qCom', '1')}</qCom>
                <vUnCom>{item.get('vUnCom', '10.50')}</vUnCom>
                <vProd>{item.get('vProd', '10.50')}</vProd>
                {desconto}
            </prod>
            <imposto>{item.get('imposto', '')}</imposto>
        </det>"""


def montar_nfe(
    itens=None,
    serie="1",
    protocolo_cstat="100",
    envelope=True,
    chave=CHAVE_NFE,
    nat_op="VENDA",
    tp_nf="1",
    emitente=CNPJ_EMITENTE,
    destinatario=CNPJ_DESTINATARIO,
    dh_emi="2024-01-15T10:30:00-03:00",
    v_nf="10.50",
):
    itens = [ITEM_PADRAO] if itens is None else itens
    dets = "".join(_det(i, item) for i, item in enumerate(itens, 1))
    tp_nf_tag = f"<tpNF>{tp_nf}</tpNF>" if tp_nf is not None else ""
    nfe = f"""
    <NFe xmlns="http://www.portalfiscal.inf.br/nfe">
        <infNFe Id="NFe{chave}" versao="4.00">
            <ide>
                <natOp>{nat_op}</natOp>
                <serie>{serie}</serie>
                <nNF>1234</nNF>
                <dhEmi>{dh_emi}</dhEmi>
                {tp_nf_tag}
            </ide>
            <emit>
                <CNPJ>{emitente}</CNPJ>
                <xNome>Empresa Emitente</xNome>
            </emit>
            <dest>
                <CNPJ>{destinatario}</CNPJ>
                <xNome>Empresa Destinataria</xNome>
                <enderDest><xMun>Campinas</xMun><UF>SP</UF></enderDest>
            </dest>
            {dets}
            <total><ICMSTot><vNF>{v_nf}</vNF></ICMSTot></total>
        </infNFe>
    </NFe>"""
    if not envelope:
        return '<?xml version="1.0" encoding="UTF-8"?>' + nfe
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<nfeProc xmlns="http://www.portalfiscal.inf.br/nfe" versao="4.00">
    {nfe}
    <protNFe versao="4.00">
        <infProt>
            <chNFe>{chave}</chNFe>
            <dhRecbto>2024-01-15T10:31:00-03:00</dhRecbto>
            <nProt>135240000000001</nProt>
            <cStat>{protocolo_cstat}</cStat>
            <xMotivo>Autorizado o uso da NF-e</xMotivo>
        </infProt>
    </protNFe>
</nfeProc>"""


def montar_evento(chave=CHAVE_NFE, tp_evento="110111", desc="Cancelamento", cstat="135", x_motivo=None):
    x_motivo = x_motivo or "Evento registrado e vinculado a NF-e"
    cstat_tag = f"<cStat>{cstat}</cStat>" if cstat is not None else ""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<procEventoNFe xmlns="http://www.portalfiscal.inf.br/nfe" versao="1.00">
    <evento versao="1.00">
        <infEvento Id="ID{tp_evento}{chave}01">
            <chNFe>{chave}</chNFe>
            <dhEvento>2024-01-16T09:00:00-03:00</dhEvento>
            <tpEvento>{tp_evento}</tpEvento>
            <nSeqEvento>1</nSeqEvento>
            <detEvento versao="1.00">
                <descEvento>{desc}</descEvento>
                <nProt>135240000000001</nProt>
                <xJust>Erro na emissao da nota fiscal</xJust>
            </detEvento>
        </infEvento>
    </evento>
    <retEvento versao="1.00">
        <infEvento>
            {cstat_tag}
            <xMotivo>{x_motivo}</xMotivo>
            <chNFe>{chave}</chNFe>
            <tpEvento>{tp_evento}</tpEvento>
            <dhRegEvento>2024-01-16T09:00:05-03:00</dhRegEvento>
            <nProt>135240000000099</nProt>
        </infEvento>
    </retEvento>
</procEventoNFe>"""


def montar_cte(chave=CHAVE_CTE, cstat="100", v_tprest="1500.00"):
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<cteProc xmlns="http://www.portalfiscal.inf.br/cte" versao="4.00">
    <CTe>
        <infCte Id="CTe{chave}" versao="4.00">
            <ide>
                <CFOP>5353</CFOP>
                <natOp>PRESTACAO DE SERVICO DE TRANSPORTE</natOp>
                <mod>57</mod>
                <serie>1</serie>
                <nCT>456</nCT>
                <dhEmi>2024-01-20T08:00:00-03:00</dhEmi>
            </ide>
            <emit>
                <CNPJ>{CNPJ_DESTINATARIO}</CNPJ>
                <xNome>Transportadora</xNome>
                <enderEmit><xMun>Sao Paulo</xMun><UF>SP</UF></enderEmit>
            </emit>
            <dest>
                <CNPJ>{CNPJ_EMITENTE}</CNPJ>
                <xNome>Cliente</xNome>
                <enderDest><xMun>Curitiba</xMun><UF>PR</UF></enderDest>
            </dest>
            <vPrest>
                <vTPrest>{v_tprest}</vTPrest>
                <vRec>1500.00</vRec>
            </vPrest>
            <infCTeNorm>
                <infCarga>
                    <infQ><tpMed>PESO BRUTO</tpMed><qCarga>1200,5</qCarga></infQ>
                    <infQ><tpMed>VOLUMES</tpMed><qCarga>10</qCarga></infQ>
                </infCarga>
            </infCTeNorm>
        </infCte>
    </CTe>
    <protCTe versao="4.00">
        <infProt>
            <chCTe>{chave}</chCTe>
            <dhRecbto>2024-01-20T08:01:00-03:00</dhRecbto>
            <nProt>135240000000777</nProt>
            <cStat>{cstat}</cStat>
            <xMotivo>Autorizado o uso do CT-e</xMotivo>
        </infProt>
    </protCTe>
</cteProc>"""


NFSE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<CompNfse xmlns="http://www.abrasf.org.br/nfse.xsd">
    <Nfse><InfNfse><Numero>10</Numero></InfNfse></Nfse>
</CompNfse>"""


@pytest.fixture
def nfe_xml():
    return montar_nfe


@pytest.fixture
def evento_xml():
    return montar_evento


@pytest.fixture
def cte_xml():
    return montar_cte
