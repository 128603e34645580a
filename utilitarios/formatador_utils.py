import pandas as pd


def formatar_moeda(valor):
    """``1234.5`` -> ``R$ 1.234,50``; valores não numéricos voltam intactos."""
    try:
        return "R$ {:,.2f}".format(float(valor)).replace(",", "X").replace(".", ",").replace("X", ".")
    except (TypeError, ValueError):
        return valor

def formatar_data_curta(valor):
    """Formata datas no padrão brasileiro ``dd/mm/aaaa``."""
    dt = pd.to_datetime(valor, errors="coerce")
    if pd.isna(dt):
        return ""
    return dt.strftime("%d/%m/%Y")
