from typing import Any, Dict, Optional

XML_MALFORMED = "XML_MALFORMED"
MISSING_INF_NFE = "MISSING_INF_NFE"
MISSING_INF_CTE = "MISSING_INF_CTE"
LAYOUT_UNSUPPORTED = "LAYOUT_UNSUPPORTED"

CODIGOS_ERRO = frozenset({XML_MALFORMED, MISSING_INF_NFE, MISSING_INF_CTE, LAYOUT_UNSUPPORTED})


class ErroDocumentoFiscal(Exception):
    """Falha ao interpretar um documento fiscal.

    ``code`` é sempre um dos valores de ``CODIGOS_ERRO``. ``details`` traz
    dados de diagnóstico (valor rejeitado, item, exceção original) e nunca é
    necessário para decidir o fluxo.
    """

    def __init__(self, message: str, code: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    def __repr__(self) -> str:
        return f"ErroDocumentoFiscal(code={self.code!r}, message={self.message!r})"
