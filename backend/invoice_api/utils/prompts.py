"""Prompt template for the structured-extraction stage.

The template is sent verbatim, followed by the missing-field
instruction and then the OCR text of the invoice.  The example object
embedded in it fixes the output key set; ``CanonicalInvoice`` mirrors
those keys exactly, so change both together.
"""

from __future__ import annotations

import json

EXAMPLE_DOCUMENT = {
    "Identificacao do Emitente": {
        "Nome": "",
        "Morada": "",
        "NIF": "",
        "Contacto": "",
    },
    "Identificacao do Cliente": {
        "Nome": "",
        "NIF": "",
        "Morada": "",
    },
    "Data e Hora da Factura": {
        "Data": "",
        "Hora": "",
    },
    "Numero da Factura": {
        "Factura-recibo": "",
        "Documentos referenciados": "",
    },
    "Valor Total": "KZ 500,00",
    "IVA e Base Tributavel": {
        "Base tributavel": "",
        "IVA (%)": "",
        "Valor Total com IVA": "",
    },
    "Pagamento": {
        "Forma de pagamento": "",
        "Valor": "",
    },
    "Outras Informacoes": {
        "Software": "",
        "Emp.": "",
        "Data de processamento": "",
    },
}

# Compact separators match the example as the template has always shipped it.
_EXAMPLE_JSON = json.dumps(EXAMPLE_DOCUMENT, ensure_ascii=False, separators=(",", ":"))

EXTRACTION_TEMPLATE = (
    "Extrai as informações da factura acima, para um modelo de comprovativo de despesas de representação:\n"
    "    1.\tIdentificação do Emitente: Inclua ‘Nome’, ‘Morada’, ‘NIF’ e ‘Contacto’.\n"
    "    2.\tIdentificação do Cliente: Inclua ‘Nome’, ‘NIF’ e ‘Morada’.\n"
    "    3.\tData e Hora da Factura: Inclua ‘Data’ e ‘Hora’.\n"
    "    4.\tNúmero da Factura: Inclua ‘Factura-recibo’ e ‘Documentos referenciados’.\n"
    "    5.\tValor Total: Inclua o campo ‘Total’.\n"
    "    6.\tIVA e Base Tributável: Inclua ‘Base tributável’, ‘IVA (%)’ e ‘Valor Total com IVA’.\n"
    "    7.\tPagamento: Inclua ‘Forma de pagamento’ e ‘Valor’.\n"
    "    8.\tOutras Informações: Inclua ‘Software’, ‘Emp.’ e ‘Data de processamento’.\n"
    f"retorne em formato json igual a esse: {_EXAMPLE_JSON}."
)

MISSING_FIELDS_INSTRUCTION = (
    "As informações que não encontrares traga apenas a chave com valor string vazio."
)


def build_extraction_prompt(raw_text: str) -> str:
    """Compose the full prompt for ``raw_text``.

    ``raw_text`` is appended untouched: no trimming, truncation or
    re-encoding.
    """
    return f"{EXTRACTION_TEMPLATE}. {MISSING_FIELDS_INSTRUCTION}: {raw_text}"
