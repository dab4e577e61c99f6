from typing import Dict, Optional, Tuple

from langextract_api.core.domain.extraction import Template

# Catalogue of supported document types. Read-only and shared across requests.
TEMPLATES: Tuple[Template, ...] = (
    Template(id="invoice", name="Invoices", fields=("invoice_number", "date", "vendor", "total")),
    Template(id="contract", name="Contracts", fields=("parties", "dates", "terms")),
    Template(id="medical", name="Medical Records", fields=("patient_name", "diagnoses", "medications")),
    Template(id="receipt", name="Receipts", fields=("store", "date", "items", "total")),
)

DEFAULT_DOCUMENT_TYPE = "invoice"

_BY_ID: Dict[str, Template] = {template.id: template for template in TEMPLATES}


def list_templates() -> Tuple[Template, ...]:
    return TEMPLATES


def get_template(template_id: str) -> Optional[Template]:
    return _BY_ID.get(template_id)


def is_supported(template_id: str) -> bool:
    return template_id in _BY_ID
