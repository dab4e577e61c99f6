"""
Typed extraction payloads, one model per supported document type.

The serialized form of these models is what clients receive as `extracted_data`.
"""

from typing import Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field


class _Fields(BaseModel):
    model_config = ConfigDict(frozen=True)


class Vendor(_Fields):
    name: str
    address: Optional[str] = None
    email: Optional[str] = None


class LineItem(_Fields):
    description: str
    quantity: float = Field(ge=0)
    unit_price: float
    total: float


class InvoiceFields(_Fields):
    invoice_number: str
    date: str
    vendor: Vendor
    total: float
    currency: str = "USD"
    items: List[LineItem] = Field(default_factory=list)
    tax: Optional[float] = None


class Party(_Fields):
    name: str
    role: str


class ContractDates(_Fields):
    effective: Optional[str] = None
    expiration: Optional[str] = None
    signed: Optional[str] = None


class ContractFields(_Fields):
    parties: List[Party]
    dates: ContractDates
    terms: List[str] = Field(default_factory=list)


class Medication(_Fields):
    name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None


class MedicalFields(_Fields):
    patient_name: str
    diagnoses: List[str] = Field(default_factory=list)
    medications: List[Medication] = Field(default_factory=list)


class ReceiptItem(_Fields):
    description: str
    price: float


class ReceiptFields(_Fields):
    store: str
    date: str
    items: List[ReceiptItem] = Field(default_factory=list)
    total: float


DocumentFields = Union[InvoiceFields, ContractFields, MedicalFields, ReceiptFields]

FIELDS_BY_DOCUMENT_TYPE: Dict[str, Type[BaseModel]] = {
    "invoice": InvoiceFields,
    "contract": ContractFields,
    "medical": MedicalFields,
    "receipt": ReceiptFields,
}


def field_names(document_type: str) -> List[str]:
    model = FIELDS_BY_DOCUMENT_TYPE.get(document_type)
    return list(model.model_fields) if model else []
