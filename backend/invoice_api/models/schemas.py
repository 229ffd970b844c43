"""Pydantic schemas for request and response models.

Pydantic models are used for validating and serialising data that
crosses the boundary of the API.  This module defines both the domain
schema for the structured invoice document (``CanonicalInvoice``) and
the API facing schemas for plans, categories, types, subscriptions and
invoices.

API schemas serialise with camelCase aliases (``categoryId``,
``structuredData``) to match the form fields clients already send.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .enums import SubscriptionStatus


# ---------------------------------------------------------------------------
# Canonical invoice document produced by the structuring stage


def _null_to_empty(value: Any) -> Any:
    return "" if value is None else value


# Every leaf is a string; absent information is "" (a JSON null is accepted
# and normalised, any other non-string value is rejected).
Leaf = Annotated[str, BeforeValidator(_null_to_empty)]


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Emitente(_Section):
    nome: Leaf = Field(alias="Nome")
    morada: Leaf = Field(alias="Morada")
    nif: Leaf = Field(alias="NIF")
    contacto: Leaf = Field(alias="Contacto")


class Cliente(_Section):
    nome: Leaf = Field(alias="Nome")
    nif: Leaf = Field(alias="NIF")
    morada: Leaf = Field(alias="Morada")


class DataHora(_Section):
    data: Leaf = Field(alias="Data")
    hora: Leaf = Field(alias="Hora")


class NumeroFactura(_Section):
    factura_recibo: Leaf = Field(alias="Factura-recibo")
    documentos_referenciados: Leaf = Field(alias="Documentos referenciados")


class IvaBase(_Section):
    base_tributavel: Leaf = Field(alias="Base tributavel")
    iva_percent: Leaf = Field(alias="IVA (%)")
    valor_total_com_iva: Leaf = Field(alias="Valor Total com IVA")


class Pagamento(_Section):
    forma_de_pagamento: Leaf = Field(alias="Forma de pagamento")
    valor: Leaf = Field(alias="Valor")


class OutrasInformacoes(_Section):
    software: Leaf = Field(alias="Software")
    emp: Leaf = Field(alias="Emp.")
    data_de_processamento: Leaf = Field(alias="Data de processamento")


class CanonicalInvoice(_Section):
    """Fixed key set every structured invoice must contain.

    Serialise with ``to_document()`` to get the persisted form: the
    original Portuguese keys in canonical order, every leaf a string.
    """

    emitente: Emitente = Field(alias="Identificacao do Emitente")
    cliente: Cliente = Field(alias="Identificacao do Cliente")
    data_hora: DataHora = Field(alias="Data e Hora da Factura")
    numero: NumeroFactura = Field(alias="Numero da Factura")
    valor_total: Leaf = Field(alias="Valor Total")
    iva: IvaBase = Field(alias="IVA e Base Tributavel")
    pagamento: Pagamento = Field(alias="Pagamento")
    outras: OutrasInformacoes = Field(alias="Outras Informacoes")

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# API request/response schemas


class _APIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RoleRead(_APIModel):
    id: int
    name: str


class PlanBase(_APIModel):
    name: str
    description: str
    price: Decimal = Field(ge=0)
    currency: str = "AOA"
    invoice_limit: int = Field(ge=0)
    features: List[str] = Field(default_factory=list)
    is_active: bool = True


class PlanCreate(PlanBase):
    pass


class PlanUpdate(_APIModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = None
    invoice_limit: Optional[int] = Field(default=None, ge=0)
    features: Optional[List[str]] = None
    is_active: Optional[bool] = None


class PlanRead(PlanBase):
    id: int
    created_at: datetime
    updated_at: datetime


class CategoryCreate(_APIModel):
    name: str = Field(min_length=1)
    icon: str = Field(min_length=1)
    color_hex: str = Field(min_length=1)


class CategoryUpdate(_APIModel):
    name: Optional[str] = None
    icon: Optional[str] = None
    color_hex: Optional[str] = None


class CategoryRead(CategoryCreate):
    id: int
    created_at: datetime
    updated_at: datetime


class InvoiceTypeCreate(_APIModel):
    name: str = Field(min_length=1)


class InvoiceTypeRead(InvoiceTypeCreate):
    id: int


class SubscriptionCreate(_APIModel):
    plan_id: int
    payment_method: Optional[str] = None
    external_ref: Optional[str] = None
    end_date: Optional[datetime] = None


class SubscriptionRead(_APIModel):
    id: int
    user_id: int
    plan_id: int
    status: SubscriptionStatus
    payment_method: Optional[str] = None
    external_ref: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    renews_at: Optional[datetime] = None
    plan: Optional[PlanRead] = None


class QuotaRead(_APIModel):
    invoice_limit: Optional[int]
    invoice_count: int
    remaining: Optional[int]


class UserRead(_APIModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str
    plan: Optional[PlanRead] = None
    quota: QuotaRead


class InvoiceRead(_APIModel):
    id: int
    owner_id: int
    raw_text: str
    structured_data: Dict[str, Any]
    category_id: int
    type_id: int
    created_at: datetime


class PageMeta(_APIModel):
    total: int
    page: int
    limit: int
    total_pages: int


class InvoicePage(_APIModel):
    data: List[InvoiceRead]
    meta: PageMeta
