"""
Schemas Pydantic per le Note da incassare
Progetto: Print Shop Manager (Gestionale Tipografia)

Contiene:
- Enums: PaymentStatus, ProductionStatus
- Schemas per Payment
- Schemas per Receivable
- Richieste e risultati delle operazioni di incasso (singole e massive)
"""

import datetime
import uuid
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from printshop.schemas.order import MAX_AMOUNT, CheckoutItem


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class PaymentStatus(str, Enum):
    """Stato di pagamento, sempre derivato da incassi e sconto."""
    UNPAID = "unpaid"
    PAID = "paid"


class ProductionStatus(str, Enum):
    """Stato di produzione della nota."""
    QUEUED = "queued"
    PRINTING = "printing"
    READY = "ready"
    DELIVERED = "delivered"
    LEGACY = "legacy"


# Colonne della bacheca di produzione, nell'ordine di visualizzazione.
# LEGACY è escluso: le note importate non si spostano mai.
BOARD_STATUSES: tuple[ProductionStatus, ...] = (
    ProductionStatus.QUEUED,
    ProductionStatus.PRINTING,
    ProductionStatus.READY,
    ProductionStatus.DELIVERED,
)


# -------------------------------------------------------------------
# Schemas per Payment
# -------------------------------------------------------------------

class PaymentCreate(BaseModel):
    """
    Incasso da registrare.

    Attributes:
        amount: Importo ricevuto (> 0); la parte eccedente il residuo è resto
        payment_date: Data incasso
        method_id: Metodo di pagamento del catalogo
    """
    amount: int = Field(..., gt=0, le=MAX_AMOUNT, description="Importo ricevuto")
    payment_date: datetime.date = Field(default_factory=datetime.date.today)
    method_id: str = Field(..., min_length=1, max_length=50)


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    amount: int
    payment_date: datetime.date
    method_id: str
    method_name: str


# -------------------------------------------------------------------
# Schemas per Receivable
# -------------------------------------------------------------------

class ReceivableRead(BaseModel):
    """Nota con incassi, residuo e dati cliente risolti dall'ordine."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    order_date: Optional[datetime.date] = None
    amount: int
    due_date: datetime.date
    payment_status: PaymentStatus
    production_status: ProductionStatus
    discount: int
    delivery_date: Optional[datetime.date] = None
    delivery_note: Optional[str] = None
    payments: list[PaymentRead] = Field(default_factory=list)
    total_paid: int = 0
    remaining_balance: int = 0

    @computed_field
    @property
    def is_overdue(self) -> bool:
        """Non pagata e con scadenza superata."""
        return (
            self.payment_status == PaymentStatus.UNPAID
            and self.due_date < datetime.date.today()
        )


class ReceivableList(BaseModel):
    items: list[ReceivableRead]
    total: int
    page: int
    per_page: int
    total_pages: int = 0

    @model_validator(mode="after")
    def compute_total_pages(self) -> "ReceivableList":
        if self.per_page > 0:
            self.total_pages = (self.total + self.per_page - 1) // self.per_page
        return self


class DueAlerts(BaseModel):
    """Note non pagate in scadenza entro il preavviso e note scadute."""
    reference_date: datetime.date
    due_soon_days: int
    due_soon: list[ReceivableRead] = Field(default_factory=list)
    overdue: list[ReceivableRead] = Field(default_factory=list)


# -------------------------------------------------------------------
# Richieste di incasso
# -------------------------------------------------------------------

class ProcessPaymentRequest(BaseModel):
    """
    Incasso su una nota, con eventuale modifica delle voci in cassa.

    Attributes:
        payment: Incasso da registrare
        discount: Nuovo sconto (assente = sconto corrente)
        updated_items: Voci modificate in cassa, il totale viene ricalcolato
        new_total: Totale atteso dal client; deve coincidere con il ricalcolo
    """
    payment: PaymentCreate
    discount: Optional[int] = Field(None, ge=0, le=MAX_AMOUNT)
    updated_items: Optional[list[CheckoutItem]] = None
    new_total: Optional[int] = Field(None, ge=0, le=MAX_AMOUNT)

    @model_validator(mode="after")
    def validate_checkout(self) -> "ProcessPaymentRequest":
        if self.new_total is not None and self.updated_items is None:
            raise ValueError("new_total è ammesso solo insieme a updated_items")
        if self.updated_items is not None and not self.updated_items:
            raise ValueError("updated_items non può essere vuoto")
        return self


class LegacyPaymentRequest(BaseModel):
    """Incasso di una nota pregressa: la nota risulta consegnata con incasso e sconto."""
    payment: PaymentCreate
    discount: int = Field(0, ge=0, le=MAX_AMOUNT)


class PaymentResult(BaseModel):
    receivable: ReceivableRead
    remaining_balance: int
    change_due: int = Field(0, description="Resto da restituire al cliente")


class BulkPaymentRequest(BaseModel):
    """Saldo del residuo di più ordini con lo stesso metodo e data."""
    order_ids: list[str] = Field(..., min_length=1)
    payment_date: datetime.date = Field(default_factory=datetime.date.today)
    method_id: str = Field(..., min_length=1, max_length=50)

    @field_validator("order_ids")
    @classmethod
    def dedupe_ids(cls, v: list[str]) -> list[str]:
        """Rimuove duplicati e spazi mantenendo l'ordine."""
        return list(dict.fromkeys(i.strip() for i in v if i and i.strip()))


class DueDateUpdate(BaseModel):
    due_date: datetime.date


class BulkDueDateUpdate(BaseModel):
    order_ids: list[str] = Field(..., min_length=1)
    due_date: datetime.date

    @field_validator("order_ids")
    @classmethod
    def dedupe_ids(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(i.strip() for i in v if i and i.strip()))


# -------------------------------------------------------------------
# Risultato delle operazioni massive
# -------------------------------------------------------------------

class BulkFailure(BaseModel):
    id: str
    detail: str
    error_code: Optional[str] = None


class BulkOperationResult(BaseModel):
    """
    Esito per id di un'operazione massiva.

    Ogni id è elaborato in una transazione indipendente: il fallimento di
    uno non annulla gli altri e viene sempre riportato qui.
    """
    succeeded: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)

    @computed_field
    @property
    def all_succeeded(self) -> bool:
        return not self.failed
