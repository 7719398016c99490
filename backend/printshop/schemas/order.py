"""
Schemas Pydantic per gli Ordini
Progetto: Print Shop Manager (Gestionale Tipografia)

Definisce gli schemi di validazione e serializzazione per l'API.
La validazione di business (prodotto scelto, finitura ammessa, misure)
avviene nel service layer, che conosce il catalogo.
"""

import datetime
import uuid
from decimal import Decimal
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from printshop.models.order import NO_FINISHING

# Quantità massima per voce
MAX_QUANTITY = 1_000_000

# Importo massimo memorizzabile nelle colonne BigInteger
MAX_AMOUNT = 2**63 - 1


# -------------------------------------------------------------------
# Funzioni di validazione standalone
# -------------------------------------------------------------------

def normalize_dimension(v: Any) -> str:
    """Le misure arrivano come testo o numero; vengono conservate come testo."""
    if v is None:
        return "1"
    return str(v).strip()


def ensure_unique_line_ids(items: list["OrderItemCreate"]) -> None:
    """
    Verifica che gli id di riga assegnati dal client siano univoci.

    Raises:
        ValueError: Se due voci condividono lo stesso line_id
    """
    seen: set[int] = set()
    for item in items:
        if item.line_id is None:
            continue
        if item.line_id in seen:
            raise ValueError(f"Id voce duplicato: {item.line_id}")
        seen.add(item.line_id)


# -------------------------------------------------------------------
# Schemas per OrderItem
# -------------------------------------------------------------------

class OrderItemBase(BaseModel):
    """
    Schema base per le voci d'ordine.

    Attributes:
        line_id: Id assegnato dal client, univoco nell'ordine (1..n se omesso)
        product_id: Prodotto scelto (obbligatorio al salvataggio)
        finishing: Nome finitura ("None" = nessuna)
        description: Descrizione libera (obbligatoria al salvataggio)
        length: Lunghezza in metri (solo categorie a superficie)
        width: Larghezza in metri (solo categorie a superficie)
        quantity: Numero di pezzi
    """
    line_id: Optional[int] = Field(None, ge=0)
    product_id: Optional[int] = None
    finishing: str = Field(default=NO_FINISHING, max_length=100)
    description: str = Field(default="", max_length=1000)
    length: str = Field(default="1", max_length=20)
    width: str = Field(default="1", max_length=20)
    quantity: int = Field(default=1, ge=1, le=MAX_QUANTITY, description="Quantità (intero positivo)")

    @field_validator("length", "width", mode="before")
    @classmethod
    def validate_dimension(cls, v: Any) -> str:
        return normalize_dimension(v)

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str) -> str:
        return v.strip()

    @field_validator("finishing", mode="before")
    @classmethod
    def validate_finishing(cls, v: Any) -> str:
        """Finitura vuota equivale a nessuna finitura."""
        if v is None or not str(v).strip():
            return NO_FINISHING
        return str(v).strip()


class OrderItemCreate(OrderItemBase):
    """Schema per la creazione/modifica di una voce d'ordine."""
    pass


class CheckoutItem(OrderItemBase):
    """
    Voce modificata in cassa.

    custom_price sostituisce il subtotale calcolato della voce.
    """
    custom_price: Optional[int] = Field(None, ge=0, le=MAX_AMOUNT, description="Prezzo forzato della voce")


class OrderItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    line_id: int
    position: int
    product_id: Optional[int]
    finishing: str
    description: str
    length: str
    width: str
    quantity: int
    custom_price: Optional[int] = None


# -------------------------------------------------------------------
# Schemas per Order
# -------------------------------------------------------------------

class OrderCreate(BaseModel):
    """
    Schema per la creazione di un ordine.

    Il numero nota e il totale non sono accettati in input: vengono
    assegnati dal server.
    """
    customer_id: Optional[int] = Field(None, description="Cliente dell'ordine")
    order_date: datetime.date = Field(default_factory=datetime.date.today)
    items: list[OrderItemCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_items(self) -> "OrderCreate":
        ensure_unique_line_ids(self.items)
        return self


class LegacyOrderCreate(OrderCreate):
    """Ordine inserito a posteriori ("dati vecchi"): nasce con nota in stato legacy."""
    pass


class OrderUpdate(BaseModel):
    """
    Schema per l'aggiornamento di un ordine.

    items, se presente, sostituisce integralmente le voci. Il totale viene
    sempre ricalcolato (anche un cambio cliente può cambiare la fascia).
    """
    customer_id: Optional[int] = None
    order_date: Optional[datetime.date] = None
    items: Optional[list[OrderItemCreate]] = None

    @model_validator(mode="after")
    def validate_items(self) -> "OrderUpdate":
        if self.items is not None:
            ensure_unique_line_ids(self.items)
        return self


class OrderRead(BaseModel):
    """Ordine con nome cliente risolto e voci."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    customer_id: int
    customer_name: Optional[str] = None
    order_date: datetime.date
    details: str
    total_price: int
    items: list[OrderItemRead] = Field(default_factory=list)
    created_at: datetime.datetime
    updated_at: datetime.datetime


class OrderList(BaseModel):
    """
    Schema per la risposta paginata degli ordini.

    Attributes:
        items: Lista degli ordini
        total: Numero totale di record
        page: Pagina corrente
        per_page: Record per pagina
        total_pages: Numero totale di pagine (calcolato automaticamente)
    """
    items: list[OrderRead]
    total: int
    page: int
    per_page: int
    total_pages: int = 0

    @model_validator(mode="after")
    def compute_total_pages(self) -> "OrderList":
        if self.per_page > 0:
            self.total_pages = (self.total + self.per_page - 1) // self.per_page
        return self


# -------------------------------------------------------------------
# Preventivo (calcolo senza salvataggio)
# -------------------------------------------------------------------

class QuoteRequest(BaseModel):
    customer_id: int
    items: list[CheckoutItem] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_items(self) -> "QuoteRequest":
        ensure_unique_line_ids(self.items)
        return self


class QuoteLine(BaseModel):
    line_id: Optional[int]
    line_total: Decimal


class QuoteResult(BaseModel):
    """Totale arrotondato e righe riconciliate (il resto va sull'ultima riga)."""
    tier: str
    subtotal: Decimal
    rounding: Decimal
    total: int
    lines: list[QuoteLine]
