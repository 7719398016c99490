"""
Schemas Pydantic per il progetto Print Shop Manager

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
e serializzazione delle richieste e risposte API.
"""

from printshop.schemas.catalog import (
    CatalogSnapshot,
    CategoryRead,
    CustomerRead,
    FinishingRead,
    PaymentMethodRead,
    PriceTier,
    ProductRead,
    UnitPolicy,
)
from printshop.schemas.order import (
    CheckoutItem,
    LegacyOrderCreate,
    OrderCreate,
    OrderItemCreate,
    OrderItemRead,
    OrderList,
    OrderRead,
    OrderUpdate,
    QuoteRequest,
    QuoteResult,
)
from printshop.schemas.receivable import (
    BOARD_STATUSES,
    BulkDueDateUpdate,
    BulkOperationResult,
    BulkPaymentRequest,
    DueAlerts,
    DueDateUpdate,
    PaymentCreate,
    PaymentRead,
    PaymentResult,
    PaymentStatus,
    ProcessPaymentRequest,
    ProductionStatus,
    ReceivableList,
    ReceivableRead,
)
from printshop.schemas.production import DeliverRequest, KanbanBoard, KanbanCard, MoveRequest
from printshop.schemas.settings import (
    BillingSettings,
    BillingSettingsUpdate,
    SequenceRead,
    SequenceUpdate,
)

__all__ = [
    # Catalogo
    "PriceTier",
    "UnitPolicy",
    "CustomerRead",
    "CategoryRead",
    "ProductRead",
    "FinishingRead",
    "PaymentMethodRead",
    "CatalogSnapshot",
    # Ordini
    "OrderItemCreate",
    "OrderItemRead",
    "CheckoutItem",
    "OrderCreate",
    "LegacyOrderCreate",
    "OrderUpdate",
    "OrderRead",
    "OrderList",
    "QuoteRequest",
    "QuoteResult",
    # Note
    "PaymentStatus",
    "ProductionStatus",
    "BOARD_STATUSES",
    "PaymentCreate",
    "PaymentRead",
    "ReceivableRead",
    "ReceivableList",
    "DueAlerts",
    "ProcessPaymentRequest",
    "PaymentResult",
    "BulkPaymentRequest",
    "DueDateUpdate",
    "BulkDueDateUpdate",
    "BulkOperationResult",
    # Produzione
    "KanbanCard",
    "KanbanBoard",
    "MoveRequest",
    "DeliverRequest",
    # Impostazioni
    "SequenceRead",
    "SequenceUpdate",
    "BillingSettings",
    "BillingSettingsUpdate",
]
