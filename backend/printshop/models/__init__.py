"""
Modelli Database SQLAlchemy
Progetto: Print Shop Manager (Gestionale Tipografia)

Import centralizzato di tutti i modelli per create_all e usage generico.

Modelli:
- Customer, Category, Product, Finishing, PaymentMethod: Catalogo
- Order, OrderItem: Ordini e voci
- Receivable, ReceivablePayment: Note da incassare e incassi
- AppSetting, AppSequence: Impostazioni e numerazione
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


from printshop.models.catalog import Category, Customer, Finishing, PaymentMethod, Product
from printshop.models.order import NO_FINISHING, Order, OrderItem
from printshop.models.receivable import Receivable, ReceivablePayment
from printshop.models.settings import AppSequence, AppSetting

__all__ = [
    "Base",
    "Customer",
    "Category",
    "Product",
    "Finishing",
    "PaymentMethod",
    "NO_FINISHING",
    "Order",
    "OrderItem",
    "Receivable",
    "ReceivablePayment",
    "AppSetting",
    "AppSequence",
]
