"""
Schemas Pydantic per la sincronizzazione dei client
Progetto: Print Shop Manager (Gestionale Tipografia)

Lo snapshot contiene l'intero insieme di lavoro, oppure solo le sezioni
toccate dagli argomenti richiesti (le altre restano null).
"""

import datetime
from typing import Optional

from pydantic import BaseModel, Field

from printshop.core.change_feed import ChangeTopic
from printshop.schemas.catalog import CatalogSnapshot
from printshop.schemas.order import OrderRead
from printshop.schemas.production import KanbanBoard
from printshop.schemas.receivable import ReceivableRead
from printshop.schemas.settings import BillingSettings, SequenceRead


class WorkingSetSnapshot(BaseModel):
    generated_at: datetime.datetime
    topics: list[ChangeTopic] = Field(default_factory=list)
    orders: Optional[list[OrderRead]] = None
    unprocessed_orders: Optional[list[OrderRead]] = None
    receivables: Optional[list[ReceivableRead]] = None
    board: Optional[KanbanBoard] = None
    catalog: Optional[CatalogSnapshot] = None
    billing: Optional[BillingSettings] = None
    sequence: Optional[SequenceRead] = None
