"""
Schemas Pydantic per la Produzione
Progetto: Print Shop Manager (Gestionale Tipografia)

La bacheca non è persistita: è una proiezione delle note raggruppate
per stato di produzione.
"""

import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from printshop.schemas.receivable import ProductionStatus


class KanbanCard(BaseModel):
    order_id: str
    customer_name: Optional[str] = None
    details: str = ""
    order_date: Optional[datetime.date] = None


class KanbanBoard(BaseModel):
    """Le quattro colonne della bacheca, in ordine di lavorazione."""
    queue: list[KanbanCard] = Field(default_factory=list)
    printing: list[KanbanCard] = Field(default_factory=list)
    ready: list[KanbanCard] = Field(default_factory=list)
    delivered: list[KanbanCard] = Field(default_factory=list)

    @computed_field
    @property
    def counts(self) -> dict[str, int]:
        return {
            "queue": len(self.queue),
            "printing": len(self.printing),
            "ready": len(self.ready),
            "delivered": len(self.delivered),
        }


class MoveRequest(BaseModel):
    """
    Spostamento sulla bacheca.

    from_status è lo stato che il client crede corrente: se non coincide
    con quello salvato lo spostamento viene rifiutato.
    """
    model_config = ConfigDict(populate_by_name=True)

    from_status: ProductionStatus = Field(..., alias="from")
    to_status: ProductionStatus = Field(..., alias="to")


class DeliverRequest(BaseModel):
    note: str = Field(..., max_length=1000, description="Nota di consegna")

    @field_validator("note")
    @classmethod
    def validate_note(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("La nota di consegna è obbligatoria")
        return v
