"""
Router FastAPI per la Produzione
Progetto: Print Shop Manager (Gestionale Tipografia)

Bacheca di lavorazione e transizioni di stato delle note.
"""

import logging

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.database import get_db
from printshop.schemas.production import DeliverRequest, KanbanBoard, MoveRequest
from printshop.schemas.receivable import ReceivableRead
from printshop.services.production_service import production_service

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/production",
    tags=["Produzione"],
)


@router.get(
    "/board",
    name="produzione_bacheca",
    summary="Bacheca di produzione",
    description="Note raggruppate per stato: coda, stampa, pronte, consegnate.",
    response_model=KanbanBoard,
    status_code=status.HTTP_200_OK,
)
async def get_board(
    db: AsyncSession = Depends(get_db),
) -> KanbanBoard:
    return await production_service.get_board(db=db)


@router.post(
    "/{order_id}/process",
    name="produzione_avvia",
    summary="Avvia lavorazione",
    description="Porta l'ordine in stampa, creando la nota se non esiste.",
    response_model=ReceivableRead,
    status_code=status.HTTP_200_OK,
)
async def process_order(
    order_id: str = Path(..., description="Numero nota"),
    db: AsyncSession = Depends(get_db),
) -> ReceivableRead:
    """
    Raises:
        NotFoundError: Se l'ordine non esiste
        ConflictError: Se la nota non è in coda
    """
    receivable = await production_service.process_order(db=db, order_id=order_id)
    return ReceivableRead.model_validate(receivable)


@router.post(
    "/{order_id}/move",
    name="produzione_sposta",
    summary="Sposta sulla bacheca",
    description="Sposta la nota da uno stato all'altro verificando lo stato corrente.",
    response_model=ReceivableRead,
    status_code=status.HTTP_200_OK,
)
async def move_order(
    data: MoveRequest,
    order_id: str = Path(..., description="Numero nota"),
    db: AsyncSession = Depends(get_db),
) -> ReceivableRead:
    """
    Lo stato "from" deve coincidere con quello salvato, altrimenti la
    richiesta è rifiutata con 409 e il client deve rileggere la bacheca.
    """
    receivable = await production_service.move(
        db=db,
        order_id=order_id,
        from_status=data.from_status,
        to_status=data.to_status,
    )
    return ReceivableRead.model_validate(receivable)


@router.post(
    "/{order_id}/deliver",
    name="produzione_consegna",
    summary="Registra consegna",
    description="Segna la nota come consegnata con data odierna e nota di consegna.",
    response_model=ReceivableRead,
    status_code=status.HTTP_200_OK,
)
async def deliver_order(
    data: DeliverRequest,
    order_id: str = Path(..., description="Numero nota"),
    db: AsyncSession = Depends(get_db),
) -> ReceivableRead:
    receivable = await production_service.deliver(db=db, order_id=order_id, note=data.note)
    return ReceivableRead.model_validate(receivable)


@router.delete(
    "/{order_id}/queue",
    name="produzione_annulla_coda",
    summary="Annulla coda",
    description="Elimina la nota in coda; l'ordine torna tra quelli da lavorare.",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def cancel_queue(
    order_id: str = Path(..., description="Numero nota"),
    db: AsyncSession = Depends(get_db),
) -> None:
    await production_service.cancel_queue(db=db, order_id=order_id)
