"""
Router FastAPI per gli Ordini
Progetto: Print Shop Manager (Gestionale Tipografia)

Definisce gli endpoint API per creazione, modifica ed eliminazione degli
ordini, il preventivo senza salvataggio e l'incasso su ordini non ancora
lavorati.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.database import get_db
from printshop.schemas.order import (
    LegacyOrderCreate,
    OrderCreate,
    OrderList,
    OrderRead,
    OrderUpdate,
    QuoteRequest,
    QuoteResult,
)
from printshop.schemas.receivable import PaymentResult, ProcessPaymentRequest
from printshop.services.order_service import order_service
from printshop.services.receivable_service import receivable_service

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/orders",
    tags=["Ordini"],
)


# -------------------------------------------------------------------
# Letture
# -------------------------------------------------------------------

@router.get(
    "/",
    name="ordini_lista",
    summary="Lista ordini",
    description="Recupera la lista paginata degli ordini con eventuali filtri.",
    response_model=OrderList,
    status_code=status.HTTP_200_OK,
)
async def get_orders(
    customer_id: Optional[int] = Query(None, description="Filtro per cliente"),
    search: Optional[str] = Query(None, description="Ricerca su numero nota e riepilogo"),
    from_date: Optional[date] = Query(None, description="Data ordine minima (YYYY-MM-DD)"),
    to_date: Optional[date] = Query(None, description="Data ordine massima (YYYY-MM-DD)"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(20, ge=1, le=100, description="Elementi per pagina"),
    db: AsyncSession = Depends(get_db),
) -> OrderList:
    orders, total = await order_service.get_all(
        db=db,
        customer_id=customer_id,
        search=search,
        from_date=from_date,
        to_date=to_date,
        page=page,
        per_page=per_page,
    )
    return OrderList(
        items=[OrderRead.model_validate(o) for o in orders],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/unprocessed",
    name="ordini_da_lavorare",
    summary="Ordini da lavorare",
    description="Ordini senza nota oppure con nota ancora in coda.",
    response_model=list[OrderRead],
    status_code=status.HTTP_200_OK,
)
async def get_unprocessed_orders(
    db: AsyncSession = Depends(get_db),
) -> list[OrderRead]:
    orders = await order_service.get_unprocessed(db=db)
    return [OrderRead.model_validate(o) for o in orders]


@router.get(
    "/{order_id}",
    name="ordine_dettaglio",
    summary="Dettaglio ordine",
    description="Recupera un ordine con le sue voci.",
    response_model=OrderRead,
    status_code=status.HTTP_200_OK,
)
async def get_order(
    order_id: str = Path(..., description="Numero nota"),
    db: AsyncSession = Depends(get_db),
) -> OrderRead:
    """
    Raises:
        NotFoundError: Se l'ordine non esiste
    """
    order = await order_service.get_by_id(db=db, order_id=order_id)
    return OrderRead.model_validate(order)


# -------------------------------------------------------------------
# Scritture
# -------------------------------------------------------------------

@router.post(
    "/quote",
    name="ordine_preventivo",
    summary="Preventivo",
    description="Calcola totale e righe di un ordine senza salvarlo.",
    response_model=QuoteResult,
    status_code=status.HTTP_200_OK,
)
async def quote_order(
    data: QuoteRequest,
    db: AsyncSession = Depends(get_db),
) -> QuoteResult:
    return await order_service.quote(db=db, data=data)


@router.post(
    "/",
    name="ordine_crea",
    summary="Crea ordine",
    description="Crea un ordine assegnando il prossimo numero nota.",
    response_model=OrderRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_order(
    data: OrderCreate,
    db: AsyncSession = Depends(get_db),
) -> OrderRead:
    """
    Crea un nuovo ordine.

    Il totale è calcolato dal server sulle voci e sulla fascia del cliente.

    Raises:
        BusinessValidationError: Cliente mancante o voci non valide
        NotFoundError: Se il cliente non esiste
    """
    order = await order_service.create(db=db, data=data)
    return OrderRead.model_validate(order)


@router.post(
    "/legacy",
    name="ordine_pregresso_crea",
    summary="Registra ordine pregresso",
    description="Registra un ordine di dati vecchi con nota in stato legacy.",
    response_model=OrderRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_legacy_order(
    data: LegacyOrderCreate,
    db: AsyncSession = Depends(get_db),
) -> OrderRead:
    order = await order_service.create_legacy(db=db, data=data)
    return OrderRead.model_validate(order)


@router.put(
    "/{order_id}",
    name="ordine_aggiorna",
    summary="Aggiorna ordine",
    description="Aggiorna cliente, data o voci e riallinea la nota.",
    response_model=OrderRead,
    status_code=status.HTTP_200_OK,
)
async def update_order(
    data: OrderUpdate,
    order_id: str = Path(..., description="Numero nota"),
    db: AsyncSession = Depends(get_db),
) -> OrderRead:
    """
    Aggiorna un ordine esistente.

    Se l'ordine ha una nota, importo e stato di pagamento vengono
    ricalcolati nella stessa transazione.
    """
    order = await order_service.update(db=db, order_id=order_id, data=data)
    return OrderRead.model_validate(order)


@router.delete(
    "/{order_id}",
    name="ordine_elimina",
    summary="Elimina ordine",
    description="Elimina un ordine non ancora in lavorazione.",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_order(
    order_id: str = Path(..., description="Numero nota"),
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    Raises:
        NotFoundError: Se l'ordine non esiste
        BusinessValidationError: Se l'ordine è in produzione o ha incassi
    """
    await order_service.delete(db=db, order_id=order_id)


@router.post(
    "/{order_id}/payments",
    name="ordine_incassa",
    summary="Incasso su ordine da lavorare",
    description="Registra il primo incasso creando la nota in coda.",
    response_model=PaymentResult,
    status_code=status.HTTP_201_CREATED,
)
async def pay_unprocessed_order(
    data: ProcessPaymentRequest,
    order_id: str = Path(..., description="Numero nota"),
    db: AsyncSession = Depends(get_db),
) -> PaymentResult:
    """
    Raises:
        ConflictError: Se la nota esiste già
    """
    return await receivable_service.pay_unprocessed_order(db=db, order_id=order_id, data=data)
