"""
Router FastAPI per le Note da incassare
Progetto: Print Shop Manager (Gestionale Tipografia)

Definisce gli endpoint API per consultazione delle note, registrazione
degli incassi (singoli e massivi) e modifica delle scadenze.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.database import get_db
from printshop.schemas.receivable import (
    BulkDueDateUpdate,
    BulkOperationResult,
    BulkPaymentRequest,
    DueAlerts,
    DueDateUpdate,
    LegacyPaymentRequest,
    PaymentResult,
    PaymentStatus,
    ProcessPaymentRequest,
    ProductionStatus,
    ReceivableList,
    ReceivableRead,
)
from printshop.services.receivable_service import receivable_service

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/receivables",
    tags=["Note da incassare"],
)


def _bulk_response(outcome: BulkOperationResult, response: Response) -> BulkOperationResult:
    """Esito parziale: 207 se almeno un id è fallito."""
    if outcome.failed:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return outcome


# -------------------------------------------------------------------
# Letture
# -------------------------------------------------------------------

@router.get(
    "/",
    name="note_lista",
    summary="Lista note",
    description="Recupera la lista paginata delle note con eventuali filtri.",
    response_model=ReceivableList,
    status_code=status.HTTP_200_OK,
)
async def get_receivables(
    payment_status: Optional[PaymentStatus] = Query(None, description="Filtro per stato di pagamento"),
    production_status: Optional[ProductionStatus] = Query(None, description="Filtro per stato di produzione"),
    customer_id: Optional[int] = Query(None, description="Filtro per cliente"),
    overdue_only: bool = Query(False, description="Solo note non pagate e scadute"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(20, ge=1, le=100, description="Elementi per pagina"),
    db: AsyncSession = Depends(get_db),
) -> ReceivableList:
    receivables, total = await receivable_service.get_all(
        db=db,
        payment_status=payment_status,
        production_status=production_status,
        customer_id=customer_id,
        overdue_only=overdue_only,
        page=page,
        per_page=per_page,
    )
    return ReceivableList(
        items=[ReceivableRead.model_validate(r) for r in receivables],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/alerts",
    name="note_scadenze",
    summary="Scadenze",
    description="Note non pagate scadute o in scadenza entro il preavviso.",
    response_model=DueAlerts,
    status_code=status.HTTP_200_OK,
)
async def get_due_alerts(
    reference_date: Optional[date] = Query(None, description="Data di riferimento (default oggi)"),
    db: AsyncSession = Depends(get_db),
) -> DueAlerts:
    return await receivable_service.get_due_alerts(db=db, today=reference_date)


@router.get(
    "/{receivable_id}",
    name="nota_dettaglio",
    summary="Dettaglio nota",
    description="Recupera una nota con lo storico incassi.",
    response_model=ReceivableRead,
    status_code=status.HTTP_200_OK,
)
async def get_receivable(
    receivable_id: str = Path(..., description="Numero nota"),
    db: AsyncSession = Depends(get_db),
) -> ReceivableRead:
    receivable = await receivable_service.get_by_id(db=db, receivable_id=receivable_id)
    return ReceivableRead.model_validate(receivable)


# -------------------------------------------------------------------
# Incassi
# -------------------------------------------------------------------

@router.post(
    "/bulk-payments",
    name="note_saldo_massivo",
    summary="Saldo massivo",
    description="Salda il residuo di più ordini; risponde 207 se qualche id fallisce.",
    response_model=BulkOperationResult,
    status_code=status.HTTP_200_OK,
)
async def bulk_process_payment(
    data: BulkPaymentRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> BulkOperationResult:
    """
    Ogni id è elaborato in modo indipendente: il risultato elenca
    gli id saldati, quelli già saldati e quelli falliti con il motivo.
    """
    outcome = await receivable_service.bulk_process_payment(db=db, data=data)
    return _bulk_response(outcome, response)


@router.post(
    "/{receivable_id}/payments",
    name="nota_incassa",
    summary="Registra incasso",
    description="Registra un incasso, con eventuale sconto e modifica delle voci.",
    response_model=PaymentResult,
    status_code=status.HTTP_201_CREATED,
)
async def process_payment(
    data: ProcessPaymentRequest,
    receivable_id: str = Path(..., description="Numero nota"),
    db: AsyncSession = Depends(get_db),
) -> PaymentResult:
    """
    Registra un incasso su una nota esistente.

    L'importo registrato non supera il residuo: l'eccedenza è
    restituita in change_due.

    Raises:
        NotFoundError: Nota o metodo di pagamento inesistenti
        BusinessValidationError: Sconto non valido, totale incoerente o nota già saldata
    """
    return await receivable_service.process_payment(db=db, receivable_id=receivable_id, data=data)


@router.post(
    "/{receivable_id}/legacy-payment",
    name="nota_pregressa_incassa",
    summary="Incassa nota pregressa",
    description="Incassa una nota pregressa: la nota diventa consegnata con incasso e sconto.",
    response_model=PaymentResult,
    status_code=status.HTTP_201_CREATED,
)
async def pay_legacy_receivable(
    data: LegacyPaymentRequest,
    receivable_id: str = Path(..., description="Numero nota pregressa"),
    db: AsyncSession = Depends(get_db),
) -> PaymentResult:
    return await receivable_service.pay_legacy_receivable(db=db, receivable_id=receivable_id, data=data)


# -------------------------------------------------------------------
# Scadenze
# -------------------------------------------------------------------

@router.patch(
    "/due-dates",
    name="note_scadenza_massiva",
    summary="Scadenza massiva",
    description="Imposta la stessa scadenza su più note.",
    response_model=BulkOperationResult,
    status_code=status.HTTP_200_OK,
)
async def bulk_update_due_date(
    data: BulkDueDateUpdate,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> BulkOperationResult:
    outcome = await receivable_service.bulk_update_due_date(db=db, data=data)
    return _bulk_response(outcome, response)


@router.patch(
    "/{receivable_id}/due-date",
    name="nota_scadenza",
    summary="Modifica scadenza",
    description="Modifica la scadenza senza toccare lo stato di pagamento.",
    response_model=ReceivableRead,
    status_code=status.HTTP_200_OK,
)
async def update_due_date(
    data: DueDateUpdate,
    receivable_id: str = Path(..., description="Numero nota"),
    db: AsyncSession = Depends(get_db),
) -> ReceivableRead:
    receivable = await receivable_service.update_due_date(
        db=db,
        receivable_id=receivable_id,
        due_date=data.due_date,
    )
    return ReceivableRead.model_validate(receivable)
