"""
Regole condivise del registro incassi
Progetto: Print Shop Manager (Gestionale Tipografia)

Funzioni usate da ordini, note e produzione per mantenere la nota
allineata all'ordine: lo stato di pagamento non viene mai impostato a mano,
è sempre ricalcolato da importo, sconto e incassi.
"""

from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.models import Receivable
from printshop.schemas.receivable import PaymentStatus


def derive_payment_status(total_paid: int, discount: int, amount: int) -> PaymentStatus:
    """Paid se incassato + sconto copre l'importo; l'uguaglianza vale come saldato."""
    if total_paid + discount >= amount:
        return PaymentStatus.PAID
    return PaymentStatus.UNPAID


def remaining_balance(amount: int, discount: int, total_paid: int) -> int:
    return max(0, amount - discount - total_paid)


def compute_due_date(order_date: date, grace_days: int) -> date:
    return order_date + timedelta(days=grace_days)


def sync_receivable(receivable: Receivable, amount: Optional[int] = None) -> PaymentStatus:
    """
    Riallinea importo e stato di pagamento della nota.

    Args:
        receivable: Nota da aggiornare (con incassi caricati)
        amount: Nuovo importo dovuto (None = invariato)

    Returns:
        PaymentStatus: Stato risultante
    """
    if amount is not None:
        receivable.amount = amount
    status = derive_payment_status(receivable.total_paid, receivable.discount, receivable.amount)
    receivable.payment_status = status.value
    return status


async def load_receivable(db: AsyncSession, receivable_id: str) -> Optional[Receivable]:
    """Carica la nota con ordine e incassi, rileggendo lo stato dal database."""
    result = await db.execute(
        select(Receivable)
        .where(Receivable.id == receivable_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
