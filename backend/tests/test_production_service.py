"""
Tests for ProductionService.

Covers the board projection and every production transition.
"""

from datetime import date, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from printshop.core.exceptions import BusinessValidationError, ConflictError, NotFoundError
from printshop.schemas.order import LegacyOrderCreate
from printshop.schemas.receivable import PaymentStatus, ProductionStatus
from printshop.services.order_service import order_service
from printshop.services.production_service import production_service
from printshop.services.receivable_service import receivable_service


ORDER_DATE = date(2024, 5, 10)

Q, P, R, D = (
    ProductionStatus.QUEUED,
    ProductionStatus.PRINTING,
    ProductionStatus.READY,
    ProductionStatus.DELIVERED,
)


# ============================================================
# Tests for process_order
# ============================================================


class TestProcessOrder:
    """Tests for starting production."""

    async def test_without_receivable_creates_printing(self, db, banner_order):
        """Test ordine senza nota: nota creata in stampa, non pagata."""
        order = await order_service.create(db, banner_order)

        receivable = await production_service.process_order(db, order.id)

        assert receivable.production_status == P.value
        assert receivable.payment_status == PaymentStatus.UNPAID.value
        assert receivable.amount == 305000
        assert receivable.due_date == ORDER_DATE + timedelta(days=7)
        assert receivable.payments == []

    async def test_queued_moves_to_printing(self, db, banner_order, make_payment):
        """Test nota in coda: passa in stampa mantenendo gli incassi."""
        order = await order_service.create(db, banner_order)
        await receivable_service.pay_unprocessed_order(db, order.id, make_payment(100000))

        receivable = await production_service.process_order(db, order.id)

        assert receivable.production_status == P.value
        assert receivable.total_paid == 100000

    async def test_not_queued_is_conflict(self, db, banner_order):
        """Test nota già in stampa: conflitto."""
        order = await order_service.create(db, banner_order)
        await production_service.process_order(db, order.id)

        with pytest.raises(ConflictError):
            await production_service.process_order(db, order.id)

    async def test_unknown_order(self, db, catalog):
        """Test ordine inesistente."""
        with pytest.raises(NotFoundError):
            await production_service.process_order(db, "INV-99999")

    async def test_database_error_is_conflict(self, db, banner_order):
        """Test errore del database al commit: ConflictError e rollback."""
        order = await order_service.create(db, banner_order)
        order_id = order.id
        db.commit = AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("connessione persa")))
        db.rollback = AsyncMock()

        with pytest.raises(ConflictError):
            await production_service.process_order(db, order_id)
        db.rollback.assert_awaited_once()


# ============================================================
# Tests for move
# ============================================================


class TestMove:
    """Tests for validated board moves."""

    async def test_move_forward_and_back(self, db, banner_order):
        """Test spostamenti tra colonne della bacheca."""
        order = await order_service.create(db, banner_order)
        await production_service.process_order(db, order.id)

        receivable = await production_service.move(db, order.id, P, R)
        assert receivable.production_status == R.value

        receivable = await production_service.move(db, order.id, R, Q)
        assert receivable.production_status == Q.value

    async def test_stale_from_is_rejected(self, db, banner_order):
        """Test stato atteso diverso da quello salvato: conflitto senza modifiche."""
        order = await order_service.create(db, banner_order)
        await production_service.process_order(db, order.id)

        with pytest.raises(ConflictError) as exc_info:
            await production_service.move(db, order.id, Q, R)

        assert exc_info.value.error_code == "PRODUCTION_STALE_STATE"
        assert exc_info.value.extra == {"current_status": P.value}
        receivable = await receivable_service.get_by_id(db, order.id)
        assert receivable.production_status == P.value

    async def test_delivered_stamps_and_clears_date(self, db, banner_order):
        """Test entrata in consegnata imposta la data, l'uscita la azzera."""
        order = await order_service.create(db, banner_order)
        await production_service.process_order(db, order.id)

        delivered = await production_service.move(db, order.id, P, D)
        assert delivered.delivery_date == date.today()

        back = await production_service.move(db, order.id, D, R)
        assert back.delivery_date is None
        assert back.delivery_note is None

    async def test_legacy_status_not_on_board(self, db, banner_order):
        """Test lo stato legacy non è una colonna della bacheca."""
        order = await order_service.create_legacy(db, LegacyOrderCreate(**banner_order.model_dump()))

        with pytest.raises(BusinessValidationError) as exc_info:
            await production_service.move(db, order.id, ProductionStatus.LEGACY, P)
        assert exc_info.value.error_code == "PRODUCTION_INVALID_STATUS"

    async def test_legacy_receivable_locked(self, db, banner_order):
        """Test nota pregressa non spostabile anche con stato atteso di bacheca."""
        order = await order_service.create_legacy(db, LegacyOrderCreate(**banner_order.model_dump()))

        with pytest.raises(BusinessValidationError) as exc_info:
            await production_service.move(db, order.id, Q, P)
        assert exc_info.value.error_code == "PRODUCTION_LEGACY_LOCKED"


# ============================================================
# Tests for deliver
# ============================================================


class TestDeliver:
    """Tests for delivery."""

    async def test_deliver_with_note(self, db, banner_order):
        """Test consegna con nota e data odierna."""
        order = await order_service.create(db, banner_order)
        await production_service.process_order(db, order.id)

        receivable = await production_service.deliver(db, order.id, "  Ritirato dal cliente ")

        assert receivable.production_status == D.value
        assert receivable.delivery_note == "Ritirato dal cliente"
        assert receivable.delivery_date == date.today()

    async def test_blank_note_rejected(self, db, banner_order):
        """Test nota di consegna obbligatoria."""
        order = await order_service.create(db, banner_order)
        await production_service.process_order(db, order.id)

        with pytest.raises(BusinessValidationError) as exc_info:
            await production_service.deliver(db, order.id, "   ")
        assert exc_info.value.error_code == "DELIVERY_NOTE_REQUIRED"

    async def test_already_delivered(self, db, banner_order):
        """Test seconda consegna rifiutata."""
        order = await order_service.create(db, banner_order)
        await production_service.process_order(db, order.id)
        await production_service.deliver(db, order.id, "Consegnato")

        with pytest.raises(BusinessValidationError) as exc_info:
            await production_service.deliver(db, order.id, "Di nuovo")
        assert exc_info.value.error_code == "PRODUCTION_ALREADY_DELIVERED"

    async def test_legacy_not_deliverable(self, db, banner_order):
        """Test nota pregressa non consegnabile."""
        order = await order_service.create_legacy(db, LegacyOrderCreate(**banner_order.model_dump()))

        with pytest.raises(BusinessValidationError):
            await production_service.deliver(db, order.id, "Consegnato")


# ============================================================
# Tests for cancel_queue
# ============================================================


class TestCancelQueue:
    """Tests for removing an order from the queue."""

    async def test_cancel_returns_order_to_unprocessed(self, db, banner_order):
        """Test nota in coda eliminata: l'ordine torna da lavorare."""
        order = await order_service.create(db, banner_order)
        await production_service.process_order(db, order.id)
        await production_service.move(db, order.id, P, Q)

        await production_service.cancel_queue(db, order.id)

        with pytest.raises(NotFoundError):
            await receivable_service.get_by_id(db, order.id)
        assert [o.id for o in await order_service.get_unprocessed(db)] == [order.id]

    async def test_cancel_with_payments_rejected(self, db, banner_order, make_payment):
        """Test nota in coda con incassi non annullabile."""
        order = await order_service.create(db, banner_order)
        await receivable_service.pay_unprocessed_order(db, order.id, make_payment(1000))

        with pytest.raises(BusinessValidationError) as exc_info:
            await production_service.cancel_queue(db, order.id)
        assert exc_info.value.error_code == "RECEIVABLE_HAS_PAYMENTS"

    async def test_cancel_outside_queue_is_conflict(self, db, banner_order):
        """Test annullamento di una nota in stampa."""
        order = await order_service.create(db, banner_order)
        await production_service.process_order(db, order.id)

        with pytest.raises(ConflictError):
            await production_service.cancel_queue(db, order.id)


# ============================================================
# Tests for the board projection
# ============================================================


class TestBoard:
    """Tests for get_board."""

    async def test_board_groups_by_status(self, db, banner_order, make_payment):
        """Test raggruppamento per stato, esclusi legacy e ordini senza nota."""
        queued, printing, ready, delivered, _unprocessed = [
            await order_service.create(db, banner_order) for _ in range(5)
        ]
        legacy = await order_service.create_legacy(db, LegacyOrderCreate(**banner_order.model_dump()))

        await receivable_service.pay_unprocessed_order(db, queued.id, make_payment(1000))
        for order in (printing, ready, delivered):
            await production_service.process_order(db, order.id)
        await production_service.move(db, ready.id, P, R)
        await production_service.deliver(db, delivered.id, "Consegnato")

        board = await production_service.get_board(db)

        assert [c.order_id for c in board.queue] == [queued.id]
        assert [c.order_id for c in board.printing] == [printing.id]
        assert [c.order_id for c in board.ready] == [ready.id]
        assert [c.order_id for c in board.delivered] == [delivered.id]
        assert board.counts == {"queue": 1, "printing": 1, "ready": 1, "delivered": 1}
        assert legacy.id not in {c.order_id for c in board.delivered + board.queue}

        card = board.printing[0]
        assert card.customer_name == "Budi"
        assert card.details == "Banner insegna - Banner PVC - 2X3 - 1 pz"
        assert card.order_date == ORDER_DATE
