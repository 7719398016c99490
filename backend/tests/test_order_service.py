"""
Tests for OrderService.

Run against the in-memory SQLite database seeded by conftest.
"""

from datetime import date, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from printshop.core.change_feed import ChangeAction, ChangeTopic
from printshop.core.exceptions import BusinessValidationError, NotFoundError
from printshop.schemas.order import (
    MAX_AMOUNT,
    MAX_QUANTITY,
    CheckoutItem,
    LegacyOrderCreate,
    OrderCreate,
    OrderItemCreate,
    OrderRead,
    OrderUpdate,
    QuoteRequest,
)
from printshop.schemas.receivable import PaymentCreate, PaymentStatus, ProductionStatus
from printshop.schemas.settings import SequenceUpdate
from printshop.services.order_service import order_service
from printshop.services.production_service import production_service
from printshop.services.receivable_service import receivable_service
from printshop.services.sequence_service import sequence_service


ORDER_DATE = date(2024, 5, 10)


def with_items(data: OrderCreate, **item_changes) -> OrderCreate:
    item = data.items[0].model_copy(update=item_changes)
    return data.model_copy(update={"items": [item]})


# ============================================================
# Tests for create
# ============================================================


class TestCreateOrder:
    """Tests for order creation."""

    async def test_create_reference_order(self, db, banner_order):
        """Test banner 2x3 con occhielli: totale 305.000 e prima nota."""
        order = await order_service.create(db, banner_order)

        assert order.id == "INV-00001"
        assert order.total_price == 305000
        assert order.customer_name == "Budi"
        assert order.details == "Banner insegna - Banner PVC - 2X3 - 1 pz"
        assert [item.line_id for item in order.items] == [1]

    async def test_sequence_advances_by_one(self, db, banner_order):
        """Test il contatore avanza di uno per ogni ordine creato."""
        first = await order_service.create(db, banner_order)
        second = await order_service.create(db, banner_order)

        sequence = await sequence_service.get_sequence(db)
        assert (first.id, second.id) == ("INV-00001", "INV-00002")
        assert sequence.current_value == 3

    async def test_rejected_order_does_not_consume_sequence(self, db, banner_order):
        """Test un ordine rifiutato non consuma la numerazione."""
        with pytest.raises(BusinessValidationError):
            await order_service.create(db, with_items(banner_order, description="  "))

        order = await order_service.create(db, banner_order)
        assert order.id == "INV-00001"

    async def test_existing_nota_is_skipped(self, db, banner_order):
        """Test contatore desincronizzato: la nota esistente viene saltata."""
        await order_service.create(db, banner_order)
        await sequence_service.update_sequence(db, SequenceUpdate(next_value=1))

        order = await order_service.create(db, banner_order)

        assert order.id == "INV-00002"
        assert (await sequence_service.get_sequence(db)).current_value == 3

    async def test_custom_prefix_and_padding(self, db, banner_order):
        """Test prefisso e padding modificati dalle impostazioni."""
        await sequence_service.update_sequence(db, SequenceUpdate(prefix="NT/", next_value=42, padding=3))

        order = await order_service.create(db, banner_order)
        assert order.id == "NT/042"

    async def test_per_unit_dimensions_normalized(self, db, catalog):
        """Test le misure delle categorie a pezzo sono salvate come 1."""
        data = OrderCreate(
            customer_id=catalog.end_customer_id,
            order_date=ORDER_DATE,
            items=[OrderItemCreate(product_id=catalog.cards_id, description="Biglietti", length="9", width="4", quantity=2)],
        )
        order = await order_service.create(db, data)

        assert (order.items[0].length, order.items[0].width) == ("1", "1")
        assert order.total_price == 70000
        assert order.details == "Biglietti - Biglietti 100 pz - - - 2 pz"

    async def test_wholesale_tier_pricing(self, db, catalog, banner_order):
        """Test fascia wholesale e ripiego su end_customer per prezzo zero."""
        data = banner_order.model_copy(update={"customer_id": catalog.wholesale_id})
        data.items.append(OrderItemCreate(product_id=catalog.cards_id, description="Biglietti", quantity=1))

        order = await order_service.create(db, data)

        # 42.000 × 6 + 5.000 + 35.000 (nessun prezzo wholesale per i biglietti)
        assert order.total_price == 292000

    async def test_create_publishes_after_commit(self, db, banner_order, published_events):
        """Test la creazione pubblica un evento orders/insert."""
        order = await order_service.create(db, banner_order)

        assert [(e.topic, e.action, e.entity_id) for e in published_events] == [
            (ChangeTopic.ORDERS, ChangeAction.INSERT, order.id)
        ]

    async def test_order_read_schema(self, db, banner_order):
        """Test serializzazione con nome cliente risolto."""
        order = await order_service.create(db, banner_order)
        data = OrderRead.model_validate(order)

        assert data.customer_name == "Budi"
        assert data.items[0].finishing == "Occhielli"


# ============================================================
# Tests for input validation
# ============================================================


class TestOrderValidation:
    """Tests for validation before any write."""

    async def test_customer_required(self, db, banner_order, published_events):
        """Test cliente obbligatorio."""
        with pytest.raises(BusinessValidationError) as exc_info:
            await order_service.create(db, banner_order.model_copy(update={"customer_id": None}))

        assert exc_info.value.error_code == "ORDER_CUSTOMER_REQUIRED"
        assert published_events == []

    async def test_unknown_customer(self, db, banner_order):
        """Test cliente inesistente."""
        with pytest.raises(NotFoundError):
            await order_service.create(db, banner_order.model_copy(update={"customer_id": 9999}))

    async def test_items_required(self, db, banner_order):
        """Test almeno una voce."""
        with pytest.raises(BusinessValidationError) as exc_info:
            await order_service.create(db, banner_order.model_copy(update={"items": []}))
        assert exc_info.value.error_code == "ORDER_ITEMS_REQUIRED"

    @pytest.mark.parametrize(
        "changes, error_code",
        [
            ({"product_id": None}, "ORDER_ITEM_PRODUCT_REQUIRED"),
            ({"product_id": 9999}, "ORDER_ITEM_PRODUCT_UNKNOWN"),
            ({"description": ""}, "ORDER_ITEM_DESCRIPTION_REQUIRED"),
            ({"finishing": "Doratura"}, "ORDER_ITEM_FINISHING_UNKNOWN"),
            ({"length": "abc"}, "ORDER_ITEM_DIMENSIONS_INVALID"),
            ({"width": "0"}, "ORDER_ITEM_DIMENSIONS_INVALID"),
            ({"length": "1e999999"}, "ORDER_ITEM_DIMENSIONS_INVALID"),
            ({"length": "99999999", "width": "99999999"}, "ORDER_ITEM_DIMENSIONS_INVALID"),
            ({"width": "1000.5"}, "ORDER_ITEM_DIMENSIONS_INVALID"),
        ],
    )
    async def test_invalid_item(self, db, banner_order, changes, error_code):
        """Test voci non valide rifiutate con codice specifico."""
        with pytest.raises(BusinessValidationError) as exc_info:
            await order_service.create(db, with_items(banner_order, **changes))
        assert exc_info.value.error_code == error_code

    async def test_finishing_restricted_to_category(self, db, catalog, banner_order):
        """Test finitura non applicabile alla categoria del prodotto."""
        data = with_items(banner_order, product_id=catalog.cards_id)
        with pytest.raises(BusinessValidationError) as exc_info:
            await order_service.create(db, data)
        assert exc_info.value.error_code == "ORDER_ITEM_FINISHING_NOT_ALLOWED"

    async def test_oversized_total_rejected_before_numbering(self, db, banner_order):
        """Test totale oltre il limite degli importi: rifiutato senza consumare la nota."""
        with pytest.raises(BusinessValidationError) as exc_info:
            await order_service.create(db, with_items(banner_order, quantity=10**20))
        assert exc_info.value.error_code == "ORDER_TOTAL_OUT_OF_RANGE"

        order = await order_service.create(db, banner_order)
        assert order.id == "INV-00001"

    async def test_oversized_update_rolls_back(self, db, banner_order):
        """Test modifica con totale fuori limite: voci e totale invariati."""
        order = await order_service.create(db, banner_order)
        order_id = order.id
        huge_items = [banner_order.items[0].model_copy(update={"quantity": 10**20})]

        with pytest.raises(BusinessValidationError):
            await order_service.update(db, order_id, OrderUpdate(items=huge_items))

        reloaded = await order_service.get_by_id(db, order_id)
        assert reloaded.total_price == 305000
        assert [item.quantity for item in reloaded.items] == [1]

    async def test_oversized_quote_rejected(self, db, catalog):
        """Test preventivo con prezzi forzati oltre il limite."""
        data = QuoteRequest(
            customer_id=catalog.end_customer_id,
            items=[
                CheckoutItem(line_id=1, product_id=catalog.cards_id, description="A", custom_price=MAX_AMOUNT),
                CheckoutItem(line_id=2, product_id=catalog.cards_id, description="B", custom_price=MAX_AMOUNT),
            ],
        )
        with pytest.raises(BusinessValidationError) as exc_info:
            await order_service.quote(db, data)
        assert exc_info.value.error_code == "ORDER_TOTAL_OUT_OF_RANGE"

    def test_schema_bounds(self):
        """Test quantità e importi oltre i limiti rifiutati dagli schemi."""
        with pytest.raises(PydanticValidationError):
            OrderItemCreate(product_id=1, description="A", quantity=MAX_QUANTITY + 1)
        with pytest.raises(PydanticValidationError):
            PaymentCreate(amount=MAX_AMOUNT + 1, method_id="cash-default")


# ============================================================
# Tests for update
# ============================================================


class TestUpdateOrder:
    """Tests for order update and receivable synchronization."""

    async def test_update_recomputes_total(self, db, banner_order):
        """Test nuove voci: totale e riepilogo ricalcolati."""
        order = await order_service.create(db, banner_order)
        new_items = [banner_order.items[0].model_copy(update={"quantity": 2})]

        updated = await order_service.update(db, order.id, OrderUpdate(items=new_items))

        assert updated.total_price == 610000
        assert updated.details.endswith("2 pz")
        assert len(updated.items) == 1

    async def test_customer_change_reprices(self, db, catalog, banner_order):
        """Test cambio cliente: la fascia cambia il totale."""
        order = await order_service.create(db, banner_order)

        updated = await order_service.update(db, order.id, OrderUpdate(customer_id=catalog.wholesale_id))

        assert updated.customer_id == catalog.wholesale_id
        assert updated.total_price == 257000

    async def test_paid_receivable_becomes_unpaid(self, db, banner_order, make_payment):
        """Test totale aumentato dopo il saldo: la nota torna non pagata."""
        order = await order_service.create(db, banner_order)
        await receivable_service.pay_unprocessed_order(db, order.id, make_payment(305000))

        new_items = [banner_order.items[0].model_copy(update={"quantity": 2})]
        await order_service.update(db, order.id, OrderUpdate(items=new_items))

        receivable = await receivable_service.get_by_id(db, order.id)
        assert receivable.amount == 610000
        assert receivable.payment_status == PaymentStatus.UNPAID.value
        assert receivable.remaining_balance == 305000

    async def test_update_publishes_both_topics(self, db, banner_order, make_payment, published_events):
        """Test aggiornamento con nota: eventi su ordini e note."""
        order = await order_service.create(db, banner_order)
        await receivable_service.pay_unprocessed_order(db, order.id, make_payment(1000))
        published_events.clear()

        await order_service.update(db, order.id, OrderUpdate(order_date=ORDER_DATE + timedelta(days=1)))

        assert {e.topic for e in published_events} == {ChangeTopic.ORDERS, ChangeTopic.RECEIVABLES}

    async def test_update_unknown_order(self, db, catalog):
        """Test ordine inesistente."""
        with pytest.raises(NotFoundError):
            await order_service.update(db, "INV-99999", OrderUpdate())


# ============================================================
# Tests for delete
# ============================================================


class TestDeleteOrder:
    """Tests for order deletion rules."""

    async def test_delete_unprocessed_order(self, db, banner_order):
        """Test eliminazione di un ordine senza nota."""
        order = await order_service.create(db, banner_order)

        await order_service.delete(db, order.id)

        with pytest.raises(NotFoundError):
            await order_service.get_by_id(db, order.id)

    async def test_delete_blocked_in_production(self, db, banner_order):
        """Test ordine in stampa non eliminabile."""
        order = await order_service.create(db, banner_order)
        await production_service.process_order(db, order.id)

        with pytest.raises(BusinessValidationError) as exc_info:
            await order_service.delete(db, order.id)
        assert exc_info.value.error_code == "ORDER_IN_PRODUCTION"

    async def test_delete_blocked_with_payments(self, db, banner_order, make_payment):
        """Test ordine in coda con incassi non eliminabile."""
        order = await order_service.create(db, banner_order)
        await receivable_service.pay_unprocessed_order(db, order.id, make_payment(50000))

        with pytest.raises(BusinessValidationError) as exc_info:
            await order_service.delete(db, order.id)
        assert exc_info.value.error_code == "ORDER_HAS_PAYMENTS"


# ============================================================
# Tests for legacy orders and queries
# ============================================================


class TestLegacyAndQueries:
    """Tests for legacy entry, unprocessed list and quote."""

    async def test_create_legacy(self, db, banner_order):
        """Test ordine pregresso con nota legacy non pagata."""
        order = await order_service.create_legacy(db, LegacyOrderCreate(**banner_order.model_dump()))
        receivable = await receivable_service.get_by_id(db, order.id)

        assert receivable.production_status == ProductionStatus.LEGACY.value
        assert receivable.payment_status == PaymentStatus.UNPAID.value
        assert receivable.amount == 305000
        assert receivable.due_date == ORDER_DATE + timedelta(days=7)

    async def test_unprocessed_orders(self, db, banner_order, make_payment):
        """Test ordini da lavorare: senza nota o con nota in coda."""
        without_receivable = await order_service.create(db, banner_order)
        queued = await order_service.create(db, banner_order)
        printing = await order_service.create(db, banner_order)
        await receivable_service.pay_unprocessed_order(db, queued.id, make_payment(1000))
        await production_service.process_order(db, printing.id)

        unprocessed = {o.id for o in await order_service.get_unprocessed(db)}

        assert unprocessed == {without_receivable.id, queued.id}

    async def test_get_all_filters(self, db, catalog, banner_order):
        """Test filtro per cliente e paginazione."""
        await order_service.create(db, banner_order)
        await order_service.create(db, banner_order.model_copy(update={"customer_id": catalog.wholesale_id}))

        orders, total = await order_service.get_all(db, customer_id=catalog.wholesale_id)
        assert total == 1
        assert orders[0].customer_id == catalog.wholesale_id

        page, total = await order_service.get_all(db, page=2, per_page=1)
        assert total == 2
        assert len(page) == 1

    async def test_quote_does_not_write(self, db, catalog):
        """Test preventivo: righe riconciliate e nessun numero consumato."""
        data = QuoteRequest(
            customer_id=catalog.end_customer_id,
            items=[
                CheckoutItem(line_id=1, product_id=catalog.banner_id, description="A", length="1,1", width="1"),
                CheckoutItem(line_id=2, product_id=catalog.cards_id, description="B", quantity=1),
            ],
        )
        result = await order_service.quote(db, data)

        # 55.000 + 35.000 = 90.000, già multiplo di 500
        assert result.total == 90000
        assert sum(line.line_total for line in result.lines) == result.total
        assert (await sequence_service.get_sequence(db)).current_value == 1
