"""
Pytest configuration and fixtures for the print shop services.

Service tests run against an in-memory SQLite database (aiosqlite) built
from the ORM metadata; the catalog, the nota sequence and the billing
settings are seeded explicitly so results do not depend on the environment.
"""

from datetime import date
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from printshop.core.change_feed import ChangeEvent, change_feed
from printshop.core.database import build_engine, build_session_factory, get_db
from printshop.models import (
    AppSequence,
    AppSetting,
    Base,
    Category,
    Customer,
    Finishing,
    PaymentMethod,
    Product,
)
from printshop.schemas.order import OrderCreate, OrderItemCreate
from printshop.schemas.receivable import PaymentCreate, ProcessPaymentRequest
from printshop.services.sequence_service import NOTA_SEQUENCE
from printshop.services.settings_service import BILLING_SETTINGS_KEY


ORDER_DATE = date(2024, 5, 10)


# ============================================================
# Fixtures per Database
# ============================================================


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Engine SQLite in memoria con lo schema completo."""
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============================================================
# Fixtures per Catalogo
# ============================================================


@pytest.fixture
async def catalog(session_factory) -> SimpleNamespace:
    """
    Catalogo di riferimento:
    - Banner (per_area) a 50.000/m² per end_customer, 42.000 wholesale
    - Biglietti (per_unit) a 35.000, senza prezzo wholesale
    - Occhielli 5.000 solo per i banner, Laminazione 2.500 per tutti
    """
    async with session_factory() as session:
        banner = Category(name="Banner", unit_policy="per_area")
        cards = Category(name="Biglietti", unit_policy="per_unit")
        session.add_all([banner, cards])
        await session.flush()

        end_customer = Customer(name="Budi", tier="end_customer")
        wholesale = Customer(name="Agenzia Rossi", tier="wholesale")
        banner_product = Product(
            name="Banner PVC",
            category_id=banner.id,
            prices={"end_customer": 50000, "wholesale": 42000},
        )
        cards_product = Product(
            name="Biglietti 100 pz",
            category_id=cards.id,
            prices={"end_customer": 35000, "wholesale": 0},
        )
        eyelets = Finishing(name="Occhielli", surcharge=5000, category_ids=[banner.id])
        lamination = Finishing(name="Laminazione", surcharge=2500, category_ids=[])
        cash = PaymentMethod(id="cash-default", name="Tunai", method_type="cash")

        session.add_all([end_customer, wholesale, banner_product, cards_product, eyelets, lamination, cash])
        session.add(AppSequence(name=NOTA_SEQUENCE, current_value=1, prefix="INV-", padding=5))
        session.add(
            AppSetting(
                key=BILLING_SETTINGS_KEY,
                value={
                    "due_date_days": 7,
                    "rounding_increment": 500,
                    "default_discount": 0,
                    "due_soon_days": 3,
                },
            )
        )
        await session.commit()

        return SimpleNamespace(
            banner_category_id=banner.id,
            cards_category_id=cards.id,
            end_customer_id=end_customer.id,
            wholesale_id=wholesale.id,
            banner_id=banner_product.id,
            cards_id=cards_product.id,
            cash_id=cash.id,
        )


# ============================================================
# Fixtures per Ordini e Incassi
# ============================================================


@pytest.fixture
def banner_order(catalog) -> OrderCreate:
    """Banner 2x3 con occhielli, quantità 1: totale 305.000."""
    return OrderCreate(
        customer_id=catalog.end_customer_id,
        order_date=ORDER_DATE,
        items=[
            OrderItemCreate(
                product_id=catalog.banner_id,
                finishing="Occhielli",
                description="Banner insegna",
                length="2",
                width="3",
                quantity=1,
            )
        ],
    )


@pytest.fixture
def make_payment(catalog):
    """Costruisce una richiesta di incasso in contanti."""
    def _make(amount: int, **kwargs) -> ProcessPaymentRequest:
        return ProcessPaymentRequest(
            payment=PaymentCreate(amount=amount, payment_date=ORDER_DATE, method_id=catalog.cash_id),
            **kwargs,
        )
    return _make


# ============================================================
# Fixtures per Change Feed
# ============================================================


@pytest.fixture
def published_events():
    """Raccoglie gli eventi pubblicati sul change feed applicativo."""
    events: list[ChangeEvent] = []
    unsubscribe = change_feed.subscribe(events.append)
    yield events
    unsubscribe()


# ============================================================
# Fixtures per API
# ============================================================


@pytest.fixture
async def client(session_factory, catalog) -> AsyncGenerator[AsyncClient, None]:
    """Client HTTP sull'app con get_db collegato al database di test."""
    from printshop.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
