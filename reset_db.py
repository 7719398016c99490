import argparse
import asyncio
import logging
import os
import sys

# Aggiungi backend/ alla PYTHONPATH per importare printshop.*
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from printshop.core.config import settings
from printshop.core.database import AsyncSessionLocal, engine
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
from printshop.services.sequence_service import NOTA_SEQUENCE
from printshop.services.settings_service import BILLING_SETTINGS_KEY, default_billing_settings

logger = logging.getLogger("reset_db")


async def seed_defaults(session) -> None:
    """Numerazione note, impostazioni di fatturazione e metodo di pagamento contanti."""
    session.add(
        AppSequence(
            name=NOTA_SEQUENCE,
            current_value=settings.nota_start,
            prefix=settings.nota_prefix,
            padding=settings.nota_padding,
        )
    )
    session.add(AppSetting(key=BILLING_SETTINGS_KEY, value=default_billing_settings().model_dump()))
    session.add(PaymentMethod(id="cash-default", name="Tunai", method_type="cash"))


async def seed_demo_catalog(session) -> None:
    banner = Category(name="Banner", unit_policy="per_area")
    cards = Category(name="Biglietti da visita", unit_policy="per_unit")
    session.add_all([banner, cards])
    await session.flush()

    session.add_all(
        [
            Customer(name="Cliente al banco", tier="end_customer"),
            Customer(name="Agenzia Grafica Rossi", tier="wholesale"),
            Product(
                name="Banner PVC 280g",
                category_id=banner.id,
                prices={"end_customer": 50000, "wholesale": 42000},
            ),
            Product(
                name="Biglietti 100 pz",
                category_id=cards.id,
                prices={"end_customer": 35000, "wholesale": 30000},
            ),
            Finishing(name="Occhielli", surcharge=5000, category_ids=[banner.id]),
            Finishing(name="Laminazione", surcharge=2500, category_ids=[]),
            PaymentMethod(id="bank-transfer", name="Bonifico", method_type="bank_transfer"),
        ]
    )


async def reset(with_demo: bool) -> None:
    logger.info("Connessione al database, eliminazione tabelle...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        logger.info("Tabelle eliminate. Creazione nuove tabelle...")
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        await seed_defaults(session)
        if with_demo:
            await seed_demo_catalog(session)
        await session.commit()

    await engine.dispose()
    logger.info("Database resettato con successo%s", " (catalogo demo incluso)" if with_demo else "")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Ricrea lo schema del database e i dati iniziali")
    parser.add_argument("--demo", action="store_true", help="Inserisce anche un catalogo di esempio")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    asyncio.run(reset(args.demo))
