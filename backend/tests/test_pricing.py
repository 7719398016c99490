"""
Unit tests for the pricing engine.

Pure functions only: the catalog is built from plain objects, no database.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from printshop.schemas.catalog import PriceTier
from printshop.schemas.order import CheckoutItem, OrderItemCreate
from printshop.services.pricing import (
    PricingCatalog,
    area_multiplier,
    compute_line_totals,
    compute_total,
    item_subtotal,
    parse_dimension,
    resolve_tier_price,
    round_up_to_increment,
)


BANNER, CARDS = 1, 2


@pytest.fixture
def pricing_catalog() -> PricingCatalog:
    return PricingCatalog.from_records(
        products=[
            SimpleNamespace(id=10, name="Banner PVC", category_id=BANNER,
                            prices={"end_customer": 50000, "wholesale": 42000}),
            SimpleNamespace(id=20, name="Biglietti", category_id=CARDS,
                            prices={"end_customer": 35000, "wholesale": 0}),
            SimpleNamespace(id=30, name="Adesivo", category_id=CARDS,
                            prices={"end_customer": 1234}),
        ],
        categories=[
            SimpleNamespace(id=BANNER, name="Banner", unit_policy="per_area"),
            SimpleNamespace(id=CARDS, name="Biglietti", unit_policy="per_unit"),
        ],
        finishings=[
            SimpleNamespace(name="Occhielli", surcharge=5000, category_ids=[BANNER]),
            SimpleNamespace(name="Laminazione", surcharge=2500, category_ids=None),
        ],
    )


def banner_item(length="2", width="3", quantity=1, finishing="Occhielli", **kwargs):
    return OrderItemCreate(
        product_id=10, finishing=finishing, description="Banner",
        length=length, width=width, quantity=quantity, **kwargs,
    )


# ============================================================
# Tests for dimension parsing
# ============================================================


class TestParseDimension:
    """Tests for parse_dimension."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("2", Decimal("2")),
            ("1.5", Decimal("1.5")),
            ("1,5", Decimal("1.5")),
            (" 3 ", Decimal("3")),
            (2.5, Decimal("2.5")),
            ("1000", Decimal("1000")),
        ],
    )
    def test_valid_values(self, raw, expected):
        """Test misure valide con punto o virgola."""
        assert parse_dimension(raw) == expected

    @pytest.mark.parametrize(
        "raw", [None, "", "abc", "-2", "nan", "inf", "1e3", "1e999999", "1000.01", "99999999", "1.2.3"]
    )
    def test_invalid_values_are_zero(self, raw):
        """Test misure non valide, esponenziali o oltre il massimo valgono zero."""
        assert parse_dimension(raw) == Decimal("0")


# ============================================================
# Tests for tier price resolution
# ============================================================


class TestTierPrice:
    """Tests for resolve_tier_price."""

    def test_tier_price_used(self, pricing_catalog):
        """Test prezzo della fascia del cliente."""
        product = pricing_catalog.products[10]
        assert resolve_tier_price(product, "wholesale") == 42000

    def test_enum_tier_accepted(self, pricing_catalog):
        """Test la fascia può arrivare come membro dell'enum."""
        product = pricing_catalog.products[10]
        assert resolve_tier_price(product, PriceTier.WHOLESALE) == 42000

    def test_zero_price_falls_back_to_end_customer(self, pricing_catalog):
        """Test prezzo zero ripiega sul prezzo end_customer."""
        product = pricing_catalog.products[20]
        assert resolve_tier_price(product, "wholesale") == 35000

    def test_missing_price_falls_back_to_end_customer(self, pricing_catalog):
        """Test prezzo assente ripiega sul prezzo end_customer."""
        product = pricing_catalog.products[30]
        assert resolve_tier_price(product, "corporate") == 1234


# ============================================================
# Tests for item subtotal
# ============================================================


class TestItemSubtotal:
    """Tests for item_subtotal and area_multiplier."""

    def test_per_area_scales_material_not_finishing(self, pricing_catalog):
        """Test la superficie scala il materiale ma non la finitura."""
        small = item_subtotal(banner_item("1", "1"), "end_customer", pricing_catalog)
        large = item_subtotal(banner_item("2", "3"), "end_customer", pricing_catalog)

        assert small == Decimal("55000")
        assert large == Decimal("305000")
        assert large - small == Decimal("50000") * 5

    def test_per_unit_ignores_dimensions(self, pricing_catalog):
        """Test categorie a pezzo: moltiplicatore sempre 1."""
        item = OrderItemCreate(product_id=20, description="Biglietti", length="9", width="9", quantity=3)
        category = pricing_catalog.category_of(20)

        assert area_multiplier(item, category) == Decimal("1")
        assert item_subtotal(item, "end_customer", pricing_catalog) == Decimal("105000")

    def test_quantity_multiplies_finishing(self, pricing_catalog):
        """Test la quantità moltiplica materiale e finitura."""
        item = OrderItemCreate(product_id=20, finishing="Laminazione", description="Biglietti", quantity=2)
        assert item_subtotal(item, "end_customer", pricing_catalog) == Decimal("75000")

    def test_custom_price_overrides_formula(self, pricing_catalog):
        """Test il prezzo forzato sostituisce il subtotale calcolato."""
        item = CheckoutItem(product_id=10, description="Banner", length="2", width="3", custom_price=200000)
        assert item_subtotal(item, "end_customer", pricing_catalog) == Decimal("200000")

    def test_unknown_product_contributes_zero(self, pricing_catalog):
        """Test prodotto sconosciuto vale zero nel motore."""
        item = OrderItemCreate(product_id=999, description="?", quantity=4)
        assert item_subtotal(item, "end_customer", pricing_catalog) == Decimal("0")

    def test_malformed_area_zeroes_material(self, pricing_catalog):
        """Test misure non valide azzerano il materiale, la finitura resta."""
        item = banner_item("abc", "3")
        assert item_subtotal(item, "end_customer", pricing_catalog) == Decimal("5000")


# ============================================================
# Tests for rounding and totals
# ============================================================


class TestRounding:
    """Tests for round_up_to_increment and order totals."""

    @pytest.mark.parametrize(
        "amount, increment, expected",
        [
            (Decimal("305000"), 500, 305000),
            (Decimal("305001"), 500, 305500),
            (Decimal("1"), 500, 500),
            (Decimal("0"), 500, 0),
            (Decimal("1234.2"), 0, 1235),
            (Decimal("1234"), 1000, 2000),
        ],
    )
    def test_round_up(self, amount, increment, expected):
        """Test arrotondamento per eccesso all'incremento."""
        assert round_up_to_increment(amount, increment) == expected

    def test_rounding_applied_once_on_order(self, pricing_catalog):
        """Test l'arrotondamento è applicato al totale, non alla singola voce."""
        item = OrderItemCreate(product_id=30, description="Adesivo", quantity=1)
        # 2 × 1234 = 2468 → 2500; arrotondando per voce sarebbe 1500 + 1500
        total = compute_total([item, item], "end_customer", pricing_catalog, 500)
        assert total == 2500

    def test_reference_scenario(self, pricing_catalog):
        """Test banner 2x3 a 50.000/m² con occhielli 5.000: totale 305.000."""
        assert compute_total([banner_item()], "end_customer", pricing_catalog) == 305000

    def test_line_totals_reconcile_with_total(self, pricing_catalog):
        """Test il resto dell'arrotondamento va sull'ultima riga."""
        items = [
            OrderItemCreate(product_id=30, description="Adesivo A", quantity=1),
            OrderItemCreate(product_id=30, description="Adesivo B", quantity=1),
        ]
        breakdown = compute_line_totals(items, "end_customer", pricing_catalog, 500)

        assert breakdown.total == 2500
        assert breakdown.rounding == Decimal("32")
        assert breakdown.line_totals == [Decimal("1234"), Decimal("1266")]
        assert sum(breakdown.line_totals) == breakdown.total

    def test_line_totals_empty(self, pricing_catalog):
        """Test nessuna voce: totale zero e nessuna riga."""
        breakdown = compute_line_totals([], "end_customer", pricing_catalog)
        assert breakdown.total == 0
        assert breakdown.line_totals == []
