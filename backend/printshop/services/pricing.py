"""
Motore Prezzi
Progetto: Print Shop Manager (Gestionale Tipografia)

Funzioni pure: (voci ordine, fascia cliente, catalogo) → totale.
Nessun accesso al database; il catalogo arriva già caricato come PricingCatalog.

Regole:
- prezzo materiale = prezzo della fascia, con ripiego su end_customer se
  assente o zero
- moltiplicatore = lunghezza × larghezza per categorie per_area, altrimenti 1
- subtotale voce = (materiale × moltiplicatore + sovrapprezzo finitura) × quantità
- il sovrapprezzo finitura non scala mai con la superficie
- custom_price, se presente, sostituisce il subtotale della voce
- il totale è la somma dei subtotali arrotondata per eccesso all'incremento,
  una sola volta sull'intero ordine
"""

import re
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Sequence

from printshop.models.order import NO_FINISHING
from printshop.schemas.catalog import PriceTier, UnitPolicy
from printshop.schemas.order import MAX_AMOUNT

ZERO = Decimal("0")
ONE = Decimal("1")

DEFAULT_ROUNDING_INCREMENT = 500

# Misura massima accettata per lato, in metri
MAX_DIMENSION = Decimal("1000")

# Limite della colonna BigInteger che salva i totali
MAX_ORDER_TOTAL = MAX_AMOUNT

# Solo cifre con separatore decimale opzionale: niente segno, esponente o nan/inf
_DIMENSION_PATTERN = re.compile(r"^(?:\d+(?:\.\d*)?|\.\d+)$")


# ------------------------------------------------------------
# Catalogo prezzi (vista in sola lettura)
# ------------------------------------------------------------
@dataclass(frozen=True)
class ProductPricing:
    id: int
    name: str
    category_id: int
    prices: Mapping[str, int]


@dataclass(frozen=True)
class CategoryPricing:
    id: int
    name: str
    unit_policy: str

    @property
    def is_per_area(self) -> bool:
        return self.unit_policy == UnitPolicy.PER_AREA.value


@dataclass(frozen=True)
class FinishingPricing:
    name: str
    surcharge: int
    category_ids: frozenset[int] = frozenset()

    def applies_to(self, category_id: Optional[int]) -> bool:
        """Insieme vuoto = finitura valida per ogni categoria."""
        return not self.category_ids or category_id in self.category_ids


@dataclass(frozen=True)
class PricingCatalog:
    """Mappe di lookup costruite dalle collezioni del catalogo."""
    products: Mapping[int, ProductPricing]
    categories: Mapping[int, CategoryPricing]
    finishings: Mapping[str, FinishingPricing]

    @classmethod
    def from_records(
        cls,
        products: Iterable[Any],
        categories: Iterable[Any],
        finishings: Iterable[Any],
    ) -> "PricingCatalog":
        """
        Costruisce il catalogo da record ORM o schemi di lettura.

        Args:
            products: Oggetti con id, name, category_id, prices
            categories: Oggetti con id, name, unit_policy
            finishings: Oggetti con name, surcharge, category_ids
        """
        return cls(
            products={
                p.id: ProductPricing(
                    id=p.id,
                    name=p.name,
                    category_id=p.category_id,
                    prices={_enum_value(k): int(v or 0) for k, v in (p.prices or {}).items()},
                )
                for p in products
            },
            categories={
                c.id: CategoryPricing(id=c.id, name=c.name, unit_policy=_enum_value(c.unit_policy))
                for c in categories
            },
            finishings={
                f.name: FinishingPricing(
                    name=f.name,
                    surcharge=int(f.surcharge or 0),
                    category_ids=frozenset(f.category_ids or ()),
                )
                for f in finishings
            },
        )

    def category_of(self, product_id: Optional[int]) -> Optional[CategoryPricing]:
        product = self.products.get(product_id) if product_id is not None else None
        if product is None:
            return None
        return self.categories.get(product.category_id)


@dataclass(frozen=True)
class PriceBreakdown:
    """Dettaglio del calcolo: subtotale, totale arrotondato e righe riconciliate."""
    subtotal: Decimal
    total: int
    line_totals: list[Decimal]

    @property
    def rounding(self) -> Decimal:
        return Decimal(self.total) - self.subtotal


def _enum_value(value: Any) -> str:
    # Un membro Enum non ha lo stesso hash del suo valore stringa
    return getattr(value, "value", value)


# ------------------------------------------------------------
# Funzioni di calcolo
# ------------------------------------------------------------
def parse_dimension(value: Any) -> Decimal:
    """
    Converte una misura testuale in Decimal.

    Accetta virgola o punto come separatore decimale. Valori mancanti,
    non numerici, in notazione esponenziale o oltre MAX_DIMENSION valgono 0.
    """
    if value is None:
        return ZERO
    text = str(value).strip().replace(",", ".")
    if not _DIMENSION_PATTERN.match(text):
        return ZERO
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return ZERO
    if parsed > MAX_DIMENSION:
        return ZERO
    return parsed


def resolve_tier_price(product: ProductPricing, tier: Any) -> int:
    """Prezzo della fascia; se assente o zero, prezzo end_customer."""
    price = product.prices.get(_enum_value(tier)) or 0
    if price <= 0:
        price = product.prices.get(PriceTier.END_CUSTOMER.value) or 0
    return int(price)


def finishing_surcharge(finishing: Optional[str], catalog: PricingCatalog) -> int:
    if not finishing or finishing == NO_FINISHING:
        return 0
    rule = catalog.finishings.get(finishing)
    return rule.surcharge if rule is not None else 0


def area_multiplier(item: Any, category: Optional[CategoryPricing]) -> Decimal:
    if category is None or not category.is_per_area:
        return ONE
    return parse_dimension(item.length) * parse_dimension(item.width)


def item_subtotal(item: Any, tier: Any, catalog: PricingCatalog) -> Decimal:
    """
    Subtotale di una voce.

    Args:
        item: Oggetto con product_id, finishing, length, width, quantity
              e opzionalmente custom_price
        tier: Fascia di prezzo del cliente
        catalog: Catalogo prezzi

    Returns:
        Decimal: Subtotale non arrotondato
    """
    custom_price = getattr(item, "custom_price", None)
    if custom_price is not None:
        return Decimal(custom_price)

    product = catalog.products.get(item.product_id) if item.product_id is not None else None
    if product is None:
        return ZERO

    category = catalog.categories.get(product.category_id)
    material = Decimal(resolve_tier_price(product, tier)) * area_multiplier(item, category)
    surcharge = Decimal(finishing_surcharge(item.finishing, catalog))
    quantity = max(int(item.quantity or 0), 0)
    return (material + surcharge) * quantity


def round_up_to_increment(amount: Decimal, increment: int = DEFAULT_ROUNDING_INCREMENT) -> int:
    """
    Arrotonda per eccesso al multiplo successivo dell'incremento.

    Con incremento <= 0 arrotonda solo all'intero superiore.
    """
    amount = Decimal(amount)
    if amount <= 0:
        return 0
    if increment <= 0:
        return int(amount.to_integral_value(rounding=ROUND_CEILING))
    steps = (amount / Decimal(increment)).to_integral_value(rounding=ROUND_CEILING)
    return int(steps) * increment


def compute_subtotal(items: Iterable[Any], tier: Any, catalog: PricingCatalog) -> Decimal:
    return sum((item_subtotal(item, tier, catalog) for item in items), ZERO)


def compute_total(
    items: Iterable[Any],
    tier: Any,
    catalog: PricingCatalog,
    increment: int = DEFAULT_ROUNDING_INCREMENT,
) -> int:
    """Totale ordine: somma dei subtotali arrotondata una sola volta."""
    return round_up_to_increment(compute_subtotal(items, tier, catalog), increment)


def compute_line_totals(
    items: Sequence[Any],
    tier: Any,
    catalog: PricingCatalog,
    increment: int = DEFAULT_ROUNDING_INCREMENT,
) -> PriceBreakdown:
    """
    Calcola totale e righe riconciliate.

    Il resto dell'arrotondamento viene aggiunto all'ultima voce, così la
    somma delle righe mostrate coincide con il totale stampato.
    """
    lines = [item_subtotal(item, tier, catalog) for item in items]
    subtotal = sum(lines, ZERO)
    total = round_up_to_increment(subtotal, increment)
    if lines:
        lines[-1] += Decimal(total) - subtotal
    return PriceBreakdown(subtotal=subtotal, total=total, line_totals=lines)
