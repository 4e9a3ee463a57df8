"""
Green credit rules: points for a waste submission and rank progression.

Everything here is plain arithmetic over plain values. Views, services,
serializers and management commands all go through these functions so the
numbers shown to users and the numbers written to the ledger never drift.

    points = round(rate_per_kg[waste_type] * quantity * bonus_multiplier)

The bonus multiplier rewards bulk drop-offs: 1.2 above 5 kg, 1.1 above 2 kg.
"""
import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import NamedTuple, Optional

from .exceptions import InvalidWasteInput


WASTE_TYPE_CHOICES = [
    ('plastic', 'Plastic'),
    ('organic', 'Organic'),
    ('paper', 'Paper'),
    ('metal', 'Metal'),
    ('glass', 'Glass'),
    ('electronic', 'Electronic'),
    ('textile', 'Textile'),
    ('hazardous', 'Hazardous'),
]

# Points per kg; admins can override these through WasteType rows
DEFAULT_POINTS_PER_KG = {
    'plastic': 10,
    'organic': 5,
    'paper': 8,
    'metal': 15,
    'glass': 12,
    'electronic': 20,
    'textile': 6,
    'hazardous': 25,
}

# kg of CO2 avoided per kg collected
DEFAULT_CO2_FACTORS = {
    'plastic': Decimal('2.5'),
    'organic': Decimal('0.5'),
    'paper': Decimal('1.2'),
    'metal': Decimal('3.0'),
    'glass': Decimal('0.8'),
    'electronic': Decimal('4.0'),
    'textile': Decimal('1.5'),
    'hazardous': Decimal('5.0'),
}

# (quantity must be strictly greater than, multiplier), checked in order
BONUS_TIERS = (
    (Decimal('5'), Decimal('1.2')),
    (Decimal('2'), Decimal('1.1')),
)

MIN_QUANTITY_KG = Decimal('0.1')
MAX_QUANTITY_KG = Decimal('1000')


def to_quantity(value) -> Decimal:
    """Parse a weight in kg, rejecting anything that is not a positive finite number."""
    if value is None or isinstance(value, bool):
        raise InvalidWasteInput('Quantity must be a number.')
    try:
        quantity = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidWasteInput(f'Quantity must be a number, got {value!r}.')
    if not quantity.is_finite():
        raise InvalidWasteInput('Quantity must be a finite number.')
    if quantity <= 0:
        raise InvalidWasteInput('Quantity must be greater than zero.')
    return quantity


def round_half_up(value, exponent=Decimal('1')) -> Decimal:
    """Quantize half up with enough precision for any finite value."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() - exponent.as_tuple().exponent + 2)
        return value.quantize(exponent, rounding=ROUND_HALF_UP)


def normalize_waste_type(waste_type) -> str:
    return str(waste_type or '').strip().lower()


def get_bonus_multiplier(quantity) -> Decimal:
    quantity = to_quantity(quantity)
    for threshold, multiplier in BONUS_TIERS:
        if quantity > threshold:
            return multiplier
    return Decimal('1')


def calculate_points_breakdown(waste_type, quantity, rates=None) -> dict:
    """
    Work out the points for a drop-off and show how they were reached.

    Args:
        waste_type: waste type code, case-insensitive
        quantity: weight in kg (number or numeric string)
        rates: optional {code: points_per_kg} table, defaults to DEFAULT_POINTS_PER_KG

    Raises:
        InvalidWasteInput: unknown waste type, or a quantity that is malformed or above MAX_QUANTITY_KG
    """
    rates = DEFAULT_POINTS_PER_KG if rates is None else rates
    code = normalize_waste_type(waste_type)
    if code not in rates:
        raise InvalidWasteInput(f"Unknown waste type '{waste_type}'.")
    quantity = to_quantity(quantity)
    if quantity > MAX_QUANTITY_KG:
        raise InvalidWasteInput(f'Quantity must be between {MIN_QUANTITY_KG} and {MAX_QUANTITY_KG} kg.')
    rate = Decimal(str(rates[code]))
    multiplier = get_bonus_multiplier(quantity)
    base_points = rate * quantity
    points = int(round_half_up(base_points * multiplier))
    return {
        'waste_type': code,
        'quantity': quantity,
        'rate': rate,
        'base_points': base_points,
        'multiplier': multiplier,
        'points': points,
    }


def calculate_waste_points(waste_type, quantity, rates=None) -> int:
    """Points earned for `quantity` kg of `waste_type`, rounded half up."""
    return calculate_points_breakdown(waste_type, quantity, rates)['points']


def co2_saved(waste_type, quantity, factors=None) -> Decimal:
    factors = DEFAULT_CO2_FACTORS if factors is None else factors
    code = normalize_waste_type(waste_type)
    if code not in factors:
        raise InvalidWasteInput(f"Unknown waste type '{waste_type}'.")
    factor = Decimal(str(factors[code]))
    return round_half_up(factor * to_quantity(quantity), Decimal('0.01'))


# ==================== RANKS ====================

class Rank(NamedTuple):
    name: str
    min_credits: int
    color: str
    icon: str


class RankInfo(NamedTuple):
    current: Rank
    next: Optional[Rank]
    progress: float
    points_needed: int


RANKS = (
    Rank('Bronze', 0, '#CD7F32', '🥉'),
    Rank('Silver', 500, '#C0C0C0', '🥈'),
    Rank('Gold', 2000, '#FFD700', '🥇'),
    Rank('Platinum', 5000, '#E5E4E2', '💎'),
    Rank('Diamond', 10000, '#B9F2FF', '💠'),
)

RANK_CHOICES = [(rank.name, rank.name) for rank in RANKS]


def get_rank(credits) -> Rank:
    """Highest rank whose threshold does not exceed `credits`."""
    credits = credits or 0
    current = RANKS[0]
    for rank in RANKS:
        if credits >= rank.min_credits:
            current = rank
    return current


def get_user_rank_info(credits) -> RankInfo:
    """Current rank, next rank and linear progress (0-100) toward it."""
    credits = credits or 0
    current = get_rank(credits)
    position = RANKS.index(current)
    if position == len(RANKS) - 1:
        return RankInfo(current=current, next=None, progress=100.0, points_needed=0)

    next_rank = RANKS[position + 1]
    span = next_rank.min_credits - current.min_credits
    earned = max(0, credits - current.min_credits)
    progress = min(100.0, float(earned) / span * 100)
    points_needed = int(math.ceil(next_rank.min_credits - credits))
    return RankInfo(
        current=current,
        next=next_rank,
        progress=round(progress, 2),
        points_needed=points_needed,
    )


def rank_index(name) -> int:
    """Position of a rank in threshold order, used for minimum-rank checks."""
    for position, rank in enumerate(RANKS):
        if rank.name.lower() == str(name or '').strip().lower():
            return position
    raise ValueError(f"Unknown rank '{name}'")


def rank_info_as_dict(credits) -> dict:
    info = get_user_rank_info(credits)
    return {
        'current': info.current._asdict(),
        'next': info.next._asdict() if info.next else None,
        'progress': info.progress,
        'points_needed': info.points_needed,
    }
