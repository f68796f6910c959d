"""
Valuation module for Deal Hunter.

Heuristic market-value estimate and the composite deal score used to rank
listings. Both are documented rules of thumb, not an appraisal: the premium
table encodes how much more than the current bid a desirable car usually
ends up selling for.
"""

import math
import re

# (pattern over lowercased "make model", multiplier). First match wins, so
# the order here is significant.
MODEL_PREMIUMS: list[tuple[re.Pattern, float]] = [
    (re.compile(pattern), multiplier)
    for pattern, multiplier in [
        (r"porsche.*911", 2.2),
        (r"porsche.*boxster|cayman", 1.4),
        (r"bmw.*m3", 1.8),
        (r"bmw.*m5", 1.7),
        (r"bmw.*m2|m4", 1.6),
        (r"mercedes.*amg|c63|e63|s63", 1.7),
        (r"honda.*s2000", 1.9),
        (r"honda.*nsx|acura.*nsx", 2.5),
        (r"toyota.*supra", 2.4),
        (r"toyota.*land cruiser", 1.6),
        (r"mazda.*rx-7", 1.8),
        (r"mazda.*miata|mx-5", 1.3),
        (r"nissan.*skyline|gtr|gt-r", 2.2),
        (r"nissan.*370z|350z", 1.3),
        (r"mitsubishi.*evo|evolution", 1.7),
        (r"subaru.*sti|wrx", 1.5),
        (r"ford.*mustang.*gt500|shelby", 1.8),
        (r"ford.*gt", 3.0),
        (r"chevrolet.*corvette.*z06", 1.6),
        (r"chevrolet.*corvette", 1.4),
        (r"dodge.*viper", 1.8),
        (r"ferrari", 2.0),
        (r"lamborghini", 2.0),
        (r"aston martin", 1.8),
        (r"mclaren", 2.0),
        (r"lotus", 1.5),
        (r"land rover.*defender", 1.8),
        (r"land rover.*range rover", 1.4),
        (r"lexus.*lfa", 3.0),
        (r"lexus.*is-f|is f", 1.4),
        (r"audi.*rs", 1.6),
        (r"volkswagen.*gti|golf r", 1.3),
        (r"volkswagen.*r32", 1.5),
    ]
]

DEFAULT_MULTIPLIER = 1.3

# (first year, last year, multiplier); ranges do not overlap
AGE_BANDS: list[tuple[int, int, float]] = [
    (1970, 1985, 1.15),
    (1986, 1995, 1.05),
]

# (minimum discount %, points), highest first
DISCOUNT_TIERS: list[tuple[int, int]] = [(40, 50), (30, 42), (20, 32), (15, 22), (10, 12)]

# (maximum hours left, points), most urgent first
URGENCY_TIERS: list[tuple[float, int]] = [(1, 20), (3, 15), (6, 10), (12, 5)]

# (bid count strictly below, points)
COMPETITION_TIERS: list[tuple[int, int]] = [(5, 10), (15, 5)]

NO_RESERVE_BONUS = 20
MAX_DEAL_SCORE = 99


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def premium_multiplier(make: str, model: str) -> float:
    """Multiplier of the first premium pattern matching "make model"."""
    make_model = f"{make or ''} {model or ''}".lower()
    for pattern, multiplier in MODEL_PREMIUMS:
        if pattern.search(make_model):
            return multiplier
    return DEFAULT_MULTIPLIER


def age_multiplier(year: int) -> float:
    for first, last, multiplier in AGE_BANDS:
        if first <= year <= last:
            return multiplier
    return 1.0


def estimate_market_value(year: int, make: str, model: str, current_bid: float) -> int:
    """
    Estimate what the car will be worth, rounded to the nearest $100.

    Args:
        year: Model year (0 if unknown)
        make: Manufacturer, e.g. "Porsche"
        model: Model, e.g. "911"
        current_bid: Current high bid in dollars

    Returns:
        Non-negative multiple of 100
    """
    bid = max(0.0, float(current_bid or 0))
    base = bid * premium_multiplier(make, model)
    base *= age_multiplier(year or 0)
    if not math.isfinite(base):
        return 0
    return _round_half_up(base / 100) * 100


def calc_discount_pct(market_value: int, current_bid: float) -> int:
    """Percent the current bid sits below market value (negative if above)."""
    if market_value <= 0:
        return 0
    return _round_half_up((market_value - current_bid) / market_value * 100)


def calc_deal_score(discount_pct: int, hours_left: float, bid_count: int, no_reserve: bool) -> int:
    """
    Composite 0-99 score: discount, urgency, reserve status and competition.

    Each component takes only its highest qualifying tier.
    """
    score = 0

    for threshold, points in DISCOUNT_TIERS:
        if discount_pct >= threshold:
            score += points
            break

    for threshold, points in URGENCY_TIERS:
        if hours_left <= threshold:
            score += points
            break

    if no_reserve:
        score += NO_RESERVE_BONUS

    for threshold, points in COMPETITION_TIERS:
        if bid_count < threshold:
            score += points
            break

    return min(score, MAX_DEAL_SCORE)
