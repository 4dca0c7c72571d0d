"""Deterministic quality scoring for cost estimates.

Turns per-source metadata into five 0-100 sub-scores, a weighted
composite, and a coarse band. Everything here is pure: no I/O, no
randomness, and no exceptions for missing or malformed metadata (those
fall back to neutral values).

Weights:
- recency      0.30
- source type  0.25
- estimation   0.20
- consistency  0.15
- proximity    0.10
"""

import math
import re
import statistics
from datetime import date, datetime, timezone
from typing import Dict, Optional, Sequence, Union

from cost_finder.models.cost_estimate import (
    DerivationType,
    GeoProximity,
    QualityBand,
    QualityScores,
    SourceObservation,
    SourceType,
    to_derivation_type,
    to_geo_proximity,
)

ObservedAt = Union[str, int, float, date, datetime, None]


# =============================================================================
# Score tables
# =============================================================================

SOURCE_TYPE_SCORES: Dict[SourceType, float] = {
    SourceType.COMMODITY_INDEX: 80,
    SourceType.MAJOR_VENDOR: 75,
    SourceType.TRADE_STATS: 70,
    SourceType.SUPPLIER_QUOTE: 65,
    SourceType.INDUSTRY_REPORT: 55,
    SourceType.WEB_SECONDARY: 30,
    SourceType.ANECDOTAL: 15,
}

DERIVATION_SCORES: Dict[DerivationType, float] = {
    DerivationType.DIRECT_LOCAL: 100,
    DerivationType.DIRECT_REGIONAL: 85,
    DerivationType.INFERRED_REGIONAL: 70,
    DerivationType.INFERRED_MATERIAL_ANALOG: 60,
    DerivationType.HEURISTIC: 40,
}

PROXIMITY_SCORES: Dict[GeoProximity, float] = {
    GeoProximity.SAME_CLUSTER: 100,
    GeoProximity.SAME_COUNTRY_SAME_MARKET: 80,
    GeoProximity.SAME_COUNTRY_DIFFERENT_MARKET: 60,
    GeoProximity.NEIGHBORING_COUNTRY: 45,
    GeoProximity.SAME_REGION: 30,
    GeoProximity.DIFFERENT_REGION: 15,
}

# Proximity claims a non-local derivation is not allowed to make
CROSS_COUNTRY_PROXIMITIES = frozenset({
    GeoProximity.SAME_COUNTRY_SAME_MARKET,
    GeoProximity.SAME_COUNTRY_DIFFERENT_MARKET,
    GeoProximity.NEIGHBORING_COUNTRY,
    GeoProximity.SAME_REGION,
})

WEIGHTS = {
    "recency": 0.30,
    "source": 0.25,
    "estimation": 0.20,
    "consistency": 0.15,
    "proximity": 0.10,
}

NEUTRAL_SCORE = 50.0
UNKNOWN_SOURCE_TYPE_SCORE = 40.0
SINGLE_PRICE_CONSISTENCY = 70.0
DEGENERATE_CONSISTENCY = 30.0
DAYS_PER_MONTH = 30

_YEAR_ONLY = re.compile(r"^\d{4}$")
_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{1,2})$")


# =============================================================================
# Date handling
# =============================================================================


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_observed_at(observed_at: ObservedAt) -> Optional[datetime]:
    """Parse an observation date into an aware UTC datetime.

    Year-only strings normalize to January 1st and year-month strings to
    the first of the month. Numbers are epoch milliseconds. Anything
    unparseable returns None.
    """
    if observed_at is None or isinstance(observed_at, bool):
        return None

    if isinstance(observed_at, datetime):
        return _as_utc(observed_at)

    if isinstance(observed_at, date):
        return datetime(observed_at.year, observed_at.month, observed_at.day, tzinfo=timezone.utc)

    if isinstance(observed_at, (int, float)):
        if math.isnan(observed_at) or math.isinf(observed_at):
            return None
        try:
            return datetime.fromtimestamp(observed_at / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(observed_at, str):
        text = observed_at.strip()
        try:
            if _YEAR_ONLY.match(text):
                return datetime(int(text), 1, 1, tzinfo=timezone.utc)
            match = _YEAR_MONTH.match(text)
            if match:
                return datetime(int(match.group(1)), int(match.group(2)), 1, tzinfo=timezone.utc)
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            return _as_utc(datetime.fromisoformat(text))
        except ValueError:
            return None

    return None


def months_since(observed_at: ObservedAt, now: Optional[datetime] = None) -> Optional[float]:
    """Approximate months between an observation and now (30-day months, never negative)."""
    observed = parse_observed_at(observed_at)
    if observed is None:
        return None
    now = _as_utc(now) if now else datetime.now(timezone.utc)
    days = math.floor((now - observed).total_seconds() / 86400)
    return max(days, 0) / DAYS_PER_MONTH


# =============================================================================
# Sub-scores
# =============================================================================


def score_recency(
    age_months: Optional[float] = None,
    observed_at: ObservedAt = None,
    now: Optional[datetime] = None
) -> float:
    """Score how fresh one observation is.

    When both an explicit age and an observation date are given, the
    older of the two wins, so a stale date cannot be masked by a
    ``0`` age tag.
    """
    if age_months is not None and (isinstance(age_months, bool) or math.isnan(age_months)):
        age_months = None

    derived_months = months_since(observed_at, now) if observed_at is not None else None

    effective = age_months
    if derived_months is not None and (age_months is None or derived_months > age_months):
        effective = derived_months

    if effective is None:
        return NEUTRAL_SCORE
    if effective <= 1:
        return 100.0
    if effective <= 3:
        return 80.0
    if effective <= 6:
        return 50.0
    if effective <= 12:
        return 35.0
    return 20.0


def score_source_type(source_type: Union[SourceType, str, None]) -> float:
    """Score the provenance of one observation."""
    if not source_type:
        return NEUTRAL_SCORE
    try:
        return float(SOURCE_TYPE_SCORES[SourceType(source_type)])
    except ValueError:
        return UNKNOWN_SOURCE_TYPE_SCORE


def score_derivation(derivation_type: Union[DerivationType, str, None]) -> float:
    """Score how directly the estimate maps to the target location."""
    derivation = to_derivation_type(derivation_type)
    if derivation is None:
        return NEUTRAL_SCORE
    return float(DERIVATION_SCORES[derivation])


def score_proximity(proximity: Union[GeoProximity, str, None]) -> float:
    """Score the geographic closeness of the observed market."""
    key = to_geo_proximity(proximity)
    if key is None:
        return NEUTRAL_SCORE
    return float(PROXIMITY_SCORES[key])


def score_consistency(prices: Sequence[Optional[float]]) -> float:
    """Score agreement between per-kg prices via relative spread (stdev / mean)."""
    clean = [p for p in prices if p is not None and not math.isnan(p)]
    if len(clean) <= 1:
        return SINGLE_PRICE_CONSISTENCY

    mean = statistics.fmean(clean)
    if mean == 0:
        return DEGENERATE_CONSISTENCY

    relative_spread = statistics.pstdev(clean) / mean
    if relative_spread <= 0.05:
        return 100.0
    if relative_spread <= 0.15:
        return 80.0
    if relative_spread <= 0.30:
        return 60.0
    return 30.0


def effective_proximity(
    derivation_type: Union[DerivationType, str, None],
    proximity: Union[GeoProximity, str, None]
) -> Optional[GeoProximity]:
    """Downgrade cross-country proximity claims for non-local derivations."""
    key = to_geo_proximity(proximity)
    if key is None:
        return None
    if to_derivation_type(derivation_type) != DerivationType.DIRECT_LOCAL and key in CROSS_COUNTRY_PROXIMITIES:
        return GeoProximity.DIFFERENT_REGION
    return key


def band_from_score(score: float) -> QualityBand:
    """Map a composite score to its band."""
    if score >= 80:
        return QualityBand.HIGH
    if score >= 60:
        return QualityBand.MEDIUM
    if score >= 40:
        return QualityBand.LOW_MEDIUM
    return QualityBand.LOW


# =============================================================================
# Composite
# =============================================================================


def compute_quality_score(
    sources: Sequence[SourceObservation],
    derivation_type: Union[DerivationType, str, None] = None,
    proximity: Union[GeoProximity, str, None] = None,
    now: Optional[datetime] = None
) -> QualityScores:
    """Compute the full quality breakdown for a set of sources.

    Args:
        sources: Per-source metadata.
        derivation_type: How the price was derived for the target.
        proximity: Claimed geographic proximity of the observed market.
        now: Reference time for recency (defaults to the current UTC time).

    Returns:
        QualityScores with sub-scores, composite, and band. An empty
        source list yields the all-zero, low-band record.
    """
    if not sources:
        return QualityScores.zero()

    recency = statistics.fmean(
        score_recency(s.age_months, s.observed_at, now) for s in sources
    )
    source = statistics.fmean(score_source_type(s.source_type) for s in sources)
    estimation = score_derivation(derivation_type)
    consistency = score_consistency([s.raw_price_usd_per_kg for s in sources])
    proximity_score = score_proximity(effective_proximity(derivation_type, proximity))

    composite = (
        WEIGHTS["recency"] * recency
        + WEIGHTS["source"] * source
        + WEIGHTS["estimation"] * estimation
        + WEIGHTS["consistency"] * consistency
        + WEIGHTS["proximity"] * proximity_score
    )
    composite = min(max(composite, 0.0), 100.0)

    return QualityScores(
        recency=recency,
        source=source,
        estimation=estimation,
        consistency=consistency,
        proximity=proximity_score,
        composite=composite,
        band=band_from_score(composite),
    )
