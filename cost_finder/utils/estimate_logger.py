"""Logging helpers for the cost finder.

``configure_logging`` sets up structlog for console runs. ``log_cost_estimate``
prints a highly visible summary of one lookup, useful when pricing a batch
of ingredients from a script.
"""

import logging
from typing import Optional

import structlog

from cost_finder.config.settings import settings
from cost_finder.models.cost_estimate import CostLookup
from cost_finder.models.target import Target

logger = structlog.get_logger()

BANNER_WIDTH = 80
ESTIMATE_BANNER_CHAR = "═"
CACHE_BANNER_CHAR = "─"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure structlog with ISO timestamps and the console renderer.

    Args:
        level: Minimum log level name (default LOG_LEVEL from settings).
    """
    numeric_level = logging.getLevelName((level or settings.log_level).upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
    )


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def log_cost_estimate(target: Target, lookup: CostLookup) -> None:
    """Print a banner summary of one cost lookup and emit a structured event."""
    estimate = lookup.estimate
    scores = estimate.quality_scores
    char = CACHE_BANNER_CHAR if lookup.from_cache else ESTIMATE_BANNER_CHAR
    title = "CACHED ESTIMATE" if lookup.from_cache else "NEW ESTIMATE"

    print("\n")
    print(char * BANNER_WIDTH)
    print(_create_banner(char, f"{title}: {target.ingredient_name.upper()}"))
    print(char * BANNER_WIDTH)
    print(f"║ Location     : {target.location_name} ({target.location_code})")
    print(f"║ Cost (USD)   : {estimate.cost_in_usd:,.2f} / {estimate.weight_unit}")
    if estimate.cost_in_local_currency is not None:
        print(
            f"║ Cost (local) : {estimate.cost_in_local_currency:,.2f} "
            f"{estimate.local_currency_code or ''} / {estimate.weight_unit}"
        )
    print(f"║ Quality      : {scores.composite:.1f} ({scores.band.value})")
    print(
        f"║ Breakdown    : recency={scores.recency:.0f} source={scores.source:.0f} "
        f"estimation={scores.estimation:.0f} consistency={scores.consistency:.0f} "
        f"proximity={scores.proximity:.0f}"
    )
    print(f"║ Sources      : {len(estimate.sources)}")
    if estimate.justification:
        print(f"║ Justification: {estimate.justification}")
    print(char * BANNER_WIDTH)

    logger.info(
        "cost_estimate_logged",
        key=target.cache_key,
        from_cache=lookup.from_cache,
        cost_in_usd=estimate.cost_in_usd,
        quality_score=round(scores.composite, 2),
        quality_band=scores.band.value
    )
