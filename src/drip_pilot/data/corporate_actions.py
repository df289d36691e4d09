"""
Corporate action provider for forward splits.

Merges a curated static split table with splits implied by stock dividend
records into a single ordered list of share multipliers. The same events
drive both the forward application in the simulation engine and the
backward price adjustment used for display.
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from drip_pilot.models import DividendEvent, PriceBar, SplitEvent, SplitSource


# Curated splits for symbols whose split is not reported as a stock dividend.
# effective_date is the first trading day after the split.
STATIC_SPLITS: dict[str, list[SplitEvent]] = {
    "0050": [
        SplitEvent(
            effective_date=date(2025, 6, 18),
            share_multiplier=Decimal("4"),
            source=SplitSource.STATIC,
            description="1-for-4 stock split",
        ),
    ],
    "00663L": [
        SplitEvent(
            effective_date=date(2025, 6, 11),
            share_multiplier=Decimal("7"),
            source=SplitSource.STATIC,
            description="1-for-7 stock split",
        ),
    ],
}


class CorporateActionProvider:
    """
    Single source of truth for split events.

    Static table entries take precedence over derived entries that fall on
    the same date. The provider only emits share multipliers; it never
    adjusts prices on behalf of the engine.
    """

    def __init__(self, static_table: Optional[dict[str, list[SplitEvent]]] = None):
        """
        Initialize the provider.

        Args:
            static_table: Mapping of symbol to curated splits
                (defaults to STATIC_SPLITS)
        """
        self._static_table = STATIC_SPLITS if static_table is None else static_table

    def list_splits(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        dividends: Iterable[DividendEvent] = (),
        include_derived: bool = True,
    ) -> list[SplitEvent]:
        """
        List split events for a symbol within a date range.

        Args:
            symbol: Exchange symbol
            start_date: Start date (inclusive)
            end_date: End date (inclusive)
            dividends: Dividend records used to derive stock dividend splits
            include_derived: Whether to include splits derived from dividends

        Returns:
            Splits sorted by effective date, at most one per date
        """
        by_date: dict[date, SplitEvent] = {}

        if include_derived:
            for split in derive_splits(dividends):
                if start_date <= split.effective_date <= end_date:
                    by_date.setdefault(split.effective_date, split)

        # Static entries overwrite derived ones on the same date
        static_dates: set[date] = set()
        for split in self._static_table.get(symbol.strip(), []):
            if not start_date <= split.effective_date <= end_date:
                continue
            if split.effective_date in static_dates:
                continue
            by_date[split.effective_date] = split
            static_dates.add(split.effective_date)

        return [by_date[d] for d in sorted(by_date)]


def derive_splits(dividends: Iterable[DividendEvent]) -> list[SplitEvent]:
    """
    Derive split-like events from stock dividend records.

    A record with stock_ratio_per_10 = s implies a share multiplier of
    1 + s/10. Records without a stock component are ignored; when several
    records share a date only the first is kept.
    """
    derived: dict[date, SplitEvent] = {}
    for dividend in sorted(dividends, key=lambda d: d.date):
        if dividend.stock_ratio_per_10 <= 0 or dividend.date in derived:
            continue
        derived[dividend.date] = SplitEvent(
            effective_date=dividend.date,
            share_multiplier=Decimal("1") + dividend.stock_ratio_per_10 / Decimal("10"),
            source=SplitSource.DERIVED,
            description=f"Stock dividend {dividend.stock_ratio_per_10} per 10 shares",
        )
    return list(derived.values())


def adjust_price_bars(
    bars: Sequence[PriceBar],
    splits: Sequence[SplitEvent],
) -> list[PriceBar]:
    """
    Backward-adjust historical prices for display.

    Every bar dated before a split's effective date has its prices divided
    by the split multiplier (cumulatively across later splits) and its
    volume multiplied, so the series is continuous with post-split prices.

    Args:
        bars: Price bars in ascending date order
        splits: Splits as returned by CorporateActionProvider.list_splits

    Returns:
        New list of adjusted bars; the input is not modified
    """
    adjusted = []
    for bar in bars:
        factor = Decimal("1")
        for split in splits:
            if bar.date < split.effective_date:
                factor *= split.share_multiplier

        if factor == 1:
            adjusted.append(bar)
            continue

        adjusted.append(
            replace(
                bar,
                open=bar.open / factor,
                high=bar.high / factor,
                low=bar.low / factor,
                close=bar.close / factor,
                volume=int(bar.volume * factor),
            )
        )
    return adjusted
