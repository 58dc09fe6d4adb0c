"""Market correlation overlay - Pure functions.

This module overlays significant events onto a daily exchange-rate series.
A sample dated on the day of an event with magnitude >= 5.0 is moved by an
impact that grows with magnitude, and the following sample receives a
smaller aftershock move in the same direction.

All functions are pure: the input series is never modified.
"""

from dataclasses import dataclass, replace
from datetime import date, timezone
from typing import Iterable

from quakerisk.core.event import Event


SIGNIFICANT_MAGNITUDE = 5.0

# Share of the initial impact applied to the next sample
AFTERSHOCK_FACTOR = 0.4

RATE_DECIMALS = 4


@dataclass(frozen=True)
class CurrencyPair:
    """A quoted currency pair, e.g. USD/SGD.

    Attributes:
        base: Base currency code
        quote: Quote currency code
    """
    base: str
    quote: str

    @property
    def name(self) -> str:
        return f"{self.base}/{self.quote}"

    @classmethod
    def parse(cls, name: str) -> "CurrencyPair":
        """Parse "BASE/QUOTE" into a pair.

        Raises:
            ValueError: If the text is not of the form BASE/QUOTE
        """
        base, sep, quote = name.partition("/")
        if not sep or not base.strip() or not quote.strip():
            raise ValueError(f"Invalid currency pair: {name!r}")
        return cls(base=base.strip().upper(), quote=quote.strip().upper())


@dataclass(frozen=True)
class CorrelatedEvent:
    """Event metadata attached to a rate sample.

    Attributes:
        id: Event identity
        magnitude: Event magnitude
        place: Event place text
    """
    id: str
    magnitude: float
    place: str


@dataclass(frozen=True)
class ExchangeRateSample:
    """One day of an exchange-rate series.

    Attributes:
        date: Sample day
        rate: Quoted rate
        event: Event correlated with this day, if any
    """
    date: date
    rate: float
    event: CorrelatedEvent | None = None


def impact_for_magnitude(magnitude: float) -> float:
    """Relative rate move caused by an event of the given magnitude.

    Pure function.
    """
    if magnitude >= 7.0:
        return 0.02
    if magnitude >= 6.0:
        return 0.01
    return 0.005


def impact_direction(pair: CurrencyPair) -> int:
    """Sign of the move: the USD strengthens on seismic shocks.

    Pure function.

    Returns:
        -1 when the pair is quoted in USD base (the rate falls), else +1
    """
    return -1 if pair.base == "USD" else 1


def event_date(event: Event) -> date:
    """UTC calendar day of an event.

    Pure function.
    """
    return event.time.astimezone(timezone.utc).date()


def apply_move(rate: float, direction: int, impact: float) -> float:
    """Apply a relative move and round to 4 decimals.

    Pure function.
    """
    return round(rate * (1 + direction * impact), RATE_DECIMALS)


def correlate(
    series: Iterable[ExchangeRateSample],
    events: Iterable[Event],
    pair: CurrencyPair,
) -> list[ExchangeRateSample]:
    """Overlay significant events onto a rate series.

    Pure function.

    Events are applied one at a time in the given order, so several
    events on the same day compound. An event with no sample on its day
    is skipped. The aftershock goes to the next chronological sample only.

    Args:
        series: Daily samples, one per date
        events: Candidate events
        pair: The pair the series quotes

    Returns:
        New list with the same length and order as the input series
    """
    result = list(series)
    direction = impact_direction(pair)

    chronological = sorted(range(len(result)), key=lambda i: result[i].date)
    position_of = {idx: pos for pos, idx in enumerate(chronological)}
    index_by_date = {sample.date: i for i, sample in enumerate(result)}

    for event in events:
        if event.magnitude < SIGNIFICANT_MAGNITUDE:
            continue

        index = index_by_date.get(event_date(event))
        if index is None:
            continue

        impact = impact_for_magnitude(event.magnitude)
        sample = result[index]
        result[index] = replace(
            sample,
            rate=apply_move(sample.rate, direction, impact),
            event=CorrelatedEvent(
                id=event.id,
                magnitude=event.magnitude,
                place=event.place,
            ),
        )

        next_pos = position_of[index] + 1
        if next_pos < len(chronological):
            next_index = chronological[next_pos]
            following = result[next_index]
            result[next_index] = replace(
                following,
                rate=apply_move(following.rate, direction, impact * AFTERSHOCK_FACTOR),
            )

    return result


def analyze_impact(samples: list[ExchangeRateSample], pair: CurrencyPair) -> str:
    """Describe how a correlated series moved over the period.

    Pure function.
    """
    if not samples:
        return "No exchange rate data available for analysis."

    correlated = [s for s in samples if s.event is not None]
    if not correlated:
        return (
            "No significant seismic events detected during this period that "
            f"impacted the {pair.name} exchange rate."
        )

    start_rate = samples[0].rate
    end_rate = samples[-1].rate
    percent_change = (end_rate - start_rate) / start_rate * 100 if start_rate else 0.0
    direction = "increased" if percent_change >= 0 else "decreased"

    strongest = max(correlated, key=lambda s: s.event.magnitude)
    quake = f"M{strongest.event.magnitude:.1f} {strongest.event.place}"

    analysis = (
        f"Over the analyzed period, the {pair.name} rate {direction} by "
        f"{abs(percent_change):.2f}%. "
    )

    if len(correlated) == 1:
        analysis += (
            f"One significant seismic event was detected ({quake}), which "
            "appears to have influenced the exchange rate."
        )
    else:
        analysis += (
            f"{len(correlated)} seismic events were detected, with the most "
            f"significant being {quake}."
        )

    if pair.base == "USD" and pair.quote == "SGD":
        analysis += (
            " Analysis indicates that significant earthquakes in the region "
            "typically strengthen the USD against SGD in the short term."
        )
    elif pair.base == "USD" and pair.quote == "GBP":
        analysis += (
            " Historical data suggests that major seismic events can cause "
            "temporary GBP depreciation against the USD due to risk-off sentiment."
        )

    return analysis
