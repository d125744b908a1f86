"""
Daily series smoothing.

Daily message counts are spiky and sparse: most days with a given person
have no messages at all, and those days are simply absent from the
aggregation. Smoothing therefore happens in two steps:

    1. Gap fill: every calendar day between the first and last point that
       has no value gets a synthetic value of 0.
    2. Exponential moving average over the filled series:

           ema[0] = value[0]
           ema[i] = alpha * value[i] + (1 - alpha) * ema[i - 1]

The hourly profile is already dense over 0-23 and is not smoothed.
"""

from datetime import date, datetime, timedelta
from typing import Dict, List, Sequence, Tuple, Union

DEFAULT_ALPHA = 0.1

Day = Union[date, datetime]
Point = Tuple[date, float]


def _as_day(value: Day) -> date:
    """Truncate datetimes to their calendar day."""
    if isinstance(value, datetime):
        return value.date()
    return value


def fill_daily_gaps(series: Sequence[Tuple[Day, float]]) -> List[Point]:
    """
    Insert zero points for missing days between the first and last day.

    Args:
        series: (day, value) points sorted ascending with unique days.

    Returns:
        Dense daily series covering [first day, last day].

    Raises:
        ValueError: If the series is not strictly ascending by day.
    """
    if not series:
        return []

    values: Dict[date, float] = {}
    previous = None
    for when, value in series:
        day = _as_day(when)
        if previous is not None and day <= previous:
            raise ValueError(f"Series must be strictly ascending by day: {day} after {previous}")
        values[day] = value
        previous = day

    start = _as_day(series[0][0])
    end = _as_day(series[-1][0])
    span = (end - start).days
    return [
        (day, values.get(day, 0))
        for day in (start + timedelta(days=offset) for offset in range(span + 1))
    ]


def exponential_moving_average(
    series: Sequence[Tuple[date, float]], alpha: float = DEFAULT_ALPHA
) -> List[Point]:
    """
    Smooth an already-dense series, seeding with its first value.

    Args:
        series: Time-ordered (day, value) points.
        alpha: Weight of the newest value, in (0, 1].

    Returns:
        One smoothed point per input point, same order.

    Raises:
        ValueError: If alpha is outside (0, 1].
    """
    if not 0.0 < alpha <= 1.0:
        raise ValueError(f"alpha must be in (0, 1], got {alpha}")
    if not series:
        return []

    ema = series[0][1]
    smoothed: List[Point] = [(series[0][0], ema)]
    for day, value in series[1:]:
        ema = alpha * value + (1 - alpha) * ema
        smoothed.append((day, ema))
    return smoothed


def smooth(series: Sequence[Tuple[Day, float]], alpha: float = DEFAULT_ALPHA) -> List[Point]:
    """
    Gap-fill a daily series and apply the exponential moving average.

    Examples:
        >>> smooth([])
        []
        >>> smooth([(date(2024, 1, 1), 5)])
        [(datetime.date(2024, 1, 1), 5)]
    """
    return exponential_moving_average(fill_daily_gaps(series), alpha)
