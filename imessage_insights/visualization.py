"""
Visualization functions for iMessage data.

Builds plotly figures from a published snapshot: smoothed daily series for
the most active people and their 24-hour profiles. Figures are returned so
callers can show, embed or write them; write_html() saves a standalone page.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

import plotly.graph_objects as go  # type: ignore[import-untyped]

from imessage_insights.aggregation import Measure, daily_series, hourly_profile, top_people
from imessage_insights.resolver import HandleResolver
from imessage_insights.smoothing import DEFAULT_ALPHA, smooth
from imessage_insights.store import InsightsSnapshot

logger = logging.getLogger(__name__)


def _people_to_plot(
    snapshot: InsightsSnapshot, people: Optional[Iterable[str]], limit: int
) -> List[str]:
    if people is not None:
        return [p for p in people if p in snapshot.daily_lookup]
    return [person for person, _ in top_people(snapshot.daily_lookup, limit=limit)]


def build_daily_figure(
    snapshot: InsightsSnapshot,
    resolver: Optional[HandleResolver] = None,
    *,
    measure: Measure = Measure.TOTAL,
    people: Optional[Iterable[str]] = None,
    limit: int = 10,
    alpha: float = DEFAULT_ALPHA,
) -> go.Figure:
    """
    Plot smoothed daily series, one line per person.

    Args:
        snapshot: Snapshot to read counts from.
        resolver: Resolver for legend names; raw identifiers if None.
        measure: Quantity to plot.
        people: People to plot; the top `limit` by total messages if None.
        limit: How many people to plot when `people` is None.
        alpha: Smoothing factor.

    Returns:
        A plotly Figure.
    """
    resolver = resolver or HandleResolver()
    figure = go.Figure()
    for person in _people_to_plot(snapshot, people, limit):
        points = smooth(daily_series(snapshot.daily_lookup, person, measure), alpha)
        if not points:
            continue
        figure.add_trace(
            go.Scatter(
                x=[day for day, _ in points],
                y=[value for _, value in points],
                mode="lines",
                name=resolver.resolve(person),
            )
        )

    figure.update_layout(
        title=f"Daily messages ({measure.value}, smoothed, alpha={alpha})",
        xaxis_title="Day",
        yaxis_title="Messages",
        hovermode="x unified",
    )
    logger.debug(f"Built daily figure with {len(figure.data)} traces")
    return figure


def build_hourly_figure(
    snapshot: InsightsSnapshot,
    resolver: Optional[HandleResolver] = None,
    *,
    measure: Measure = Measure.TOTAL,
    people: Optional[Iterable[str]] = None,
    limit: int = 10,
) -> go.Figure:
    """Plot 24-hour profiles as grouped bars, one series per person."""
    resolver = resolver or HandleResolver()
    figure = go.Figure()
    for person in _people_to_plot(snapshot, people, limit):
        profile = hourly_profile(snapshot.hourly_lookup, person, measure)
        figure.add_trace(
            go.Bar(
                x=[hour for hour, _ in profile],
                y=[value for _, value in profile],
                name=resolver.resolve(person),
            )
        )

    figure.update_layout(
        title=f"Messages by hour of day ({measure.value})",
        xaxis_title="Hour",
        yaxis_title="Messages",
        barmode="group",
    )
    return figure


def write_html(figure: go.Figure, output_file: Union[str, Path]) -> Path:
    """Write a figure to a standalone HTML file."""
    path = Path(output_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    figure.write_html(str(path), include_plotlyjs="cdn")
    logger.info(f"Wrote plot to {path}")
    return path
