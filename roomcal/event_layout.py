"""Side-by-side column layout for overlapping events in day/week grids.

1. Events are grouped into clusters of transitively overlapping events.
2. Within each cluster, columns are assigned greedily (first fit).
3. Each event may expand rightward into free neighboring columns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol

logger = logging.getLogger(__name__)

# Zero-duration events are laid out as if they lasted this long
MIN_DURATION = timedelta(minutes=1)

# Horizontal overlap of later columns onto earlier ones, in pixels
OVERLAP_PX = 12


class LayoutEvent(Protocol):
    """Anything with an id and a time interval."""

    id: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class EventLayout:
    """Column placement of one event."""

    column: int
    total_columns: int
    span: int = 1


@dataclass(frozen=True)
class ColumnStyle:
    """CSS placement derived from an EventLayout."""

    left: str
    width: str
    z_index: int


def effective_end(event: LayoutEvent) -> datetime:
    """End time, stretched to MIN_DURATION for zero-length events."""
    if event.end > event.start:
        return event.end
    return event.start + MIN_DURATION


def events_overlap(a: LayoutEvent, b: LayoutEvent) -> bool:
    """Half-open interval intersection."""
    return a.start < effective_end(b) and effective_end(a) > b.start


def _sort_key(event: LayoutEvent) -> tuple[datetime, timedelta, str]:
    # Longer events first on equal start, id keeps the order total
    return (event.start, -(effective_end(event) - event.start), event.id)


def _build_clusters(events: list[LayoutEvent]) -> list[list[LayoutEvent]]:
    """Split start-sorted events into connected overlap clusters.

    A sorted event joins the current cluster iff it starts before the
    cluster's latest end, which yields the connected components of the
    interval-overlap graph.
    """
    clusters: list[list[LayoutEvent]] = []
    current: list[LayoutEvent] = []
    cluster_end: Optional[datetime] = None

    for event in events:
        if cluster_end is not None and event.start < cluster_end:
            current.append(event)
            cluster_end = max(cluster_end, effective_end(event))
        else:
            if current:
                clusters.append(current)
            current = [event]
            cluster_end = effective_end(event)

    if current:
        clusters.append(current)
    return clusters


def _assign_columns(cluster: list[LayoutEvent]) -> dict[str, EventLayout]:
    columns: list[list[LayoutEvent]] = []
    column_ends: list[datetime] = []
    placed: dict[str, int] = {}

    for event in cluster:
        for index, occupants in enumerate(columns):
            if column_ends[index] <= event.start or not any(
                events_overlap(event, other) for other in occupants
            ):
                occupants.append(event)
                column_ends[index] = max(column_ends[index], effective_end(event))
                placed[event.id] = index
                break
        else:
            columns.append([event])
            column_ends.append(effective_end(event))
            placed[event.id] = len(columns) - 1

    total = len(columns)
    layouts: dict[str, EventLayout] = {}
    for event in cluster:
        column = placed[event.id]
        span = 1
        for next_column in range(column + 1, total):
            if any(events_overlap(event, other) for other in columns[next_column]):
                break
            span += 1
        layouts[event.id] = EventLayout(column=column, total_columns=total, span=span)
    return layouts


def compute_event_layout(events: Iterable[LayoutEvent]) -> dict[str, EventLayout]:
    """Assign grid columns to the events of one day.

    Args:
        events: Events (typically occurrences) with unique ids

    Returns:
        Mapping of event id to its EventLayout. Every member of a connected
        overlap group shares the same ``total_columns``; events that overlap
        nothing get ``column=0, total_columns=1``.
    """
    ordered = sorted(events, key=_sort_key)
    if not ordered:
        return {}

    layouts: dict[str, EventLayout] = {}
    clusters = _build_clusters(ordered)
    for cluster in clusters:
        layouts.update(_assign_columns(cluster))

    logger.debug(
        "Laid out %d events in %d overlap groups (widest %d columns)",
        len(ordered),
        len(clusters),
        max(layout.total_columns for layout in layouts.values()),
    )
    return layouts


def column_style(layout: Optional[EventLayout]) -> ColumnStyle:
    """Map a layout to CSS left/width/z-index.

    Later columns are shifted left by OVERLAP_PX so cards layer over the
    previous column; higher columns render on top.
    """
    if layout is None or layout.total_columns <= 1:
        return ColumnStyle(left="1px", width="calc(100% - 2px)", z_index=1)

    column_pct = 100 / layout.total_columns
    left_pct = _format_pct(layout.column * column_pct)
    width_pct = _format_pct(layout.span * column_pct)
    z_index = layout.column + 1

    if layout.column == 0:
        return ColumnStyle(left="1px", width=f"calc({width_pct}% - 2px)", z_index=z_index)

    return ColumnStyle(
        left=f"calc({left_pct}% - {OVERLAP_PX}px)",
        width=f"calc({width_pct}% + {OVERLAP_PX}px - 2px)",
        z_index=z_index,
    )


def _format_pct(value: float) -> str:
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    return text or "0"
