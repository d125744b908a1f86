"""
FastAPI backend for iMessage Insights.

IMPORTANT: This API ONLY reads the published InsightsSnapshot. It never
opens chat.db or the Contacts store itself; a load (CLI or
refresh_in_background) has to publish a snapshot first.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from imessage_insights import __version__
from imessage_insights.aggregation import (
    Direction,
    Measure,
    daily_series,
    hourly_profile,
    top_people,
    totals_from_lookup,
)
from imessage_insights.readability import DirectionRankings, ReadabilityRecord
from imessage_insights.resolver import HandleResolver
from imessage_insights.smoothing import DEFAULT_ALPHA, smooth
from imessage_insights.store import InsightsSnapshot, InsightsStore


def _record_dict(record: ReadabilityRecord, resolver: HandleResolver) -> Dict[str, Any]:
    return {
        "person": record.person,
        "display_name": resolver.resolve(record.person),
        "direction": record.direction.value,
        "words": record.words,
        "syllables": record.syllables,
        "sentences": record.sentences,
        "score": round(record.score, 2),
    }


def _rankings_dict(rankings: DirectionRankings, resolver: HandleResolver) -> Dict[str, Any]:
    return {
        "top": [_record_dict(r, resolver) for r in rankings.top],
        "bottom": [_record_dict(r, resolver) for r in rankings.bottom],
        "most_prolific": [_record_dict(r, resolver) for r in rankings.most_prolific],
    }


def create_app(store: InsightsStore, resolver: Optional[HandleResolver] = None) -> FastAPI:
    """
    Build the read-only API over an injected store and resolver.

    Args:
        store: Store whose current snapshot every request reads.
        resolver: Handle resolver for display names; raw identifiers if None.

    Returns:
        Configured FastAPI application.
    """
    resolver = resolver or HandleResolver()

    app = FastAPI(
        title="iMessage Insights API",
        version=__version__,
        description="Read-only API over the latest published analytics snapshot.",
    )

    # Local dev CORS defaults
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            os.getenv("IMESSAGE_ALLOWED_ORIGIN", "http://127.0.0.1:5173"),
            "http://localhost:5173",
        ],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    def _snapshot() -> InsightsSnapshot:
        snapshot = store.snapshot
        if snapshot is None:
            raise HTTPException(
                status_code=503,
                detail={
                    "error": "no snapshot loaded",
                    "message": "Run a load (main.py report, or serve with a readable chat.db) first",
                },
            )
        return snapshot

    def _require_person(snapshot: InsightsSnapshot, person: str) -> None:
        if person not in snapshot.daily_lookup and person not in snapshot.hourly_lookup:
            raise HTTPException(status_code=404, detail=f"Person not found: {person}")

    @app.get("/health")
    def health() -> Dict[str, Any]:
        """Health check; degraded until the first snapshot is published."""
        snapshot = store.snapshot
        return {
            "status": "ok" if snapshot is not None else "degraded",
            "snapshot_loaded": snapshot is not None,
            "generation": store.generation,
            "contacts_ready": resolver.is_ready,
        }

    @app.get("/summary")
    def summary() -> Dict[str, Any]:
        """Headline numbers for the current snapshot."""
        snapshot = _snapshot()
        totals = totals_from_lookup(snapshot.daily_lookup)
        days = {record.day for record in snapshot.daily_records}
        return {
            "source_path": snapshot.source_path,
            "loaded_at": snapshot.loaded_at.isoformat(),
            "people": len(snapshot.daily_lookup),
            "total_messages": snapshot.total_messages,
            "incoming_messages": sum(t[Direction.INCOMING] for t in totals.values()),
            "outgoing_messages": sum(t[Direction.OUTGOING] for t in totals.values()),
            "first_day": min(days).isoformat() if days else None,
            "last_day": max(days).isoformat() if days else None,
            "readability_records": len(snapshot.readability_records),
        }

    @app.get("/people")
    def people(
        measure: Measure = Query(default=Measure.TOTAL),
        limit: int = Query(default=50, ge=1, le=1000),
    ) -> List[Dict[str, Any]]:
        """People ranked by a summed measure."""
        snapshot = _snapshot()
        totals = totals_from_lookup(snapshot.daily_lookup)
        ranked = top_people(snapshot.daily_lookup, measure=measure, limit=limit)
        return [
            {
                "person": person,
                "display_name": resolver.resolve(person),
                "value": value,
                "incoming": totals[person][Direction.INCOMING],
                "outgoing": totals[person][Direction.OUTGOING],
            }
            for person, value in ranked
        ]

    @app.get("/people/{person}/daily")
    def person_daily(
        person: str,
        measure: Measure = Query(default=Measure.TOTAL),
        smoothed: bool = Query(default=False),
        alpha: float = Query(default=DEFAULT_ALPHA, gt=0.0, le=1.0),
    ) -> Dict[str, Any]:
        """A person's daily series, optionally gap-filled and smoothed."""
        snapshot = _snapshot()
        _require_person(snapshot, person)
        series = daily_series(snapshot.daily_lookup, person, measure)
        points = smooth(series, alpha) if smoothed else series
        return {
            "person": person,
            "display_name": resolver.resolve(person),
            "measure": measure.value,
            "smoothed": smoothed,
            "alpha": alpha if smoothed else None,
            "points": [{"day": day.isoformat(), "value": value} for day, value in points],
        }

    @app.get("/people/{person}/hourly")
    def person_hourly(
        person: str,
        measure: Measure = Query(default=Measure.TOTAL),
    ) -> Dict[str, Any]:
        """A person's 24-hour profile."""
        snapshot = _snapshot()
        _require_person(snapshot, person)
        profile = hourly_profile(snapshot.hourly_lookup, person, measure)
        return {
            "person": person,
            "display_name": resolver.resolve(person),
            "measure": measure.value,
            "points": [{"hour": hour, "value": value} for hour, value in profile],
        }

    @app.get("/readability")
    def readability(direction: Optional[Direction] = Query(default=None)) -> List[Dict[str, Any]]:
        """Every readability record, optionally for one direction."""
        snapshot = _snapshot()
        return [
            _record_dict(record, resolver)
            for record in snapshot.readability_records
            if direction is None or record.direction is direction
        ]

    @app.get("/readability/rankings")
    def readability_rankings() -> Dict[str, Any]:
        """Top, bottom and most-prolific lists for both directions."""
        snapshot = _snapshot()
        return {
            direction.value: _rankings_dict(snapshot.rankings.for_direction(direction), resolver)
            for direction in Direction
        }

    @app.get("/resolve/{identifier:path}")
    def resolve(identifier: str) -> Dict[str, Any]:
        """Resolve one raw handle, reporting which matcher succeeded."""
        matched = resolver.match(identifier)
        return {
            "identifier": identifier,
            "display_name": resolver.resolve(identifier),
            "matched": matched is not None,
            "matcher": matched[0] if matched else None,
        }

    @app.get("/diagnostics")
    def diagnostics() -> Dict[str, Any]:
        """Load and name-resolution diagnostics."""
        snapshot = store.snapshot
        people_list = snapshot.people if snapshot is not None else []
        resolved = [p for p in people_list if resolver.match(p) is not None]
        return {
            "status": "ok" if snapshot is not None else "not_loaded",
            "generation": store.generation,
            "source_path": snapshot.source_path if snapshot is not None else None,
            "contacts": {
                "ready": resolver.is_ready,
                "identifiers": len(resolver.index),
            },
            "enrichment": {
                "people_total": len(people_list),
                "people_with_names": len(resolved),
                "name_coverage_percent": (
                    round(len(resolved) / len(people_list) * 100, 1) if people_list else 0
                ),
            },
            "unmatched_sample": [
                {"identifier": identifier, "lookups": count}
                for identifier, count in resolver.unmatched()[:20]
            ],
        }

    return app
