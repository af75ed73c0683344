"""FastAPI application exposing timers, idle state and time records."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict

from .config import DayBoundaryConfig, TrackerSettings
from .day_boundary import day_window, logical_today
from .db import InvalidRecordError, RecordNotFoundError
from .models import TimeRecord
from .normalization import DEFAULT_CATEGORY, normalize_color, normalize_label
from .reporting import records_to_csv
from .service import TimeAccounting

logger = logging.getLogger(__name__)


class RecordCreate(BaseModel):
    entity_id: Optional[str] = None
    entity_label: str
    category_label: str = DEFAULT_CATEGORY
    category_color: Optional[str] = None
    activity_type: str = ""
    start_time: datetime
    end_time: datetime
    # Accepted for compatibility; the stored duration is always recomputed.
    duration_seconds: Optional[int] = None

    model_config = ConfigDict(extra="forbid")


class RecordUpdate(BaseModel):
    entity_label: Optional[str] = None
    category_label: Optional[str] = None
    category_color: Optional[str] = None
    activity_type: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")


class EntityMetaPayload(BaseModel):
    label: Optional[str] = None
    category_label: Optional[str] = None
    category_color: Optional[str] = None
    activity_type: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class VisibilityPayload(BaseModel):
    hidden: bool

    model_config = ConfigDict(extra="forbid")


class ActivityPayload(BaseModel):
    kind: str = "pointermove"

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    accounting: Optional[TimeAccounting] = None,
    db_path: Optional[Path] = None,
    state_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    background: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved = accounting or TimeAccounting.open(
        db_path=db_path, state_path=state_path, settings=settings or TrackerSettings()
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if background:
            resolved.start_background()
        try:
            yield
        finally:
            resolved.shutdown()

    app = FastAPI(title="Time Ledger", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.accounting = resolved

    def day_params(
        acct: TimeAccounting,
        date_value: Optional[str],
        tz: Optional[int],
        start_hour: Optional[int],
        end_hour: Optional[int],
    ) -> tuple[date, DayBoundaryConfig, int]:
        config = DayBoundaryConfig(
            start_hour=acct.day_config.start_hour if start_hour is None else start_hour,
            end_hour_extension=(
                acct.day_config.end_hour_extension if end_hour is None else end_hour
            ),
        )
        offset = acct.tz_offset_minutes if tz is None else tz
        if date_value:
            day = _parse_date(date_value)
        else:
            day = logical_today(acct.clock.now(), config, offset)
        return day, config, offset

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        return {
            "now": acct.clock.now().isoformat(),
            "is_idle": acct.is_idle,
            "active_timers": len(acct.timers.active_entities()),
            "idle_timeout_ms": acct.idle.timeout_ms,
            "day_config": {
                "start_hour": acct.day_config.start_hour,
                "end_hour_extension": acct.day_config.end_hour_extension,
            },
        }

    @app.get("/api/time-records")
    def list_records(
        request: Request,
        date_value: Optional[str] = Query(
            default=None, alias="date", description="Logical day in YYYY-MM-DD format."
        ),
        tz: Optional[int] = Query(default=None, description="Minutes added to local time to reach UTC."),
        start_hour: Optional[int] = Query(default=None, alias="startHour"),
        end_hour: Optional[int] = Query(
            default=None, alias="endHour", description="Hours past the next midnight the day still runs."
        ),
        fmt: str = Query(default="json", alias="format", pattern="^(json|csv)$"),
    ):
        acct: TimeAccounting = request.app.state.accounting
        day, config, offset = day_params(acct, date_value, tz, start_hour, end_hour)
        records = acct.records_for(day, config, offset)
        if fmt == "csv":
            return PlainTextResponse(records_to_csv(records, offset), media_type="text/csv")
        return {
            "date": day.isoformat(),
            "records": [record.to_dict() for record in records],
        }

    @app.post("/api/time-records", status_code=201)
    def create_record(payload: RecordCreate, request: Request) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        record = TimeRecord(
            entity_id=payload.entity_id,
            entity_label=normalize_label(payload.entity_label, "Untitled"),
            category_label=normalize_label(payload.category_label, DEFAULT_CATEGORY),
            category_color=normalize_color(payload.category_color),
            activity_type=payload.activity_type.strip(),
            start_time=payload.start_time,
            end_time=payload.end_time,
        )
        try:
            stored = acct.records.create(record)
        except InvalidRecordError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        logger.info("Created record %s for %s.", stored.id, stored.entity_label)
        return stored.to_dict()

    @app.patch("/api/time-records/{record_id}")
    def update_record(record_id: int, payload: RecordUpdate, request: Request) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        updates = payload.model_dump(exclude_unset=True)
        if "category_color" in updates:
            updates["category_color"] = normalize_color(updates["category_color"])
        try:
            updated = acct.records.update(record_id, **updates)
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Record not found") from exc
        except InvalidRecordError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return updated.to_dict()

    @app.delete("/api/time-records/{record_id}")
    def delete_record(record_id: int, request: Request) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        try:
            acct.records.delete(record_id)
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Record not found") from exc
        return {"success": True}

    @app.get("/api/timers")
    def list_timers(request: Request) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        return {"timers": acct.timers.snapshot()}

    @app.put("/api/timers/{entity_id}/meta")
    def register_meta(
        entity_id: str, payload: EntityMetaPayload, request: Request
    ) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        acct.register_entity(entity_id, **payload.model_dump())
        return acct.timers.meta_for(entity_id).to_dict()

    @app.post("/api/timers/{entity_id}/{action}")
    def timer_action(entity_id: str, action: str, request: Request) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        result: Dict[str, Any] = {"entity_id": entity_id, "action": action}
        if action == "start":
            acct.start(entity_id)
        elif action == "pause":
            acct.pause(entity_id)
        elif action == "resume":
            acct.resume(entity_id)
        elif action == "stop":
            result["elapsed_seconds"] = acct.stop(entity_id)
        elif action == "reset":
            acct.reset(entity_id)
        else:
            raise HTTPException(status_code=404, detail=f"Unknown timer action '{action}'")
        phase = acct.timers.phase(entity_id)
        result["phase"] = phase.value if phase else "stopped"
        result.setdefault("elapsed_seconds", acct.elapsed_seconds(entity_id))
        return result

    @app.get("/api/totals")
    def totals(
        request: Request,
        date_value: Optional[str] = Query(default=None, alias="date"),
        tz: Optional[int] = Query(default=None),
        start_hour: Optional[int] = Query(default=None, alias="startHour"),
        end_hour: Optional[int] = Query(default=None, alias="endHour"),
    ) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        day, config, offset = day_params(acct, date_value, tz, start_hour, end_hour)
        window = day_window(day, config, offset)
        return {
            "date": day.isoformat(),
            "window": {"start": window.start.isoformat(), "end": window.end.isoformat()},
            "durable_seconds": acct.aggregator.durable_seconds(day, config, offset),
            "total_seconds": acct.total_for(day, config, offset),
        }

    @app.get("/api/summary")
    def summary(
        request: Request,
        date_value: Optional[str] = Query(default=None, alias="date"),
        tz: Optional[int] = Query(default=None),
        start_hour: Optional[int] = Query(default=None, alias="startHour"),
        end_hour: Optional[int] = Query(default=None, alias="endHour"),
    ) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        day, config, offset = day_params(acct, date_value, tz, start_hour, end_hour)
        return acct.summary_for(day, config, offset).to_dict()

    @app.get("/api/idle")
    def idle_state(request: Request) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        return _idle_payload(acct)

    @app.post("/api/idle/activity")
    def idle_activity(payload: ActivityPayload, request: Request) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        accepted = acct.idle.record_activity(payload.kind)
        return {**_idle_payload(acct), "accepted": accepted}

    @app.post("/api/idle/visibility")
    def idle_visibility(payload: VisibilityPayload, request: Request) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        if payload.hidden:
            acct.idle.page_hidden()
        else:
            acct.idle.page_visible()
        return _idle_payload(acct)

    @app.post("/api/idle/reset")
    def idle_reset(request: Request) -> Dict[str, Any]:
        acct: TimeAccounting = request.app.state.accounting
        acct.reset_idle()
        return _idle_payload(acct)

    return app


def _idle_payload(acct: TimeAccounting) -> Dict[str, Any]:
    # The idle endpoints run the countdown so a host without a watcher still flips.
    is_idle = acct.check_idle()
    session = acct.idle.session
    return {
        "is_idle": is_idle,
        "last_activity_at": session.last_activity_at.isoformat(),
        "hidden_at": session.hidden_at.isoformat() if session.hidden_at else None,
        "remaining_ms": acct.idle.remaining_ms(),
    }


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc
