# app.py - Events admin API

import logging
from datetime import date as _date, datetime as _dt
from typing import Any, Dict, Optional

from flask import Flask, request, jsonify
from flask_cors import CORS
from pydantic import ValidationError

import config
from database import SessionLocal
from crud import (
    # events
    get_event_by_id,
    list_events,
    create_event,
    update_event,
    delete_event,
    bulk_delete_events,
    # recurring events
    get_recurring_event_by_id,
    list_recurring_events,
    create_recurring_event,
    update_recurring_event,
    delete_recurring_event,
    bulk_delete_recurring_events,
    DatabaseEventStore,
)
from schemas import (
    Event as EventSchema,
    EventCreate,
    EventUpdate,
    RecurringEvent as RecurringEventSchema,
    RecurringEventCreate,
    RecurringEventUpdate,
    RecurrencePreview,
    RecurrencePreviewRequest,
)
from scheduler.builder import RecurrenceBuilder
from scheduler.errors import (
    MaterializationPartialFailure,
    PatternNotActiveError,
    SchedulerError,
)
from scheduler.materializer import EventMaterializer
from scheduler.recurrence import humanize

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)


# ---------- helpers ----------
def _to_date(obj) -> Optional[_date]:
    if obj is None or obj == "":
        return None
    if isinstance(obj, _date):
        return obj
    try:
        return _date.fromisoformat(str(obj).strip()[:10])
    except ValueError:
        raise ValueError(f"Invalid date: {obj!r}") from None


def _to_bool(v) -> bool:
    return str(v).strip().lower() in ("1", "true", "yes", "on")


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return max(1, int(raw))
    except ValueError:
        raise ValueError(f"{name} must be an integer") from None


def _payload(key: str) -> Dict[str, Any]:
    """Accept both {"event": {...}} (what the dashboard sends) and a flat body."""
    data = request.get_json(silent=True) or {}
    inner = data.get(key)
    return inner if isinstance(inner, dict) else data


def _pagination(page: int, per_page: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "per_page": per_page,
        "total_pages": (total + per_page - 1) // per_page if total else 0,
    }


def _serialize_event(e) -> Dict[str, Any]:
    try:
        return EventSchema.model_validate(e).model_dump(mode="json")
    except ValidationError as err:
        logger.warning("Serialize fallback for event %s: %s", getattr(e, "id", None), err)
        return e.to_dict()


def _serialize_recurring(r) -> Dict[str, Any]:
    try:
        d = RecurringEventSchema.model_validate(r).model_dump(mode="json")
    except ValidationError as err:
        logger.warning("Serialize fallback for recurring event %s: %s", getattr(r, "id", None), err)
        d = r.to_dict()
        d["summary"] = humanize(r.rrule or "")
    return d


def _not_found(kind: str, ident: int):
    return jsonify({"error": f"{kind} {ident} not found"}), 404


# ---------- error handlers ----------
@app.errorhandler(400)
def handle_400(err):
    return jsonify({"error": "Bad Request", "details": str(err)}), 400


@app.errorhandler(ValidationError)
def handle_validation(err: ValidationError):
    details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in err.errors()]
    return jsonify({"error": "Validation failed", "details": details}), 422


@app.errorhandler(PatternNotActiveError)
def handle_not_active(err: PatternNotActiveError):
    return jsonify({"error": str(err), "status": err.status}), 409


@app.errorhandler(MaterializationPartialFailure)
def handle_partial(err: MaterializationPartialFailure):
    return jsonify({"error": "Event generation stopped early", "details": str(err.cause), "count": err.created}), 502


@app.errorhandler(SchedulerError)
def handle_scheduler_error(err: SchedulerError):
    return jsonify({"error": str(err)}), 422


@app.errorhandler(ValueError)
def handle_value_error(err: ValueError):
    return jsonify({"error": str(err)}), 422


# ---------- misc ----------
@app.get("/health")
def health():
    return jsonify({"ok": True, "service": "events", "time": _dt.now().isoformat()})


@app.get("/")
def root():
    return jsonify({"status": "running"})


# ---------- events ----------
@app.get("/admin/events")
def events_index():
    page = _int_arg("page", 1)
    per_page = _int_arg("per_page", config.PER_PAGE)
    db = SessionLocal()
    try:
        rows, total = list_events(
            db,
            page=page,
            per_page=per_page,
            upcoming=_to_bool(request.args.get("upcoming", "")),
            status=request.args.get("status") or None,
            search=request.args.get("search") or None,
        )
        return jsonify({
            "events": [_serialize_event(e) for e in rows],
            "total_count": total,
            "pagination": _pagination(page, per_page, total),
        })
    finally:
        db.close()


@app.post("/admin/events")
def events_create():
    data = EventCreate.model_validate(_payload("event"))
    db = SessionLocal()
    try:
        ev = create_event(db, **data.model_dump())
        return jsonify({"event": _serialize_event(ev)}), 201
    finally:
        db.close()


@app.get("/admin/events/<int:event_id>")
def events_show(event_id: int):
    db = SessionLocal()
    try:
        ev = get_event_by_id(db, event_id)
        if not ev:
            return _not_found("Event", event_id)
        return jsonify({"event": _serialize_event(ev)})
    finally:
        db.close()


@app.patch("/admin/events/<int:event_id>")
def events_update(event_id: int):
    changes = EventUpdate.model_validate(_payload("event")).model_dump(exclude_unset=True)
    db = SessionLocal()
    try:
        ev = update_event(db, event_id, **changes)
        if not ev:
            return _not_found("Event", event_id)
        return jsonify({"event": _serialize_event(ev)})
    finally:
        db.close()


@app.delete("/admin/events/<int:event_id>")
def events_destroy(event_id: int):
    db = SessionLocal()
    try:
        if not delete_event(db, event_id):
            return _not_found("Event", event_id)
        return ("", 204)
    finally:
        db.close()


@app.delete("/admin/events/bulk_destroy")
def events_bulk_destroy():
    ids = (request.get_json(silent=True) or {}).get("ids") or []
    db = SessionLocal()
    try:
        count = bulk_delete_events(db, ids)
        return jsonify({"message": f"Deleted {count} event(s)", "count": count})
    finally:
        db.close()


# ---------- recurring events ----------
@app.get("/admin/recurring_events")
def recurring_index():
    page = _int_arg("page", 1)
    per_page = _int_arg("per_page", config.PER_PAGE)
    db = SessionLocal()
    try:
        rows, total = list_recurring_events(
            db,
            page=page,
            per_page=per_page,
            status=request.args.get("status") or None,
            search=request.args.get("search") or None,
        )
        return jsonify({
            "recurring_events": [_serialize_recurring(r) for r in rows],
            "total_count": total,
            "pagination": _pagination(page, per_page, total),
        })
    finally:
        db.close()


@app.post("/admin/recurring_events")
def recurring_create():
    data = RecurringEventCreate.model_validate(_payload("recurring_event"))
    db = SessionLocal()
    try:
        rec = create_recurring_event(db, **data.model_dump())
        return jsonify({"recurring_event": _serialize_recurring(rec)}), 201
    finally:
        db.close()


@app.get("/admin/recurring_events/<int:recurring_id>")
def recurring_show(recurring_id: int):
    db = SessionLocal()
    try:
        rec = get_recurring_event_by_id(db, recurring_id)
        if not rec:
            return _not_found("Recurring event", recurring_id)
        return jsonify({"recurring_event": _serialize_recurring(rec)})
    finally:
        db.close()


@app.patch("/admin/recurring_events/<int:recurring_id>")
def recurring_update(recurring_id: int):
    changes = RecurringEventUpdate.model_validate(_payload("recurring_event")).model_dump(exclude_unset=True)
    db = SessionLocal()
    try:
        rec = update_recurring_event(db, recurring_id, **changes)
        if not rec:
            return _not_found("Recurring event", recurring_id)
        return jsonify({"recurring_event": _serialize_recurring(rec)})
    finally:
        db.close()


@app.delete("/admin/recurring_events/<int:recurring_id>")
def recurring_destroy(recurring_id: int):
    db = SessionLocal()
    try:
        if not delete_recurring_event(db, recurring_id):
            return _not_found("Recurring event", recurring_id)
        return ("", 204)
    finally:
        db.close()


@app.delete("/admin/recurring_events/bulk_destroy")
def recurring_bulk_destroy():
    ids = (request.get_json(silent=True) or {}).get("ids") or []
    db = SessionLocal()
    try:
        count = bulk_delete_recurring_events(db, ids)
        return jsonify({"message": f"Deleted {count} recurring event(s)", "count": count})
    finally:
        db.close()


@app.post("/admin/recurring_events/<int:recurring_id>/generate_events")
def recurring_generate(recurring_id: int):
    horizon = _to_date((request.get_json(silent=True) or {}).get("horizon"))
    db = SessionLocal()
    try:
        rec = get_recurring_event_by_id(db, recurring_id)
        if not rec:
            return _not_found("Recurring event", recurring_id)
        count = EventMaterializer(DatabaseEventStore(db)).materialize(rec, horizon)
        return jsonify({"count": count, "message": f"Generated {count} event(s)"})
    finally:
        db.close()


@app.get("/admin/recurring_events/<int:recurring_id>/preview")
def recurring_preview(recurring_id: int):
    horizon = _to_date(request.args.get("horizon"))
    db = SessionLocal()
    try:
        rec = get_recurring_event_by_id(db, recurring_id)
        if not rec:
            return _not_found("Recurring event", recurring_id)
        materializer = EventMaterializer(DatabaseEventStore(db))
        pending = materializer.pending_dates(rec, horizon)
        return jsonify({
            "horizon": materializer.resolve_horizon(horizon).isoformat(),
            "dates": [d.isoformat() for d in pending],
            "count": len(pending),
        })
    finally:
        db.close()


# ---------- recurrence builder ----------
@app.post("/admin/recurrence/preview")
def recurrence_preview():
    """
    Live preview for the recurrence form: echo the canonical rule, its label and
    the next few dates. A stored rule that no longer parses comes back as the
    default pattern plus a warning instead of an error.
    """
    req = RecurrencePreviewRequest.model_validate(request.get_json(silent=True) or {})
    builder = RecurrenceBuilder(req.dtstart, preview_count=req.count)
    if req.rrule:
        builder.load_from_existing(req.rrule, req.dtstart)
    out = RecurrencePreview(
        rrule=builder.current_rule_text(),
        dtstart=builder.start_date,
        summary=builder.summary,
        occurrences=builder.preview,
        warnings=builder.warnings,
    )
    return jsonify(out.model_dump(mode="json"))


if __name__ == "__main__":
    app.run(debug=True)
