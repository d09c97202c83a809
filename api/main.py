from __future__ import annotations

import logging
import math
from dataclasses import asdict
from typing import Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, File, Header, Query, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
import uvicorn

from api.schemas import FilterStateModel, LoginRequest
from salesdash.config import configure_logging, get_settings
from salesdash.data import read_records_file
from salesdash.errors import AuthenticationError, IngestionError, SalesDashError
from salesdash.export import build_summary_csv, summary_filename
from salesdash.filters import FilterState, default_filters, filter_data, filter_options, normalize_filters
from salesdash.metrics import (
    ADMIN_STAT_FIELDS,
    PAGE_SIZE,
    aggregate_by_field,
    annual_totals,
    compute_dashboard,
    get_trend_data,
    paginate,
    stat_fields_for,
)
from salesdash.session import SessionRegistry, UserSession, authenticate
from salesdash.store import DatasetSnapshot, current_snapshot, get_store


settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(title="Sales Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)
sessions = SessionRegistry(ttl_seconds=settings.session_ttl_seconds)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ForbiddenError(SalesDashError):
    pass


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _handle(exc: Exception, what: str) -> JSONResponse:
    if isinstance(exc, AuthenticationError):
        return _error(401, exc)
    if isinstance(exc, ForbiddenError):
        return _error(403, exc)
    if isinstance(exc, IngestionError):
        logger.warning("%s rejected: %s", what, exc)
        return _error(400, exc)
    if isinstance(exc, SalesDashError):
        return _error(400, exc)
    logger.exception("%s failed", what)
    return _error(500, exc)


def _session(token: Optional[str]) -> UserSession:
    session = sessions.get(token)
    if session is None:
        raise AuthenticationError("Not logged in or session expired.")
    return session


def _admin(token: Optional[str]) -> UserSession:
    session = _session(token)
    if not session.is_admin:
        raise ForbiddenError("Only administrators can do this.")
    return session


def _filters_from_model(model: FilterStateModel, snapshot: DatasetSnapshot) -> FilterState:
    return normalize_filters(model.model_dump(), available_years=snapshot.years)


def _snapshot_meta(snapshot: DatasetSnapshot) -> dict:
    return {
        "records": int(len(snapshot.processed)),
        "years": snapshot.years,
        "generation": snapshot.generation,
        "source": snapshot.source,
        "is_custom": snapshot.is_custom,
    }


@app.post("/login")
def login(body: LoginRequest):
    try:
        session = authenticate(body.username, body.password, settings)
        token = sessions.issue(session)
        snapshot = current_snapshot()
        filters = default_filters(snapshot.years, department=session.department_filter)
        logger.info("Login as %s (%s)", session.username, session.role)
        return _json(
            {
                "token": token,
                "session": {"role": session.role, "username": session.username, "department": session.department_filter},
                "filters": asdict(filters),
            }
        )
    except Exception as exc:
        return _handle(exc, "login")


@app.post("/logout")
def logout(x_session_token: Optional[str] = Header(default=None)):
    sessions.revoke(x_session_token)
    return _json({"ok": True})


@app.get("/meta/dataset")
def meta_dataset(x_session_token: Optional[str] = Header(default=None)):
    try:
        _session(x_session_token)
        return _json(_snapshot_meta(current_snapshot()))
    except Exception as exc:
        return _handle(exc, "meta_dataset")


@app.get("/meta/years")
def meta_years(x_session_token: Optional[str] = Header(default=None)):
    try:
        _session(x_session_token)
        return _json({"years": current_snapshot().years})
    except Exception as exc:
        return _handle(exc, "meta_years")


@app.get("/meta/options")
def meta_options(x_session_token: Optional[str] = Header(default=None)):
    try:
        session = _session(x_session_token)
        snapshot = current_snapshot()
        return _json(filter_options(snapshot.processed, session.department_filter))
    except Exception as exc:
        return _handle(exc, "meta_options")


@app.post("/dashboard")
def dashboard(filters: FilterStateModel, x_session_token: Optional[str] = Header(default=None)):
    try:
        session = _session(x_session_token)
        snapshot = current_snapshot()
        f = _filters_from_model(filters, snapshot)
        payload = compute_dashboard(f, session, snapshot.processed)
        payload["dataset"] = _snapshot_meta(snapshot)
        return _json(payload)
    except Exception as exc:
        return _handle(exc, "dashboard")


@app.post("/ranking/{field}")
def ranking(
    field: str,
    filters: FilterStateModel,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=PAGE_SIZE, ge=1, le=200),
    x_session_token: Optional[str] = Header(default=None),
):
    try:
        session = _session(x_session_token)
        if field not in stat_fields_for(session):
            raise SalesDashError(f"Unknown ranking field: {field}")
        snapshot = current_snapshot()
        f = _filters_from_model(filters, snapshot)
        filtered = filter_data(snapshot.processed, f, session.department_filter)
        result = paginate(aggregate_by_field(filtered, field), page=page, page_size=page_size)
        return _json({"field": field, **result})
    except Exception as exc:
        return _handle(exc, "ranking")


@app.post("/trend")
def trend(filters: FilterStateModel, x_session_token: Optional[str] = Header(default=None)):
    try:
        session = _session(x_session_token)
        snapshot = current_snapshot()
        f = _filters_from_model(filters, snapshot)
        filtered = filter_data(snapshot.processed, f, session.department_filter)
        points, years = get_trend_data(filtered)
        return _json(
            {
                "points": [{"month": p.month, "label": p.label, "values": p.values} for p in points],
                "years": years,
                "annual_totals": annual_totals(filtered),
            }
        )
    except Exception as exc:
        return _handle(exc, "trend")


@app.post("/import")
def import_file(file: UploadFile = File(...), x_session_token: Optional[str] = Header(default=None)):
    try:
        _admin(x_session_token)
        raw = read_records_file(file.file.read(), file.filename or "")
        snapshot = get_store().replace(raw, source=file.filename or "import")
        return _json(_snapshot_meta(snapshot))
    except Exception as exc:
        return _handle(exc, "import")


@app.post("/reset")
def reset(x_session_token: Optional[str] = Header(default=None)):
    try:
        _admin(x_session_token)
        snapshot = get_store().reset(settings)
        return _json(_snapshot_meta(snapshot))
    except Exception as exc:
        return _handle(exc, "reset")


@app.post("/export/summary")
def export_summary(filters: FilterStateModel, x_session_token: Optional[str] = Header(default=None)):
    try:
        session = _admin(x_session_token)
        snapshot = current_snapshot()
        f = _filters_from_model(filters, snapshot)
        filtered = filter_data(snapshot.processed, f, session.department_filter)
        stats = {name: aggregate_by_field(filtered, name) for name in ADMIN_STAT_FIELDS}
        csv_bytes = build_summary_csv(stats).encode("utf-8")
    except Exception as exc:
        return _handle(exc, "export_summary")
    return Response(
        content=csv_bytes,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={summary_filename()}"},
    )


def main() -> None:
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
