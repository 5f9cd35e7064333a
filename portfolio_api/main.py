from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Literal, Optional, Tuple

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from portfolio.config import FULL_YEAR_WINDOW, YEAR_WINDOWS, Settings, load_settings
from portfolio.data import DatasetCache, prepare_context
from portfolio.facets import Facet
from portfolio.filters import DashboardFilters, normalize_filters
from portfolio.generations import GenerationRegistry, GenerationToken, StaleRequestError
from portfolio.kpis import Measure, PeriodRollup, rollup_by_month, rollup_by_quarter, rollup_by_year
from portfolio.breakdowns import facet_breakdown
from portfolio.metrics_breakdowns import compute_breakdown, compute_clients
from portfolio.metrics_debug import compute_debug
from portfolio.metrics_overview import compute_options, compute_overview
from portfolio.metrics_periods import compute_monthly, compute_quarterly, compute_yearly, selected_year
from portfolio.roles import scope
from portfolio.timebuckets import TimeBucketer
from portfolio_api.schemas import DashboardFiltersModel, MetaOptionsResponse


logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    cache: Optional[DatasetCache] = None,
    registry: Optional[GenerationRegistry] = None,
) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="Portfolio Dashboard API", version="0.1.0")
    app.state.settings = settings
    app.state.dataset_cache = cache or DatasetCache()
    app.state.generations = registry or GenerationRegistry()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_routes(app)
    return app


# ---------------- Dependencies ----------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_cache(request: Request) -> DatasetCache:
    return request.app.state.dataset_cache


def get_registry(request: Request) -> GenerationRegistry:
    return request.app.state.generations


# ---------------- Helpers ----------------
def _filters_from_model(model: DashboardFiltersModel, settings: Settings) -> DashboardFilters:
    raw = model.model_dump(by_alias=True)
    return normalize_filters(raw, default_top_n=settings.default_top_n)


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


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _stale(exc: StaleRequestError) -> JSONResponse:
    logger.info("dropping superseded request: %s", exc)
    return JSONResponse(
        status_code=409,
        content={"error": str(exc), "type": type(exc).__name__, "generation": exc.generation, "latest": exc.latest},
    )


def _context(
    model: DashboardFiltersModel,
    settings: Settings,
    cache: DatasetCache,
    registry: GenerationRegistry,
) -> Tuple[DashboardFilters, Dict[str, Any], GenerationToken]:
    token = registry.begin(model.channel, model.generation)
    dataset = cache.get(settings.data_path)
    view = dataset.view(scope(model.roles))
    token.raise_if_stale()
    f = _filters_from_model(model, settings)
    ctx = prepare_context(f, view, TimeBucketer(FULL_YEAR_WINDOW))
    ctx["roles"] = list(model.roles)
    token.raise_if_stale()
    return f, ctx, token


def _display_rows(rows: pd.DataFrame) -> pd.DataFrame:
    return rows[[c for c in rows.columns if not c.startswith("k_")]]


def _export_frame(page: str, f: DashboardFilters, ctx: Dict[str, Any]) -> pd.DataFrame:
    filtered: pd.DataFrame = ctx.get("filtered_rows", pd.DataFrame())
    bucketer: TimeBucketer = ctx["bucketer"]
    rollup: Optional[PeriodRollup] = None
    if page == "overview":
        return _display_rows(filtered)
    if page == "quarterly":
        rollup = rollup_by_quarter(filtered, bucketer, year=selected_year(f))
    elif page == "monthly":
        rollup = rollup_by_month(filtered, bucketer, year=selected_year(f))
    elif page == "yearly":
        rollup = rollup_by_year(filtered, TimeBucketer(YEAR_WINDOWS["reporting"]))
    elif page == "clients":
        breakdown = facet_breakdown(filtered, f.client_type, top_n=f.top_n)
        return pd.DataFrame([line.to_dict() for line in breakdown.lines])
    if rollup is None:
        return pd.DataFrame()
    return rollup.to_frame()


# ---------------- Routes ----------------
def _register_routes(app: FastAPI) -> None:
    @app.get("/meta/options")
    def meta_options(
        roles: List[str] = Query(default=[]),
        classes: List[str] = Query(default=[]),
        settings: Settings = Depends(get_settings),
        cache: DatasetCache = Depends(get_cache),
    ):
        try:
            view = cache.get(settings.data_path).view(scope(roles))
            f = normalize_filters({Facet.CLASS.value: classes}, default_top_n=settings.default_top_n)
            body = MetaOptionsResponse(options=compute_options(view.rows, f), row_count=int(len(view.rows)))
            return _json(body.model_dump())
        except Exception as exc:
            logger.exception("meta_options failed")
            return _error(exc)

    @app.post("/overview")
    def overview(
        filters: DashboardFiltersModel,
        settings: Settings = Depends(get_settings),
        cache: DatasetCache = Depends(get_cache),
        registry: GenerationRegistry = Depends(get_registry),
    ):
        try:
            f, ctx, token = _context(filters, settings, cache, registry)
            payload = compute_overview(f, ctx)
            token.raise_if_stale()
            return _json(payload)
        except StaleRequestError as exc:
            return _stale(exc)
        except Exception as exc:
            logger.exception("overview failed")
            return _error(exc)

    @app.post("/quarterly")
    def quarterly(
        filters: DashboardFiltersModel,
        year: Optional[int] = Query(default=None),
        settings: Settings = Depends(get_settings),
        cache: DatasetCache = Depends(get_cache),
        registry: GenerationRegistry = Depends(get_registry),
    ):
        try:
            f, ctx, token = _context(filters, settings, cache, registry)
            payload = compute_quarterly(f, ctx, year=year)
            token.raise_if_stale()
            return _json(payload)
        except StaleRequestError as exc:
            return _stale(exc)
        except Exception as exc:
            logger.exception("quarterly failed")
            return _error(exc)

    @app.post("/monthly")
    def monthly(
        filters: DashboardFiltersModel,
        year: Optional[int] = Query(default=None),
        settings: Settings = Depends(get_settings),
        cache: DatasetCache = Depends(get_cache),
        registry: GenerationRegistry = Depends(get_registry),
    ):
        try:
            f, ctx, token = _context(filters, settings, cache, registry)
            payload = compute_monthly(f, ctx, year=year)
            token.raise_if_stale()
            return _json(payload)
        except StaleRequestError as exc:
            return _stale(exc)
        except Exception as exc:
            logger.exception("monthly failed")
            return _error(exc)

    @app.post("/yearly")
    def yearly(
        filters: DashboardFiltersModel,
        window: Literal["full", "reporting"] = Query(default="reporting"),
        settings: Settings = Depends(get_settings),
        cache: DatasetCache = Depends(get_cache),
        registry: GenerationRegistry = Depends(get_registry),
    ):
        try:
            f, ctx, token = _context(filters, settings, cache, registry)
            payload = compute_yearly(f, ctx, window=YEAR_WINDOWS[window])
            token.raise_if_stale()
            return _json(payload)
        except StaleRequestError as exc:
            return _stale(exc)
        except Exception as exc:
            logger.exception("yearly failed")
            return _error(exc)

    @app.post("/clients")
    def clients(
        filters: DashboardFiltersModel,
        sort_by: Measure = Query(default=Measure.PREMIUM),
        settings: Settings = Depends(get_settings),
        cache: DatasetCache = Depends(get_cache),
        registry: GenerationRegistry = Depends(get_registry),
    ):
        try:
            f, ctx, token = _context(filters, settings, cache, registry)
            payload = compute_clients(f, ctx, sort_by=sort_by)
            token.raise_if_stale()
            return _json(payload)
        except StaleRequestError as exc:
            return _stale(exc)
        except Exception as exc:
            logger.exception("clients failed")
            return _error(exc)

    @app.post("/breakdown/{facet}")
    def breakdown(
        facet: Facet,
        filters: DashboardFiltersModel,
        sort_by: Measure = Query(default=Measure.PREMIUM),
        top_n: Optional[int] = Query(default=None, ge=1, le=200),
        settings: Settings = Depends(get_settings),
        cache: DatasetCache = Depends(get_cache),
        registry: GenerationRegistry = Depends(get_registry),
    ):
        try:
            f, ctx, token = _context(filters, settings, cache, registry)
            payload = compute_breakdown(f, ctx, facet, sort_by=sort_by, top_n=top_n)
            token.raise_if_stale()
            return _json(payload)
        except StaleRequestError as exc:
            return _stale(exc)
        except Exception as exc:
            logger.exception("breakdown failed")
            return _error(exc)

    @app.post("/debug")
    def debug(
        filters: DashboardFiltersModel,
        settings: Settings = Depends(get_settings),
        cache: DatasetCache = Depends(get_cache),
        registry: GenerationRegistry = Depends(get_registry),
    ):
        try:
            f, ctx, _ = _context(filters, settings, cache, registry)
            return _json(compute_debug(f, ctx))
        except StaleRequestError as exc:
            return _stale(exc)
        except Exception as exc:
            logger.exception("debug failed")
            return _error(exc)

    @app.post("/export/{page}")
    def export_page(
        page: str,
        filters: DashboardFiltersModel,
        settings: Settings = Depends(get_settings),
        cache: DatasetCache = Depends(get_cache),
        registry: GenerationRegistry = Depends(get_registry),
    ):
        try:
            f, ctx, _ = _context(filters, settings, cache, registry)
        except StaleRequestError as exc:
            return _stale(exc)
        export_df = _export_frame(page, f, ctx)
        csv_bytes = export_df.to_csv(index=False).encode("utf-8")
        return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={page}.csv"})


app = create_app()
