import datetime as dt
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from ..access import AccessContext, get_store, require_admin, require_any_role
from ..constants import Collections
from ..errors import ValidationError
from ..schemas import CustomReportIn, ok
from ..services import aggregation as agg
from ..services.dashboard import (
    compose_comparison,
    compose_custom_report,
    compose_dashboard,
    compose_financial,
    compose_performance,
)
from ..services.dates import DEFAULT_PERIOD, resolve_range
from ..store import DocumentStore

router = APIRouter()

Period = Literal["daily", "weekly", "monthly", "yearly"]


def _check_window(start, end) -> None:
    if start and end and start > end:
        raise ValidationError("startDate must not be after endDate")


@router.get("/dashboard")
def dashboard(
    farm: Optional[str] = None,
    period: Period = DEFAULT_PERIOD,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    stats = compose_dashboard(store, ctx.scope_farm(farm), ctx.is_admin, period)
    return ok({"dashboardStats": stats})


@router.get("/production")
def production(
    farm: Optional[str] = None,
    period: Period = DEFAULT_PERIOD,
    start_date: Optional[dt.date] = Query(None, alias="startDate"),
    end_date: Optional[dt.date] = Query(None, alias="endDate"),
    kind: Literal["all", "milk", "eggs"] = Query("all", alias="type"),
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    _check_window(start_date, end_date)
    farm = ctx.scope_farm(farm)
    filters = {"farmLocation": farm}
    start, end = resolve_range(period, start_date, end_date)
    result = {"period": {"start": start.isoformat(), "end": end.isoformat()}}
    if kind in ("all", "milk"):
        milk = store.range_query(Collections.MILK_RECORDS, "date", start, end, filters)
        result["milk"] = agg.detailed_milk_stats(milk)
    if kind in ("all", "eggs"):
        eggs = store.range_query(Collections.EGG_RECORDS, "date", start, end, filters)
        result["eggs"] = agg.detailed_egg_stats(eggs)
    return ok({"productionStats": result})


@router.get("/financial")
def financial(
    farm: Optional[str] = None,
    period: Period = DEFAULT_PERIOD,
    start_date: Optional[dt.date] = Query(None, alias="startDate"),
    end_date: Optional[dt.date] = Query(None, alias="endDate"),
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    _check_window(start_date, end_date)
    start, end = resolve_range(period, start_date, end_date)
    stats = compose_financial(store, farm or None, start, end)
    stats["period"] = {"start": start.isoformat(), "end": end.isoformat()}
    return ok({"financialStats": stats})


@router.get("/performance")
def performance(
    farm: Optional[str] = None,
    period: Period = DEFAULT_PERIOD,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    return ok({"performanceStats": compose_performance(store, ctx.scope_farm(farm), period)})


@router.get("/comparison")
def comparison(
    period1_start: dt.date = Query(..., alias="period1Start"),
    period1_end: dt.date = Query(..., alias="period1End"),
    period2_start: dt.date = Query(..., alias="period2Start"),
    period2_end: dt.date = Query(..., alias="period2End"),
    farm: Optional[str] = None,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    _check_window(period1_start, period1_end)
    _check_window(period2_start, period2_end)
    result = compose_comparison(
        store,
        ctx.scope_farm(farm),
        (period1_start, period1_end),
        (period2_start, period2_end),
    )
    return ok({"comparison": result})


@router.post("/custom-report")
def custom_report(
    payload: CustomReportIn,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    _check_window(payload.start_date, payload.end_date)
    report = compose_custom_report(
        store,
        ctx.scope_farm(payload.farm_location),
        ctx.is_admin,
        payload.start_date,
        payload.end_date,
        payload.include_types,
    )
    return ok({"customReport": report})
