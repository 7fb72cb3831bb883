"""Fan-in of livestock counts, production stats, trends and alerts."""
from datetime import date
from typing import Dict, Iterable, Optional

from ..constants import Collections, TOP_PERFORMERS_LIMIT
from ..store import DocumentStore
from . import aggregation as agg
from .alerts import generate_alerts
from .dates import date_range, utcnow


def _scope(farm: Optional[str]) -> Dict:
    return {"farmLocation": farm} if farm else {}


def _living_birds(batches: Iterable[dict]) -> int:
    return sum(int(b.get("currentCount") or 0) for b in batches)


def compose_dashboard(store: DocumentStore, farm: Optional[str], is_admin: bool, period: str = "monthly") -> dict:
    filters = _scope(farm)
    start, end = date_range(period)
    cows = store.list(Collections.COWS, filters)
    batches = store.list(Collections.CHICKEN_BATCHES, {**filters, "isActive": True})
    milk = store.range_query(Collections.MILK_RECORDS, "date", start, end, filters)
    eggs = store.range_query(Collections.EGG_RECORDS, "date", start, end, filters)
    feed = store.range_query(Collections.FEED_RECORDS, "date", start, end, filters)
    health = (
        store.range_query(Collections.HEALTH_RECORDS, "dateOfIllness", start, end, filters)
        if is_admin else None
    )
    return {
        "livestock": {
            "totalCows": len(cows),
            "activeCows": sum(1 for c in cows if c.get("isActive")),
            "totalChickenBatches": len(batches),
            "totalChickens": _living_birds(batches),
        },
        "production": {
            "milk": agg.production_stats(milk),
            "eggs": agg.production_stats(eggs),
        },
        "feed": agg.feed_summary(feed),
        "health": agg.health_summary(health) if health is not None else None,
        "trends": {
            "milkTrend": agg.trend(milk),
            "eggTrend": agg.trend(eggs),
        },
        "alerts": generate_alerts(store, filters, is_admin),
        "period": {"type": period, "start": start.isoformat(), "end": end.isoformat()},
    }


def compose_performance(store: DocumentStore, farm: Optional[str], period: str = "monthly") -> dict:
    filters = _scope(farm)
    start, end = date_range(period)
    cows = store.list(Collections.COWS, {**filters, "isActive": True})
    milk = store.range_query(Collections.MILK_RECORDS, "date", start, end, filters)
    batches = store.list(Collections.CHICKEN_BATCHES, {**filters, "isActive": True})
    eggs = store.range_query(Collections.EGG_RECORDS, "date", start, end, filters)

    cow_rows = agg.cow_performance(cows, milk)
    batch_rows = agg.batch_performance(batches, eggs)
    return {
        "cowPerformance": cow_rows,
        "chickenPerformance": batch_rows,
        "topPerformers": {
            "cows": agg.top_n(cow_rows, "totalMilk", TOP_PERFORMERS_LIMIT),
            "chickenBatches": agg.top_n(batch_rows, "totalEggs", TOP_PERFORMERS_LIMIT),
        },
        "productivity": {
            "milkProductivityPerCow": agg.ratio(agg.total(milk), len(cows)),
            "eggProductivityPerBatch": agg.ratio(agg.total(eggs), len(batches)),
        },
    }


def compose_comparison(
    store: DocumentStore,
    farm: Optional[str],
    period1: tuple,
    period2: tuple,
) -> dict:
    filters = _scope(farm)
    result = {}
    for name, collection in (("milk", Collections.MILK_RECORDS), ("eggs", Collections.EGG_RECORDS)):
        first = store.range_query(collection, "date", period1[0], period1[1], filters)
        second = store.range_query(collection, "date", period2[0], period2[1], filters)
        result[name] = {
            "period1": agg.production_stats(first),
            "period2": agg.production_stats(second),
            "change": agg.change_percent(agg.total(first), agg.total(second)),
        }
    return result


def compose_custom_report(
    store: DocumentStore,
    farm: Optional[str],
    is_admin: bool,
    start_date: date,
    end_date: date,
    include_types: Iterable[str],
) -> dict:
    filters = _scope(farm)
    include = set(include_types)
    report = {
        "reportGenerated": utcnow().isoformat(),
        "period": {"startDate": start_date.isoformat(), "endDate": end_date.isoformat()},
        "farmLocation": farm or "All Farms",
    }

    if "livestock" in include:
        cows = store.list(Collections.COWS, filters)
        batches = store.list(Collections.CHICKEN_BATCHES, filters)
        report["livestock"] = {
            "cows": len(cows),
            "activeCows": sum(1 for c in cows if c.get("isActive")),
            "chickenBatches": len(batches),
            "totalChickens": _living_birds(batches),
            "cowBreeds": agg.count_by_key(cows, "breed"),
            "chickenBreeds": agg.count_by_key(batches, "breed"),
        }

    if "production" in include:
        milk = store.range_query(Collections.MILK_RECORDS, "date", start_date, end_date, filters)
        eggs = store.range_query(Collections.EGG_RECORDS, "date", start_date, end_date, filters)
        report["production"] = {
            "milk": agg.detailed_milk_stats(milk),
            "eggs": agg.detailed_egg_stats(eggs),
        }

    if "health" in include and is_admin:
        health = store.range_query(Collections.HEALTH_RECORDS, "dateOfIllness", start_date, end_date, filters)
        report["health"] = agg.detailed_health_stats(health)

    if "feed" in include:
        feed = store.range_query(Collections.FEED_RECORDS, "date", start_date, end_date, filters)
        report["feed"] = agg.detailed_feed_stats(feed)

    if "financial" in include and is_admin:
        report["financial"] = compose_financial(store, farm, start_date, end_date)

    return report


def compose_financial(store: DocumentStore, farm: Optional[str], start_date, end_date) -> dict:
    filters = _scope(farm)
    sales = store.range_query(Collections.MILK_SALES, "date", start_date, end_date, filters)
    # Feed costs are inventory purchases for the farm, not bounded by the window.
    inventory = store.list(Collections.FEED_INVENTORY, filters)
    health = store.range_query(Collections.HEALTH_RECORDS, "dateOfIllness", start_date, end_date, filters)
    return agg.financial_rollup(sales, inventory, health)
