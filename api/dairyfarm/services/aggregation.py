"""Pure statistics helpers over lists of already-fetched record dicts.

Nothing here touches the store. Callers fetch with equality/range queries and
hand the lists in; every function returns plain JSON-ready values.
"""
from collections import OrderedDict
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Iterable, List, Optional

from ..constants import MILKING_SESSIONS, TREND_THRESHOLD_PERCENT
from .dates import as_date, as_datetime

UNKNOWN = "Unknown"
TWO_PLACES = Decimal("0.01")
WHOLE = Decimal("1")


def _decimal(value) -> Decimal:
    if value is None or value == "":
        return Decimal(0)
    if isinstance(value, bool):
        return Decimal(int(value))
    return Decimal(str(value))


def _number(value: Decimal):
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def round_half_up(value, places: int = 2) -> float:
    step = WHOLE if places == 0 else Decimal(1).scaleb(-places)
    return float(_decimal(value).quantize(step, rounding=ROUND_HALF_UP))


def ratio(numerator, denominator, places: int = 2) -> float:
    """Division rounded half away from zero; 0 when the denominator is 0."""
    den = _decimal(denominator)
    if den == 0:
        return 0
    quotient = _decimal(numerator) / den
    return float(quotient.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP))


def percent(numerator, denominator) -> int:
    den = _decimal(denominator)
    if den == 0:
        return 0
    value = _decimal(numerator) * 100 / den
    return int(value.quantize(WHOLE, rounding=ROUND_HALF_UP))


def total(records: Iterable[dict], field: str = "quantity"):
    return _number(sum((_decimal(r.get(field)) for r in records), Decimal(0)))


# ---------- bucketing ----------

def day_key(value) -> Optional[str]:
    d = as_date(value)
    return d.isoformat() if d else None


def week_key(value) -> Optional[str]:
    d = as_date(value)
    if d is None:
        return None
    iso_year, iso_week, _ = d.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def month_key(value) -> Optional[str]:
    d = as_date(value)
    return f"{d.year:04d}-{d.month:02d}" if d else None


def bucket_totals(
    records: Iterable[dict],
    key_fn: Callable,
    date_field: str = "date",
    value_field: str = "quantity",
) -> Dict[str, object]:
    sums: Dict[str, Decimal] = {}
    for record in records:
        key = key_fn(record.get(date_field))
        if key is None:
            continue
        sums[key] = sums.get(key, Decimal(0)) + _decimal(record.get(value_field))
    return OrderedDict((k, _number(sums[k])) for k in sorted(sums))


def daily_totals(records, date_field="date", value_field="quantity"):
    return bucket_totals(records, day_key, date_field, value_field)


def weekly_totals(records, date_field="date", value_field="quantity"):
    return bucket_totals(records, week_key, date_field, value_field)


def monthly_totals(records, date_field="date", value_field="quantity"):
    return bucket_totals(records, month_key, date_field, value_field)


def period_summary(buckets: Dict[str, object]) -> dict:
    values = list(buckets.values())
    if not values:
        return {"averageDaily": 0, "maxDaily": 0, "minDaily": 0, "totalDays": 0}
    return {
        "averageDaily": ratio(sum(_decimal(v) for v in values), len(values)),
        "maxDaily": max(values),
        "minDaily": min(values),
        "totalDays": len(values),
    }


# ---------- grouping ----------

def _group_key(record: dict, key) -> str:
    value = key(record) if callable(key) else record.get(key)
    if value is None or value == "":
        return UNKNOWN
    return str(value)


def count_by_key(records: Iterable[dict], key) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for record in records:
        k = _group_key(record, key)
        counts[k] = counts.get(k, 0) + 1
    return counts


def breakdown_by_key(records: Iterable[dict], key, value_field: str = "quantity") -> Dict[str, dict]:
    """Group by ``key`` and emit ``{count, <value_field>}`` per group."""
    groups: Dict[str, dict] = {}
    sums: Dict[str, Decimal] = {}
    for record in records:
        k = _group_key(record, key)
        group = groups.setdefault(k, {"count": 0, value_field: 0})
        group["count"] += 1
        sums[k] = sums.get(k, Decimal(0)) + _decimal(record.get(value_field))
    for k, group in groups.items():
        group[value_field] = _number(sums[k])
    return groups


def _named_breakdown(records: Iterable[dict], key: str, name_field: str, label: str) -> Dict[str, dict]:
    groups: Dict[str, dict] = {}
    for record in records:
        k = _group_key(record, key)
        group = groups.setdefault(k, {label: record.get(name_field), "quantity": 0, "records": 0})
        group["quantity"] = _number(_decimal(group["quantity"]) + _decimal(record.get("quantity")))
        group["records"] += 1
    return groups


# ---------- trend / ranking ----------

def trend(records: List[dict], field: str = "quantity", date_field: str = "date") -> dict:
    """Compare the mean of the later half against the earlier half.

    The earlier half holds floor(n/2) records. A zero earlier mean reports a
    stable trend rather than dividing by zero.
    """
    if len(records) < 2:
        return {"direction": "stable", "percentage": 0}
    ordered = sorted(records, key=lambda r: as_datetime(r.get(date_field)) or as_datetime("1970-01-01"))
    mid = len(ordered) // 2
    first, second = ordered[:mid], ordered[mid:]
    first_avg = _decimal(total(first, field)) / len(first)
    second_avg = _decimal(total(second, field)) / len(second)
    if first_avg == 0:
        return {"direction": "stable", "percentage": 0}
    change = (second_avg - first_avg) / first_avg * 100
    if change > TREND_THRESHOLD_PERCENT:
        direction = "increasing"
    elif change < -TREND_THRESHOLD_PERCENT:
        direction = "decreasing"
    else:
        direction = "stable"
    return {"direction": direction, "percentage": int(abs(change).quantize(WHOLE, rounding=ROUND_HALF_UP))}


def top_n(rows: List[dict], metric: str, n: int) -> List[dict]:
    return sorted(rows, key=lambda r: r.get(metric) or 0, reverse=True)[:n]


def change_percent(old, new) -> int:
    if _decimal(old) == 0:
        return 100 if _decimal(new) > 0 else 0
    return percent(_decimal(new) - _decimal(old), old)


def _group_records(records: Iterable[dict], field: str) -> Dict[str, List[dict]]:
    grouped: Dict[str, List[dict]] = {}
    for record in records:
        grouped.setdefault(record.get(field), []).append(record)
    return grouped


def cow_performance(cows: List[dict], milk_records: List[dict]) -> List[dict]:
    by_cow = _group_records(milk_records, "cowId")
    rows = []
    for cow in cows:
        cow_records = by_cow.get(cow["id"], [])
        rows.append({
            "cowId": cow["id"],
            "cowName": cow.get("name"),
            "totalMilk": total(cow_records),
            "averageDaily": cow.get("averageDailyMilk") or 0,
            "recordCount": len(cow_records),
        })
    return top_n(rows, "totalMilk", len(rows))


def batch_performance(batches: List[dict], egg_records: List[dict]) -> List[dict]:
    by_batch = _group_records(egg_records, "batchId")
    rows = []
    for batch in batches:
        batch_records = by_batch.get(batch["id"], [])
        rows.append({
            "batchId": batch["id"],
            "batchName": batch.get("batchId"),
            "totalEggs": total(batch_records),
            "averageDaily": (batch.get("productionStats") or {}).get("averageEggsPerDay") or 0,
            "recordCount": len(batch_records),
        })
    return top_n(rows, "totalEggs", len(rows))


# ---------- stat blocks ----------

def production_stats(records: List[dict]) -> dict:
    summary = period_summary(daily_totals(records))
    return {
        "totalQuantity": total(records),
        "totalRecords": len(records),
        "averagePerDay": summary["averageDaily"],
        "maxDaily": summary["maxDaily"],
        "minDaily": summary["minDaily"],
        "totalDays": summary["totalDays"],
    }


def detailed_milk_stats(records: List[dict]) -> dict:
    stats = production_stats(records)
    stats["sessionBreakdown"] = breakdown_by_key(records, "session")
    stats["cowBreakdown"] = breakdown_by_key(records, "cowId")
    stats["weeklyTrend"] = weekly_totals(records)
    return stats


def detailed_egg_stats(records: List[dict]) -> dict:
    stats = production_stats(records)
    stats["batchBreakdown"] = breakdown_by_key(records, "batchId")
    stats["weeklyTrend"] = weekly_totals(records)
    return stats


def milk_stats(records: List[dict]) -> dict:
    daily = daily_totals(records)
    sessions = {session: 0 for session in MILKING_SESSIONS}
    for session, value in bucket_totals(records, lambda s: s, "session").items():
        if session in sessions:
            sessions[session] = value
    return {
        "totalQuantity": total(records),
        "totalRecords": len(records),
        "averagePerRecord": ratio(total(records), len(records)),
        "dailyBreakdown": daily,
        "sessionBreakdown": sessions,
        "cowBreakdown": _named_breakdown(records, "cowId", "cowName", "cowName"),
        "periodSummary": period_summary(daily),
    }


def egg_stats(records: List[dict]) -> dict:
    daily = daily_totals(records)
    return {
        "totalQuantity": total(records),
        "totalRecords": len(records),
        "averagePerRecord": ratio(total(records), len(records)),
        "dailyBreakdown": daily,
        "batchBreakdown": _named_breakdown(records, "batchId", "batchName", "batchName"),
        "periodSummary": period_summary(daily),
    }


def _feed_key(record: dict) -> Optional[str]:
    if record.get("subType"):
        return f"{record.get('feedType')}_{record['subType']}"
    return record.get("feedType")


def feed_summary(records: List[dict]) -> dict:
    types = breakdown_by_key(records, "feedType")
    return {
        "totalQuantity": total(records),
        "totalRecords": len(records),
        "feedTypeBreakdown": {
            k: {"quantity": v["quantity"], "records": v["count"]} for k, v in types.items()
        },
    }


def feed_stats(records: List[dict]) -> dict:
    daily = daily_totals(records)
    cows = {r.get("cowId") for r in records}
    types = breakdown_by_key(records, _feed_key)
    summary = period_summary(daily)
    summary["totalCows"] = len(cows)
    return {
        "totalQuantity": total(records),
        "totalRecords": len(records),
        "feedTypeBreakdown": {
            k: {"quantity": v["quantity"], "records": v["count"]} for k, v in types.items()
        },
        "cowBreakdown": _named_breakdown(records, "cowId", "cowName", "cowName"),
        "dailyBreakdown": daily,
        "averagePerCow": ratio(total(records), len(cows)),
        "periodSummary": summary,
    }


def detailed_feed_stats(records: List[dict]) -> dict:
    stats = feed_summary(records)
    stats["cowBreakdown"] = breakdown_by_key(records, "cowId")
    stats["weeklyTrend"] = weekly_totals(records)
    return stats


def health_summary(records: List[dict]) -> dict:
    resolved = sum(1 for r in records if r.get("isResolved"))
    cost = total(records, "cost")
    return {
        "totalRecords": len(records),
        "resolvedCases": resolved,
        "unresolvedCases": len(records) - resolved,
        "totalCost": cost,
        "averageCostPerCase": ratio(cost, len(records)),
        "resolutionRate": percent(resolved, len(records)),
    }


def _cost_breakdown(records: Iterable[dict], key, with_resolved: bool = True, extra: Optional[Callable] = None):
    groups: Dict[str, dict] = {}
    for record in records:
        k = _group_key(record, key)
        if k not in groups:
            groups[k] = {"count": 0, "cost": 0}
            if with_resolved:
                groups[k]["resolved"] = 0
            if extra:
                groups[k].update(extra(record))
        group = groups[k]
        group["count"] += 1
        group["cost"] = _number(_decimal(group["cost"]) + _decimal(record.get("cost")))
        if with_resolved and record.get("isResolved"):
            group["resolved"] += 1
    return groups


def health_stats(records: List[dict]) -> dict:
    stats = health_summary(records)
    stats["diseaseBreakdown"] = _cost_breakdown(records, "disease")
    stats["medicineBreakdown"] = _cost_breakdown(
        [r for r in records if r.get("medicineUsed")], "medicineUsed", with_resolved=False
    )
    stats["vetBreakdown"] = _cost_breakdown(
        records, "vetName", extra=lambda r: {"contact": r.get("vetContact")}
    )
    stats["monthlyBreakdown"] = _cost_breakdown(records, lambda r: month_key(r.get("dateOfIllness")))
    return stats


def detailed_health_stats(records: List[dict]) -> dict:
    stats = health_summary(records)
    stats["diseaseBreakdown"] = breakdown_by_key(records, "disease", "cost")
    stats["vetBreakdown"] = breakdown_by_key(records, "vetName", "cost")
    stats["monthlyTrend"] = monthly_totals(records, "dateOfIllness", "cost")
    return stats


def veterinarian_stats(records: List[dict]) -> List[dict]:
    vets: Dict[str, dict] = {}
    for record in records:
        name = _group_key(record, "vetName")
        vet = vets.setdefault(name, {
            "name": name,
            "contact": record.get("vetContact"),
            "totalCases": 0,
            "resolvedCases": 0,
            "totalCost": 0,
            "diseasesHandled": [],
            "lastVisit": None,
        })
        vet["totalCases"] += 1
        if record.get("isResolved"):
            vet["resolvedCases"] += 1
        vet["totalCost"] = _number(_decimal(vet["totalCost"]) + _decimal(record.get("cost")))
        disease = record.get("disease")
        if disease and disease not in vet["diseasesHandled"]:
            vet["diseasesHandled"].append(disease)
        visit = as_datetime(record.get("dateOfIllness"))
        if visit and (vet["lastVisit"] is None or visit > as_datetime(vet["lastVisit"])):
            vet["lastVisit"] = record.get("dateOfIllness")
    for vet in vets.values():
        vet["averageCostPerCase"] = ratio(vet["totalCost"], vet["totalCases"])
        vet["resolutionRate"] = percent(vet["resolvedCases"], vet["totalCases"])
    return list(vets.values())


def financial_rollup(sales: List[dict], inventory: List[dict], health_records: List[dict]) -> dict:
    revenue = total(sales, "totalAmount")
    feed_items = [
        {**item, "totalCost": _number(_decimal(item.get("purchasePrice")) + _decimal(item.get("transportCost")))}
        for item in inventory
    ]
    feed_costs = total(feed_items, "totalCost")
    health_costs = total(health_records, "cost")
    expenses = _number(_decimal(feed_costs) + _decimal(health_costs))
    profit = _number(_decimal(revenue) - _decimal(expenses))
    return {
        "revenue": {"milkSales": revenue, "totalTransactions": len(sales)},
        "expenses": {
            "feedCosts": feed_costs,
            "healthCosts": health_costs,
            "totalFeedItems": len(inventory),
            "totalHealthRecords": len(health_records),
        },
        "profitability": {
            "grossRevenue": revenue,
            "totalExpenses": expenses,
            "netProfit": profit,
            "profitMargin": percent(profit, revenue) if _decimal(revenue) > 0 else 0,
        },
        "breakdown": {
            "milkSalesByMonth": monthly_totals(sales, "date", "totalAmount"),
            "feedCostsByMonth": monthly_totals(feed_items, "purchaseDate", "totalCost"),
            "healthCostsByMonth": monthly_totals(health_records, "dateOfIllness", "cost"),
        },
    }
