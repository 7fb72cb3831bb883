"""Running totals cached on parent records.

Each refresh recomputes from the full child record set, so a missed refresh
heals on the next write. Failures are logged and never reach the caller.
"""
import logging

from ..constants import Collections
from ..store import DocumentStore
from .aggregation import daily_totals, ratio, total
from .dates import as_datetime, days_since, utcnow

logger = logging.getLogger(__name__)


def _earliest(records, field="date"):
    return min(records, key=lambda r: as_datetime(r.get(field)) or utcnow()).get(field)


def _latest(records, field="date"):
    return max(records, key=lambda r: as_datetime(r.get(field)) or as_datetime("1970-01-01"))


def refresh_cow_milk_stats(store: DocumentStore, cow_id: str) -> None:
    try:
        records = store.list(Collections.MILK_RECORDS, {"cowId": cow_id})
        if not records:
            store.update(Collections.COWS, cow_id, {
                "totalMilkProduced": 0,
                "averageDailyMilk": 0,
                "lastMilkingDate": None,
            })
            return
        produced = total(records)
        days = daily_totals(records)
        store.update(Collections.COWS, cow_id, {
            "totalMilkProduced": produced,
            "averageDailyMilk": ratio(produced, len(days)),
            "lastMilkingDate": _latest(records).get("date"),
        })
    except Exception:
        logger.exception("Failed to refresh milk stats for cow %s", cow_id)


def refresh_batch_egg_stats(store: DocumentStore, batch_id: str) -> None:
    try:
        batch = store.get_by_id(Collections.CHICKEN_BATCHES, batch_id)
        if not batch:
            return
        records = store.list(Collections.EGG_RECORDS, {"batchId": batch_id})
        produced = total(records)
        age_days = max(1, days_since(batch.get("dateAcquired")) or 0)
        production = dict(batch.get("productionStats") or {})
        production["averageEggsPerDay"] = ratio(produced, age_days)
        if records and not production.get("startedLayingDate"):
            production["startedLayingDate"] = _earliest(records)
        store.update(Collections.CHICKEN_BATCHES, batch_id, {
            "totalEggsProduced": produced,
            "productionStats": production,
        })
    except Exception:
        logger.exception("Failed to refresh egg stats for batch %s", batch_id)


def refresh_batch_feed_stats(store: DocumentStore, batch_id: str) -> None:
    try:
        batch = store.get_by_id(Collections.CHICKEN_BATCHES, batch_id)
        if not batch:
            return
        records = store.list(Collections.CHICKEN_FEED_RECORDS, {"batchId": batch_id})
        consumed = total(records)
        age_days = max(1, days_since(batch.get("dateAcquired")) or 0)
        store.update(Collections.CHICKEN_BATCHES, batch_id, {
            "feedConsumption": {
                "totalQuantity": consumed,
                "averagePerDay": ratio(consumed, age_days),
            },
        })
    except Exception:
        logger.exception("Failed to refresh feed stats for batch %s", batch_id)


def refresh_cow_health_status(store: DocumentStore, cow_id: str) -> None:
    try:
        cow = store.get_by_id(Collections.COWS, cow_id)
        if not cow:
            return
        unresolved = store.list(Collections.HEALTH_RECORDS, {"cowId": cow_id, "isResolved": False})
        status = dict(cow.get("healthStatus") or {})
        if unresolved:
            latest = _latest(unresolved, "dateOfIllness")
            status.update({
                "currentCondition": "sick",
                "currentIllness": latest.get("disease"),
                "illnessDate": latest.get("dateOfIllness"),
            })
        else:
            status.update({
                "currentCondition": "healthy",
                "currentIllness": None,
                "illnessDate": None,
                "lastCheckup": utcnow().isoformat(),
            })
        store.update(Collections.COWS, cow_id, {"healthStatus": status})
    except Exception:
        logger.exception("Failed to refresh health status for cow %s", cow_id)
