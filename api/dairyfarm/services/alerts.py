import logging
from typing import Dict, List, Optional

from ..constants import Collections, DEFAULT_BATCH_LIFESPAN_DAYS, LOW_MILK_THRESHOLD_LITRES
from ..store import DocumentStore
from .dates import days_since, utcnow

logger = logging.getLogger(__name__)


def _alert(kind: str, title: str, message: str, count: int) -> dict:
    return {"type": kind, "title": title, "message": message, "count": count}


def low_milk_alert(store: DocumentStore, filters: Dict) -> Optional[dict]:
    cows = store.list(Collections.COWS, {**filters, "isActive": True})
    low = [c for c in cows if (c.get("averageDailyMilk") or 0) < LOW_MILK_THRESHOLD_LITRES]
    if not low:
        return None
    return _alert(
        "warning",
        "Low Milk Production",
        f"{len(low)} cows are producing less than {LOW_MILK_THRESHOLD_LITRES}L milk per day",
        len(low),
    )


def unresolved_health_alert(store: DocumentStore, filters: Dict) -> Optional[dict]:
    count = store.count(Collections.HEALTH_RECORDS, {**filters, "isResolved": False})
    if not count:
        return None
    return _alert("error", "Unresolved Health Issues", f"{count} health issues need attention", count)


def restock_alert(store: DocumentStore, filters: Dict) -> Optional[dict]:
    count = store.count(Collections.FEED_INVENTORY, {**filters, "needsRestock": True})
    if not count:
        return None
    return _alert("warning", "Feed Restock Needed", f"{count} feed items need restocking", count)


def aging_batches_alert(store: DocumentStore, filters: Dict) -> Optional[dict]:
    now = utcnow()
    batches = store.list(Collections.CHICKEN_BATCHES, {**filters, "isActive": True})
    aging = [
        b for b in batches
        if (days_since(b.get("dateAcquired"), now) or 0) > (b.get("expectedLifespan") or DEFAULT_BATCH_LIFESPAN_DAYS)
    ]
    if not aging:
        return None
    return _alert(
        "info",
        "Aging Chicken Batches",
        f"{len(aging)} chicken batches are past expected lifespan",
        len(aging),
    )


def generate_alerts(store: DocumentStore, filters: Dict, is_admin: bool) -> List[dict]:
    """Run each check independently; a failing check is logged and skipped."""
    checks = [low_milk_alert]
    if is_admin:
        checks += [unresolved_health_alert, restock_alert]
    checks.append(aging_batches_alert)

    alerts = []
    for check in checks:
        try:
            alert = check(store, filters)
        except Exception:
            logger.exception("Alert check %s failed", check.__name__)
            continue
        if alert:
            alerts.append(alert)
    return alerts
