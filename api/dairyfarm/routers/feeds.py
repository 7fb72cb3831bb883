import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..access import AccessContext, get_store, require_admin, require_any_role
from ..constants import Collections, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..errors import NotFoundError, ValidationError
from ..models import new_id
from ..schemas import (
    BulkFeedCreate,
    FeedRecordCreate,
    FeedRecordUpdate,
    InventoryCreate,
    InventoryUpdate,
    ok,
    pagination,
)
from ..services import aggregation as agg
from ..services.dates import resolve_range, utcnow
from ..store import DocumentStore
from .cows import get_cow_or_404

router = APIRouter()


def _get_record(store: DocumentStore, record_id: str) -> dict:
    record = store.get_by_id(Collections.FEED_RECORDS, record_id)
    if not record:
        raise NotFoundError("Feed record not found")
    return record


def _snapshot(cow: dict) -> dict:
    return {
        "cowName": cow.get("name"),
        "earTagNumber": cow.get("earTagNumber"),
        "farmLocation": cow.get("farmLocation"),
    }


# ---------- inventory (admin) ----------

@router.get("/inventory")
def list_inventory(
    farm: Optional[str] = None,
    feed_type: Optional[str] = Query(None, alias="feedType"),
    needs_restock: Optional[bool] = Query(None, alias="needsRestock"),
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    filters = {"farmLocation": farm, "feedType": feed_type, "needsRestock": needs_restock}
    return ok({"inventory": store.list(Collections.FEED_INVENTORY, filters)})


@router.post("/inventory", status_code=201)
def create_inventory(
    payload: InventoryCreate,
    ctx: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    item = store.create(
        Collections.FEED_INVENTORY,
        payload.to_doc(
            currentStock=payload.quantity,
            isActive=True,
            needsRestock=False,
            recordedBy=ctx.user_id,
        ),
    )
    return ok({"inventory": item}, "Feed inventory created successfully")


@router.put("/inventory/{item_id}")
def update_inventory(
    item_id: str,
    payload: InventoryUpdate,
    ctx: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    changes = payload.to_doc(partial=True)
    if payload.quantity is not None:
        changes["currentStock"] = payload.quantity
    changes["lastModifiedBy"] = ctx.user_id
    item = store.update(Collections.FEED_INVENTORY, item_id, changes)
    if not item:
        raise NotFoundError("Feed inventory not found")
    return ok({"inventory": item}, "Feed inventory updated successfully")


@router.put("/inventory/{item_id}/restock")
def mark_for_restock(
    item_id: str,
    ctx: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    item = store.update(Collections.FEED_INVENTORY, item_id, {
        "needsRestock": True,
        "restockRequestedBy": ctx.user_id,
        "restockRequestedAt": utcnow().isoformat(),
    })
    if not item:
        raise NotFoundError("Feed inventory not found")
    return ok({"inventory": item}, "Feed marked for restock successfully")


# ---------- feed records ----------

@router.get("")
def list_feed_records(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    farm: Optional[str] = None,
    cow_id: Optional[str] = Query(None, alias="cowId"),
    feed_type: Optional[str] = Query(None, alias="feedType"),
    date: Optional[dt.date] = None,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    filters = {"farmLocation": ctx.scope_farm(farm), "cowId": cow_id, "feedType": feed_type}
    if date:
        records = store.range_query(Collections.FEED_RECORDS, "date", date, date, filters)
        return ok({"feedRecords": records})
    result = store.paginate(Collections.FEED_RECORDS, filters, page, limit, "date", "desc")
    return ok({
        "feedRecords": result.items,
        "pagination": pagination(page, limit, result.total_count),
    })


@router.get("/stats/consumption")
def feed_consumption_stats(
    farm: Optional[str] = None,
    period: str = "daily",
    start_date: Optional[dt.date] = Query(None, alias="startDate"),
    end_date: Optional[dt.date] = Query(None, alias="endDate"),
    feed_type: Optional[str] = Query(None, alias="feedType"),
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    filters = {"farmLocation": ctx.scope_farm(farm), "feedType": feed_type}
    start, end = resolve_range(period, start_date, end_date)
    records = store.range_query(Collections.FEED_RECORDS, "date", start, end, filters)
    return ok({"stats": agg.feed_stats(records), "period": period})


@router.get("/cow/{cow_id}")
def list_cow_feed_records(
    cow_id: str,
    start_date: Optional[dt.date] = Query(None, alias="startDate"),
    end_date: Optional[dt.date] = Query(None, alias="endDate"),
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    cow = get_cow_or_404(store, cow_id)
    ctx.ensure_record_access(cow)
    if start_date or end_date:
        records = store.range_query(Collections.FEED_RECORDS, "date", start_date, end_date, {"cowId": cow_id})
    else:
        records = store.list(Collections.FEED_RECORDS, {"cowId": cow_id})
    records.sort(key=lambda r: r.get("date") or "", reverse=True)
    return ok({"feedRecords": records, "stats": agg.feed_stats(records)})


@router.post("/bulk", status_code=201)
def create_bulk_feed_records(
    payload: BulkFeedCreate,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    cows = [store.get_by_id(Collections.COWS, cow_id) for cow_id in payload.cow_ids]
    if any(cow is None for cow in cows):
        raise ValidationError("Some cows were not found")
    for cow in cows:
        ctx.ensure_record_access(cow)

    bulk_id = new_id()
    base = payload.to_doc(recordedBy=ctx.user_id, bulkId=bulk_id)
    base.pop("cowIds", None)
    records = [
        store.create(Collections.FEED_RECORDS, {**base, "cowId": cow["id"], **_snapshot(cow)})
        for cow in cows
    ]
    return ok({"feedRecords": records}, f"{len(records)} feed records created successfully")


@router.get("/{record_id}")
def get_feed_record(
    record_id: str,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    record = _get_record(store, record_id)
    ctx.ensure_record_access(record)
    return ok({"feedRecord": record})


@router.post("", status_code=201)
def create_feed_record(
    payload: FeedRecordCreate,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    cow = get_cow_or_404(store, payload.cow_id)
    ctx.ensure_record_access(cow)
    record = store.create(
        Collections.FEED_RECORDS,
        payload.to_doc(recordedBy=ctx.user_id, **_snapshot(cow)),
    )
    return ok({"feedRecord": record}, "Feed record created successfully")


@router.put("/{record_id}")
def update_feed_record(
    record_id: str,
    payload: FeedRecordUpdate,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    record = _get_record(store, record_id)
    ctx.ensure_record_access(record)
    changes = payload.to_doc(partial=True, lastModifiedBy=ctx.user_id)
    updated = store.update(Collections.FEED_RECORDS, record_id, changes)
    return ok({"feedRecord": updated}, "Feed record updated successfully")


@router.delete("/{record_id}")
def delete_feed_record(
    record_id: str,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    _get_record(store, record_id)
    store.delete(Collections.FEED_RECORDS, record_id)
    return ok(message="Feed record deleted successfully")
