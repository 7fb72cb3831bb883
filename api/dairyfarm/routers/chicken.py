import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..access import AccessContext, get_store, require_admin, require_any_role
from ..constants import Collections, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..errors import ConflictError, NotFoundError
from ..schemas import (
    BatchCreate,
    BatchUpdate,
    ChickenFeedCreate,
    CountChangeIn,
    EggRecordCreate,
    EggRecordUpdate,
    ok,
    pagination,
)
from ..services import aggregation as agg
from ..services.dates import days_since, resolve_range, utcnow
from ..services.derived_stats import refresh_batch_egg_stats, refresh_batch_feed_stats
from ..store import DocumentStore
from .cows import ensure_farm_exists

router = APIRouter()

EGG_DUPLICATE_MESSAGE = "Egg record already exists for this batch and date"


def get_batch_or_404(store: DocumentStore, batch_id: str) -> dict:
    batch = store.get_by_id(Collections.CHICKEN_BATCHES, batch_id)
    if not batch:
        raise NotFoundError("Chicken batch not found")
    return batch


def _get_egg_record(store: DocumentStore, record_id: str) -> dict:
    record = store.get_by_id(Collections.EGG_RECORDS, record_id)
    if not record:
        raise NotFoundError("Egg record not found")
    return record


def _with_age(batch: dict) -> dict:
    return {**batch, "ageInDays": days_since(batch.get("dateAcquired"))}


# ---------- batches ----------

@router.get("/batches")
def list_batches(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    farm: Optional[str] = None,
    breed: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    filters = {"farmLocation": ctx.scope_farm(farm), "breed": breed, "isActive": is_active}
    result = store.paginate(Collections.CHICKEN_BATCHES, filters, page, limit, "createdAt", "desc")
    return ok({
        "batches": [_with_age(b) for b in result.items],
        "pagination": pagination(page, limit, result.total_count),
    })


@router.get("/batches/{batch_id}")
def get_batch(
    batch_id: str,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    batch = get_batch_or_404(store, batch_id)
    ctx.ensure_record_access(batch)
    changes = store.list(Collections.CHICKEN_COUNT_CHANGES, {"batchId": batch_id})
    changes.sort(key=lambda c: c.get("createdAt") or "", reverse=True)
    detail = _with_age(batch)
    detail["countChanges"] = changes
    return ok({"batch": detail})


@router.post("/batches", status_code=201)
def create_batch(
    payload: BatchCreate,
    ctx: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    ensure_farm_exists(store, payload.farm_location)
    if store.find_one(Collections.CHICKEN_BATCHES, {"batchId": payload.batch_id}):
        raise ConflictError("Chicken batch with this ID already exists")
    batch = store.create(
        Collections.CHICKEN_BATCHES,
        payload.to_doc(
            currentCount=payload.initial_count,
            isActive=True,
            totalEggsProduced=0,
            totalDeaths=0,
            totalHatched=0,
            feedConsumption={"totalQuantity": 0, "averagePerDay": 0},
            productionStats={
                "startedLayingDate": None,
                "peakProductionDate": None,
                "averageEggsPerDay": 0,
            },
            createdBy=ctx.user_id,
        ),
    )
    return ok({"batch": batch}, "Chicken batch created successfully")


@router.put("/batches/{batch_id}")
def update_batch(
    batch_id: str,
    payload: BatchUpdate,
    ctx: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    get_batch_or_404(store, batch_id)
    batch = store.update(
        Collections.CHICKEN_BATCHES, batch_id, payload.to_doc(partial=True, lastModifiedBy=ctx.user_id)
    )
    return ok({"batch": batch}, "Chicken batch updated successfully")


@router.delete("/batches/{batch_id}")
def delete_batch(
    batch_id: str,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    get_batch_or_404(store, batch_id)
    store.update(Collections.CHICKEN_BATCHES, batch_id, {"isActive": False, "deletedAt": utcnow().isoformat()})
    return ok(message="Chicken batch deleted successfully")


@router.put("/batches/{batch_id}/count")
def change_batch_count(
    batch_id: str,
    payload: CountChangeIn,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    batch = get_batch_or_404(store, batch_id)
    ctx.ensure_record_access(batch)
    previous = int(batch.get("currentCount") or 0)
    changes = {}
    if payload.operation == "decrease":
        new_count = max(0, previous - payload.count)
        changes["totalDeaths"] = int(batch.get("totalDeaths") or 0) + payload.count
    else:
        new_count = previous + payload.count
        changes["totalHatched"] = int(batch.get("totalHatched") or 0) + payload.count
    changes["currentCount"] = new_count

    # The audit entry is written before the batch changes.
    change = store.create(Collections.CHICKEN_COUNT_CHANGES, {
        "batchId": batch_id,
        "operation": payload.operation,
        "count": payload.count,
        "reason": payload.reason,
        "date": (payload.date or utcnow().date()).isoformat(),
        "notes": payload.notes,
        "previousCount": previous,
        "newCount": new_count,
        "recordedBy": ctx.user_id,
    })
    updated = store.update(Collections.CHICKEN_BATCHES, batch_id, changes)
    return ok({"batch": updated, "countChange": change}, "Chicken count updated successfully")


# ---------- eggs ----------

@router.get("/eggs")
def list_egg_records(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    farm: Optional[str] = None,
    batch_id: Optional[str] = Query(None, alias="batchId"),
    date: Optional[dt.date] = None,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    filters = {"farmLocation": ctx.scope_farm(farm), "batchId": batch_id}
    if date:
        records = store.range_query(Collections.EGG_RECORDS, "date", date, date, filters)
        return ok({"eggRecords": records})
    result = store.paginate(Collections.EGG_RECORDS, filters, page, limit, "date", "desc")
    return ok({
        "eggRecords": result.items,
        "pagination": pagination(page, limit, result.total_count),
    })


@router.get("/eggs/stats")
def egg_production_stats(
    farm: Optional[str] = None,
    period: str = "daily",
    start_date: Optional[dt.date] = Query(None, alias="startDate"),
    end_date: Optional[dt.date] = Query(None, alias="endDate"),
    batch_id: Optional[str] = Query(None, alias="batchId"),
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    filters = {"farmLocation": ctx.scope_farm(farm), "batchId": batch_id}
    start, end = resolve_range(period, start_date, end_date)
    records = store.range_query(Collections.EGG_RECORDS, "date", start, end, filters)
    return ok({"stats": agg.egg_stats(records), "period": period})


@router.post("/eggs", status_code=201)
def create_egg_record(
    payload: EggRecordCreate,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    batch = get_batch_or_404(store, payload.batch_id)
    ctx.ensure_record_access(batch)
    date = payload.date.isoformat()
    if store.find_one(Collections.EGG_RECORDS, {"batchId": batch["id"], "date": date}):
        raise ConflictError(EGG_DUPLICATE_MESSAGE)
    record = store.create(
        Collections.EGG_RECORDS,
        payload.to_doc(
            batchName=batch.get("batchId"),
            farmLocation=batch.get("farmLocation"),
            recordedBy=ctx.user_id,
        ),
    )
    refresh_batch_egg_stats(store, batch["id"])
    return ok({"eggRecord": record}, "Egg record created successfully")


@router.put("/eggs/{record_id}")
def update_egg_record(
    record_id: str,
    payload: EggRecordUpdate,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    record = _get_egg_record(store, record_id)
    ctx.ensure_record_access(record)
    changes = payload.to_doc(partial=True)
    if "date" in changes:
        duplicate = store.find_one(Collections.EGG_RECORDS, {"batchId": record["batchId"], "date": changes["date"]})
        if duplicate and duplicate["id"] != record_id:
            raise ConflictError(EGG_DUPLICATE_MESSAGE)
    changes["lastModifiedBy"] = ctx.user_id
    updated = store.update(Collections.EGG_RECORDS, record_id, changes)
    refresh_batch_egg_stats(store, record["batchId"])
    return ok({"eggRecord": updated}, "Egg record updated successfully")


@router.delete("/eggs/{record_id}")
def delete_egg_record(
    record_id: str,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    record = _get_egg_record(store, record_id)
    store.delete(Collections.EGG_RECORDS, record_id)
    refresh_batch_egg_stats(store, record["batchId"])
    return ok(message="Egg record deleted successfully")


# ---------- chicken feed ----------

@router.get("/feed")
def list_chicken_feed(
    farm: Optional[str] = None,
    batch_id: Optional[str] = Query(None, alias="batchId"),
    start_date: Optional[dt.date] = Query(None, alias="startDate"),
    end_date: Optional[dt.date] = Query(None, alias="endDate"),
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    filters = {"farmLocation": ctx.scope_farm(farm), "batchId": batch_id}
    if start_date or end_date:
        records = store.range_query(Collections.CHICKEN_FEED_RECORDS, "date", start_date, end_date, filters)
    else:
        records = store.list(Collections.CHICKEN_FEED_RECORDS, filters)
    records.sort(key=lambda r: r.get("date") or "", reverse=True)
    return ok({
        "feedRecords": records,
        "summary": {
            "totalQuantity": agg.total(records),
            "totalCost": agg.total(records, "cost"),
            "totalRecords": len(records),
        },
    })


@router.post("/feed", status_code=201)
def create_chicken_feed(
    payload: ChickenFeedCreate,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    batch = get_batch_or_404(store, payload.batch_id)
    ctx.ensure_record_access(batch)
    record = store.create(
        Collections.CHICKEN_FEED_RECORDS,
        payload.to_doc(
            batchName=batch.get("batchId"),
            farmLocation=batch.get("farmLocation"),
            recordedBy=ctx.user_id,
        ),
    )
    refresh_batch_feed_stats(store, batch["id"])
    return ok({"feedRecord": record}, "Chicken feed record created successfully")
