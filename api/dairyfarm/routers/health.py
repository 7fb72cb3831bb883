import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..access import AccessContext, get_store, require_admin
from ..constants import Collections, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..errors import NotFoundError
from ..schemas import FollowUpIn, HealthRecordCreate, HealthRecordUpdate, ok, pagination
from ..services import aggregation as agg
from ..services.dates import utcnow
from ..services.derived_stats import refresh_cow_health_status
from ..store import DocumentStore
from .cows import get_cow_or_404

# Every health route is admin-only.
router = APIRouter(dependencies=[Depends(require_admin)])


def _get_record(store: DocumentStore, record_id: str) -> dict:
    record = store.get_by_id(Collections.HEALTH_RECORDS, record_id)
    if not record:
        raise NotFoundError("Health record not found")
    return record


def _records_in_window(store, filters, start_date, end_date):
    if start_date or end_date:
        return store.range_query(Collections.HEALTH_RECORDS, "dateOfIllness", start_date, end_date, filters)
    return store.list(Collections.HEALTH_RECORDS, filters)


@router.get("")
def list_health_records(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    farm: Optional[str] = None,
    cow_id: Optional[str] = Query(None, alias="cowId"),
    disease: Optional[str] = None,
    is_resolved: Optional[bool] = Query(None, alias="isResolved"),
    store: DocumentStore = Depends(get_store),
):
    filters = {"farmLocation": farm, "cowId": cow_id, "disease": disease, "isResolved": is_resolved}
    result = store.paginate(Collections.HEALTH_RECORDS, filters, page, limit, "dateOfIllness", "desc")
    return ok({
        "healthRecords": result.items,
        "pagination": pagination(page, limit, result.total_count),
    })


@router.get("/stats/overview")
def health_overview(
    farm: Optional[str] = None,
    start_date: Optional[dt.date] = Query(None, alias="startDate"),
    end_date: Optional[dt.date] = Query(None, alias="endDate"),
    store: DocumentStore = Depends(get_store),
):
    records = _records_in_window(store, {"farmLocation": farm}, start_date, end_date)
    return ok({"stats": agg.health_stats(records)})


@router.get("/stats/veterinarians")
def veterinarian_overview(
    farm: Optional[str] = None,
    start_date: Optional[dt.date] = Query(None, alias="startDate"),
    end_date: Optional[dt.date] = Query(None, alias="endDate"),
    store: DocumentStore = Depends(get_store),
):
    records = _records_in_window(store, {"farmLocation": farm}, start_date, end_date)
    return ok({"veterinarianStats": agg.veterinarian_stats(records)})


@router.get("/cow/{cow_id}")
def list_cow_health_records(cow_id: str, store: DocumentStore = Depends(get_store)):
    cow = get_cow_or_404(store, cow_id)
    records = store.list(Collections.HEALTH_RECORDS, {"cowId": cow_id})
    records.sort(key=lambda r: r.get("dateOfIllness") or "", reverse=True)
    return ok({
        "cow": {"id": cow["id"], "name": cow.get("name"), "healthStatus": cow.get("healthStatus")},
        "healthRecords": records,
        "stats": agg.health_summary(records),
    })


@router.get("/{record_id}")
def get_health_record(record_id: str, store: DocumentStore = Depends(get_store)):
    return ok({"healthRecord": _get_record(store, record_id)})


@router.post("", status_code=201)
def create_health_record(
    payload: HealthRecordCreate,
    ctx: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    cow = get_cow_or_404(store, payload.cow_id)
    record = store.create(
        Collections.HEALTH_RECORDS,
        payload.to_doc(
            cowName=cow.get("name"),
            farmLocation=cow.get("farmLocation"),
            recordedBy=ctx.user_id,
        ),
    )
    refresh_cow_health_status(store, cow["id"])
    return ok({"healthRecord": record}, "Health record created successfully")


@router.put("/{record_id}")
def update_health_record(
    record_id: str,
    payload: HealthRecordUpdate,
    ctx: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    record = _get_record(store, record_id)
    changes = payload.to_doc(partial=True, lastModifiedBy=ctx.user_id)
    if payload.is_resolved and not record.get("isResolved"):
        changes["resolvedAt"] = utcnow().isoformat()
    updated = store.update(Collections.HEALTH_RECORDS, record_id, changes)
    refresh_cow_health_status(store, record["cowId"])
    return ok({"healthRecord": updated}, "Health record updated successfully")


@router.delete("/{record_id}")
def delete_health_record(record_id: str, store: DocumentStore = Depends(get_store)):
    record = _get_record(store, record_id)
    store.delete(Collections.HEALTH_RECORDS, record_id)
    refresh_cow_health_status(store, record["cowId"])
    return ok(message="Health record deleted successfully")


@router.put("/{record_id}/follow-up")
def schedule_follow_up(
    record_id: str,
    payload: FollowUpIn,
    ctx: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    _get_record(store, record_id)
    changes = {
        "followUpDate": payload.follow_up_date.isoformat(),
        "followUpScheduledBy": ctx.user_id,
        "followUpScheduledAt": utcnow().isoformat(),
    }
    if payload.notes:
        changes["followUpNotes"] = payload.notes
    updated = store.update(Collections.HEALTH_RECORDS, record_id, changes)
    return ok({"healthRecord": updated}, "Follow-up scheduled successfully")
