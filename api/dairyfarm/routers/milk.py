import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..access import AccessContext, get_store, require_admin, require_any_role
from ..constants import Collections, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..errors import ConflictError, NotFoundError
from ..schemas import MilkRecordCreate, MilkRecordUpdate, MilkSaleCreate, ok, pagination
from ..services import aggregation as agg
from ..services.dates import resolve_range
from ..services.derived_stats import refresh_cow_milk_stats
from ..store import DocumentStore
from .cows import get_cow_or_404

router = APIRouter()

DUPLICATE_MESSAGE = "Milk record already exists for this cow, date and session"


def _get_record(store: DocumentStore, record_id: str) -> dict:
    record = store.get_by_id(Collections.MILK_RECORDS, record_id)
    if not record:
        raise NotFoundError("Milk record not found")
    return record


def _find_duplicate(store: DocumentStore, cow_id: str, date: str, session: str) -> Optional[dict]:
    return store.find_one(Collections.MILK_RECORDS, {"cowId": cow_id, "date": date, "session": session})


@router.get("")
def list_milk_records(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    farm: Optional[str] = None,
    cow_id: Optional[str] = Query(None, alias="cowId"),
    session: Optional[str] = None,
    date: Optional[dt.date] = None,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    filters = {"farmLocation": ctx.scope_farm(farm), "cowId": cow_id, "session": session}
    if date:
        records = store.range_query(Collections.MILK_RECORDS, "date", date, date, filters)
        return ok({"milkRecords": records})
    result = store.paginate(Collections.MILK_RECORDS, filters, page, limit, "date", "desc")
    return ok({
        "milkRecords": result.items,
        "pagination": pagination(page, limit, result.total_count),
    })


@router.get("/stats/production")
def milk_production_stats(
    farm: Optional[str] = None,
    period: str = "daily",
    start_date: Optional[dt.date] = Query(None, alias="startDate"),
    end_date: Optional[dt.date] = Query(None, alias="endDate"),
    cow_id: Optional[str] = Query(None, alias="cowId"),
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    filters = {"farmLocation": ctx.scope_farm(farm), "cowId": cow_id}
    start, end = resolve_range(period, start_date, end_date)
    records = store.range_query(Collections.MILK_RECORDS, "date", start, end, filters)
    return ok({"stats": agg.milk_stats(records), "period": period})


@router.get("/sales/records")
def list_milk_sales(
    farm: Optional[str] = None,
    start_date: Optional[dt.date] = Query(None, alias="startDate"),
    end_date: Optional[dt.date] = Query(None, alias="endDate"),
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    filters = {"farmLocation": farm}
    if start_date or end_date:
        sales = store.range_query(Collections.MILK_SALES, "date", start_date, end_date, filters)
    else:
        sales = store.list(Collections.MILK_SALES, filters)
    return ok({
        "sales": sales,
        "summary": {
            "totalQuantity": agg.total(sales),
            "totalAmount": agg.total(sales, "totalAmount"),
            "totalTransactions": len(sales),
        },
    })


@router.post("/sales", status_code=201)
def create_milk_sale(
    payload: MilkSaleCreate,
    ctx: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    amount = payload.total_amount
    if amount is None:
        amount = agg.round_half_up(payload.quantity * payload.price_per_litre)
    sale = store.create(
        Collections.MILK_SALES,
        payload.to_doc(totalAmount=amount, type="sale", recordedBy=ctx.user_id),
    )
    return ok({"sale": sale}, "Milk sale recorded successfully")


@router.get("/cow/{cow_id}")
def list_cow_milk_records(
    cow_id: str,
    start_date: Optional[dt.date] = Query(None, alias="startDate"),
    end_date: Optional[dt.date] = Query(None, alias="endDate"),
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    cow = get_cow_or_404(store, cow_id)
    ctx.ensure_record_access(cow)
    if start_date or end_date:
        records = store.range_query(Collections.MILK_RECORDS, "date", start_date, end_date, {"cowId": cow_id})
    else:
        records = store.list(Collections.MILK_RECORDS, {"cowId": cow_id})
    records.sort(key=lambda r: r.get("date") or "", reverse=True)
    return ok({"milkRecords": records, "stats": agg.milk_stats(records)})


@router.get("/{record_id}")
def get_milk_record(
    record_id: str,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    record = _get_record(store, record_id)
    ctx.ensure_record_access(record)
    return ok({"milkRecord": record})


@router.post("", status_code=201)
def create_milk_record(
    payload: MilkRecordCreate,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    cow = get_cow_or_404(store, payload.cow_id)
    ctx.ensure_record_access(cow)
    date = payload.date.isoformat()
    if _find_duplicate(store, cow["id"], date, payload.session):
        raise ConflictError(DUPLICATE_MESSAGE)
    record = store.create(
        Collections.MILK_RECORDS,
        payload.to_doc(
            cowName=cow.get("name"),
            earTagNumber=cow.get("earTagNumber"),
            farmLocation=cow.get("farmLocation"),
            recordedBy=ctx.user_id,
        ),
    )
    refresh_cow_milk_stats(store, cow["id"])
    return ok({"milkRecord": record}, "Milk record created successfully")


@router.put("/{record_id}")
def update_milk_record(
    record_id: str,
    payload: MilkRecordUpdate,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    record = _get_record(store, record_id)
    ctx.ensure_record_access(record)
    changes = payload.to_doc(partial=True)
    date = changes.get("date", record.get("date"))
    session = changes.get("session", record.get("session"))
    duplicate = _find_duplicate(store, record["cowId"], date, session)
    if duplicate and duplicate["id"] != record_id:
        raise ConflictError(DUPLICATE_MESSAGE)
    changes["lastModifiedBy"] = ctx.user_id
    updated = store.update(Collections.MILK_RECORDS, record_id, changes)
    refresh_cow_milk_stats(store, record["cowId"])
    return ok({"milkRecord": updated}, "Milk record updated successfully")


@router.delete("/{record_id}")
def delete_milk_record(
    record_id: str,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    record = _get_record(store, record_id)
    store.delete(Collections.MILK_RECORDS, record_id)
    refresh_cow_milk_stats(store, record["cowId"])
    return ok(message="Milk record deleted successfully")
