from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..access import AccessContext, get_store, require_admin, require_any_role
from ..constants import Collections, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..schemas import CowCreate, CowUpdate, PregnancyUpdate, ok, pagination
from ..services.dates import calculate_age, days_since, utcnow
from ..store import DocumentStore

router = APIRouter()


def with_age(cow: dict) -> dict:
    return {
        **cow,
        "age": calculate_age(cow.get("dateOfBirth")),
        "ageInDays": days_since(cow.get("dateOfBirth")),
    }


def get_cow_or_404(store: DocumentStore, cow_id: str) -> dict:
    cow = store.get_by_id(Collections.COWS, cow_id)
    if not cow:
        raise NotFoundError("Cow not found")
    return cow


def ensure_farm_exists(store: DocumentStore, location: str) -> None:
    if not store.find_one(Collections.FARMS, {"location": location}):
        raise ValidationError("Valid farm location is required")


@router.get("")
def list_cows(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    farm: Optional[str] = None,
    breed: Optional[str] = None,
    stage: Optional[str] = None,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    filters = {"farmLocation": ctx.scope_farm(farm), "breed": breed, "currentStage": stage}
    result = store.paginate(Collections.COWS, filters, page, limit, "createdAt", "desc")
    return ok({
        "cows": [with_age(c) for c in result.items],
        "pagination": pagination(page, limit, result.total_count),
    })


@router.get("/farm/{farm_location}")
def list_cows_by_farm(
    farm_location: str,
    breed: Optional[str] = None,
    stage: Optional[str] = None,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    if not ctx.is_admin and farm_location != ctx.assigned_farm:
        raise AuthorizationError()
    filters = {"farmLocation": farm_location, "isActive": True, "breed": breed, "currentStage": stage}
    return ok({"cows": [with_age(c) for c in store.list(Collections.COWS, filters)]})


@router.get("/{cow_id}")
def get_cow(
    cow_id: str,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    cow = get_cow_or_404(store, cow_id)
    ctx.ensure_record_access(cow)
    calves = store.list(Collections.COWS, {"motherId": cow_id})
    detail = with_age(cow)
    detail.update({
        "totalMilkRecords": store.count(Collections.MILK_RECORDS, {"cowId": cow_id}),
        "totalFeedRecords": store.count(Collections.FEED_RECORDS, {"cowId": cow_id}),
        "totalHealthRecords": store.count(Collections.HEALTH_RECORDS, {"cowId": cow_id}),
        "totalCalves": len(calves),
        "calves": [with_age(c) for c in calves],
    })
    return ok({"cow": detail})


@router.post("", status_code=201)
def create_cow(
    payload: CowCreate,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    ensure_farm_exists(store, payload.farm_location)
    if payload.mother_id and not store.get_by_id(Collections.COWS, payload.mother_id):
        raise ValidationError("Mother cow not found")
    doc = payload.to_doc(
        currentStage=payload.current_stage or "active",
        isActive=True,
        totalMilkProduced=0,
        averageDailyMilk=0,
        lastMilkingDate=None,
        pregnancyStatus={
            "isPregnant": False,
            "dateOfAI": None,
            "expectedCalvingDate": None,
            "actualCalvingDate": None,
        },
        healthStatus={"currentCondition": "healthy", "currentIllness": None, "lastCheckup": None},
    )
    cow = store.create(Collections.COWS, doc)
    return ok({"cow": with_age(cow)}, "Cow created successfully")


@router.put("/{cow_id}")
def update_cow(
    cow_id: str,
    payload: CowUpdate,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    get_cow_or_404(store, cow_id)
    if payload.farm_location:
        ensure_farm_exists(store, payload.farm_location)
    cow = store.update(Collections.COWS, cow_id, payload.to_doc(partial=True))
    return ok({"cow": with_age(cow)}, "Cow updated successfully")


@router.delete("/{cow_id}")
def delete_cow(
    cow_id: str,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    get_cow_or_404(store, cow_id)
    store.update(Collections.COWS, cow_id, {"isActive": False, "deletedAt": utcnow().isoformat()})
    return ok(message="Cow deleted successfully")


@router.put("/{cow_id}/pregnancy")
def update_pregnancy(
    cow_id: str,
    payload: PregnancyUpdate,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    get_cow_or_404(store, cow_id)
    cow = store.update(Collections.COWS, cow_id, {"pregnancyStatus": payload.to_doc()})
    return ok({"cow": cow}, "Pregnancy status updated successfully")
