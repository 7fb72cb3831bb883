import copy
from typing import Optional

from fastapi import APIRouter, Depends

from ..access import AccessContext, get_store, require_admin, require_any_role
from ..constants import (
    Collections,
    DEFAULT_BATCH_LIFESPAN_DAYS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_EGG_PRODUCTION_AGE_DAYS,
    DEFAULT_FARM_SETTINGS,
    FEED_TYPES,
)
from ..errors import ConflictError, NotFoundError, ValidationError
from ..schemas import FarmCreate, FarmUpdate, SettingsUpdate, ok
from ..services import aggregation as agg
from ..services.dates import calculate_age, rolling_range, utcnow
from ..store import DocumentStore

router = APIRouter()


def _farm_by_location(store: DocumentStore, location: str) -> dict:
    farm = store.find_one(Collections.FARMS, {"location": location})
    if not farm:
        raise NotFoundError("Farm not found")
    return farm


def _ensure_farm_access(ctx: AccessContext, location: str) -> None:
    ctx.ensure_record_access({"location": location}, farm_field="location")


def _farm_statistics(store: DocumentStore, location: str) -> dict:
    cows = store.list(Collections.COWS, {"farmLocation": location, "isActive": True})
    batches = store.list(Collections.CHICKEN_BATCHES, {"farmLocation": location, "isActive": True})
    users = store.list(Collections.USERS, {"assignedFarm": location})
    return {
        "totalCows": len(cows),
        "totalChickenBatches": len(batches),
        "totalChickens": sum(int(b.get("currentCount") or 0) for b in batches),
        "totalUsers": len(users),
        "farmers": sum(1 for u in users if u.get("role") == "farmer"),
        "admins": sum(1 for u in users if u.get("role") == "admin"),
    }


@router.get("")
def list_farms(
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    filters = {} if ctx.is_admin else {"location": ctx.scope_farm(None)}
    return ok({"farms": store.list(Collections.FARMS, filters)})


@router.get("/{farm_id}")
def get_farm(
    farm_id: str,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    farm = store.get_by_id(Collections.FARMS, farm_id)
    if not farm:
        raise NotFoundError("Farm not found")
    _ensure_farm_access(ctx, farm["location"])
    farm["statistics"] = _farm_statistics(store, farm["location"])
    return ok({"farm": farm})


@router.post("", status_code=201)
def create_farm(
    payload: FarmCreate,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    if store.find_one(Collections.FARMS, {"location": payload.location}):
        raise ConflictError("Farm with this location already exists")
    farm = store.create(
        Collections.FARMS,
        payload.to_doc(isActive=True, settings=copy.deepcopy(DEFAULT_FARM_SETTINGS)),
    )
    return ok({"farm": farm}, "Farm created successfully")


@router.put("/{farm_id}")
def update_farm(
    farm_id: str,
    payload: FarmUpdate,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    # FarmUpdate has no location field; the key is fixed at creation.
    farm = store.update(Collections.FARMS, farm_id, payload.to_doc(partial=True))
    if not farm:
        raise NotFoundError("Farm not found")
    return ok({"farm": farm}, "Farm updated successfully")


@router.delete("/{farm_id}")
def delete_farm(
    farm_id: str,
    _: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    farm = store.get_by_id(Collections.FARMS, farm_id)
    if not farm:
        raise NotFoundError("Farm not found")
    location = farm["location"]
    in_use = (
        store.count(Collections.COWS, {"farmLocation": location})
        or store.count(Collections.CHICKEN_BATCHES, {"farmLocation": location})
        or store.count(Collections.USERS, {"assignedFarm": location})
    )
    if in_use:
        raise ValidationError("Cannot delete farm with associated cows, chicken batches or users")
    store.update(Collections.FARMS, farm_id, {"isActive": False, "deletedAt": utcnow().isoformat()})
    return ok(message="Farm deleted successfully")


@router.get("/{location}/settings")
def get_settings(
    location: str,
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    _ensure_farm_access(ctx, location)
    farm = _farm_by_location(store, location)
    return ok({"settings": farm.get("settings") or {}})


@router.put("/{location}/settings")
def update_settings(
    location: str,
    payload: SettingsUpdate,
    ctx: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    farm = _farm_by_location(store, location)
    settings = {**(farm.get("settings") or {}), **payload.settings}
    settings["lastUpdatedBy"] = ctx.user_id
    store.update(Collections.FARMS, farm["id"], {"settings": settings})
    return ok({"settings": settings}, "Farm settings updated successfully")


@router.get("/{location}/summary")
def farm_summary(
    location: str,
    period: Optional[str] = "monthly",
    ctx: AccessContext = Depends(require_any_role),
    store: DocumentStore = Depends(get_store),
):
    _ensure_farm_access(ctx, location)
    farm = _farm_by_location(store, location)
    start, end = rolling_range(period)
    scope = {"farmLocation": location}

    cows = store.list(Collections.COWS, {**scope, "isActive": True})
    batches = store.list(Collections.CHICKEN_BATCHES, {**scope, "isActive": True})
    milk = store.range_query(Collections.MILK_RECORDS, "date", start, end, scope)
    eggs = store.range_query(Collections.EGG_RECORDS, "date", start, end, scope)
    feed = store.range_query(Collections.FEED_RECORDS, "date", start, end, scope)
    health = store.range_query(Collections.HEALTH_RECORDS, "dateOfIllness", start, end, scope)
    users = store.list(Collections.USERS, {"assignedFarm": location})

    ages = [calculate_age(c.get("dateOfBirth")) or 0 for c in cows]
    birds = sum(int(b.get("currentCount") or 0) for b in batches)
    summary = {
        "farmInfo": {
            "name": farm.get("name"),
            "location": farm.get("location"),
            "manager": farm.get("manager"),
            "establishedDate": farm.get("establishedDate"),
            "size": farm.get("size"),
            "specialization": farm.get("specialization") or [],
        },
        "livestock": {
            "cows": {
                "total": len(cows),
                "active": sum(1 for c in cows if c.get("isActive")),
                "breeds": agg.count_by_key(cows, "breed"),
                "averageAge": agg.ratio(sum(ages), len(ages), places=1),
            },
            "chickens": {
                "totalBatches": len(batches),
                "totalBirds": birds,
                "breeds": agg.count_by_key(batches, "breed"),
                "averageBatchSize": int(agg.ratio(birds, len(batches), places=0)),
            },
        },
        "production": {
            "milk": {
                "total": agg.total(milk),
                "average": agg.ratio(agg.total(milk), len(milk)),
                "sessions": agg.count_by_key(milk, "session"),
            },
            "eggs": {
                "total": agg.total(eggs),
                "average": agg.ratio(agg.total(eggs), len(eggs)),
                "batches": agg.count_by_key(eggs, "batchId"),
            },
        },
        "health": {
            **agg.health_summary(health),
            "commonDiseases": agg.count_by_key(health, "disease"),
        },
        "feed": {
            "totalRecords": len(feed),
            "totalQuantity": agg.total(feed),
            "feedTypes": agg.count_by_key(feed, "feedType"),
        },
        "staff": {
            "total": len(users),
            "farmers": sum(1 for u in users if u.get("role") == "farmer"),
            "admins": sum(1 for u in users if u.get("role") == "admin"),
            "active": sum(1 for u in users if u.get("isActive")),
        },
        "period": {"type": period, "start": start.isoformat(), "end": end.isoformat()},
    }
    return ok({"farmSummary": summary})


@router.post("/{location}/initialize")
def initialize_farm(
    location: str,
    ctx: AccessContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    farm = _farm_by_location(store, location)
    defaults = copy.deepcopy(DEFAULT_FARM_SETTINGS)
    defaults.update({
        "feedTypes": copy.deepcopy(FEED_TYPES),
        "chickenSettings": {
            "defaultLifespan": DEFAULT_BATCH_LIFESPAN_DAYS,
            "eggProductionAge": DEFAULT_EGG_PRODUCTION_AGE_DAYS,
            "defaultBatchSize": DEFAULT_BATCH_SIZE,
        },
        "notifications": {
            "lowMilkProduction": True,
            "healthIssues": True,
            "feedRestock": True,
            "chickenAging": True,
        },
        "initialized": True,
        "initializedAt": utcnow().isoformat(),
        "initializedBy": ctx.user_id,
    })
    settings = {**(farm.get("settings") or {}), **defaults}
    farm = store.update(Collections.FARMS, farm["id"], {"settings": settings})
    return ok({"farm": farm}, "Farm data initialized successfully")
