import datetime as dt
from typing import Any, ClassVar, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, EmailStr, Field, confloat, conint, constr, model_validator
from pydantic.alias_generators import to_camel

from .access import Role
from .constants import COW_STAGES

Name = constr(strip_whitespace=True, min_length=1, max_length=50)
Text = constr(strip_whitespace=True, min_length=1)
Description = constr(strip_whitespace=True, max_length=500)
MilkingSession = Literal["morning", "afternoon", "evening"]
CowStage = Literal[COW_STAGES]


class CamelModel(BaseModel):
    """Request bodies use camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_doc(self, partial: bool = False, **extra) -> Dict[str, Any]:
        doc = self.model_dump(by_alias=True, exclude_unset=partial, mode="json")
        doc.update(extra)
        return doc


class PartialUpdate(CamelModel):
    """Update body: omitted fields are left alone, and fields listed in
    ``not_nullable`` may be changed but never cleared with ``null``."""

    not_nullable: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_cleared_fields(self):
        cleared = [
            to_camel(name)
            for name in self.not_nullable
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


def ok(data: Optional[dict] = None, message: Optional[str] = None) -> dict:
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return body


def pagination(page: int, limit: int, total: int) -> dict:
    pages = (total + limit - 1) // limit if limit else 0
    return {
        "currentPage": page,
        "totalPages": pages,
        "totalItems": total,
        "hasNext": page * limit < total,
        "hasPrev": page > 1,
    }


# ============ Auth & users ============

class RegisterIn(CamelModel):
    email: EmailStr
    password: constr(min_length=6)
    first_name: Name
    last_name: Name
    phone: Optional[str] = None


class ChangePassword(CamelModel):
    current_password: str
    new_password: constr(min_length=6)


class ProfileUpdate(PartialUpdate):
    not_nullable = ("first_name", "last_name")

    first_name: Optional[Name] = None
    last_name: Optional[Name] = None
    phone: Optional[str] = None


class UserCreate(CamelModel):
    email: EmailStr
    password: constr(min_length=6)
    first_name: Name
    last_name: Name
    role: Role
    assigned_farm: Optional[Text] = None
    phone: Optional[str] = None
    permissions: Optional[Dict[str, bool]] = None


class UserUpdate(PartialUpdate):
    not_nullable = ("first_name", "last_name", "role", "is_active")

    first_name: Optional[Name] = None
    last_name: Optional[Name] = None
    role: Optional[Role] = None
    assigned_farm: Optional[str] = None
    phone: Optional[str] = None
    permissions: Optional[Dict[str, bool]] = None
    is_active: Optional[bool] = None


class PermissionsUpdate(CamelModel):
    permissions: Dict[str, bool]


# ============ Farms ============

class FarmCreate(CamelModel):
    name: Text
    location: constr(strip_whitespace=True, to_lower=True, min_length=1, max_length=64)
    address: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    manager: Optional[str] = None
    description: Optional[Description] = None
    established_date: Optional[dt.date] = None
    size: Optional[confloat(ge=0)] = None
    specialization: List[str] = Field(default_factory=list)


class FarmUpdate(PartialUpdate):
    not_nullable = ("name", "specialization", "is_active")

    name: Optional[Text] = None
    address: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    manager: Optional[str] = None
    description: Optional[Description] = None
    established_date: Optional[dt.date] = None
    size: Optional[confloat(ge=0)] = None
    specialization: Optional[List[str]] = None
    is_active: Optional[bool] = None


class SettingsUpdate(CamelModel):
    settings: Dict[str, Any]


# ============ Cattle ============

class CowCreate(CamelModel):
    name: Name
    breed: Text
    date_of_birth: dt.date
    farm_location: Text
    mother_id: Optional[str] = None
    father_id: Optional[str] = None
    description: Optional[Description] = None
    current_stage: Optional[CowStage] = None
    image_url: Optional[str] = None
    ear_tag_number: Optional[str] = None
    purchase_date: Optional[dt.date] = None
    purchase_price: Optional[confloat(ge=0)] = None
    vendor: Optional[str] = None


class CowUpdate(PartialUpdate):
    not_nullable = ("name", "breed", "date_of_birth", "farm_location", "current_stage")

    name: Optional[Name] = None
    breed: Optional[Text] = None
    date_of_birth: Optional[dt.date] = None
    farm_location: Optional[Text] = None
    father_id: Optional[str] = None
    description: Optional[Description] = None
    current_stage: Optional[CowStage] = None
    image_url: Optional[str] = None
    ear_tag_number: Optional[str] = None
    purchase_date: Optional[dt.date] = None
    purchase_price: Optional[confloat(ge=0)] = None
    vendor: Optional[str] = None


class PregnancyUpdate(CamelModel):
    is_pregnant: bool
    date_of_ai: Optional[dt.date] = Field(default=None, alias="dateOfAI")
    expected_calving_date: Optional[dt.date] = None
    actual_calving_date: Optional[dt.date] = None


# ============ Milk ============

class MilkRecordCreate(CamelModel):
    cow_id: Text
    quantity: confloat(ge=0)
    session: MilkingSession
    date: dt.date
    notes: Optional[str] = None


class MilkRecordUpdate(PartialUpdate):
    not_nullable = ("quantity", "session", "date")

    quantity: Optional[confloat(ge=0)] = None
    session: Optional[MilkingSession] = None
    date: Optional[dt.date] = None
    notes: Optional[str] = None


class MilkSaleCreate(CamelModel):
    farm_location: Text
    quantity: confloat(gt=0)
    price_per_litre: confloat(gt=0)
    total_amount: Optional[confloat(ge=0)] = None
    buyer: Optional[str] = None
    date: dt.date
    notes: Optional[str] = None


# ============ Feed ============

class FeedRecordCreate(CamelModel):
    cow_id: Text
    feed_type: Text
    sub_type: Optional[str] = None
    quantity: confloat(ge=0)
    unit: str = "kg"
    date: dt.date
    notes: Optional[str] = None


class FeedRecordUpdate(PartialUpdate):
    not_nullable = ("feed_type", "quantity", "unit", "date")

    feed_type: Optional[Text] = None
    sub_type: Optional[str] = None
    quantity: Optional[confloat(ge=0)] = None
    unit: Optional[str] = None
    date: Optional[dt.date] = None
    notes: Optional[str] = None


class BulkFeedCreate(CamelModel):
    cow_ids: List[Text] = Field(min_length=1)
    feed_type: Text
    sub_type: Optional[str] = None
    quantity: confloat(ge=0)
    unit: str = "kg"
    date: dt.date
    notes: Optional[str] = None


class InventoryCreate(CamelModel):
    farm_location: Text
    feed_type: Text
    sub_type: Optional[str] = None
    quantity: confloat(ge=0)
    unit: str = "kg"
    purchase_date: dt.date
    purchase_price: confloat(ge=0)
    supplier: Optional[str] = None
    transport_cost: confloat(ge=0) = 0
    expiry_date: Optional[dt.date] = None
    notes: Optional[str] = None


class InventoryUpdate(PartialUpdate):
    not_nullable = ("quantity", "purchase_price", "transport_cost", "needs_restock", "is_active")

    quantity: Optional[confloat(ge=0)] = None
    purchase_price: Optional[confloat(ge=0)] = None
    supplier: Optional[str] = None
    transport_cost: Optional[confloat(ge=0)] = None
    expiry_date: Optional[dt.date] = None
    notes: Optional[str] = None
    needs_restock: Optional[bool] = None
    is_active: Optional[bool] = None


# ============ Health ============

class HealthRecordCreate(CamelModel):
    cow_id: Text
    date_of_illness: dt.date
    disease: Text
    symptoms: Optional[str] = None
    treatment: Text
    medicine_used: Text
    dosage: Optional[str] = None
    cost: confloat(ge=0)
    vet_name: Text
    vet_contact: Text
    date_of_treatment: Optional[dt.date] = None
    follow_up_date: Optional[dt.date] = None
    notes: Optional[str] = None
    is_resolved: bool = False


class HealthRecordUpdate(PartialUpdate):
    not_nullable = (
        "date_of_illness", "disease", "treatment", "medicine_used",
        "cost", "vet_name", "vet_contact", "is_resolved",
    )

    date_of_illness: Optional[dt.date] = None
    disease: Optional[Text] = None
    symptoms: Optional[str] = None
    treatment: Optional[Text] = None
    medicine_used: Optional[Text] = None
    dosage: Optional[str] = None
    cost: Optional[confloat(ge=0)] = None
    vet_name: Optional[Text] = None
    vet_contact: Optional[Text] = None
    date_of_treatment: Optional[dt.date] = None
    follow_up_date: Optional[dt.date] = None
    notes: Optional[str] = None
    is_resolved: Optional[bool] = None


class FollowUpIn(CamelModel):
    follow_up_date: dt.date
    notes: Optional[str] = None


# ============ Poultry ============

class BatchCreate(CamelModel):
    batch_id: Text
    initial_count: conint(ge=1)
    date_acquired: dt.date
    farm_location: Text
    breed: Optional[str] = None
    cost: Optional[confloat(ge=0)] = None
    supplier: Optional[str] = None
    description: Optional[Description] = None
    expected_egg_production_age: conint(ge=0) = 150
    expected_lifespan: conint(ge=1) = 365


class BatchUpdate(PartialUpdate):
    not_nullable = ("expected_egg_production_age", "expected_lifespan", "is_active")

    breed: Optional[str] = None
    cost: Optional[confloat(ge=0)] = None
    supplier: Optional[str] = None
    description: Optional[Description] = None
    expected_egg_production_age: Optional[conint(ge=0)] = None
    expected_lifespan: Optional[conint(ge=1)] = None
    is_active: Optional[bool] = None


class CountChangeIn(CamelModel):
    operation: Literal["decrease", "increase"]
    count: conint(ge=1)
    reason: Text
    date: Optional[dt.date] = None
    notes: Optional[str] = None


class EggRecordCreate(CamelModel):
    batch_id: Text
    quantity: conint(ge=0)
    date: dt.date
    notes: Optional[str] = None


class EggRecordUpdate(PartialUpdate):
    not_nullable = ("quantity", "date")

    quantity: Optional[conint(ge=0)] = None
    date: Optional[dt.date] = None
    notes: Optional[str] = None


class ChickenFeedCreate(CamelModel):
    batch_id: Text
    quantity: confloat(ge=0)
    feed_type: str = "chicken_feed"
    cost: Optional[confloat(ge=0)] = None
    date: dt.date
    supplier: Optional[str] = None
    notes: Optional[str] = None


# ============ Stats ============

class CustomReportIn(CamelModel):
    farm_location: Optional[str] = None
    start_date: dt.date
    end_date: dt.date
    include_types: List[Literal["livestock", "production", "health", "feed", "financial"]] = Field(min_length=1)
