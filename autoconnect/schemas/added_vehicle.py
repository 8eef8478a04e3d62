"""Schémas Véhicule ajouté / Added-vehicle schemas.

Validation explicite a la construction (enums, bornes, formats) avec chemin de champ.
Explicit constructor-time validation (enums, ranges, formats) with field paths.
Cle JSON en camelCase, snake_case accepte en entree / camelCase JSON keys, snake_case accepted on input.
"""

import json
import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from autoconnect.config import settings
from autoconnect.models.added_vehicle import (
    AddedVehicle,
    ContactMethod,
    RequestPriority,
    RequestSource,
    RequestStatus,
    ServiceType,
    VehiclePurpose,
)
from autoconnect.models.audit import AuditLog
from autoconnect.models.user import User
from autoconnect.models.vehicle import Vehicle
from autoconnect.utils.clock import start_of_day, to_naive_utc, utcnow

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
# Numeric(12, 2)
MAX_ESTIMATED_COST = 9_999_999_999.99


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


def _upper(value):
    """Enums insensibles a la casse en entree / Case-insensitive enum input."""
    return value.strip().upper() if isinstance(value, str) else value


def _check_scheduled_date(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    value = to_naive_utc(value)
    if value < start_of_day(utcnow()):
        raise ValueError("Scheduled date cannot be in the past")
    return value


# --- Entrées / Inputs ---
class ServiceDetailsIn(CamelModel):
    service_type: ServiceType | None = None
    estimated_cost: float | None = Field(default=None, ge=0, le=MAX_ESTIMATED_COST)
    estimated_duration: str | None = Field(default=None, max_length=50)
    urgency: bool = False

    _upper_service_type = field_validator("service_type", mode="before")(_upper)


class ContactInfoIn(CamelModel):
    phone: str | None = None
    email: str | None = Field(default=None, max_length=150)
    preferred_contact_method: ContactMethod = ContactMethod.PHONE

    _upper_method = field_validator("preferred_contact_method", mode="before")(_upper)

    @field_validator("phone")
    @classmethod
    def _valid_phone(cls, value: str | None) -> str | None:
        if value and not PHONE_PATTERN.match(value):
            raise ValueError("Invalid phone number format")
        return value or None

    @field_validator("email")
    @classmethod
    def _valid_email(cls, value: str | None) -> str | None:
        if value and not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email format")
        return value.lower() if value else None


class CoordinatesIn(CamelModel):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class LocationIn(CamelModel):
    address: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=100)
    district: str | None = Field(default=None, max_length=100)
    coordinates: CoordinatesIn | None = None


class AddedVehicleCreate(CamelModel):
    """Charge utile de création / Create payload. Le statut fourni est ignoré / Caller status is ignored."""
    vehicle_id: int
    purpose: VehiclePurpose = VehiclePurpose.SERVICE_BOOKING
    notes: str | None = Field(default=None, max_length=settings.NOTES_MAX_LENGTH)
    priority: RequestPriority = RequestPriority.MEDIUM
    scheduled_date: datetime | None = None
    service_details: ServiceDetailsIn | None = None
    contact_info: ContactInfoIn | None = None
    location: LocationIn | None = None

    _upper_enums = field_validator("purpose", "priority", mode="before")(_upper)
    _scheduled = field_validator("scheduled_date")(_check_scheduled_date)


class AddedVehicleUpdate(CamelModel):
    """Patch partiel : les champs immuables sont ignorés / Partial patch: immutable fields are dropped."""
    purpose: VehiclePurpose | None = None
    notes: str | None = Field(default=None, max_length=settings.NOTES_MAX_LENGTH)
    priority: RequestPriority | None = None
    status: RequestStatus | None = None
    scheduled_date: datetime | None = None
    service_details: ServiceDetailsIn | None = None
    contact_info: ContactInfoIn | None = None
    location: LocationIn | None = None

    _upper_enums = field_validator("purpose", "priority", "status", mode="before")(_upper)
    _scheduled = field_validator("scheduled_date")(_check_scheduled_date)


class StatusChangeRequest(CamelModel):
    status: RequestStatus

    _upper_status = field_validator("status", mode="before")(_upper)


class CompleteRequest(CamelModel):
    notes: str | None = Field(default=None, max_length=settings.NOTES_MAX_LENGTH)


class RequestMetadata(CamelModel):
    """Provenance capturée a la création / Provenance captured at creation."""
    source: RequestSource = RequestSource.WEB_APP
    ip_address: str | None = None
    user_agent: str | None = None
    session_id: str | None = None


# --- Sorties / Outputs ---
class VehicleSummaryRead(CamelModel):
    id: int
    registration_number: str
    make: str | None
    model: str | None
    year_of_manufacture: int | None
    color: str | None
    verification_status: str | None
    mileage: int | None
    owner_id: int | None
    owner_nic: str | None = Field(alias="ownerNIC")

    @classmethod
    def from_model(cls, vehicle: Vehicle) -> "VehicleSummaryRead":
        return cls(
            id=vehicle.id,
            registration_number=vehicle.registration_number,
            make=vehicle.make,
            model=vehicle.model,
            year_of_manufacture=vehicle.year_of_manufacture,
            color=vehicle.color,
            verification_status=vehicle.verification_status,
            mileage=vehicle.mileage,
            owner_id=vehicle.owner_id,
            owner_nic=vehicle.owner_nic,
        )


class UserSummaryRead(CamelModel):
    id: int
    first_name: str
    last_name: str | None = None
    email: str
    nic_number: str | None = None

    @classmethod
    def from_model(cls, user: User) -> "UserSummaryRead":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            nic_number=user.nic_number,
        )


class ServiceDetailsRead(CamelModel):
    service_type: ServiceType | None = None
    estimated_cost: float | None = None
    estimated_duration: str | None = None
    urgency: bool = False


class ContactInfoRead(CamelModel):
    phone: str | None = None
    email: str | None = None
    preferred_contact_method: ContactMethod


class CoordinatesRead(CamelModel):
    latitude: float | None = None
    longitude: float | None = None


class LocationRead(CamelModel):
    address: str | None = None
    city: str | None = None
    district: str | None = None
    coordinates: CoordinatesRead


class TrackingRead(CamelModel):
    submitted_at: datetime
    last_updated: datetime
    updated_by: int | None = None
    completed_by: int | None = None
    completed_at: datetime | None = None


class AddedVehicleRead(CamelModel):
    id: int
    vehicle_id: int
    vehicle: VehicleSummaryRead | None = None
    added_by: UserSummaryRead | None = None
    vehicle_owner: UserSummaryRead | None = None
    owner_nic: str = Field(alias="ownerNIC")
    purpose: VehiclePurpose
    status: RequestStatus
    status_display: str
    priority: RequestPriority
    notes: str | None = None
    scheduled_date: datetime | None = None
    service_details: ServiceDetailsRead
    contact_info: ContactInfoRead
    location: LocationRead
    tracking: TrackingRead
    metadata: RequestMetadata | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    days_since_added: int

    @classmethod
    def from_model(cls, av: AddedVehicle, include_metadata: bool = False) -> "AddedVehicleRead":
        """Construire la vue imbriquée / Build the nested view from the flat row."""
        return cls(
            id=av.id,
            vehicle_id=av.vehicle_id,
            vehicle=VehicleSummaryRead.from_model(av.vehicle) if av.vehicle else None,
            added_by=_user_summary(av.added_by),
            vehicle_owner=_user_summary(av.vehicle_owner),
            owner_nic=av.owner_nic,
            purpose=av.purpose,
            status=av.status,
            status_display=av.status_display,
            priority=av.priority,
            notes=av.notes,
            scheduled_date=av.scheduled_date,
            service_details=ServiceDetailsRead(
                service_type=av.service_type,
                estimated_cost=float(av.estimated_cost) if av.estimated_cost is not None else None,
                estimated_duration=av.estimated_duration,
                urgency=bool(av.urgency),
            ),
            contact_info=ContactInfoRead(
                phone=av.contact_phone,
                email=av.contact_email,
                preferred_contact_method=av.preferred_contact_method,
            ),
            location=LocationRead(
                address=av.location_address,
                city=av.location_city,
                district=av.location_district,
                coordinates=CoordinatesRead(latitude=av.latitude, longitude=av.longitude),
            ),
            tracking=TrackingRead(
                submitted_at=av.submitted_at,
                last_updated=av.last_updated,
                updated_by=av.updated_by_id,
                completed_by=av.completed_by_id,
                completed_at=av.completed_at,
            ),
            metadata=RequestMetadata(
                source=av.source,
                ip_address=av.ip_address,
                user_agent=av.user_agent,
                session_id=av.session_id,
            ) if include_metadata else None,
            is_active=av.is_active,
            created_at=av.created_at,
            updated_at=av.updated_at,
            days_since_added=av.days_since_added(),
        )


def _user_summary(user: User | None) -> UserSummaryRead | None:
    return UserSummaryRead.from_model(user) if user else None


class PaginationRead(CamelModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_prev_page: bool


class StatusOverviewRead(CamelModel):
    total: int = 0
    active: int = 0
    completed: int = 0
    pending: int = 0
    cancelled: int = 0
    this_month: int = 0


class PurposeCountRead(CamelModel):
    purpose: VehiclePurpose
    count: int


class AuditEntryRead(CamelModel):
    id: int
    action: str
    changes: dict | None = None
    user_id: int | None = None
    timestamp: str

    @classmethod
    def from_model(cls, log: AuditLog) -> "AuditEntryRead":
        return cls(
            id=log.id,
            action=log.action,
            changes=json.loads(log.changes) if log.changes else None,
            user_id=log.user_id,
            timestamp=log.timestamp,
        )
