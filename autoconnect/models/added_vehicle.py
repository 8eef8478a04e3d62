"""Modèle Véhicule ajouté / Added-vehicle request model.

Intention d'un acteur d'utiliser un véhicule pour un usage donné (réservation
de service, sinistre, inspection...). Jamais supprimé physiquement.
An actor's intent to use a vehicle for a given purpose. Never physically deleted.
"""

import enum
import math
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from autoconnect.database import Base
from autoconnect.utils.clock import utcnow


class VehiclePurpose(str, enum.Enum):
    """Motif d'ajout / Purpose of the request."""
    SERVICE_BOOKING = "SERVICE_BOOKING"
    INSURANCE_CLAIM = "INSURANCE_CLAIM"
    MAINTENANCE_SCHEDULE = "MAINTENANCE_SCHEDULE"
    REPAIR_REQUEST = "REPAIR_REQUEST"
    INSPECTION = "INSPECTION"
    SALE_LISTING = "SALE_LISTING"
    RENTAL = "RENTAL"
    OTHER = "OTHER"


class RequestStatus(str, enum.Enum):
    """Statut de la demande / Request status."""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class RequestPriority(str, enum.Enum):
    """Priorité (informative) / Priority (informational only)."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ServiceType(str, enum.Enum):
    """Type de prestation / Service type."""
    OIL_CHANGE = "OIL_CHANGE"
    BRAKE_SERVICE = "BRAKE_SERVICE"
    ENGINE_REPAIR = "ENGINE_REPAIR"
    TRANSMISSION_SERVICE = "TRANSMISSION_SERVICE"
    ELECTRICAL_REPAIR = "ELECTRICAL_REPAIR"
    BODY_WORK = "BODY_WORK"
    TIRE_SERVICE = "TIRE_SERVICE"
    AC_SERVICE = "AC_SERVICE"
    GENERAL_MAINTENANCE = "GENERAL_MAINTENANCE"
    INSPECTION = "INSPECTION"
    OTHER = "OTHER"


class ContactMethod(str, enum.Enum):
    """Moyen de contact préféré / Preferred contact method."""
    PHONE = "PHONE"
    EMAIL = "EMAIL"
    SMS = "SMS"
    WHATSAPP = "WHATSAPP"


class RequestSource(str, enum.Enum):
    """Canal d'origine / Source channel."""
    WEB_APP = "WEB_APP"
    MOBILE_APP = "MOBILE_APP"
    API = "API"
    ADMIN_PANEL = "ADMIN_PANEL"


# Statuts "ouverts" soumis a l'unicite / Open statuses covered by the uniqueness rule
OPEN_STATUSES = (RequestStatus.PENDING, RequestStatus.ACTIVE)
TERMINAL_STATUSES = (RequestStatus.COMPLETED, RequestStatus.CANCELLED)

# Table de transitions (monotone) / Transition table (monotonic)
ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.ACTIVE, RequestStatus.COMPLETED, RequestStatus.CANCELLED}),
    RequestStatus.ACTIVE: frozenset({RequestStatus.COMPLETED, RequestStatus.CANCELLED}),
    RequestStatus.COMPLETED: frozenset({RequestStatus.CANCELLED}),
    RequestStatus.CANCELLED: frozenset(),
}

STATUS_DISPLAY = {
    RequestStatus.ACTIVE: "Active",
    RequestStatus.COMPLETED: "Completed",
    RequestStatus.CANCELLED: "Cancelled",
    RequestStatus.PENDING: "Pending",
}


class AddedVehicle(Base):
    """Demande liée à un véhicule / Vehicle-linked request."""
    __tablename__ = "added_vehicles"
    __table_args__ = (
        # Au plus une demande ouverte par (vehicule, acteur, motif) /
        # At most one open request per (vehicle, actor, purpose)
        Index(
            "uq_added_vehicles_open_request",
            "vehicle_id", "added_by_id", "purpose",
            unique=True,
            sqlite_where=text("is_active = 1 AND status IN ('PENDING', 'ACTIVE')"),
            postgresql_where=text("is_active AND status IN ('PENDING', 'ACTIVE')"),
        ),
        Index("ix_added_vehicles_added_by_status", "added_by_id", "status"),
        Index("ix_added_vehicles_owner_nic_active", "owner_nic", "is_active"),
        Index("ix_added_vehicles_purpose_status", "purpose", "status"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # --- References (immuables) / References (immutable) ---
    vehicle_id: Mapped[int] = mapped_column(ForeignKey("vehicles.id"), nullable=False, index=True)
    added_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    last_modified_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))

    # --- Instantane proprietaire / Owner snapshot ---
    vehicle_owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    owner_nic: Mapped[str] = mapped_column(String(20), nullable=False)

    # --- Demande / Request ---
    purpose: Mapped[VehiclePurpose] = mapped_column(
        Enum(VehiclePurpose), nullable=False, default=VehiclePurpose.SERVICE_BOOKING
    )
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus), nullable=False, default=RequestStatus.PENDING
    )
    priority: Mapped[RequestPriority] = mapped_column(
        Enum(RequestPriority), nullable=False, default=RequestPriority.MEDIUM
    )
    notes: Mapped[str | None] = mapped_column(Text)
    scheduled_date: Mapped[datetime | None] = mapped_column(DateTime, index=True)

    # --- Prestation / Service details ---
    service_type: Mapped[ServiceType | None] = mapped_column(Enum(ServiceType))
    estimated_cost: Mapped[float | None] = mapped_column(Numeric(12, 2))
    estimated_duration: Mapped[str | None] = mapped_column(String(50))  # "2 hours", "1 day"
    urgency: Mapped[bool] = mapped_column(Boolean, default=False)

    # --- Contact ---
    contact_phone: Mapped[str | None] = mapped_column(String(20))
    contact_email: Mapped[str | None] = mapped_column(String(150))
    preferred_contact_method: Mapped[ContactMethod] = mapped_column(
        Enum(ContactMethod), nullable=False, default=ContactMethod.PHONE
    )

    # --- Localisation / Location ---
    location_address: Mapped[str | None] = mapped_column(String(255))
    location_city: Mapped[str | None] = mapped_column(String(100))
    location_district: Mapped[str | None] = mapped_column(String(100))
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)

    # --- Provenance (ecrite une fois) / Provenance (write-once) ---
    source: Mapped[RequestSource] = mapped_column(Enum(RequestSource), nullable=False, default=RequestSource.WEB_APP)
    ip_address: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(String(255))
    session_id: Mapped[str | None] = mapped_column(String(100))

    # --- Suivi / Tracking ---
    submitted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    last_updated: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    completed_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)

    # --- Suppression logique / Soft delete ---
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # --- Horodatage / Timestamps ---
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # --- Relations ---
    vehicle: Mapped["Vehicle"] = relationship(lazy="selectin")
    added_by: Mapped["User"] = relationship(foreign_keys=[added_by_id], lazy="selectin")
    vehicle_owner: Mapped["User"] = relationship(foreign_keys=[vehicle_owner_id], lazy="selectin")
    updated_by: Mapped["User | None"] = relationship(foreign_keys=[updated_by_id], lazy="selectin")
    completed_by: Mapped["User | None"] = relationship(foreign_keys=[completed_by_id], lazy="selectin")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def status_display(self) -> str:
        return STATUS_DISPLAY.get(self.status, str(self.status))

    def days_since_added(self, now: datetime | None = None) -> int:
        """Jours depuis l'ajout (arrondi sup.) / Days since added (rounded up)."""
        delta = abs((now or utcnow()) - self.created_at)
        return math.ceil(delta.total_seconds() / 86400)

    def __repr__(self) -> str:
        return f"<AddedVehicle {self.id} {self.purpose} {self.status}>"
