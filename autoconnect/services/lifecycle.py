"""
Cycle de vie des demandes / Added-vehicle request lifecycle.

Chaque mutation est un UPDATE conditionnel unique (compare-and-set) sur la
version, ou sur les statuts sources autorisés, plus is_active.
Every mutation is a single conditional UPDATE (compare-and-set) guarded on the
version, or on the allowed source statuses, plus is_active.

PENDING   -> ACTIVE, COMPLETED, CANCELLED
ACTIVE    -> COMPLETED, CANCELLED
COMPLETED -> CANCELLED (suppression logique uniquement / soft delete only)
CANCELLED -> (aucun / none)
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from autoconnect.config import settings
from autoconnect.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationFailedError
from autoconnect.models.added_vehicle import (
    ALLOWED_TRANSITIONS,
    OPEN_STATUSES,
    AddedVehicle,
    RequestStatus,
    VehiclePurpose,
)
from autoconnect.models.audit import AuditLog
from autoconnect.models.user import User
from autoconnect.schemas.added_vehicle import (
    AddedVehicleCreate,
    AddedVehicleUpdate,
    ContactInfoIn,
    CoordinatesIn,
    LocationIn,
    RequestMetadata,
    ServiceDetailsIn,
)
from autoconnect.services.directory import DirectoryClient
from autoconnect.services.permissions import Action, can_perform, ensure_can_perform
from autoconnect.services.repository import AddedVehicleRepository
from autoconnect.utils.clock import utcnow

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "Vehicle already added for this purpose"

# Sous-objets du patch -> colonnes / Patch sub-objects -> columns
_SERVICE_COLUMNS = {
    "service_type": "service_type",
    "estimated_cost": "estimated_cost",
    "estimated_duration": "estimated_duration",
    "urgency": "urgency",
}
_CONTACT_COLUMNS = {
    "phone": "contact_phone",
    "email": "contact_email",
    "preferred_contact_method": "preferred_contact_method",
}
_LOCATION_COLUMNS = {
    "address": "location_address",
    "city": "location_city",
    "district": "location_district",
}
_NOT_NULLABLE = ("purpose", "priority", "preferred_contact_method", "urgency")


def requires_address(purpose: VehiclePurpose) -> bool:
    return purpose.value in settings.ADDRESS_REQUIRED_PURPOSES


def check_transition(current: RequestStatus, target: RequestStatus) -> None:
    """Lever InvalidTransition si interdit / Raise InvalidTransition when not allowed."""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot change status from {current.value} to {target.value}", field="status"
        )


class AddedVehicleLifecycle:
    """Mutations d'une demande / Single-record mutations."""

    def __init__(
        self,
        db: AsyncSession,
        repository: AddedVehicleRepository | None = None,
        directory: DirectoryClient | None = None,
    ):
        self.db = db
        self.repository = repository or AddedVehicleRepository(db)
        self.directory = directory or DirectoryClient(db)

    # --- Lecture / Read ---
    async def get_visible(self, actor: User, request_id: int) -> AddedVehicle:
        """Absente, supprimée ou invisible -> NotFound / Missing, deleted or invisible -> NotFound."""
        request = await self.repository.get(request_id)
        if request is None or not can_perform(actor, Action.VIEW, request):
            raise NotFoundError("Added vehicle record not found")
        return request

    async def history(self, actor: User, request_id: int) -> list[AuditLog]:
        await self.get_visible(actor, request_id)
        return await self.repository.list_history(request_id)

    # --- Création / Create ---
    async def create(
        self,
        actor: User,
        payload: AddedVehicleCreate,
        metadata: RequestMetadata | None = None,
    ) -> AddedVehicle:
        """Créer une demande PENDING / Create a PENDING request."""
        actor_id = actor.id
        vehicle = await self.directory.get_vehicle_by_id(payload.vehicle_id)
        ensure_can_perform(actor, Action.CREATE, vehicle)

        # Chemin rapide ; l'index unique partiel fait foi / Fast path; the partial unique index is authoritative
        if await self.repository.find_open_duplicate(vehicle.id, actor_id, payload.purpose):
            logger.warning(
                "Duplicate request rejected: vehicle=%s user=%s purpose=%s",
                vehicle.id, actor_id, payload.purpose.value,
            )
            raise ConflictError(DUPLICATE_MESSAGE, field="purpose")

        service = payload.service_details or ServiceDetailsIn()
        contact = payload.contact_info or ContactInfoIn()
        location = payload.location or LocationIn()
        coordinates = location.coordinates or CoordinatesIn()
        metadata = metadata or RequestMetadata()

        if requires_address(payload.purpose) and not location.address:
            raise ValidationFailedError(
                f"Location address is required for {payload.purpose.value}", field="location.address"
            )

        # Instantané propriétaire / Owner snapshot
        owner_nic = (vehicle.owner_nic or actor.nic_number or "").strip().upper()
        if not owner_nic:
            raise ValidationFailedError("Owner NIC is required", field="ownerNIC")

        now = utcnow()
        request = AddedVehicle(
            vehicle_id=vehicle.id,
            added_by_id=actor_id,
            created_by_id=actor_id,
            vehicle_owner_id=vehicle.owner_id or actor_id,
            owner_nic=owner_nic,
            purpose=payload.purpose,
            status=RequestStatus.PENDING,
            priority=payload.priority,
            notes=payload.notes,
            scheduled_date=payload.scheduled_date,
            service_type=service.service_type,
            estimated_cost=service.estimated_cost,
            estimated_duration=service.estimated_duration,
            urgency=service.urgency,
            contact_phone=contact.phone or actor.phone,
            contact_email=contact.email or (actor.email.lower() if actor.email else None),
            preferred_contact_method=contact.preferred_contact_method,
            location_address=location.address,
            location_city=location.city,
            location_district=location.district,
            latitude=coordinates.latitude,
            longitude=coordinates.longitude,
            source=metadata.source,
            ip_address=metadata.ip_address[:64] if metadata.ip_address else None,
            user_agent=metadata.user_agent[:255] if metadata.user_agent else None,
            session_id=metadata.session_id[:100] if metadata.session_id else None,
            submitted_at=now,
            last_updated=now,
            version=1,
            is_active=True,
            created_at=now,
            updated_at=now,
        )

        try:
            await self.repository.add(request)
        except IntegrityError:
            await self.db.rollback()
            logger.warning(
                "Duplicate request rejected by constraint: vehicle=%s user=%s", payload.vehicle_id, actor_id
            )
            raise ConflictError(DUPLICATE_MESSAGE, field="purpose")

        await self.repository.add_audit(
            request.id, "CREATE",
            {"vehicleId": request.vehicle_id, "purpose": payload.purpose.value, "status": RequestStatus.PENDING.value},
            actor_id,
        )
        logger.info("Added vehicle request %s created by user %s", request.id, actor_id)
        return await self.repository.get(request.id)

    # --- Mise a jour / Update ---
    async def update(self, actor: User, request_id: int, patch: AddedVehicleUpdate) -> AddedVehicle:
        """Patch partiel ; champs immuables ignorés / Partial patch; immutable fields dropped."""
        return await self._apply_patch(actor, request_id, patch, "UPDATE")

    async def change_status(self, actor: User, request_id: int, status: RequestStatus) -> AddedVehicle:
        """Transition explicite (démarrer / approuver) / Explicit transition (start / approve)."""
        return await self._apply_patch(actor, request_id, AddedVehicleUpdate(status=status), "STATUS_CHANGE")

    async def _apply_patch(
        self, actor: User, request_id: int, patch: AddedVehicleUpdate, audit_action: str
    ) -> AddedVehicle:
        actor_id = actor.id
        request = await self.get_visible(actor, request_id)
        ensure_can_perform(actor, Action.UPDATE, request)

        if request.is_terminal:
            logger.warning("Update rejected on %s record %s", request.status.value, request_id)
            raise InvalidTransitionError(
                f"Cannot update a {request.status.value.lower()} record", field="status"
            )

        changes = patch.model_dump(exclude_unset=True)
        values: dict = {}

        for key in ("purpose", "priority", "notes", "scheduled_date"):
            if key in changes:
                values[key] = changes[key]
        for key, column in _SERVICE_COLUMNS.items():
            if key in (changes.get("service_details") or {}):
                values[column] = changes["service_details"][key]
        for key, column in _CONTACT_COLUMNS.items():
            if key in (changes.get("contact_info") or {}):
                values[column] = changes["contact_info"][key]
        location = changes.get("location") or {}
        for key, column in _LOCATION_COLUMNS.items():
            if key in location:
                values[column] = location[key]
        for key in ("latitude", "longitude"):
            if key in (location.get("coordinates") or {}):
                values[key] = location["coordinates"][key]

        for key in _NOT_NULLABLE:
            if key in values and values[key] is None:
                del values[key]

        purpose = values.get("purpose", request.purpose)
        address = values.get("location_address", request.location_address)
        if requires_address(purpose) and not address:
            raise ValidationFailedError(
                f"Location address is required for {purpose.value}", field="location.address"
            )

        now = utcnow()
        target = changes.get("status")
        if target is not None and target != request.status:
            if target == RequestStatus.CANCELLED:
                raise InvalidTransitionError("Use delete to cancel a record", field="status")
            check_transition(request.status, target)
            values["status"] = target
            values["updated_by_id"] = actor_id
            if target == RequestStatus.COMPLETED:
                values["completed_by_id"] = actor_id
                values["completed_at"] = now

        values.update(
            last_updated=now,
            last_modified_by_id=actor_id,
            version=AddedVehicle.version + 1,
        )
        conditions = [AddedVehicle.version == request.version, AddedVehicle.is_active.is_(True)]
        await self._write(request_id, conditions, values)

        await self.repository.add_audit(
            request_id, audit_action, patch.model_dump(mode="json", exclude_unset=True, by_alias=True), actor_id
        )
        logger.info("Added vehicle request %s updated by user %s (%s)", request_id, actor_id, audit_action)
        return await self.repository.get(request_id)

    # --- Clôture / Complete ---
    async def complete(self, actor: User, request_id: int, notes: str | None = None) -> AddedVehicle:
        """Clôturer une demande ouverte, une seule fois / Complete an open request, exactly once."""
        actor_id = actor.id
        request = await self.get_visible(actor, request_id)
        ensure_can_perform(actor, Action.COMPLETE, request)

        if request.is_terminal:
            logger.warning("Completion rejected on %s record %s", request.status.value, request_id)
            raise InvalidTransitionError("Record is already completed or cancelled", field="status")

        now = utcnow()
        values = {
            "status": RequestStatus.COMPLETED,
            "completed_by_id": actor_id,
            "completed_at": now,
            "updated_by_id": actor_id,
            "last_updated": now,
            "last_modified_by_id": actor_id,
            "version": AddedVehicle.version + 1,
        }
        if notes is not None:
            values["notes"] = notes
        conditions = [AddedVehicle.status.in_(OPEN_STATUSES), AddedVehicle.is_active.is_(True)]
        await self._write(request_id, conditions, values)

        await self.repository.add_audit(
            request_id, "COMPLETE",
            {"status": RequestStatus.COMPLETED.value, "notes": notes} if notes is not None
            else {"status": RequestStatus.COMPLETED.value},
            actor_id,
        )
        logger.info("Added vehicle request %s completed by user %s", request_id, actor_id)
        return await self.repository.get(request_id)

    # --- Suppression logique / Soft delete ---
    async def soft_delete(self, actor: User, request_id: int) -> None:
        """Désactiver et annuler ; historique de clôture conservé / Deactivate and cancel; completion kept."""
        actor_id = actor.id
        request = await self.get_visible(actor, request_id)
        ensure_can_perform(actor, Action.DELETE, request)
        previous_status = request.status

        now = utcnow()
        values = {
            "is_active": False,
            "status": RequestStatus.CANCELLED,
            "last_updated": now,
            "last_modified_by_id": actor_id,
            "version": AddedVehicle.version + 1,
        }
        await self._write(request_id, [AddedVehicle.is_active.is_(True)], values)

        await self.repository.add_audit(
            request_id, "DELETE",
            {"status": {"from": previous_status.value, "to": RequestStatus.CANCELLED.value}, "isActive": False},
            actor_id,
        )
        logger.info("Added vehicle request %s deleted by user %s", request_id, actor_id)

    # --- Écriture conditionnelle / Conditional write ---
    async def _write(self, request_id: int, conditions: list, values: dict) -> None:
        try:
            updated = await self.repository.conditional_update(request_id, conditions, values)
        except IntegrityError:
            await self.db.rollback()
            logger.warning("Update of request %s rejected by constraint", request_id)
            raise ConflictError(DUPLICATE_MESSAGE, field="purpose")
        if not updated:
            await self._raise_lost_race(request_id)

    async def _raise_lost_race(self, request_id: int) -> None:
        """Aucune ligne touchée : recharger pour expliquer / Zero rows: reload to explain."""
        current = await self.repository.get(request_id, include_inactive=True)
        if current is None or not current.is_active:
            raise NotFoundError("Added vehicle record not found")
        if current.is_terminal:
            logger.warning("Lost race on request %s: now %s", request_id, current.status.value)
            raise InvalidTransitionError(
                f"Record is already {current.status.value.lower()}", field="status"
            )
        logger.warning("Lost race on request %s: modified concurrently", request_id)
        raise ConflictError("Record was modified concurrently, please retry")
