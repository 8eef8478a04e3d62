"""Tests du cycle de vie / Lifecycle tests."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from autoconnect.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from autoconnect.models.added_vehicle import AddedVehicle, RequestSource, RequestStatus, VehiclePurpose
from autoconnect.schemas.added_vehicle import AddedVehicleCreate, AddedVehicleUpdate, RequestMetadata
from autoconnect.services.lifecycle import AddedVehicleLifecycle
from autoconnect.services.repository import AddedVehicleRepository


def _payload(vehicle, purpose=VehiclePurpose.SERVICE_BOOKING, **kwargs) -> AddedVehicleCreate:
    return AddedVehicleCreate(vehicle_id=vehicle.id, purpose=purpose, **kwargs)


class NoFastPathRepository(AddedVehicleRepository):
    """Ignore le contrôle applicatif / Skips the application-level duplicate check."""

    async def find_open_duplicate(self, vehicle_id, added_by_id, purpose):
        return None


class RacingRepository(AddedVehicleRepository):
    """Une écriture concurrente passe avant chaque écriture / A concurrent write lands first."""

    async def conditional_update(self, request_id, conditions, values):
        await super().conditional_update(request_id, [], {"version": AddedVehicle.version + 1})
        return await super().conditional_update(request_id, conditions, values)


# --- Création / Create ---
@pytest.mark.asyncio
async def test_create_snapshots_owner_and_forces_pending(db, world):
    lifecycle = AddedVehicleLifecycle(db)
    av = await lifecycle.create(
        world.creator,
        _payload(world.vehicle, notes="  Brake noise  "),
        RequestMetadata(source=RequestSource.MOBILE_APP, ip_address="10.0.0.1"),
    )
    assert av.status == RequestStatus.PENDING
    assert av.vehicle_owner_id == world.owner.id
    assert av.owner_nic == "199012345678"
    assert av.added_by_id == world.creator.id
    assert av.notes == "Brake noise"
    assert av.contact_phone == world.creator.phone
    assert av.contact_email == world.creator.email
    assert av.source == RequestSource.MOBILE_APP
    assert av.submitted_at == av.last_updated
    assert av.vehicle.registration_number == world.vehicle.registration_number


@pytest.mark.asyncio
async def test_create_ignores_caller_status(db, world):
    payload = AddedVehicleCreate.model_validate({"vehicleId": world.vehicle.id, "status": "COMPLETED"})
    av = await AddedVehicleLifecycle(db).create(world.creator, payload)
    assert av.status == RequestStatus.PENDING


@pytest.mark.asyncio
async def test_create_unknown_vehicle(db, world):
    with pytest.raises(NotFoundError) as exc:
        await AddedVehicleLifecycle(db).create(world.creator, AddedVehicleCreate(vehicle_id=9999))
    assert exc.value.field == "vehicleId"


@pytest.mark.asyncio
async def test_create_denied_for_non_owner(db, world):
    with pytest.raises(PermissionDeniedError):
        await AddedVehicleLifecycle(db).create(world.stranger, _payload(world.vehicle))


@pytest.mark.asyncio
async def test_create_duplicate_is_conflict(db, world):
    lifecycle = AddedVehicleLifecycle(db)
    await lifecycle.create(world.creator, _payload(world.vehicle))
    with pytest.raises(ConflictError):
        await lifecycle.create(world.creator, _payload(world.vehicle))
    # Autre motif : accepté / Other purpose: accepted
    other = await lifecycle.create(world.creator, _payload(world.vehicle, purpose=VehiclePurpose.RENTAL))
    assert other.purpose == VehiclePurpose.RENTAL


@pytest.mark.asyncio
async def test_create_again_after_completion(db, world):
    lifecycle = AddedVehicleLifecycle(db)
    first = await lifecycle.create(world.creator, _payload(world.vehicle))
    await lifecycle.complete(world.creator, first.id)
    second = await lifecycle.create(world.creator, _payload(world.vehicle))
    assert second.id != first.id


@pytest.mark.asyncio
async def test_unique_index_closes_duplicate_race(session_factory, world):
    async with session_factory() as session:
        await AddedVehicleLifecycle(session).create(world.creator, _payload(world.vehicle))
        await session.commit()

    async with session_factory() as session:
        lifecycle = AddedVehicleLifecycle(session, repository=NoFastPathRepository(session))
        with pytest.raises(ConflictError):
            await lifecycle.create(world.creator, _payload(world.vehicle))


@pytest.mark.asyncio
async def test_concurrent_duplicate_creates_yield_one_record(session_factory, world):
    async def attempt():
        async with session_factory() as session:
            try:
                av = await AddedVehicleLifecycle(session).create(world.creator, _payload(world.vehicle))
                await session.commit()
                return av.id
            except Exception:
                await session.rollback()
                raise

    results = await asyncio.gather(attempt(), attempt(), return_exceptions=True)
    assert len([r for r in results if isinstance(r, int)]) == 1
    assert len([r for r in results if isinstance(r, ConflictError)]) == 1


@pytest.mark.asyncio
async def test_create_requires_address_for_inspection(db, world):
    with pytest.raises(ValidationFailedError) as exc:
        await AddedVehicleLifecycle(db).create(world.creator, _payload(world.vehicle, purpose=VehiclePurpose.INSPECTION))
    assert exc.value.field == "location.address"

    av = await AddedVehicleLifecycle(db).create(
        world.creator,
        _payload(world.vehicle, purpose=VehiclePurpose.INSPECTION, location={"address": "12 Galle Rd", "city": "Colombo"}),
    )
    assert av.location_address == "12 Galle Rd"


def test_payload_validation_paths():
    with pytest.raises(ValidationError) as exc:
        AddedVehicleCreate.model_validate({
            "vehicleId": 1,
            "contactInfo": {"phone": "abc"},
        })
    assert exc.value.errors()[0]["loc"] == ("contactInfo", "phone")

    with pytest.raises(ValidationError):
        AddedVehicleCreate(vehicle_id=1, notes="x" * 501)
    with pytest.raises(ValidationError):
        AddedVehicleCreate(vehicle_id=1, location={"coordinates": {"latitude": 91}})
    with pytest.raises(ValidationError):
        AddedVehicleCreate(vehicle_id=1, scheduled_date=datetime.now(timezone.utc) - timedelta(days=2))


def test_payload_enums_are_case_insensitive():
    payload = AddedVehicleCreate.model_validate({"vehicleId": 1, "purpose": "repair_request", "priority": "high"})
    assert payload.purpose == VehiclePurpose.REPAIR_REQUEST


# --- Mise a jour / Update ---
@pytest.mark.asyncio
async def test_update_strips_immutable_fields(db, world):
    lifecycle = AddedVehicleLifecycle(db)
    av = await lifecycle.create(world.creator, _payload(world.vehicle))
    patch = AddedVehicleUpdate.model_validate({
        "notes": "Updated",
        "ownerNIC": "000000000V",
        "vehicleId": 42,
        "isActive": False,
        "serviceDetails": {"estimatedCost": 150.5},
    })
    updated = await lifecycle.update(world.creator, av.id, patch)
    assert updated.notes == "Updated"
    assert updated.owner_nic == "199012345678"
    assert updated.vehicle_id == world.vehicle.id
    assert updated.is_active
    assert float(updated.estimated_cost) == 150.5
    assert updated.version == 2
    assert updated.last_modified_by_id == world.creator.id


@pytest.mark.asyncio
async def test_owner_cannot_update_or_delete(db, world):
    lifecycle = AddedVehicleLifecycle(db)
    av = await lifecycle.create(world.creator, _payload(world.vehicle))
    with pytest.raises(PermissionDeniedError):
        await lifecycle.update(world.owner, av.id, AddedVehicleUpdate(notes="mine"))
    with pytest.raises(PermissionDeniedError):
        await lifecycle.soft_delete(world.owner, av.id)


@pytest.mark.asyncio
async def test_stranger_gets_not_found(db, world):
    lifecycle = AddedVehicleLifecycle(db)
    av = await lifecycle.create(world.creator, _payload(world.vehicle))
    with pytest.raises(NotFoundError):
        await lifecycle.get_visible(world.stranger, av.id)
    with pytest.raises(NotFoundError):
        await lifecycle.update(world.stranger, av.id, AddedVehicleUpdate(notes="x"))


@pytest.mark.asyncio
async def test_status_transitions(db, world):
    lifecycle = AddedVehicleLifecycle(db)
    av = await lifecycle.create(world.creator, _payload(world.vehicle))

    active = await lifecycle.change_status(world.creator, av.id, RequestStatus.ACTIVE)
    assert active.status == RequestStatus.ACTIVE
    assert active.updated_by_id == world.creator.id

    with pytest.raises(InvalidTransitionError):
        await lifecycle.change_status(world.creator, av.id, RequestStatus.PENDING)
    with pytest.raises(InvalidTransitionError):
        await lifecycle.change_status(world.creator, av.id, RequestStatus.CANCELLED)

    done = await lifecycle.update(world.creator, av.id, AddedVehicleUpdate(status=RequestStatus.COMPLETED))
    assert done.completed_by_id == world.creator.id
    assert done.completed_at is not None

    with pytest.raises(InvalidTransitionError):
        await lifecycle.update(world.creator, av.id, AddedVehicleUpdate(notes="too late"))


@pytest.mark.asyncio
async def test_stale_version_is_conflict(db, world):
    av = await AddedVehicleLifecycle(db).create(world.creator, _payload(world.vehicle))
    lifecycle = AddedVehicleLifecycle(db, repository=RacingRepository(db))
    with pytest.raises(ConflictError):
        await lifecycle.update(world.creator, av.id, AddedVehicleUpdate(notes="lost"))

    current = await AddedVehicleRepository(db).get(av.id)
    assert current.notes is None
    assert current.version == 2


# --- Clôture / Complete ---
@pytest.mark.asyncio
async def test_owner_completes_then_creator_deletes(db, world):
    lifecycle = AddedVehicleLifecycle(db)
    av = await lifecycle.create(world.creator, _payload(world.vehicle))

    completed = await lifecycle.complete(world.owner, av.id, notes="Serviced")
    assert completed.status == RequestStatus.COMPLETED
    assert completed.completed_by_id == world.owner.id
    assert completed.notes == "Serviced"
    completed_at = completed.completed_at

    await lifecycle.soft_delete(world.creator, av.id)
    deleted = await AddedVehicleRepository(db).get(av.id, include_inactive=True)
    assert deleted.status == RequestStatus.CANCELLED
    assert not deleted.is_active
    assert deleted.completed_by_id == world.owner.id
    assert deleted.completed_at == completed_at


@pytest.mark.asyncio
async def test_completion_is_not_repeatable(db, world):
    lifecycle = AddedVehicleLifecycle(db)
    av = await lifecycle.create(world.creator, _payload(world.vehicle))
    first = await lifecycle.complete(world.creator, av.id)
    stamped = first.completed_at

    with pytest.raises(InvalidTransitionError):
        await lifecycle.complete(world.owner, av.id)
    again = await AddedVehicleRepository(db).get(av.id)
    assert again.completed_at == stamped
    assert again.completed_by_id == world.creator.id


@pytest.mark.asyncio
async def test_concurrent_completion_has_one_winner(session_factory, world):
    async with session_factory() as session:
        av = await AddedVehicleLifecycle(session).create(world.creator, _payload(world.vehicle))
        await session.commit()

    async def attempt(actor):
        async with session_factory() as session:
            try:
                await AddedVehicleLifecycle(session).complete(actor, av.id)
                await session.commit()
                return actor.id
            except Exception:
                await session.rollback()
                raise

    results = await asyncio.gather(attempt(world.creator), attempt(world.owner), return_exceptions=True)
    assert len([r for r in results if isinstance(r, int)]) == 1
    assert len([r for r in results if isinstance(r, InvalidTransitionError)]) == 1


# --- Suppression / Delete ---
@pytest.mark.asyncio
async def test_deleted_record_is_not_found(db, world):
    lifecycle = AddedVehicleLifecycle(db)
    av = await lifecycle.create(world.creator, _payload(world.vehicle))
    await lifecycle.soft_delete(world.creator, av.id)

    with pytest.raises(NotFoundError):
        await lifecycle.get_visible(world.creator, av.id)
    with pytest.raises(NotFoundError):
        await lifecycle.soft_delete(world.creator, av.id)
    with pytest.raises(NotFoundError):
        await lifecycle.complete(world.creator, av.id)

    # Le créneau est libéré / The slot is freed
    again = await lifecycle.create(world.creator, _payload(world.vehicle))
    assert again.status == RequestStatus.PENDING


@pytest.mark.asyncio
async def test_history_records_each_mutation(db, world):
    lifecycle = AddedVehicleLifecycle(db)
    av = await lifecycle.create(world.creator, _payload(world.vehicle))
    await lifecycle.change_status(world.creator, av.id, RequestStatus.ACTIVE)
    await lifecycle.update(world.creator, av.id, AddedVehicleUpdate(priority="HIGH"))
    await lifecycle.complete(world.owner, av.id)

    history = await lifecycle.history(world.owner, av.id)
    assert [entry.action for entry in history] == ["CREATE", "STATUS_CHANGE", "UPDATE", "COMPLETE"]
    assert history[-1].user_id == world.owner.id

    with pytest.raises(NotFoundError):
        await lifecycle.history(world.stranger, av.id)
