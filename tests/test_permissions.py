"""Tests des permissions / Permission evaluator tests."""

import pytest

from autoconnect.errors import PermissionDeniedError
from autoconnect.models.added_vehicle import AddedVehicle
from autoconnect.models.user import User
from autoconnect.models.vehicle import Vehicle
from autoconnect.services.permissions import Action, can_perform, ensure_can_perform, same_nic

ADMIN = User(id=1, role="admin", nic_number="ADMIN1")
OWNER = User(id=2, role="vehicle_owner", nic_number="199012345678")
CREATOR = User(id=3, role="service_provider", nic_number="199012345678")
STRANGER = User(id=4, role="vehicle_owner", nic_number="887766554V")


def _request() -> AddedVehicle:
    return AddedVehicle(id=10, added_by_id=CREATOR.id, vehicle_owner_id=OWNER.id, owner_nic="199012345678")


def test_same_nic_is_case_insensitive():
    assert same_nic("887766554v", "887766554V")
    assert not same_nic(None, "887766554V")
    assert not same_nic("", "")


def test_create_requires_ownership_by_id_or_nic():
    vehicle = Vehicle(id=5, owner_id=OWNER.id, owner_nic="199012345678")
    assert can_perform(OWNER, Action.CREATE, vehicle)
    assert can_perform(CREATOR, Action.CREATE, vehicle)
    assert not can_perform(STRANGER, Action.CREATE, vehicle)


def test_create_without_owner_nic_needs_owner_id():
    vehicle = Vehicle(id=5, owner_id=None, owner_nic=None)
    assert not can_perform(User(id=9, nic_number=None, role="vehicle_owner"), Action.CREATE, vehicle)


@pytest.mark.parametrize("actor,expected", [
    (ADMIN, True),
    (CREATOR, True),
    (OWNER, True),
    (STRANGER, False),
])
def test_view_and_complete(actor, expected):
    request = _request()
    assert can_perform(actor, Action.VIEW, request) is expected
    assert can_perform(actor, Action.COMPLETE, request) is expected


@pytest.mark.parametrize("action", [Action.UPDATE, Action.DELETE])
def test_owner_may_not_update_or_delete(action):
    request = _request()
    assert can_perform(CREATOR, action, request)
    assert can_perform(ADMIN, action, request)
    assert not can_perform(OWNER, action, request)
    assert not can_perform(STRANGER, action, request)


def test_view_owner_by_nic():
    assert can_perform(OWNER, Action.VIEW_OWNER, "199012345678")
    assert can_perform(ADMIN, Action.VIEW_OWNER, "199012345678")
    assert not can_perform(STRANGER, Action.VIEW_OWNER, "199012345678")


def test_wrong_target_type_is_denied():
    assert not can_perform(OWNER, Action.CREATE, _request())
    assert not can_perform(ADMIN, Action.VIEW, "199012345678")


def test_ensure_raises_permission_denied():
    with pytest.raises(PermissionDeniedError) as exc:
        ensure_can_perform(OWNER, Action.DELETE, _request())
    assert exc.value.status_code == 403
    assert exc.value.to_dict()["error"]["kind"] == "PERMISSION_DENIED"
