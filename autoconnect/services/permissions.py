"""
Évaluateur de permissions / Permission evaluator.

Fonction pure, sans effet de bord : (acteur, action, cible) -> autorisé ?
Pure function, no side effects: (actor, action, target) -> allowed?

Le propriétaire du véhicule peut clôturer une demande mais pas la modifier ni
la supprimer : seul le demandeur (ou un admin) gère l'enregistrement.
The vehicle owner may complete a request but not update or delete it: only the
requester (or an admin) manages the record itself.
"""

import enum
import logging

from autoconnect.config import settings
from autoconnect.errors import PermissionDeniedError
from autoconnect.models.added_vehicle import AddedVehicle
from autoconnect.models.user import User
from autoconnect.models.vehicle import Vehicle

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    CREATE = "CREATE"
    VIEW = "VIEW"
    VIEW_OWNER = "VIEW_OWNER"  # listing par NIC proprietaire / listing by owner NIC
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    COMPLETE = "COMPLETE"


def is_admin(actor: User) -> bool:
    return actor.role == settings.ADMIN_ROLE


def same_nic(left: str | None, right: str | None) -> bool:
    """Comparaison NIC insensible a la casse / Case-insensitive NIC comparison."""
    if not left or not right:
        return False
    return left.strip().upper() == right.strip().upper()


def _is_creator(actor: User, request: AddedVehicle) -> bool:
    return request.added_by_id == actor.id


def _is_snapshot_owner(actor: User, request: AddedVehicle) -> bool:
    return request.vehicle_owner_id == actor.id


def can_perform(actor: User, action: Action, target: AddedVehicle | Vehicle | str) -> bool:
    """Décision allow/deny / Allow/deny decision.

    - CREATE     : cible = Vehicle / target is a Vehicle
    - VIEW_OWNER : cible = NIC (str) / target is an NIC string
    - autres     : cible = AddedVehicle / others target an AddedVehicle
    """
    if action == Action.CREATE:
        if not isinstance(target, Vehicle):
            return False
        return target.owner_id == actor.id or same_nic(target.owner_nic, actor.nic_number)

    if action == Action.VIEW_OWNER:
        if not isinstance(target, str):
            return False
        return is_admin(actor) or same_nic(target, actor.nic_number)

    if not isinstance(target, AddedVehicle):
        return False

    if is_admin(actor) or _is_creator(actor, target):
        return True

    if action in (Action.VIEW, Action.COMPLETE):
        return _is_snapshot_owner(actor, target)

    # UPDATE / DELETE : createur ou admin uniquement / creator or admin only
    return False


def ensure_can_perform(actor: User, action: Action, target: AddedVehicle | Vehicle | str) -> None:
    """Lever PermissionDenied si refusé / Raise PermissionDenied when denied."""
    if not can_perform(actor, action, target):
        logger.info("Permission denied: user=%s action=%s", actor.id, action.value)
        raise PermissionDeniedError(_DENIAL_MESSAGES.get(action, "Access denied"))


_DENIAL_MESSAGES = {
    Action.CREATE: "You don't have permission to add this vehicle",
    Action.VIEW: "Access denied",
    Action.VIEW_OWNER: "Access denied",
    Action.UPDATE: "You don't have permission to update this record",
    Action.DELETE: "You don't have permission to delete this record",
    Action.COMPLETE: "You don't have permission to complete this record",
}
