"""
Statistiques des demandes / Added-vehicle statistics.
Calculées a l'appel, sans cache / Computed at call time, no cache.
"""

import logging

from autoconnect.models.user import User
from autoconnect.services.permissions import Action, ensure_can_perform, is_admin
from autoconnect.services.query_builder import ListParams, Scope, build_predicates
from autoconnect.services.repository import AddedVehicleRepository
from autoconnect.utils.clock import start_of_month, utcnow

logger = logging.getLogger(__name__)


class AddedVehicleStatistics:
    def __init__(self, repository: AddedVehicleRepository):
        self.repository = repository

    @staticmethod
    def resolve_scope(actor: User, owner_nic: str | None = None) -> Scope:
        """Périmètre des stats / Statistics scope.

        ownerNIC autorisé -> NIC ; sinon admin -> tout, autres -> leurs demandes.
        Authorized ownerNIC -> NIC scope; otherwise admin -> everything, others -> own requests.
        """
        if owner_nic and owner_nic.strip():
            nic = owner_nic.strip().upper()
            ensure_can_perform(actor, Action.VIEW_OWNER, nic)
            return Scope(owner_nic=nic)
        if is_admin(actor):
            return Scope()
        return Scope(added_by_id=actor.id)

    async def compute(self, actor: User, owner_nic: str | None = None) -> dict:
        scope = self.resolve_scope(actor, owner_nic)

        predicates = build_predicates(scope, ListParams())

        overview = await self.repository.status_overview(predicates, start_of_month(utcnow()))
        breakdown = await self.repository.purpose_breakdown(predicates)
        logger.debug("Statistics computed for user %s (scope=%s)", actor.id, scope)

        return {
            "overview": overview,
            "purpose_breakdown": [
                {"purpose": purpose, "count": count} for purpose, count in breakdown
            ],
        }
