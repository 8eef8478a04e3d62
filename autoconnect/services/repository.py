"""
Dépôt des demandes / Added-vehicle repository.
Interface de persistance injectée dans le cycle de vie, les requêtes et les stats.
Persistence interface injected into the lifecycle, query and statistics services.
"""

import json
from datetime import datetime, timezone

from sqlalchemy import case, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from autoconnect.models.added_vehicle import OPEN_STATUSES, AddedVehicle, RequestStatus
from autoconnect.models.audit import AuditLog

ENTITY_TYPE = "added_vehicle"


class AddedVehicleRepository:
    """Accès SQL aux demandes / SQL access to requests."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add(self, request: AddedVehicle) -> AddedVehicle:
        """Insérer (flush) / Insert and flush. IntegrityError remonte a l'appelant."""
        self.db.add(request)
        await self.db.flush()
        return request

    async def get(self, request_id: int, include_inactive: bool = False) -> AddedVehicle | None:
        """Charger une demande fraîche / Load a fresh copy of a request."""
        query = (
            select(AddedVehicle)
            .where(AddedVehicle.id == request_id)
            .execution_options(populate_existing=True)
        )
        if not include_inactive:
            query = query.where(AddedVehicle.is_active.is_(True))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find_open_duplicate(self, vehicle_id: int, added_by_id: int, purpose) -> AddedVehicle | None:
        result = await self.db.execute(
            select(AddedVehicle).where(
                AddedVehicle.vehicle_id == vehicle_id,
                AddedVehicle.added_by_id == added_by_id,
                AddedVehicle.purpose == purpose,
                AddedVehicle.is_active.is_(True),
                AddedVehicle.status.in_(OPEN_STATUSES),
            ).limit(1)
        )
        return result.scalar_one_or_none()

    async def conditional_update(self, request_id: int, conditions: list, values: dict) -> bool:
        """UPDATE ... WHERE (compare-and-set). False si aucune ligne touchée / False when no row matched."""
        result = await self.db.execute(
            update(AddedVehicle)
            .where(AddedVehicle.id == request_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def find(self, predicates: list, order_by: list, offset: int = 0, limit: int | None = None) -> list[AddedVehicle]:
        query = select(AddedVehicle).where(*predicates).order_by(*order_by).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count(self, predicates: list) -> int:
        result = await self.db.execute(
            select(func.count(AddedVehicle.id)).where(*predicates)
        )
        return result.scalar_one()

    async def status_overview(self, predicates: list, month_start: datetime) -> dict[str, int]:
        """Compteurs par statut en une requête / Per-status counters in one query."""

        def _count_if(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        result = await self.db.execute(
            select(
                func.count(AddedVehicle.id),
                _count_if(AddedVehicle.status == RequestStatus.ACTIVE),
                _count_if(AddedVehicle.status == RequestStatus.COMPLETED),
                _count_if(AddedVehicle.status == RequestStatus.PENDING),
                _count_if(AddedVehicle.status == RequestStatus.CANCELLED),
                _count_if(AddedVehicle.created_at >= month_start),
            ).where(*predicates)
        )
        total, active, completed, pending, cancelled, this_month = result.one()
        return {
            "total": total,
            "active": active,
            "completed": completed,
            "pending": pending,
            "cancelled": cancelled,
            "this_month": this_month,
        }

    async def purpose_breakdown(self, predicates: list) -> list[tuple]:
        count_col = func.count(AddedVehicle.id).label("count")
        result = await self.db.execute(
            select(AddedVehicle.purpose, count_col)
            .where(*predicates)
            .group_by(AddedVehicle.purpose)
            .order_by(desc(count_col), AddedVehicle.purpose.asc())
        )
        return [(purpose, count) for purpose, count in result.all()]

    # --- Historique / Audit trail ---
    async def add_audit(self, entity_id: int, action: str, changes: dict | None, user_id: int | None) -> None:
        now = datetime.now(timezone.utc).isoformat(timespec="seconds")
        self.db.add(AuditLog(
            entity_type=ENTITY_TYPE, entity_id=entity_id, action=action,
            changes=json.dumps(changes, default=str) if changes else None,
            user_id=user_id, timestamp=now,
        ))
        await self.db.flush()

    async def list_history(self, entity_id: int) -> list[AuditLog]:
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == ENTITY_TYPE, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.id.asc())
        )
        return list(result.scalars().all())
