"""
Construction des requêtes de liste / List query & pagination builder.

Les requêtes de page et de comptage partagent exactement la même liste de prédicats.
The page and count queries share the very same predicate list, so totalCount
always matches the unpaginated result for the same filter.
"""

import math
from dataclasses import dataclass, field

from sqlalchemy import case, or_

from autoconnect.config import settings
from autoconnect.errors import ValidationFailedError
from autoconnect.models.added_vehicle import AddedVehicle, RequestPriority, RequestStatus, VehiclePurpose
from autoconnect.models.user import User
from autoconnect.models.vehicle import Vehicle
from autoconnect.services.permissions import Action, ensure_can_perform
from autoconnect.services.repository import AddedVehicleRepository

# Rang de sévérité, pas l'ordre alphabétique / Severity rank, not alphabetical order
PRIORITY_RANK = case(
    (AddedVehicle.priority == RequestPriority.LOW, 1),
    (AddedVehicle.priority == RequestPriority.MEDIUM, 2),
    (AddedVehicle.priority == RequestPriority.HIGH, 3),
    (AddedVehicle.priority == RequestPriority.URGENT, 4),
    else_=0,
)

# Liste blanche des tris (cle API -> colonne) / Sort whitelist (API key -> column)
SORT_FIELDS = {
    "createdAt": AddedVehicle.created_at,
    "updatedAt": AddedVehicle.updated_at,
    "scheduledDate": AddedVehicle.scheduled_date,
    "priority": PRIORITY_RANK,
    "status": AddedVehicle.status,
    "purpose": AddedVehicle.purpose,
    "lastUpdated": AddedVehicle.last_updated,
}
SORT_ORDERS = ("asc", "desc")


def _parse_enum(enum_cls, raw: str | None, field_name: str, allow_all: bool = False):
    """Valeur d'enum en majuscules, ou None / Uppercased enum value, or None."""
    if raw is None or not raw.strip():
        return None
    value = raw.strip().upper()
    if allow_all and value == "ALL":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationFailedError(f"Invalid {field_name}: {raw}", field=field_name)


def escape_like(term: str) -> str:
    """Échapper les jokers LIKE / Escape LIKE wildcards."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class Scope:
    """Périmètre imposé par l'appelant / Caller-imposed scope."""
    added_by_id: int | None = None
    owner_nic: str | None = None


@dataclass
class ListParams:
    page: int = 1
    limit: int = settings.DEFAULT_PAGE_SIZE
    status: RequestStatus | None = None
    purpose: VehiclePurpose | None = None
    owner_nic: str | None = None
    search: str | None = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"

    @classmethod
    def normalize(
        cls,
        page: int | None = None,
        limit: int | None = None,
        status: str | None = None,
        purpose: str | None = None,
        owner_nic: str | None = None,
        search: str | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
    ) -> "ListParams":
        """Valider et borner les paramètres bruts / Validate and bound raw parameters."""
        sort_by = sort_by or "createdAt"
        if sort_by not in SORT_FIELDS:
            raise ValidationFailedError(f"Invalid sort field: {sort_by}", field="sortBy")
        sort_order = (sort_order or "desc").lower()
        if sort_order not in SORT_ORDERS:
            raise ValidationFailedError(f"Invalid sort order: {sort_order}", field="sortOrder")

        page = max(1, page or 1)
        if page > settings.MAX_PAGE:
            raise ValidationFailedError(f"Page must be at most {settings.MAX_PAGE}", field="page")

        limit = settings.DEFAULT_PAGE_SIZE if limit is None else limit
        return cls(
            page=page,
            limit=min(max(1, limit), settings.MAX_PAGE_SIZE),
            status=_parse_enum(RequestStatus, status, "status", allow_all=True),
            purpose=_parse_enum(VehiclePurpose, purpose, "purpose"),
            owner_nic=owner_nic.strip().upper() if owner_nic and owner_nic.strip() else None,
            search=search.strip() if search and search.strip() else None,
            sort_by=sort_by,
            sort_order=sort_order,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def build_predicates(scope: Scope, params: ListParams) -> list:
    """Liste de prédicats partagée page/comptage / Predicate list shared by page and count."""
    predicates = [AddedVehicle.is_active.is_(True)]

    if scope.added_by_id is not None:
        predicates.append(AddedVehicle.added_by_id == scope.added_by_id)
    if scope.owner_nic:
        predicates.append(AddedVehicle.owner_nic == scope.owner_nic.upper())

    if params.status is not None:
        predicates.append(AddedVehicle.status == params.status)
    if params.purpose is not None:
        predicates.append(AddedVehicle.purpose == params.purpose)
    if params.owner_nic:
        predicates.append(AddedVehicle.owner_nic == params.owner_nic)

    if params.search:
        pattern = f"%{escape_like(params.search)}%"
        predicates.append(or_(
            AddedVehicle.vehicle.has(or_(
                Vehicle.registration_number.ilike(pattern, escape="\\"),
                Vehicle.make.ilike(pattern, escape="\\"),
                Vehicle.model.ilike(pattern, escape="\\"),
            )),
            AddedVehicle.notes.ilike(pattern, escape="\\"),
        ))

    return predicates


def build_order_by(params: ListParams) -> list:
    column = SORT_FIELDS[params.sort_by]
    if params.sort_order == "asc":
        return [column.asc(), AddedVehicle.id.asc()]
    return [column.desc(), AddedVehicle.id.desc()]


@dataclass
class Page:
    items: list[AddedVehicle] = field(default_factory=list)
    total_count: int = 0
    page: int = 1
    limit: int = settings.DEFAULT_PAGE_SIZE

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit) if self.limit else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1

    def pagination(self) -> dict:
        return {
            "current_page": self.page,
            "total_pages": self.total_pages,
            "total_count": self.total_count,
            "has_next_page": self.has_next_page,
            "has_prev_page": self.has_prev_page,
        }


class AddedVehicleQuery:
    """Listes paginées et export borné / Paginated lists and bounded export."""

    def __init__(self, repository: AddedVehicleRepository):
        self.repository = repository

    async def page(self, scope: Scope, params: ListParams) -> Page:
        predicates = build_predicates(scope, params)
        total = await self.repository.count(predicates)
        items = await self.repository.find(
            predicates, build_order_by(params), offset=params.offset, limit=params.limit
        )
        return Page(items=items, total_count=total, page=params.page, limit=params.limit)

    async def list_for_actor(self, actor: User, params: ListParams) -> Page:
        """Demandes créées par l'acteur / Requests created by the actor."""
        return await self.page(Scope(added_by_id=actor.id), params)

    async def list_for_owner(self, actor: User, nic_number: str, params: ListParams) -> Page:
        """Demandes visant un NIC propriétaire / Requests for an owner NIC."""
        nic = nic_number.strip().upper()
        ensure_can_perform(actor, Action.VIEW_OWNER, nic)
        # Seul le filtre statut s'applique ici / Only the status filter applies here
        owner_params = ListParams(
            page=params.page,
            limit=params.limit,
            status=params.status,
            sort_by=params.sort_by,
            sort_order=params.sort_order,
        )
        return await self.page(Scope(owner_nic=nic), owner_params)

    async def export(self, actor: User, params: ListParams) -> list[AddedVehicle]:
        """Export non paginé, borné / Unpaginated, bounded export."""
        predicates = build_predicates(Scope(added_by_id=actor.id), params)
        return await self.repository.find(
            predicates, build_order_by(params), offset=0, limit=settings.EXPORT_MAX_ROWS
        )
