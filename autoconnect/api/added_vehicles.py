"""Routes Véhicules ajoutés / Added-vehicle API routes."""

import io

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from autoconnect.api.deps import get_current_user
from autoconnect.config import settings
from autoconnect.database import get_db
from autoconnect.models.added_vehicle import RequestSource
from autoconnect.models.user import User
from autoconnect.rate_limit import limiter
from autoconnect.schemas.added_vehicle import (
    AddedVehicleCreate,
    AddedVehicleRead,
    AddedVehicleUpdate,
    AuditEntryRead,
    CompleteRequest,
    PaginationRead,
    PurposeCountRead,
    RequestMetadata,
    StatusChangeRequest,
    StatusOverviewRead,
)
from autoconnect.services.export_service import ExportService
from autoconnect.services.lifecycle import AddedVehicleLifecycle
from autoconnect.services.permissions import is_admin
from autoconnect.services.query_builder import AddedVehicleQuery, ListParams, Page
from autoconnect.services.repository import AddedVehicleRepository
from autoconnect.services.statistics import AddedVehicleStatistics

router = APIRouter()


def _ok(data=None, message: str | None = None) -> dict:
    """Enveloppe de succès / Success envelope."""
    body: dict = {"success": True}
    if message:
        body["message"] = message
    body["data"] = data
    return body


def _dump(model) -> dict:
    return model.model_dump(by_alias=True, mode="json")


def _page_data(page: Page) -> dict:
    return {
        "addedVehicles": [_dump(AddedVehicleRead.from_model(av)) for av in page.items],
        "pagination": _dump(PaginationRead(**page.pagination())),
    }


def _request_metadata(request: Request) -> RequestMetadata:
    """Provenance depuis les en-têtes / Provenance from request headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else None

    raw_source = (request.headers.get("X-Client-Source") or "").strip().upper()
    source = RequestSource(raw_source) if raw_source in RequestSource.__members__ else RequestSource.WEB_APP

    return RequestMetadata(
        source=source,
        ip_address=ip,
        user_agent=request.headers.get("User-Agent"),
        session_id=request.headers.get("X-Session-ID") or getattr(request.state, "request_id", None),
    )


def _query(db: AsyncSession) -> AddedVehicleQuery:
    return AddedVehicleQuery(AddedVehicleRepository(db))


@router.get("")
async def list_added_vehicles(
    status: str | None = None,
    purpose: str | None = None,
    owner_nic: str | None = Query(None, alias="ownerNIC"),
    search: str | None = None,
    page: int = Query(1, ge=1, le=settings.MAX_PAGE),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Demandes créées par l'utilisateur / Requests created by the current user."""
    params = ListParams.normalize(
        page=page, limit=limit, status=status, purpose=purpose, owner_nic=owner_nic,
        search=search, sort_by=sort_by, sort_order=sort_order,
    )
    result = await _query(db).list_for_actor(user, params)
    return _ok(_page_data(result))


@router.post("", status_code=201)
@limiter.limit(settings.RATE_LIMIT_CREATE)
async def create_added_vehicle(
    request: Request,
    data: AddedVehicleCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Ajouter un véhicule a un parcours / Add a vehicle to a workflow."""
    av = await AddedVehicleLifecycle(db).create(user, data, _request_metadata(request))
    return _ok(_dump(AddedVehicleRead.from_model(av)), message="Vehicle added successfully")


@router.get("/stats")
async def added_vehicle_stats(
    owner_nic: str | None = Query(None, alias="ownerNIC"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Statistiques / Statistics (ownerNIC optionnel / optional)."""
    stats = await AddedVehicleStatistics(AddedVehicleRepository(db)).compute(user, owner_nic)
    return _ok({
        "overview": _dump(StatusOverviewRead(**stats["overview"])),
        "purposeBreakdown": [_dump(PurposeCountRead(**item)) for item in stats["purpose_breakdown"]],
    })


@router.get("/export")
async def export_added_vehicles(
    format: str = Query("json", pattern="^(json|csv|xlsx)$"),
    status: str | None = None,
    purpose: str | None = None,
    owner_nic: str | None = Query(None, alias="ownerNIC"),
    search: str | None = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Export borné des demandes / Bounded export of the user's requests."""
    params = ListParams.normalize(
        status=status, purpose=purpose, owner_nic=owner_nic, search=search,
        sort_by=sort_by, sort_order=sort_order,
    )
    items = await _query(db).export(user, params)

    if format == "json":
        return _ok({
            "addedVehicles": [_dump(AddedVehicleRead.from_model(av)) for av in items],
            "totalCount": len(items),
        })

    rows = [ExportService.request_to_row(av) for av in items]
    if format == "csv":
        content = ExportService.to_csv(rows)
        media_type = "text/csv; charset=utf-8"
        filename = "added-vehicles.csv"
    else:
        content = ExportService.to_xlsx(rows)
        media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        filename = "added-vehicles.xlsx"

    return StreamingResponse(
        io.BytesIO(content),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/owner/{nic_number}")
async def list_by_owner(
    nic_number: str,
    status: str | None = None,
    page: int = Query(1, ge=1, le=settings.MAX_PAGE),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Demandes visant un propriétaire (NIC) / Requests targeting an owner NIC."""
    params = ListParams.normalize(
        page=page, limit=limit, status=status, sort_by=sort_by, sort_order=sort_order,
    )
    result = await _query(db).list_for_owner(user, nic_number, params)
    return _ok(_page_data(result))


@router.get("/{added_vehicle_id}")
async def get_added_vehicle(
    added_vehicle_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    av = await AddedVehicleLifecycle(db).get_visible(user, added_vehicle_id)
    return _ok(_dump(AddedVehicleRead.from_model(av, include_metadata=is_admin(user))))


@router.patch("/{added_vehicle_id}")
async def update_added_vehicle(
    added_vehicle_id: int,
    data: AddedVehicleUpdate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Mise a jour partielle / Partial update."""
    av = await AddedVehicleLifecycle(db).update(user, added_vehicle_id, data)
    return _ok(_dump(AddedVehicleRead.from_model(av)), message="Added vehicle updated successfully")


@router.delete("/{added_vehicle_id}")
async def delete_added_vehicle(
    added_vehicle_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Suppression logique / Soft delete."""
    await AddedVehicleLifecycle(db).soft_delete(user, added_vehicle_id)
    return _ok(message="Added vehicle removed successfully")


@router.patch("/{added_vehicle_id}/complete")
async def complete_added_vehicle(
    added_vehicle_id: int,
    data: CompleteRequest | None = Body(None),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Clôturer une demande / Complete a request."""
    notes = data.notes if data else None
    av = await AddedVehicleLifecycle(db).complete(user, added_vehicle_id, notes)
    return _ok(_dump(AddedVehicleRead.from_model(av)), message="Added vehicle marked as completed")


@router.patch("/{added_vehicle_id}/status")
async def change_added_vehicle_status(
    added_vehicle_id: int,
    data: StatusChangeRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Transition de statut / Status transition."""
    av = await AddedVehicleLifecycle(db).change_status(user, added_vehicle_id, data.status)
    return _ok(_dump(AddedVehicleRead.from_model(av)), message="Status updated successfully")


@router.get("/{added_vehicle_id}/history")
async def added_vehicle_history(
    added_vehicle_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Historique d'audit / Audit trail."""
    entries = await AddedVehicleLifecycle(db).history(user, added_vehicle_id)
    return _ok([_dump(AuditEntryRead.from_model(entry)) for entry in entries])
