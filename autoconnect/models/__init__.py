"""
Modèles SQLAlchemy / SQLAlchemy models.
Importer tous les modèles ici pour qu'ils soient enregistrés sur Base.metadata.
Import all models here so they are registered on Base.metadata.
"""

from autoconnect.models.user import User
from autoconnect.models.vehicle import Vehicle
from autoconnect.models.added_vehicle import (
    AddedVehicle,
    VehiclePurpose,
    RequestStatus,
    RequestPriority,
    ServiceType,
    ContactMethod,
    RequestSource,
)
from autoconnect.models.audit import AuditLog

__all__ = [
    "User",
    "Vehicle",
    "AddedVehicle",
    "VehiclePurpose",
    "RequestStatus",
    "RequestPriority",
    "ServiceType",
    "ContactMethod",
    "RequestSource",
    "AuditLog",
]
