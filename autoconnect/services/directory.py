"""
Client annuaire véhicules / utilisateurs / Vehicle & user directory client.
Accès en lecture seule aux données maîtres / Read-only access to master data.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from autoconnect.errors import NotFoundError
from autoconnect.models.user import User
from autoconnect.models.vehicle import Vehicle


class DirectoryClient:
    """Consultation du registre et de l'annuaire / Registry and directory lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_vehicle_by_id(self, vehicle_id: int) -> Vehicle:
        vehicle = await self.db.get(Vehicle, vehicle_id)
        if vehicle is None:
            raise NotFoundError("Vehicle not found", field="vehicleId")
        return vehicle

    async def get_user_by_id(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user
