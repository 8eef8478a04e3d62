"""Modele Vehicule (registre externe) / Vehicle model (external registry).

Projection minimale consommee pour les permissions et la recherche.
Minimal projection consumed for permission checks and search joins.
"""

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from autoconnect.database import Base


class Vehicle(Base):
    """Vehicule enregistre / Registered vehicle."""
    __tablename__ = "vehicles"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # --- Identification ---
    registration_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    make: Mapped[str | None] = mapped_column(String(50))
    model: Mapped[str | None] = mapped_column(String(50))
    year_of_manufacture: Mapped[int | None] = mapped_column(Integer)
    color: Mapped[str | None] = mapped_column(String(30))
    verification_status: Mapped[str] = mapped_column(String(20), default="PENDING")
    mileage: Mapped[int | None] = mapped_column(Integer)

    # --- Proprietaire / Owner ---
    owner_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), index=True)
    owner_nic: Mapped[str | None] = mapped_column(String(20), index=True)

    def __repr__(self) -> str:
        return f"<Vehicle {self.registration_number}>"
