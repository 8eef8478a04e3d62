"""
Seed de développement / Development seed.

Crée un admin, un propriétaire et un garage avec un véhicule, puis affiche
des tokens d'accès pour tester l'API a la main.
Creates an admin, an owner and a garage user with one vehicle, then prints
access tokens for manual API testing.

Usage:
    python -m scripts.seed_dev
"""

import asyncio
import os
import sys

from sqlalchemy import func, select

# Rendre le package importable / Make the package importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from autoconnect.database import async_session, init_db  # noqa: E402
from autoconnect.models import User, Vehicle  # noqa: E402
from autoconnect.utils.auth import create_access_token  # noqa: E402


async def seed() -> None:
    await init_db()
    async with async_session() as session:
        count = (await session.execute(select(func.count(User.id)))).scalar()
        if count:
            print(f"[OK] {count} utilisateur(s) existant(s), seed ignoré / {count} existing user(s), seed skipped")
            users = (await session.execute(select(User).order_by(User.id))).scalars().all()
        else:
            admin = User(first_name="Ada", last_name="Admin", email="admin@autoconnect.dev", role="admin")
            owner = User(
                first_name="Nimal", last_name="Perera", email="owner@autoconnect.dev",
                phone="+94771234567", nic_number="199012345678",
            )
            garage = User(
                first_name="Kamal", last_name="Silva", email="garage@autoconnect.dev",
                phone="+94777654321", nic_number="198811223344", role="service_provider",
            )
            session.add_all([admin, owner, garage])
            await session.flush()
            session.add(Vehicle(
                registration_number="CAB-1234", make="Toyota", model="Corolla",
                year_of_manufacture=2018, color="White", verification_status="VERIFIED",
                mileage=42000, owner_id=owner.id, owner_nic=owner.nic_number,
            ))
            await session.commit()
            users = [admin, owner, garage]
            print("[OK] Données de développement créées / Development data created")

        for user in users:
            print(f"{user.email} ({user.role}): {create_access_token(user.id, user.role)}")


if __name__ == "__main__":
    asyncio.run(seed())
