"""
Seed Agency Admin

Creates an agency and its first admin user so someone can log in and
invite the rest of the team.

Usage:
    cd apps/api
    PLEENO_AGENCY_NAME="Acme Education" \
    PLEENO_ADMIN_EMAIL=admin@acme.test \
    PLEENO_ADMIN_PASSWORD=... \
    python scripts/seed_agency_admin.py
"""

import asyncio
import os
import sys
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from pleeno.core.config import settings
from pleeno.core.security import hash_password
from pleeno.modules.agencies.models import Agency
from pleeno.modules.users.models import User, UserRole, UserStatus


async def seed_agency_admin() -> None:
    """Create the agency and admin user if they don't exist."""

    agency_name = os.environ.get("PLEENO_AGENCY_NAME", "Demo Agency")
    email = os.environ.get("PLEENO_ADMIN_EMAIL")
    password = os.environ.get("PLEENO_ADMIN_PASSWORD")
    full_name = os.environ.get("PLEENO_ADMIN_NAME", "Agency Admin")

    if not email or not password:
        print("PLEENO_ADMIN_EMAIL and PLEENO_ADMIN_PASSWORD must be set")
        sys.exit(1)

    engine = create_async_engine(settings.database_url, echo=False)
    async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as db:
        result = await db.execute(select(User).where(User.email == email.lower()))
        existing_user = result.scalar_one_or_none()

        if existing_user:
            print(f"User already exists: {email}")
            print(f"  ID: {existing_user.id}")
            print(f"  Agency: {existing_user.agency_id}")
            return

        result = await db.execute(select(Agency).where(Agency.name == agency_name))
        agency = result.scalar_one_or_none()
        if not agency:
            agency = Agency(name=agency_name, contact_email=email.lower())
            db.add(agency)
            await db.flush()

        admin_user = User(
            agency_id=agency.id,
            email=email.lower(),
            password_hash=hash_password(password),
            full_name=full_name,
            role=UserRole.AGENCY_ADMIN,
            status=UserStatus.ACTIVE,
        )

        db.add(admin_user)
        await db.commit()
        await db.refresh(admin_user)

        print("Agency admin created successfully!")
        print(f"  Agency: {agency.name} ({agency.id})")
        print(f"  Email: {admin_user.email}")
        print(f"  ID: {admin_user.id}")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_agency_admin())
