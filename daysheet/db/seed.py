"""
Seed script: creates the default day shift and an admin user.

Usage:
    python -m daysheet.db.seed
"""

import asyncio
import uuid

from sqlalchemy import select

from daysheet.core.config import settings
from daysheet.core.security import hash_password
from daysheet.db.models import Shift, User
from daysheet.db.session import AsyncSessionLocal


async def create_default_shift(session) -> Shift:
    result = await session.execute(select(Shift).where(Shift.name == "General"))
    shift = result.scalar_one_or_none()
    if shift:
        print("Default shift already exists, skipping.")
        return shift

    shift = Shift(
        name="General",
        start_time=settings.SHIFT_START_TIME,
        end_time="18:00",
        break_minutes=60,
        is_active=True,
    )
    session.add(shift)
    await session.flush()
    print(f"Created shift: id={shift.id} {shift.start_time}-{shift.end_time}")
    return shift


async def create_admin(session, shift: Shift) -> User:
    result = await session.execute(select(User).where(User.username == "admin"))
    admin = result.scalar_one_or_none()
    if admin:
        print("Admin user already exists, skipping.")
        return admin

    admin = User(
        id=uuid.uuid4(),
        username="admin",
        password_hash=hash_password("admin123"),
        role="admin",
        full_name="System Administrator",
        shift_id=shift.id,
        is_active=True,
    )
    session.add(admin)
    await session.flush()
    print(f"Created admin user: id={admin.id}")
    return admin


async def main():
    async with AsyncSessionLocal() as session:
        async with session.begin():
            shift = await create_default_shift(session)
            await create_admin(session, shift)
            print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(main())
