"""
Create the default operator account and print an access token for it.
The admin endpoints (expiry sweep, archive, wallet audit) require role=admin.
"""
import asyncio

from sqlalchemy import select

from otpmarket.core.logging import setup_logging
from otpmarket.core.security import create_access_token
from otpmarket.db.models import User
from otpmarket.db.session import get_db, init_db

ADMIN_EMAIL = "admin@example.com"


async def create_default_admin():
    """Create the admin user unless one already exists."""
    await init_db()

    async for db in get_db():
        stmt = select(User).where(User.role == "admin")
        result = await db.execute(stmt)
        admin = result.scalars().first()

        if admin is None:
            admin = User(email=ADMIN_EMAIL, role="admin")
            db.add(admin)
            await db.flush()
            print("Admin user created")
        else:
            print("Admin user already exists")

        print("=" * 50)
        print(f"User id: {admin.id}")
        print(f"Email:   {admin.email}")
        print(f"Token:   {create_access_token(admin.id, role='admin')}")
        print("=" * 50)


if __name__ == "__main__":
    setup_logging()
    asyncio.run(create_default_admin())
