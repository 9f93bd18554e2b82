"""Seed script: demo users and an approval matrix for local development."""
import asyncio
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from prflow.core.config import settings
from prflow.core.security import hash_password
from prflow.models.approval_matrix import ApprovalMatrix
from prflow.models.user import User

PASSWORD = "changeme123"

# emp_code, name, email, role, manager name
USERS = [
    ("E0001", "Admin User", "admin@example.com", "admin", None),
    ("E1001", "Riya Requester", "riya@example.com", "requester", "Arun Approver"),
    ("E2001", "Arun Approver", "arun@example.com", "approver", "Meera Manager"),
    ("E2002", "Bala Approver", "bala@example.com", "approver", "Kiran Manager"),
    ("E3001", "Chitra Finance", "chitra@example.com", "approver", None),
    ("E3002", "Dev Finance", "dev@example.com", "approver", None),
    ("E4001", "Meera Manager", "meera@example.com", "approver", None),
    ("E4002", "Kiran Manager", "kiran@example.com", "approver", None),
]


async def seed():
    engine = create_async_engine(settings.DATABASE_URL, echo=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async with SessionLocal() as db:
        existing = await db.execute(select(User).where(User.emp_code == "E0001"))
        if existing.scalars().first() is not None:
            print("Seed data already present; nothing to do.")
            await engine.dispose()
            return

        for emp_code, name, email, role, manager in USERS:
            db.add(User(
                emp_code=emp_code,
                name=name,
                email=email,
                password_hash=hash_password(PASSWORD),
                role=role,
                department="Operations",
                location="Chennai",
                entity="ACME",
                manager_name=manager,
                manager_email=f"{manager.split()[0].lower()}@example.com" if manager else None,
                is_active=True,
            ))

        db.add(ApprovalMatrix(
            emp_code="E1001",
            department="Operations",
            site="Chennai",
            approver_1_emp_code="E2001",
            approver_1_name="Arun Approver",
            approver_1_email="arun@example.com",
            approver_2_emp_code="E2002",
            approver_2_name="Bala Approver",
            approver_2_email="bala@example.com",
            approver_3a_emp_code="E3001",
            approver_3a_name="Chitra Finance",
            approver_3a_email="chitra@example.com",
            approver_3b_emp_code="E3002",
            approver_3b_name="Dev Finance",
            approver_3b_email="dev@example.com",
        ))

        await db.commit()
        print("Seed complete.")
        print(f"  admin@example.com / {PASSWORD}")
        print(f"  riya@example.com  / {PASSWORD}  (requester)")
        print(f"  arun@example.com  / {PASSWORD}  (level 1 approver)")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
