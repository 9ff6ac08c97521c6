"""Seed script: creates a demo tenant, its branches, the system roles and an owner login.

Idempotent: checks for existing records before inserting.
Run: docker exec resto-backend-1 python scripts/seed.py
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings
from app.core.security import hash_password as get_password_hash
from app.models.role import SYSTEM_ROLES, Role
from app.models.tenant import Branch, Tenant
from app.models.user import User, UserBranch, UserRole

ROLE_LABELS = {
    "owner": "Owner",
    "admin": "Administrator",
    "manager": "Manager",
    "cashier": "Cashier",
    "waiter": "Waiter",
    "chef": "Kitchen Chef",
    "delivery": "Delivery Driver",
}


# ─── Upsert helpers ───────────────────────────────────────────────────────────

async def _upsert_tenant(db: AsyncSession, slug: str, name: str) -> Tenant:
    result = await db.execute(select(Tenant).where(Tenant.slug == slug))
    tenant = result.scalars().first()
    if tenant:
        print(f"  [skip] Tenant {slug}")
        return tenant
    tenant = Tenant(slug=slug, name=name, default_language="en", is_active=True)
    db.add(tenant)
    await db.flush()
    print(f"  [new]  Tenant {slug}")
    return tenant


async def _upsert_role(db: AsyncSession, name: str) -> Role:
    result = await db.execute(select(Role).where(Role.name == name))
    role = result.scalars().first()
    if role:
        print(f"  [skip] Role {name}")
        return role
    role = Role(name=name, display_name=ROLE_LABELS.get(name), is_system=True)
    db.add(role)
    await db.flush()
    print(f"  [new]  Role {name}")
    return role


async def _upsert_branch(db: AsyncSession, tenant: Tenant, name: str, address: str = "") -> Branch:
    result = await db.execute(
        select(Branch).where(Branch.tenant_id == tenant.id, Branch.name == name)
    )
    branch = result.scalars().first()
    if branch:
        print(f"  [skip] Branch {name}")
        return branch
    branch = Branch(tenant_id=tenant.id, name=name, address=address or None, is_active=True)
    db.add(branch)
    await db.flush()
    print(f"  [new]  Branch {name}")
    return branch


async def _upsert_owner(db: AsyncSession, tenant: Tenant, role: Role, branches: list[Branch]) -> User:
    email = "owner@example.com"
    result = await db.execute(
        select(User).where(User.tenant_id == tenant.id, User.email == email)
    )
    user = result.scalars().first()
    if user:
        print(f"  [skip] User {email}")
        return user
    user = User(
        tenant_id=tenant.id, email=email, name="Demo Owner",
        password_hash=get_password_hash("changeme123"),
        role=role.name, employee_number="EMP-0001", is_active=True,
    )
    db.add(user)
    await db.flush()
    db.add(UserRole(user_id=user.id, role_id=role.id))
    for branch in branches:
        db.add(UserBranch(user_id=user.id, branch_id=branch.id))
    await db.flush()
    print(f"  [new]  User {email} ({role.name})")
    return user


async def seed():
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async with SessionLocal() as db:
        print("── Roles ──")
        roles = {name: await _upsert_role(db, name) for name in SYSTEM_ROLES}
        await db.commit()

        print("\n── Tenant ──")
        tenant = await _upsert_tenant(db, "demo-bistro", "Demo Bistro")
        branches = [
            await _upsert_branch(db, tenant, "Main Branch", "1 Market Street"),
            await _upsert_branch(db, tenant, "Airport Kiosk", "Terminal 2"),
        ]
        await db.commit()

        print("\n── Users ──")
        await _upsert_owner(db, tenant, roles["owner"], branches)
        await db.commit()

    await engine.dispose()
    print("\n✓ Seed complete.")
    print("  owner@example.com / changeme123  (owner, tenant demo-bistro)")
    print("  Branches: Main Branch · Airport Kiosk")


if __name__ == "__main__":
    asyncio.run(seed())
