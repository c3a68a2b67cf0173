"""
Seed script to populate a demo organization.

Run this script after database initialization to create:
- One organization
- One user per role with profile and employment records
- A department holding every demo user

Every demo user signs in with DEMO_PASSWORD.

Usage:
    uv run python -m scripts.seed_demo
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.departments.models import Department
from app.features.employees.models import EmployeeProfile, EmploymentDetail
from app.features.organizations.models import Organization
from app.features.permissions.roles import UserRole
from app.features.users.auth import hash_password
from app.features.users.models import User
from app.utils import get_logger, split_full_name


log = get_logger(__name__)

DEMO_DOMAIN = "demo.example.com"
DEMO_PASSWORD = "demo-password"

DEMO_USERS = [
    ("Olivia Owner", UserRole.ORG_OWNER, "Founder"),
    ("Adam Admin", UserRole.ORG_ADMIN, "Operations Lead"),
    ("Maya Manager", UserRole.MANAGER, "Engineering Manager"),
    ("Hana Hr", UserRole.HR_ADMIN, "HR Generalist"),
    ("Eli Employee", UserRole.EMPLOYEE, "Software Engineer"),
]


async def seed_organization(db: AsyncSession) -> Organization:
    result = await db.execute(select(Organization).where(Organization.domain == DEMO_DOMAIN))
    existing = result.scalars().first()
    if existing:
        log.debug("Organization '%s' already exists, skipping", DEMO_DOMAIN)
        return existing

    organization = Organization(name="Demo Company", domain=DEMO_DOMAIN)
    db.add(organization)
    await db.commit()
    log.info("Created organization: %s", organization.name)
    return organization


async def seed_users(db: AsyncSession, organization: Organization) -> list[User]:
    users = []
    for full_name, role, designation in DEMO_USERS:
        first_name, last_name = split_full_name(full_name)
        email = f"{first_name.lower()}@{DEMO_DOMAIN}"

        result = await db.execute(select(User).where(User.email == email))
        existing = result.scalars().first()
        if existing:
            log.debug("User '%s' already exists, skipping", email)
            users.append(existing)
            continue

        user = User(
            organization_id=organization.id,
            email=email,
            password_hash=hash_password(DEMO_PASSWORD),
            role=role,
        )
        db.add(user)
        await db.flush()
        db.add(EmployeeProfile(user_id=user.id, first_name=first_name, last_name=last_name, work_email=email))
        db.add(EmploymentDetail(user_id=user.id, organization_id=organization.id, designation=designation))
        users.append(user)
        log.info("Created user %s as %s", email, role.value)

    await db.commit()
    return users


async def seed_department(db: AsyncSession, organization: Organization, users: list[User]) -> None:
    result = await db.execute(
        select(Department).where(Department.organization_id == organization.id, Department.name == "General")
    )
    department = result.scalars().first()
    if department is None:
        department = Department(organization_id=organization.id, name="General", code="GEN", head_id=users[0].id)
        db.add(department)
        await db.flush()
        log.info("Created department: %s", department.name)

    result = await db.execute(
        select(EmploymentDetail).where(EmploymentDetail.user_id.in_([user.id for user in users]))
    )
    for employment in result.scalars().all():
        employment.department_id = department.id
    await db.commit()


async def main():
    """Main function to seed the demo organization."""
    log.info("Starting demo seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            organization = await seed_organization(db)
            users = await seed_users(db, organization)
            await seed_department(db, organization, users)

            log.info("Demo seeding completed successfully!")
            for user in users:
                log.info("  - %s (%s)", user.email, user.role.value)
        except Exception as e:
            log.error(f"Error seeding demo data: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
