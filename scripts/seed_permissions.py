"""
Seed script to populate the permission catalog.

Run this script after database initialization to create:
- The default permission catalog (contract, partner, voucher)
- Optionally, demo manager, manager staff and partner records

Usage:
    uv run python -m scripts.seed_permissions
    uv run python -m scripts.seed_permissions --demo
"""
import argparse
import asyncio
from sqlalchemy import select, insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.partners.models import Partner, staff_partners
from app.features.permissions.catalog import DEFAULT_PERMISSIONS, seed_catalog
from app.features.staff.models import Staff, StaffRole
from app.utils import get_logger


log = get_logger(__name__)


DEMO_STAFF = [
    # (appwrite_id, email, full_name, role)
    ("demo-manager", "manager@example.com", "Demo Manager", StaffRole.MANAGER),
    ("demo-staff-1", "linh@example.com", "Linh Tran", StaffRole.MANAGER_STAFF),
    ("demo-staff-2", "minh@example.com", "Minh Pham", StaffRole.MANAGER_STAFF),
]

DEMO_PARTNERS = [
    # (tax_code, name, address)
    ("0101234567", "Starlight Cinemas", "12 Le Loi, District 1"),
    ("0107654321", "Riverside Movie House", "88 Tran Hung Dao, District 5"),
    ("0109988776", "Galaxy Screens", "5 Nguyen Hue, District 1"),
]


async def seed_demo_data(db: AsyncSession):
    """
    Create demo staff and partners, assigning every partner to the first manager staff.
    """
    log.info("Creating demo staff and partners...")
    staff_by_appwrite_id = {}

    for appwrite_id, email, full_name, role in DEMO_STAFF:
        result = await db.execute(select(Staff).where(Staff.appwrite_id == appwrite_id))
        staff = result.scalars().first()
        if staff:
            log.debug(f"Staff '{email}' already exists, skipping")
        else:
            staff = Staff(appwrite_id=appwrite_id, email=email, full_name=full_name, role=role)
            db.add(staff)
            log.info(f"Created {role.value}: {email}")
        staff_by_appwrite_id[appwrite_id] = staff

    partners = []
    for tax_code, name, address in DEMO_PARTNERS:
        result = await db.execute(select(Partner).where(Partner.tax_code == tax_code))
        partner = result.scalars().first()
        if partner:
            log.debug(f"Partner '{name}' already exists, skipping")
        else:
            partner = Partner(tax_code=tax_code, name=name, address=address)
            db.add(partner)
            log.info(f"Created partner: {name}")
        partners.append(partner)

    await db.flush()

    manager = staff_by_appwrite_id["demo-manager"]
    assignee = staff_by_appwrite_id["demo-staff-1"]
    result = await db.execute(
        select(staff_partners.c.partner_id).where(staff_partners.c.staff_id == assignee.id)
    )
    assigned = set(result.scalars().all())
    for partner in partners:
        if partner.id in assigned:
            continue
        await db.execute(
            insert(staff_partners).values(
                staff_id=assignee.id,
                partner_id=partner.id,
                assigned_by_id=manager.id,
            )
        )
        log.info(f"Assigned '{partner.name}' to {assignee.full_name}")

    await db.commit()
    log.info("Demo data created successfully")


async def main(demo: bool = False):
    """Main function to seed the permission catalog."""
    log.info("Starting permission seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    # Get database session
    async for db in get_db():
        try:
            created = await seed_catalog(db)
            log.info(f"Permission catalog ready: {created} of {len(DEFAULT_PERMISSIONS)} entries created")

            if demo:
                await seed_demo_data(db)

            log.info("Permission seeding completed successfully!")

        except Exception as e:
            log.error(f"Error seeding permissions: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the permission catalog")
    parser.add_argument("--demo", action="store_true", help="Also create demo staff and partners")
    args = parser.parse_args()
    asyncio.run(main(demo=args.demo))
