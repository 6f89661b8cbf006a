"""
Permission catalog.

The catalog is configuration: it is seeded from DEFAULT_PERMISSIONS and never
changed through the API, so it is loaded once and cached for the life of the
process.
"""
from typing import Dict, Iterable, List, Optional, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.errors import ValidationError
from app.features.permissions.models import PermissionDefinition
from app.features.permissions.schemas import PermissionDefinitionResponse, ResourceGroup
from app.utils import get_logger


log = get_logger(__name__)

# Resource type held by at most one staff member system-wide
EXCLUSIVE_RESOURCE_TYPE = "VOUCHER"

RESOURCE_NAMES: Dict[str, str] = {
    "CONTRACT": "Contract management",
    "PARTNER": "Partner management",
    "VOUCHER": "Voucher management",
}

# (code, name, resource_type, action_type, description)
DEFAULT_PERMISSIONS: List[Tuple[str, str, str, str, str]] = [
    ("CONTRACT_READ", "View contracts", "CONTRACT", "READ", "View partner contracts and their documents"),
    ("CONTRACT_CREATE", "Create contracts", "CONTRACT", "CREATE", "Draft new contracts for a partner"),
    ("CONTRACT_UPDATE", "Update contracts", "CONTRACT", "UPDATE", "Edit contract terms before signing"),
    ("CONTRACT_SEND", "Send contracts", "CONTRACT", "SEND", "Send contracts to the partner for signing"),

    ("PARTNER_READ", "View partners", "PARTNER", "READ", "View partner profiles and registration details"),
    ("PARTNER_UPDATE", "Update partners", "PARTNER", "UPDATE", "Edit partner profiles"),
    ("PARTNER_APPROVE", "Review registrations", "PARTNER", "APPROVE", "Approve or reject partner registrations"),

    ("VOUCHER_CREATE", "Create vouchers", "VOUCHER", "CREATE", "Create system-wide vouchers"),
    ("VOUCHER_READ", "View vouchers", "VOUCHER", "READ", "View vouchers and their usage"),
    ("VOUCHER_UPDATE", "Update vouchers", "VOUCHER", "UPDATE", "Edit voucher terms"),
    ("VOUCHER_DELETE", "Delete vouchers", "VOUCHER", "DELETE", "Delete vouchers"),
    ("VOUCHER_SEND", "Send vouchers", "VOUCHER", "SEND", "Email vouchers to customers"),
]


_catalog_cache: Optional[List[PermissionDefinitionResponse]] = None


def invalidate_catalog_cache() -> None:
    global _catalog_cache
    _catalog_cache = None


async def load_catalog(db: AsyncSession) -> List[PermissionDefinitionResponse]:
    """Return every active catalog entry, loading it from the database once."""
    global _catalog_cache
    if _catalog_cache is None:
        result = await db.execute(
            select(PermissionDefinition)
            .where(PermissionDefinition.is_active == True)  # noqa: E712
            .order_by(PermissionDefinition.id)
        )
        _catalog_cache = [
            PermissionDefinitionResponse.model_validate(definition)
            for definition in result.scalars().all()
        ]
        log.debug(f"Loaded {len(_catalog_cache)} permission definitions")
    return _catalog_cache


async def list_permission_groups(
    db: AsyncSession,
    include_exclusive: bool = False
) -> List[ResourceGroup]:
    """
    Group the catalog by resource type, in catalog order.

    The exclusive voucher category is left out unless include_exclusive is set:
    it is managed only through the voucher steward, never per partner.
    """
    groups: Dict[str, ResourceGroup] = {}
    for definition in await load_catalog(db):
        if definition.resource_type == EXCLUSIVE_RESOURCE_TYPE and not include_exclusive:
            continue
        group = groups.get(definition.resource_type)
        if group is None:
            group = ResourceGroup(
                resource_type=definition.resource_type,
                resource_name=RESOURCE_NAMES.get(definition.resource_type, definition.resource_type.title()),
                permissions=[],
            )
            groups[definition.resource_type] = group
        group.permissions.append(definition)
    return list(groups.values())


async def delegable_permission_codes(db: AsyncSession) -> List[str]:
    """Codes that may be granted per partner."""
    return [
        permission.permission_code
        for group in await list_permission_groups(db)
        for permission in group.permissions
    ]


async def exclusive_permission_codes(db: AsyncSession) -> List[str]:
    """Codes making up the exclusive voucher category."""
    return [
        definition.permission_code
        for definition in await load_catalog(db)
        if definition.resource_type == EXCLUSIVE_RESOURCE_TYPE
    ]


async def validate_delegable_codes(db: AsyncSession, codes: Iterable[str]) -> None:
    """
    Reject codes that cannot be granted per partner.

    Raises:
        ValidationError: unknown/inactive codes, or codes of the exclusive category
    """
    catalog = {definition.permission_code: definition for definition in await load_catalog(db)}
    codes = list(codes)

    unknown = [code for code in codes if code not in catalog]
    if unknown:
        raise ValidationError(f"Unknown permission codes: {', '.join(unknown)}", permission_codes=unknown)

    exclusive = [code for code in codes if catalog[code].resource_type == EXCLUSIVE_RESOURCE_TYPE]
    if exclusive:
        raise ValidationError(
            f"{', '.join(exclusive)} can only be assigned through the voucher manager",
            permission_codes=exclusive,
        )


async def seed_catalog(db: AsyncSession) -> int:
    """
    Insert missing DEFAULT_PERMISSIONS entries.

    Returns:
        Number of entries created
    """
    result = await db.execute(select(PermissionDefinition.code))
    existing = set(result.scalars().all())

    created = 0
    for code, name, resource_type, action_type, description in DEFAULT_PERMISSIONS:
        if code in existing:
            continue
        db.add(PermissionDefinition(
            code=code,
            name=name,
            description=description,
            resource_type=resource_type,
            resource_name=RESOURCE_NAMES[resource_type],
            action_type=action_type,
        ))
        created += 1

    if created:
        await db.commit()
        invalidate_catalog_cache()
        log.info(f"Seeded {created} permission definitions")
    return created
