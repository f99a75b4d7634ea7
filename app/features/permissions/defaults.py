"""
Default module catalog and system roles.

Seeding is idempotent: modules are matched by key and system roles by
name, existing rows are left untouched.
"""
from typing import Dict, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.models import Module, PermissionLevel, Role, RolePermission
from app.utils import get_logger


log = get_logger(__name__)

NONE = PermissionLevel.NONE
VIEW = PermissionLevel.VIEW
MANAGE = PermissionLevel.MANAGE
APPROVE = PermissionLevel.APPROVE
ADMIN = PermissionLevel.ADMIN


# (key, name, description, available levels)
DEFAULT_MODULES = [
    ("hiring_onboarding", "Hiring & Onboarding Pipeline", "Candidate pipeline and onboarding tasks", [VIEW, MANAGE]),
    ("candidate_profiles", "Candidate & Worker Profiles", "Candidate and worker records", [VIEW, MANAGE]),
    ("contracts", "Contracts", "Contract drafting and signatures", [VIEW, MANAGE, APPROVE]),
    ("payroll", "Payroll", "Pay runs and payroll batches", [VIEW, MANAGE, APPROVE]),
    ("company_settings", "Company Settings", "Company profile and configuration", [VIEW, MANAGE]),
    ("support_requests", "Support & Requests", "Support tickets and worker requests", [VIEW, MANAGE]),
    ("user_management", "User Management", "Team members and roles", [VIEW, MANAGE, ADMIN]),
]


def _everything(user_management: PermissionLevel) -> Dict[str, PermissionLevel]:
    return {
        "hiring_onboarding": MANAGE,
        "candidate_profiles": MANAGE,
        "contracts": APPROVE,
        "payroll": APPROVE,
        "company_settings": MANAGE,
        "support_requests": MANAGE,
        "user_management": user_management,
    }


DEFAULT_ROLES = {
    "Owner": {
        "description": "Super admin",
        "privilege_level": 100,
        "permissions": _everything(ADMIN),
    },
    "Admin": {
        "description": "Ops admin",
        "privilege_level": 80,
        "permissions": _everything(MANAGE),
    },
    "Payroll Specialist": {
        "description": "Payroll operations",
        "privilege_level": 40,
        "permissions": {"hiring_onboarding": VIEW, "candidate_profiles": VIEW, "payroll": MANAGE},
    },
    "Contract Specialist": {
        "description": "Contracts operations",
        "privilege_level": 40,
        "permissions": {"hiring_onboarding": VIEW, "candidate_profiles": VIEW, "contracts": MANAGE},
    },
    "Onboarding Coordinator": {
        "description": "Pipeline + profiles",
        "privilege_level": 20,
        "permissions": {"hiring_onboarding": MANAGE, "candidate_profiles": VIEW},
    },
    "Viewer": {
        "description": "Read-only",
        "privilege_level": 10,
        "permissions": {
            key: VIEW for key, _name, _description, _levels in DEFAULT_MODULES
            if key != "user_management"
        },
    },
}


async def seed_modules(db: AsyncSession) -> Dict[str, Module]:
    """
    Create missing catalog modules.

    Returns:
        Dictionary mapping module keys to Module objects
    """
    modules_map = {}

    for order, (key, name, description, levels) in enumerate(DEFAULT_MODULES, start=1):
        result = await db.execute(select(Module).where(Module.key == key))
        existing = result.scalars().first()

        if existing:
            log.debug("Module '%s' already exists, skipping", key)
            modules_map[key] = existing
            continue

        module = Module(
            key=key,
            name=name,
            description=description,
            available_permissions=[level.value for level in levels],
            display_order=order,
        )
        db.add(module)
        modules_map[key] = module
        log.info("Created module: %s", key)

    await db.flush()
    return modules_map


async def seed_roles(db: AsyncSession, modules_map: Dict[str, Module]) -> List[Role]:
    """Create missing system roles with their permission matrices."""
    created = []

    for role_name, role_config in DEFAULT_ROLES.items():
        result = await db.execute(
            select(Role).where(Role.name == role_name, Role.is_system_role.is_(True))
        )
        if result.scalars().first():
            log.debug("Role '%s' already exists, skipping", role_name)
            continue

        role = Role(
            name=role_name,
            description=role_config["description"],
            is_system_role=True,
            privilege_level=role_config["privilege_level"],
            permissions=[
                RolePermission(module=modules_map[key], permission_level=level)
                for key, level in role_config["permissions"].items()
                if level != NONE
            ],
        )
        db.add(role)
        created.append(role)
        log.info("Created role '%s' (privilege %s)", role_name, role.privilege_level)

    await db.flush()
    return created


async def seed_defaults(db: AsyncSession) -> None:
    """Seed the module catalog and system roles, then commit."""
    try:
        modules_map = await seed_modules(db)
        await seed_roles(db, modules_map)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
