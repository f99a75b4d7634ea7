"""
Privilege guard: pure decisions over already-resolved roles.

Nothing here touches the database or logs. Callers turn a ``False`` into
the matching error (PrivilegeEscalationError or NotAuthorizedError).
"""
from typing import Optional

from app.core import config
from app.core.config import AuthorizationMode
from app.features.permissions.models import PermissionLevel, Role


def can_assign_role(
    actor_privilege: int,
    target_role_privilege: int,
    mode: AuthorizationMode = AuthorizationMode.ENFORCED,
) -> bool:
    """An actor may attach a role to a member up to and including their own level."""
    if mode is AuthorizationMode.ALLOW_ALL:
        return True
    return target_role_privilege <= actor_privilege


def can_manage_roles(
    actor_role: Optional[Role],
    is_bootstrap: bool,
    mode: AuthorizationMode = AuthorizationMode.ENFORCED,
) -> bool:
    """
    Role management is open while bootstrapping, and otherwise needs either
    the management privilege threshold or admin on the user management module.
    """
    if mode is AuthorizationMode.ALLOW_ALL or is_bootstrap:
        return True
    if actor_role is None:
        return False
    if actor_role.privilege_level >= config.ROLE_MANAGEMENT_THRESHOLD:
        return True
    return actor_role.level_for(config.USER_MANAGEMENT_MODULE) == PermissionLevel.ADMIN


def can_invite_users(
    actor_role: Optional[Role],
    is_bootstrap: bool,
    mode: AuthorizationMode = AuthorizationMode.ENFORCED,
) -> bool:
    if can_manage_roles(actor_role, is_bootstrap, mode):
        return True
    return actor_role is not None and actor_role.privilege_level >= config.INVITE_THRESHOLD


def created_role_privilege(actor_privilege: int, cap: Optional[int] = None) -> int:
    """
    Privilege level for a role created or duplicated by an actor.

    Always strictly below the creator (unless that would go under 1) and
    never above the custom-role cap.
    """
    if cap is None:
        cap = config.CUSTOM_ROLE_PRIVILEGE_CAP
    return max(1, min(actor_privilege - 1, cap))
