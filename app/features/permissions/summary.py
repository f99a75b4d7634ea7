"""
Human-readable capability summary for a permission matrix.

    {"payroll": "admin", "contracts": "manage", "compliance": "view"}
    -> "Can manage Payroll, Contracts, view Compliance"
"""
from typing import Dict, Iterable, List, Mapping, Tuple

from app.features.permissions.models import Module, PermissionLevel

NO_PERMISSIONS = "No permissions"
MANAGE_LIMIT = 3
VIEW_LIMIT = 2

_MANAGEABLE = (PermissionLevel.MANAGE, PermissionLevel.APPROVE, PermissionLevel.ADMIN)


def _label(key: str, modules_by_key: Dict[str, Module]) -> str:
    module = modules_by_key.get(key)
    if module is None or not module.name.strip():
        return key
    # "Hiring & Onboarding Pipeline" -> "Hiring"
    return module.name.split()[0]


def _sort_key(key: str, modules_by_key: Dict[str, Module]) -> Tuple[int, int, str]:
    module = modules_by_key.get(key)
    if module is None:
        return (1, 0, key)
    return (0, module.display_order, key)


def _clause(prefix: str, labels: List[str], limit: int) -> str:
    text = f"{prefix} {', '.join(labels[:limit])}"
    if len(labels) > limit:
        text += "..."
    return text


def summarize(matrix: Mapping[str, PermissionLevel | str], modules: Iterable[Module]) -> str:
    """
    Summarize ``matrix`` (module key -> level) in registry display order.

    Up to three manageable modules (manage, approve or admin) and up to two
    view-only modules are named; "none" entries are ignored.
    """
    modules_by_key = {module.key: module for module in modules}
    ordered = sorted(matrix.items(), key=lambda item: _sort_key(item[0], modules_by_key))

    manageable: List[str] = []
    view_only: List[str] = []
    for key, level in ordered:
        level = PermissionLevel(level)
        if level in _MANAGEABLE:
            manageable.append(_label(key, modules_by_key))
        elif level == PermissionLevel.VIEW:
            view_only.append(_label(key, modules_by_key))

    parts = []
    if manageable:
        parts.append(_clause("Can manage", manageable, MANAGE_LIMIT))
    if view_only:
        parts.append(_clause("view", view_only, VIEW_LIMIT))
    return ", ".join(parts) or NO_PERMISSIONS
