"""
Role-based access control for the Nirman portal.

Roles:
1. Super Admin / Admin - full access
2. Department User - registers new work proposals
3. Technical Approver - technical sanction
4. Administrative Approver - administrative sanction
5. Tender Manager - tender process
6. Work Order Manager - issues work orders
7. Progress Monitor - site progress, installments and completion

Each role maps to a Capability flag set; route code only ever asks the
AuthorizationPolicy whether a session holds a capability.
"""
from enum import Enum, Flag, auto

from nirman.exceptions import AuthorizationError


class Role(str, Enum):
    SUPER_ADMIN = "Super Admin"
    ADMIN = "Admin"
    DEPARTMENT_USER = "Department User"
    TECHNICAL_APPROVER = "Technical Approver"
    ADMINISTRATIVE_APPROVER = "Administrative Approver"
    TENDER_MANAGER = "Tender Manager"
    WORK_ORDER_MANAGER = "Work Order Manager"
    PROGRESS_MONITOR = "Progress Monitor"


class Capability(Flag):
    NONE = 0
    CREATE_PROPOSAL = auto()
    VIEW_WORKS = auto()
    TECHNICAL_APPROVAL = auto()
    ADMINISTRATIVE_APPROVAL = auto()
    MANAGE_TENDER = auto()
    MANAGE_WORK_ORDER = auto()
    RECORD_PROGRESS = auto()
    RELEASE_INSTALLMENT = auto()
    COMPLETE_WORK = auto()
    VIEW_REPORTS = auto()
    MANAGE_USERS = auto()


ALL_CAPABILITIES = Capability.NONE
for _cap in Capability:
    ALL_CAPABILITIES |= _cap
del _cap

# Every signed-in role can browse works and reports
_BASE = Capability.VIEW_WORKS | Capability.VIEW_REPORTS

ROLE_CAPABILITIES = {
    Role.SUPER_ADMIN: ALL_CAPABILITIES,
    Role.ADMIN: ALL_CAPABILITIES,
    Role.DEPARTMENT_USER: _BASE | Capability.CREATE_PROPOSAL,
    Role.TECHNICAL_APPROVER: _BASE | Capability.TECHNICAL_APPROVAL,
    Role.ADMINISTRATIVE_APPROVER: _BASE | Capability.ADMINISTRATIVE_APPROVAL,
    Role.TENDER_MANAGER: _BASE | Capability.MANAGE_TENDER,
    Role.WORK_ORDER_MANAGER: _BASE | Capability.MANAGE_WORK_ORDER,
    Role.PROGRESS_MONITOR: (
        _BASE
        | Capability.RECORD_PROGRESS
        | Capability.RELEASE_INSTALLMENT
        | Capability.COMPLETE_WORK
    ),
}


def parse_role(value):
    """Return the Role for a stored role string, or None if unknown."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def capabilities_for(role) -> Capability:
    role = parse_role(role)
    if role is None:
        return Capability.NONE
    return ROLE_CAPABILITIES.get(role, Capability.NONE)


def capability_names(role) -> list:
    caps = capabilities_for(role)
    return [cap.name for cap in Capability if cap and cap in caps]


class AuthorizationPolicy:
    """Decides whether a session may exercise a capability."""

    def __init__(self, role_capabilities: dict = None):
        self.role_capabilities = role_capabilities or ROLE_CAPABILITIES

    def capabilities(self, session) -> Capability:
        if session is None:
            return Capability.NONE
        role = parse_role(getattr(session, "role", None))
        return self.role_capabilities.get(role, Capability.NONE)

    def allows(self, session, capability: Capability) -> bool:
        return capability in self.capabilities(session)

    def require(self, session, capability: Capability) -> None:
        if not self.allows(session, capability):
            raise AuthorizationError(
                f"Role '{getattr(session, 'role', None)}' may not {capability.name.lower().replace('_', ' ')}"
            )


policy = AuthorizationPolicy()
