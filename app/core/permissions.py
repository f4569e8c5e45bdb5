from app.core.exceptions import PermissionDeniedError
from app.models.user import User, UserRole


# Higher value = more authority. CA passes any EMPLOYEE check.
ROLE_ORDER = {
    UserRole.EMPLOYEE.value: 1,
    UserRole.CA.value: 2,
}


def get_role_value(role: str | UserRole) -> int:
    """Convert a role to its numeric rank. Unknown roles rank below everything."""
    key = role.value if isinstance(role, UserRole) else str(role)
    return ROLE_ORDER.get(key, 0)


def has_role(user: User, required_role: str | UserRole) -> bool:
    """True if the user's role is at least as privileged as required_role."""
    return get_role_value(user.role) >= get_role_value(required_role)


def check_role(user: User, required_role: str | UserRole) -> None:
    """
    Raise PermissionDeniedError unless the user holds required_role
    (or a more privileged one).
    """
    if not has_role(user, required_role):
        required = required_role.value if isinstance(required_role, UserRole) else required_role
        raise PermissionDeniedError(
            f"Access denied. {required} role required.",
            details={"required_role": required, "user_role": user.role},
        )
