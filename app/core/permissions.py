from app.models.staff import StaffRole

ROLE_PERMISSIONS: dict[StaffRole, frozenset[str]] = {
    StaffRole.MANAGER: frozenset({
        "rooms:create", "rooms:read", "rooms:update", "rooms:delete",
        "bookings:create", "bookings:read", "bookings:update", "bookings:delete",
        "bookings:checkin", "bookings:checkout",
        "customers:create", "customers:read", "customers:update", "customers:delete",
        "staff:create", "staff:read", "staff:update", "staff:delete",
        "reports:read", "reports:export",
        "logs:read", "logs:delete",
    }),
    StaffRole.RECEPTIONIST: frozenset({
        "rooms:read",
        "bookings:create", "bookings:read", "bookings:update",
        "bookings:checkin", "bookings:checkout",
        "customers:create", "customers:read", "customers:update",
        "reports:read",
    }),
    StaffRole.CLEANER: frozenset({"rooms:read", "bookings:read"}),
}


def has_permission(role: StaffRole | str, permission: str) -> bool:
    try:
        role = StaffRole(role)
    except ValueError:
        return False
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def has_any_permission(role: StaffRole | str, permissions: list[str]) -> bool:
    return any(has_permission(role, p) for p in permissions)


def has_all_permissions(role: StaffRole | str, permissions: list[str]) -> bool:
    return all(has_permission(role, p) for p in permissions)
