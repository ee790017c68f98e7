"""
Role-based access control.

Routes are classified from data tables supplied at construction; the guard
itself only walks the decision order. Patterns are either exact paths or a
prefix ending in ``/*`` (``/dashboard/admin/*`` matches everything below
``/dashboard/admin/``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import structlog

from carrental.services.session_manager import SessionManager
from carrental.utils.constants import DenyReason, Role

logger = structlog.get_logger(__name__)

DEFAULT_PUBLIC_ROUTES = ("/", "/login", "/logout", "/register", "/about", "/contact", "/terms", "/privacy")

DEFAULT_ROLE_ROUTES = {
    Role.ADMIN: ("/dashboard/admin", "/dashboard/admin/*"),
    Role.HOSTER: ("/dashboard/hoster", "/dashboard/hoster/*"),
    Role.CUSTOMER: ("/cars", "/cars/*"),
}

DEFAULT_MULTI_ROLE_ROUTES = {
    "/api/cars": set(Role.ALL),
    "/api/cars/*": set(Role.ALL),
    "/api/bookings": set(Role.ALL),
    "/api/bookings/*": set(Role.ALL),
    "/api/profile": set(Role.ALL),
}

DEFAULT_PERMISSION_ROUTES = {
    "/api/admin/users": "canManageUsers",
    "/api/admin/users/*": "canManageUsers",
    "/api/admin/fleet": "canManageFleet",
    "/api/admin/fleet/*": "canManageFleet",
    "/api/reports/*": "canViewReports",
    "/api/hoster/cars/*": "canManageOwnCars",
    "/api/hoster/earnings": "canViewOwnEarnings",
}

DEFAULT_FORBIDDEN_ROUTES = ("/internal/*",)

DEFAULT_ROLE_PERMISSIONS = {
    Role.ADMIN: {
        "canAccessAdmin", "canAccessHoster", "canAccessCustomer",
        "canManageUsers", "canManageFleet", "canViewReports",
        "canManageOwnCars", "canViewOwnEarnings", "canBookCars", "canViewOwnBookings",
    },
    Role.HOSTER: {"canAccessHoster", "canManageOwnCars", "canViewOwnEarnings", "canViewOwnBookings"},
    Role.CUSTOMER: {"canAccessCustomer", "canBookCars", "canViewOwnBookings"},
}

DEFAULT_DASHBOARD_ROUTES = {
    Role.ADMIN: "/dashboard/admin",
    Role.HOSTER: "/dashboard/hoster",
    Role.CUSTOMER: "/cars",
}


def route_matches(pattern: str, path: str) -> bool:
    if pattern.endswith("*"):
        return path.startswith(pattern[:-1])
    return path == pattern


def _first_match(table: dict, path: str):
    for pattern, value in table.items():
        if route_matches(pattern, path):
            return value
    return None


@dataclass
class AccessPolicy:
    """Static route classification and role -> capability tables."""
    public_routes: tuple = DEFAULT_PUBLIC_ROUTES
    role_routes: dict = field(default_factory=lambda: dict(DEFAULT_ROLE_ROUTES))
    multi_role_routes: dict = field(default_factory=lambda: dict(DEFAULT_MULTI_ROLE_ROUTES))
    permission_routes: dict = field(default_factory=lambda: dict(DEFAULT_PERMISSION_ROUTES))
    forbidden_routes: tuple = DEFAULT_FORBIDDEN_ROUTES
    role_permissions: dict = field(default_factory=lambda: {r: set(p) for r, p in DEFAULT_ROLE_PERMISSIONS.items()})
    dashboard_routes: dict = field(default_factory=lambda: dict(DEFAULT_DASHBOARD_ROUTES))
    fallback_route: str = "/"

    @classmethod
    def default(cls) -> "AccessPolicy":
        return cls()


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None
    redirect: Optional[str] = None
    message: str = ""

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(allowed=True)


@dataclass(frozen=True)
class RouteClass:
    kind: str  # "public" | "role" | "multi_role" | "permission" | "forbidden" | "unclassified"
    roles: frozenset = frozenset()
    permission: Optional[str] = None


class AccessGuard:
    def __init__(self, policy: Optional[AccessPolicy] = None, sessions: Optional[SessionManager] = None):
        self.policy = policy or AccessPolicy.default()
        self.sessions = sessions

    # ---------- Classification ----------
    def classify(self, path: str) -> RouteClass:
        p = self.policy
        if any(route_matches(r, path) for r in p.public_routes):
            return RouteClass("public")
        if any(route_matches(r, path) for r in p.forbidden_routes):
            return RouteClass("forbidden")
        for role, patterns in p.role_routes.items():
            if any(route_matches(r, path) for r in patterns):
                return RouteClass("role", roles=frozenset({role}))
        roles = _first_match(p.multi_role_routes, path)
        if roles is not None:
            return RouteClass("multi_role", roles=frozenset(roles))
        permission = _first_match(p.permission_routes, path)
        if permission is not None:
            return RouteClass("permission", permission=permission)
        return RouteClass("unclassified")

    def dashboard_for(self, role: Optional[str]) -> str:
        return self.policy.dashboard_routes.get(role, self.policy.fallback_route)

    def has_permission(self, role: Optional[str], permission: str) -> bool:
        return permission in self.policy.role_permissions.get(role, ())

    # ---------- Decisions ----------
    def _deny(self, reason: str, role: Optional[str], message: str) -> AccessDecision:
        return AccessDecision(allowed=False, reason=reason, redirect=self.dashboard_for(role), message=message)

    def _decide(self, path, role, required_role, required_permission) -> AccessDecision:
        rc = self.classify(path)
        if rc.kind == "public":
            return AccessDecision.allow()

        if role not in Role.ALL:
            return AccessDecision(
                allowed=False,
                reason=DenyReason.NOT_AUTHENTICATED,
                redirect=self.policy.fallback_route,
                message="Please login first",
            )

        if rc.kind == "forbidden":
            return self._deny(DenyReason.ROUTE_FORBIDDEN, role, "You do not have permission to access this page")

        if rc.kind == "role" and role not in rc.roles:
            return self._deny(DenyReason.INSUFFICIENT_PRIVILEGES, role, "Insufficient privileges")

        if rc.kind == "multi_role" and role not in rc.roles:
            return self._deny(DenyReason.ROLE_NOT_ALLOWED, role, "Your role is not allowed here")

        if required_role is not None and role != required_role:
            return self._deny(DenyReason.ROLE_NOT_ALLOWED, role, "Your role is not allowed here")

        permission = required_permission or rc.permission
        if permission and not self.has_permission(role, permission):
            return self._deny(DenyReason.INSUFFICIENT_PERMISSIONS, role, f"Missing permission: {permission}")

        return AccessDecision.allow()

    def check_access(
        self,
        path: str,
        role: Optional[str] = None,
        required_role: Optional[str] = None,
        required_permission: Optional[str] = None,
    ) -> AccessDecision:
        """
        Decide whether a caller holding `role` (None when anonymous) may reach `path`.
        First matching rule wins; see AccessPolicy for the tables consulted.
        """
        try:
            decision = self._decide(path, role, required_role, required_permission)
        except Exception:
            logger.exception("access_check_failed", path=path, role=role)
            return AccessDecision(
                allowed=False,
                reason=DenyReason.SYSTEM_ERROR,
                redirect=self.policy.fallback_route,
                message="Access check failed",
            )
        if not decision.allowed:
            logger.info("access_denied", path=path, role=role, reason=decision.reason)
        return decision

    def authorize(
        self,
        path: str,
        session_id: Optional[str],
        required_role: Optional[str] = None,
        required_permission: Optional[str] = None,
    ) -> AccessDecision:
        """Validate the session (if any) and check access with its role."""
        role = None
        if session_id and self.sessions is not None:
            res = self.sessions.validate(session_id)
            if res.ok:
                role = res.value.role
        return self.check_access(path, role, required_role, required_permission)

    def access_summary(self, role: Optional[str]) -> dict:
        p = self.policy
        if role not in Role.ALL:
            return {"authenticated": False, "role": None, "permissions": [], "accessible_routes": list(p.public_routes)}
        routes = list(p.public_routes) + list(p.role_routes.get(role, ()))
        routes += [r for r, roles in p.multi_role_routes.items() if role in roles]
        routes += [r for r, perm in p.permission_routes.items() if self.has_permission(role, perm)]
        return {
            "authenticated": True,
            "role": role,
            "permissions": sorted(p.role_permissions.get(role, ())),
            "accessible_routes": routes,
        }
