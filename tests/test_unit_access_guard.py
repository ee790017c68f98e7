import pytest

from carrental.services.access_guard import AccessGuard, AccessPolicy, route_matches
from carrental.services.session_manager import SessionManager
from carrental.utils.constants import DenyReason, Role


@pytest.fixture
def guard():
    return AccessGuard()


def test_route_patterns():
    assert route_matches("/dashboard/admin", "/dashboard/admin")
    assert not route_matches("/dashboard/admin", "/dashboard/admin/users")
    assert route_matches("/dashboard/admin/*", "/dashboard/admin/users")
    assert route_matches("/dashboard/admin/*", "/dashboard/admin/")
    assert not route_matches("/dashboard/admin/*", "/dashboard/administrator")


def test_public_route_allows_anonymous(guard):
    assert guard.check_access("/").allowed
    assert guard.check_access("/login").allowed


def test_anonymous_on_protected_route(guard):
    d = guard.check_access("/cars")
    assert not d.allowed
    assert d.reason == DenyReason.NOT_AUTHENTICATED
    assert d.redirect == "/"


def test_unknown_role_is_unauthenticated(guard):
    d = guard.check_access("/dashboard/admin", "superuser")
    assert d.reason == DenyReason.NOT_AUTHENTICATED


def test_hoster_on_admin_dashboard(guard):
    d = guard.check_access("/dashboard/admin", Role.HOSTER)
    assert not d.allowed
    assert d.reason == DenyReason.INSUFFICIENT_PRIVILEGES
    assert d.redirect == "/dashboard/hoster"


def test_admin_on_admin_dashboard(guard):
    assert guard.check_access("/dashboard/admin", Role.ADMIN).allowed
    assert guard.check_access("/dashboard/admin/reports", Role.ADMIN).allowed


def test_customer_redirects_to_cars(guard):
    d = guard.check_access("/dashboard/hoster/cars", Role.CUSTOMER)
    assert d.reason == DenyReason.INSUFFICIENT_PRIVILEGES
    assert d.redirect == "/cars"


def test_forbidden_route_denies_every_role(guard):
    for role in Role.ALL:
        d = guard.check_access("/internal/debug", role)
        assert d.reason == DenyReason.ROUTE_FORBIDDEN


def test_multi_role_route():
    policy = AccessPolicy(multi_role_routes={"/api/fleet": {Role.ADMIN, Role.HOSTER}})
    g = AccessGuard(policy)
    assert g.check_access("/api/fleet", Role.HOSTER).allowed
    d = g.check_access("/api/fleet", Role.CUSTOMER)
    assert d.reason == DenyReason.ROLE_NOT_ALLOWED
    assert d.redirect == "/cars"


def test_required_role(guard):
    assert guard.check_access("/api/bookings", Role.ADMIN, required_role=Role.ADMIN).allowed
    d = guard.check_access("/api/bookings", Role.CUSTOMER, required_role=Role.ADMIN)
    assert d.reason == DenyReason.ROLE_NOT_ALLOWED


def test_permission_gated_routes(guard):
    assert guard.check_access("/api/admin/users", Role.ADMIN).allowed
    d = guard.check_access("/api/admin/users", Role.CUSTOMER)
    assert d.reason == DenyReason.INSUFFICIENT_PERMISSIONS
    assert guard.check_access("/api/hoster/earnings", Role.HOSTER).allowed


def test_required_permission(guard):
    assert guard.check_access("/api/bookings", Role.CUSTOMER, required_permission="canBookCars").allowed
    d = guard.check_access("/api/bookings", Role.HOSTER, required_permission="canBookCars")
    assert d.reason == DenyReason.INSUFFICIENT_PERMISSIONS
    assert d.redirect == "/dashboard/hoster"


def test_unclassified_route_needs_only_a_role(guard):
    assert guard.check_access("/api/session", Role.CUSTOMER).allowed
    assert not guard.check_access("/api/session").allowed


def test_evaluation_error_denies_with_system_error(guard, monkeypatch):
    def boom(path):
        raise RuntimeError("broken table")

    monkeypatch.setattr(guard, "classify", boom)
    d = guard.check_access("/dashboard/admin", Role.ADMIN)
    assert not d.allowed
    assert d.reason == DenyReason.SYSTEM_ERROR
    assert d.redirect == "/"


def test_authorize_uses_session_role(clock):
    sessions = SessionManager(lambda *a: True, clock)
    g = AccessGuard(sessions=sessions)
    sid = sessions.authenticate(Role.HOSTER, "hoster", "pw").value.session_id

    assert g.authorize("/dashboard/hoster", sid).allowed
    assert g.authorize("/dashboard/admin", sid).reason == DenyReason.INSUFFICIENT_PRIVILEGES

    clock.advance(hours=25)
    assert g.authorize("/dashboard/hoster", sid).reason == DenyReason.NOT_AUTHENTICATED
    assert g.authorize("/dashboard/hoster", None).reason == DenyReason.NOT_AUTHENTICATED


def test_access_summary(guard):
    s = guard.access_summary(Role.HOSTER)
    assert s["authenticated"] is True
    assert "canManageOwnCars" in s["permissions"]
    assert "/dashboard/hoster" in s["accessible_routes"]
    assert "/dashboard/admin" not in s["accessible_routes"]
    assert guard.access_summary(None)["authenticated"] is False
