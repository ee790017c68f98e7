from functools import wraps

from flask import current_app, g, redirect, request

from carrental.controllers.errors import denied_response, error_response
from carrental.exceptions import NotAuthenticatedError
from carrental.utils.constants import DenyReason


def services():
    """The Services bundle attached by create_app()."""
    return current_app.extensions["carrental"]


def session_token() -> str | None:
    auth = request.headers.get("Authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return request.cookies.get("session_token")


def guard_request():
    """
    before_request hook: resolve the caller's session, then let the AccessGuard
    decide. API paths get JSON 401/403, pages are redirected.
    """
    svc = services()
    g.session = None
    token = session_token()
    if token:
        res = svc.sessions.validate(token)
        if res.ok:
            g.session = res.value

    role = g.session.role if g.session else None
    decision = svc.guard.check_access(request.path, role)
    if decision.allowed:
        return None
    if request.path.startswith("/api/"):
        status = 401 if decision.reason == DenyReason.NOT_AUTHENTICATED else 403
        return denied_response(decision, status)
    return redirect(decision.redirect)


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "session", None) is None:
            return error_response(NotAuthenticatedError("Please login first"))
        return fn(*args, **kwargs)

    return wrapper


def permission_required(permission):
    def deco(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            sess = getattr(g, "session", None)
            if sess is None:
                return error_response(NotAuthenticatedError("Please login first"))
            decision = services().guard.check_access(request.path, sess.role, required_permission=permission)
            if not decision.allowed:
                return denied_response(decision)
            return fn(*args, **kwargs)

        return wrapper

    return deco
