from flask import Blueprint, g, jsonify, request

from ..utils.decorators import login_required, services, session_token
from .errors import error_response

bp = Blueprint("auth", __name__)


def _payload() -> dict:
    return request.get_json(silent=True) or request.form.to_dict()


@bp.post("/login")
def login():
    data = _payload()
    svc = services()
    res = svc.sessions.authenticate(
        (data.get("role") or "").strip().lower(),
        data.get("identifier") or "",
        data.get("secret") or "",
    )
    if not res.ok:
        return error_response(res.error)

    sess = res.value
    resp = jsonify({
        "session": sess.to_dict(),
        "redirect": svc.guard.dashboard_for(sess.role),
    })
    resp.set_cookie(
        "session_token",
        sess.session_id,
        max_age=int((sess.expires_at - sess.issued_at).total_seconds()),
        httponly=True,
        samesite="Lax",
    )
    return resp


@bp.post("/logout")
def logout():
    token = session_token()
    if token:
        services().sessions.revoke(token)
    resp = jsonify({"message": "Logged out", "redirect": "/"})
    resp.delete_cookie("session_token")
    return resp


@bp.get("/api/session")
@login_required
def current_session():
    svc = services()
    remaining = svc.sessions.time_until_expiry(g.session.session_id)
    return jsonify({
        "session": g.session.to_dict(),
        "seconds_until_expiry": int(remaining.total_seconds()),
        "access": svc.guard.access_summary(g.session.role),
    })


@bp.post("/api/session/extend")
@login_required
def extend_session():
    res = services().sessions.extend(g.session.session_id)
    if not res.ok:
        return error_response(res.error)
    return jsonify({"session": res.value.to_dict()})
