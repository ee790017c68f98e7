from flask import Blueprint, g, jsonify, redirect

from ..utils.decorators import login_required, services

bp = Blueprint("views", __name__)


@bp.get("/")
def home():
    """Signed-in callers go to their dashboard; everyone else sees the public landing data."""
    sess = getattr(g, "session", None)
    if sess is not None:
        return redirect(services().guard.dashboard_for(sess.role))
    return jsonify({"message": "Welcome to Car Rental", "login": "/login"})


@bp.get("/dashboard/admin")
@login_required
def admin_dashboard():
    ledger = services().ledger
    ledger.advance_schedule()
    return jsonify({
        "stats": ledger.booking_stats().value,
        "revenue_month": ledger.revenue_by_period("month").value,
        "analytics": ledger.booking_analytics("month").value,
    })


@bp.get("/dashboard/hoster")
@login_required
def hoster_dashboard():
    svc = services()
    svc.ledger.advance_schedule()
    bookings = svc.ledger.filtered_bookings(host_id=g.session.principal_id).value
    cars = [c.to_dict() for c in svc.store.all_cars() if c.owner_id == g.session.principal_id]
    return jsonify({
        "cars": cars,
        "bookings": [b.to_dict() for b in bookings],
    })


@bp.get("/cars")
@login_required
def customer_cars():
    svc = services()
    svc.ledger.advance_schedule()
    cars = [c.to_dict() for c in svc.store.all_cars() if c.is_bookable]
    mine = svc.ledger.bookings_for_user(g.session.principal_id, g.session.role).value
    return jsonify({
        "cars": cars,
        "bookings": [b.to_dict() for b in mine],
    })
