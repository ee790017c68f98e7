import re

from flask import Blueprint, g, jsonify, request

from ..utils.constants import BookingStatus, PaymentStatus, Role
from ..utils.decorators import login_required, permission_required, services
from .errors import error_response, result_response

bp = Blueprint("bookings", __name__, url_prefix="/api/bookings")


def _payload() -> dict:
    return request.get_json(silent=True) or request.form.to_dict()


def _forbidden(message="Not allowed to manage this booking"):
    return jsonify({"message": message, "type": "FORBIDDEN"}), 403


def _load(booking_id):
    """Return (booking, None) or (None, error response)."""
    res = services().ledger.get_booking(booking_id)
    if not res.ok:
        return None, error_response(res.error)
    return res.value, None


def _is_party(booking) -> bool:
    sess = g.session
    if sess.role == Role.ADMIN:
        return True
    if sess.role == Role.HOSTER:
        return booking.host_id == sess.principal_id
    return booking.customer_id == sess.principal_id


def _is_host_or_admin(booking) -> bool:
    return g.session.role == Role.ADMIN or (
        g.session.role == Role.HOSTER and booking.host_id == g.session.principal_id
    )


def _as_dict(booking):
    return booking.to_dict()


@bp.post("")
@permission_required("canBookCars")
def create_booking():
    data = _payload()
    res = services().ledger.create_booking(
        car_id=data.get("car_id"),
        customer_id=g.session.principal_id,
        start_date=data.get("start_date"),
        end_date=data.get("end_date"),
        start_time=data.get("start_time"),
        end_time=data.get("end_time"),
        pickup_location=data.get("pickup_location"),
        extras=data.get("extras"),
    )
    return result_response(res, render=_as_dict, status=201)


@bp.get("")
@login_required
def list_bookings():
    """Own bookings by role; optional ?status= and ?date_range= narrow the list."""
    ledger = services().ledger
    sess = g.session
    status = request.args.get("status", "all")
    date_range = request.args.get("date_range", "all")
    kwargs = {}
    if sess.role == Role.CUSTOMER:
        kwargs["customer_id"] = sess.principal_id
    elif sess.role == Role.HOSTER:
        kwargs["host_id"] = sess.principal_id
    res = ledger.filtered_bookings(status=status, date_range=date_range, **kwargs)
    return result_response(res, render=lambda items: [b.to_dict() for b in items])


@bp.get("/stats")
@permission_required("canViewReports")
def stats():
    return result_response(services().ledger.booking_stats())


@bp.get("/revenue")
@permission_required("canViewReports")
def revenue():
    period = request.args.get("period", "month")
    return result_response(
        services().ledger.revenue_by_period(period),
        render=lambda total: {"period": period, "revenue": total},
    )


@bp.get("/<booking_id>")
@login_required
def get_booking(booking_id):
    booking, err = _load(booking_id)
    if err:
        return err
    if not _is_party(booking):
        return _forbidden()
    return jsonify(booking.to_dict())


@bp.post("/<booking_id>/status")
@login_required
def change_status(booking_id):
    booking, err = _load(booking_id)
    if err:
        return err
    if not _is_host_or_admin(booking):
        return _forbidden("Only the host or an admin can change booking status")
    data = _payload()
    new_status = (data.get("status") or "").strip().lower()
    if new_status == BookingStatus.CANCELLED:
        return _forbidden("Use the cancel endpoint to cancel a booking")
    res = services().ledger.transition_status(booking_id, new_status, data.get("reason"))
    return result_response(res, render=_as_dict)


@bp.post("/<booking_id>/cancel")
@login_required
def cancel(booking_id):
    booking, err = _load(booking_id)
    if err:
        return err
    if not _is_party(booking):
        return _forbidden()
    res = services().ledger.cancel_booking(booking_id, _payload().get("reason") or "")
    return result_response(res, render=lambda r: {
        "refund_amount": r.refund_amount,
        "refund_percentage": r.refund_percentage,
        "policy": r.policy,
        "booking": r.booking.to_dict(),
    })


@bp.post("/<booking_id>/extend")
@login_required
def extend(booking_id):
    booking, err = _load(booking_id)
    if err:
        return err
    if not _is_party(booking):
        return _forbidden()
    data = _payload()
    res = services().ledger.extend_booking(booking_id, data.get("new_end_date"), data.get("new_end_time"))
    return result_response(res, render=lambda r: {
        "additional_days": r.additional_days,
        "additional_cost": r.additional_cost,
        "new_total": r.new_total,
        "booking": r.booking.to_dict(),
    })


@bp.post("/<booking_id>/pay")
@login_required
def pay(booking_id):
    booking, err = _load(booking_id)
    if err:
        return err
    if booking.customer_id != g.session.principal_id and g.session.role != Role.ADMIN:
        return _forbidden("Only the customer can pay for a booking")
    res = services().ledger.pay_booking(booking_id, _payload().get("method") or "")
    if res.ok and res.value.payment_status == PaymentStatus.FAILED:
        return jsonify(res.value.to_dict()), 402
    return result_response(res, render=_as_dict)


@bp.post("/<booking_id>/rate")
@login_required
def rate(booking_id):
    booking, err = _load(booking_id)
    if err:
        return err
    if booking.customer_id != g.session.principal_id:
        return _forbidden("Only the customer can rate a booking")
    data = _payload()
    rating = data.get("rating")
    # form posts carry strings; JSON values go to the ledger as sent
    if isinstance(rating, str) and re.fullmatch(r"\d", rating.strip()):
        rating = int(rating)
    res = services().ledger.rate_booking(booking_id, rating, data.get("review"))
    return result_response(res, render=lambda r: {
        "booking": r.booking.to_dict(),
        "car_rating": r.car_rating,
        "review_count": r.review_count,
    })
