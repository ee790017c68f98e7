from flask import Blueprint, jsonify, request

from ..exceptions import ValidationError
from ..utils.decorators import services
from .errors import error_response, result_response

bp = Blueprint("cars", __name__, url_prefix="/api/cars")


@bp.get("")
def list_cars():
    """Catalog listing; `available` reflects the availability index."""
    svc = services()
    out = []
    for car in svc.store.all_cars():
        d = car.to_dict()
        res = svc.index.is_available(car.car_id)
        d["available"] = res.value if res.ok else d["available"]
        out.append(d)
    return jsonify(out)


@bp.get("/<car_id>/availability")
def availability(car_id):
    return result_response(
        services().ledger.car_availability(car_id),
        render=lambda flag: {"car_id": car_id, "available": flag},
    )


@bp.get("/<car_id>/slots")
def time_slots(car_id):
    day = request.args.get("date")
    if not day:
        return error_response(ValidationError("date is required", {"date": "expected YYYY-MM-DD"}))
    return result_response(
        services().ledger.available_time_slots(car_id, day),
        render=lambda slots: {"car_id": car_id, "date": day, "slots": slots},
    )
