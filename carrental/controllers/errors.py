"""Map core errors and results onto JSON responses."""
from flask import jsonify

from carrental.exceptions import (
    AuthError,
    ConflictError,
    CoreError,
    IllegalTransitionError,
    InternalError,
    NotFoundError,
    Result,
    ValidationError,
)


def status_for(error: CoreError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, AuthError):
        return 401
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, (ConflictError, IllegalTransitionError)):
        return 409
    if isinstance(error, InternalError):
        return 500
    return 400


def error_response(error: CoreError, status: int | None = None):
    content = {"message": error.message, "type": error.code}
    fields = getattr(error, "fields", None)
    if fields:
        content["fields"] = fields
    return jsonify(content), status or status_for(error)


def denied_response(decision, status: int = 403):
    return jsonify({"message": decision.message, "type": decision.reason, "redirect": decision.redirect}), status


def result_response(result: Result, render=lambda v: v, status: int = 200):
    if not result.ok:
        return error_response(result.error)
    return jsonify(render(result.value)), status
