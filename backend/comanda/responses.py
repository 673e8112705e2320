# Overview: JSON response envelope helpers shared by every blueprint.

from flask import jsonify


def ok(data=None, status: int = 200, message: str | None = None):
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return jsonify(body), status


def created(data=None, message: str | None = None):
    return ok(data, 201, message)


def paginated(key: str, items, pagination: dict, serializer=None):
    """List envelope: data = {<key>: [...], pagination: {...}}."""
    serialize = serializer or (lambda item: item.to_dict())
    return ok({key: [serialize(item) for item in items], "pagination": pagination})


def error_response(message: str, status: int = 400, **extra):
    body = {"success": False, "message": message}
    body.update(extra)
    return jsonify(body), status
