from datetime import datetime, timezone

from flask import jsonify


def _timestamp():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def envelope(success, message, data=None, error=None, details=None, pagination=None):
    body = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    if error is not None:
        body["error"] = error
    if details is not None:
        body["details"] = details
    if pagination is not None:
        body["pagination"] = pagination
    body["timestamp"] = _timestamp()
    return body


def success(message, data=None, status=200, pagination=None):
    return jsonify(envelope(True, message, data=data, pagination=pagination)), status


def created(message, data=None):
    return success(message, data, status=201)


def paginated(message, items, page):
    return success(message, items, pagination=page.meta())


def failure(message, status, error=None, details=None):
    return jsonify(envelope(False, message, error=error, details=details)), status
