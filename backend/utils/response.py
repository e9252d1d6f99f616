"""
response.py — Consistent JSON response helpers used across all routes.

Success:  { "success": true,  "message": str, "data": ... }
Failure:  { "success": false, "error": str,   "details": ... }
"""

from flask import jsonify


def success(data=None, message="OK", status_code=200):
    payload = {"success": True, "message": message}
    if data is not None:
        payload["data"] = data
    return jsonify(payload), status_code


def created(data=None, message="Created"):
    return success(data=data, message=message, status_code=201)


def no_content():
    return "", 204


def paginated(items, page, message="OK"):
    """Wrap a page of serialised rows together with its pagination counters."""
    return success(data={
        "items":   items,
        "total":   page.total,
        "page":    page.page,
        "perPage": page.per_page,
        "pages":   page.pages,
    }, message=message)


def error(message="An error occurred", status_code=400, details=None):
    payload = {"success": False, "error": message}
    if details:
        payload["details"] = details
    return jsonify(payload), status_code


def not_found(resource="Resource"):
    return error(f"{resource} not found.", status_code=404)


def forbidden(message="Access denied."):
    return error(message, status_code=403)


def conflict(message="Conflicts with existing data."):
    return error(message, status_code=409)


def server_error(message="Internal server error.", details=None):
    return error(message, status_code=500, details=details)


def service_unavailable(message="Service not configured."):
    return error(message, status_code=503)


def unauthorized(message="Authentication required."):
    return error(message, status_code=401)
