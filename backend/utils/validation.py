"""
utils/validation.py — Request body parsing and model updates.

Bodies are validated with the pydantic schemas in schemas.py. A failed
validation raises pydantic.ValidationError, which the app-level error
handler turns into a 400 with field-level details.
"""

from flask import request
from pydantic import ValidationError


def parse_body(schema_cls):
    """Validate the JSON body against `schema_cls` and return the model."""
    body = request.get_json(silent=True)
    if body is None:
        body = {}
    return schema_cls.model_validate(body)


def changes(model) -> dict:
    """Only the fields the caller actually sent, keyed by attribute name."""
    return model.model_dump(exclude_unset=True)


def apply_changes(obj, data: dict):
    for key, value in data.items():
        setattr(obj, key, value)
    return obj


def validation_details(exc: ValidationError) -> list[dict]:
    """[{field, message}] for the error envelope; field uses the wire (camelCase) name."""
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        details.append({
            "field":   ".".join(loc) if loc else "body",
            "message": err.get("msg", "Invalid value"),
        })
    return details
