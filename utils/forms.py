"""
JSON request validation with Flask-WTF forms.

API requests carry JSON bodies and bearer tokens, so forms here skip CSRF.
``parse_json`` feeds a body (or a nested item of it) through a form and
returns the validated data, raising ``ValidationFailed`` with the form's
field errors otherwise.
"""
from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict

from services.errors import ValidationFailed


class ApiForm(FlaskForm):
    """Base form for JSON endpoints."""

    class Meta:
        csrf = False


def json_body():
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationFailed('Request body must be a JSON object')
    return body


def parse_json(form_cls, payload=None, partial=False):
    """Validate ``payload`` (default: the request body) with ``form_cls``.

    With ``partial`` only the keys present in the payload are returned, and a
    key sent as ``null`` is returned as ``None`` (PATCH semantics).
    """
    payload = json_body() if payload is None else payload
    formdata = MultiDict({k: v for k, v in payload.items() if v is not None and v != ''})
    form = form_cls(formdata=formdata)

    fields = [name for name in form._fields if not partial or name in payload]
    errors = {}
    form.validate()
    for name in fields:
        if partial and payload.get(name) is None:
            continue
        if form[name].errors:
            errors[name] = form[name].errors
    if errors:
        raise ValidationFailed(errors=errors)

    data = {}
    for name in fields:
        data[name] = None if partial and payload.get(name) is None else form[name].data
    return data
