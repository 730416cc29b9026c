"""JSON blueprints over the game, player and league services."""
from flask import request
from flask_login import current_user

from knockout.errors import Unauthenticated, ValidationError


def current_user_id():
    if current_user.is_authenticated:
        return current_user.id
    return None


def require_user_id() -> int:
    user_id = current_user_id()
    if user_id is None:
        raise Unauthenticated('Login required')
    return user_id


def json_body() -> dict:
    return request.get_json(silent=True) or {}


def int_field(data: dict, field: str) -> int:
    try:
        return int(data.get(field))
    except (TypeError, ValueError):
        raise ValidationError(f'{field} is required')
