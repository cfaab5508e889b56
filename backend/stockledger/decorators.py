# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import owner_service


def require_owner(f):
    """
    Require a bearer token and establish the owner context.

    Sets:
    - g.owner: the authenticated BusinessOwner
    - g.owner_id: its id; every service call is scoped by it

    Returns 401 if the header is missing, or the token is unknown or belongs
    to a deactivated owner.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()

        owner = owner_service.get_owner_by_token(token)
        if owner is None:
            return jsonify({"error": "Invalid token"}), 401

        g.owner = owner
        g.owner_id = owner.id

        return f(*args, **kwargs)

    return decorated_function
