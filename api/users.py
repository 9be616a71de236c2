from __future__ import annotations

from flask import Blueprint, jsonify, g

from models.schemas.auth import UserOutSchema
from utils.decorators import jwt_required

bp = Blueprint("users", __name__)

user_out_schema = UserOutSchema()


@bp.get("/users/me")
@jwt_required()
def me():
    """
    Get current user info. - user
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    data = user_out_schema.dump(g.current_user)
    data["roles"] = list(g.current_user_roles)
    return jsonify({"data": data}), 200
