"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/tokens/sweep (admin only) -> purge revoked/expired refresh tokens

The handlers only validate input and shape output; every decision lives in
services.auth_service.AuthService:
- Argon2 password hashing
- short-lived signed access tokens (JWT, HS256)
- opaque refresh tokens tracked in the DB, rotated on every use
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, current_app

from models.schemas.auth import (
    RegisterSchema,
    LoginSchema,
    RefreshTokenSchema,
    LogoutSchema,
    AuthResponseSchema,
)
from services.auth_service import AuthService, RegistrationProfile
from utils.decorators import roles_required

bp = Blueprint("auth", __name__, url_prefix="/auth")

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshTokenSchema()
logout_schema = LogoutSchema()
auth_response_schema = AuthResponseSchema()


def get_auth_service() -> AuthService:
    return current_app.extensions["auth_service"]


@bp.post("/register")
def register():
    """
    Register a new user and sign them in.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            password: { type: string }
            first_name: { type: string }
            last_name: { type: string }
    responses:
      201:
        description: Created (returns tokens)
      409:
        description: Email not available
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = register_schema.load(payload)

    profile = RegistrationProfile(
        email=data["email"],
        first_name=data["first_name"],
        last_name=data["last_name"],
    )
    result = get_auth_service().register(profile, data["password"])

    return jsonify(
        {
            "message": "Registration successful",
            "data": auth_response_schema.dump(result),
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login: return access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid credentials
    """
    payload = request.get_json(silent=True) or {}
    data = login_schema.load(payload)

    result = get_auth_service().login(data["email"], data["password"])

    return jsonify(
        {
            "message": "Login successful",
            "data": auth_response_schema.dump(result),
        }
    ), 200


@bp.post("/refresh")
def refresh():
    """
    Use a refresh token to obtain new access and refresh tokens (rotation).
    The presented refresh token is revoked; store the returned one.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (returns new tokens)
      401:
        description: Invalid, revoked or expired refresh token
    """
    payload = request.get_json(silent=True) or {}
    data = refresh_schema.load(payload)

    result = get_auth_service().refresh(data["refresh_token"])

    return jsonify(
        {
            "message": "Token refreshed",
            "data": auth_response_schema.dump(result),
        }
    ), 200


@bp.post("/logout")
def logout():
    """
    Logout: revokes every refresh token of the token's owner
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: Logged out
      400:
        description: Missing refresh token
      401:
        description: Invalid, revoked or expired refresh token
    """
    payload = request.get_json(silent=True) or {}
    data = logout_schema.load(payload)

    get_auth_service().logout(data.get("refresh_token"))

    return jsonify({"message": "Logout successful"}), 200


@bp.post("/tokens/sweep")
@roles_required(["admin"])
def sweep_tokens():
    """
    Delete revoked and expired refresh tokens now. - admin
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Number of deleted tokens
      401:
        description: Unauthorized
      403:
        description: Insufficient role
    """
    deleted = current_app.extensions["refresh_token_manager"].sweep()
    return jsonify({"message": "Sweep complete", "data": {"deleted": deleted}}), 200
