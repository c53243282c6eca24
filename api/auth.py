"""
Authentication blueprint:
- POST /users/register
- POST /users/authenticate
- POST /users/refresh-token
- POST /users/revoke-token

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens (JWT) and long-lived opaque refresh tokens
- Refresh tokens travel only in an HttpOnly cookie, never in a JSON body
- Every refresh rotates the token; reusing a retired token revokes the live
  end of its chain (services.rotation)
"""
from __future__ import annotations

from datetime import datetime
from flask import Blueprint, request, jsonify, current_app

from models.refresh_token import RefreshToken
from models.schemas.user import UserCreateSchema, UserOutSchema, AuthenticateSchema, RevokeTokenSchema
from utils.decorators import get_auth_flow, jwt_required, client_ip
from utils.exceptions import ValidationError

bp = Blueprint("auth", __name__, url_prefix="/users")

user_create_schema = UserCreateSchema()
user_out_schema = UserOutSchema()
authenticate_schema = AuthenticateSchema()
revoke_token_schema = RevokeTokenSchema()


def token_response(user, access_token: str, refresh_token: RefreshToken):
    body = user_out_schema.dump(user)
    body.update(
        {
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": int(current_app.config["ACCESS_TOKEN_EXPIRES"].total_seconds()),
        }
    )
    response = jsonify(body)
    set_token_cookie(response, refresh_token.token, refresh_token.expires_at)
    return response, 200


def set_token_cookie(response, token: str, expires: datetime):
    response.set_cookie(
        current_app.config["REFRESH_COOKIE_NAME"],
        token,
        expires=expires,
        httponly=True,
        samesite="Lax",
        secure=not current_app.debug and not current_app.testing,
    )


@bp.post("/register")
def register():
    """
    Register a new user.
    ---
    tags:
      - Users
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            username: { type: string }
            password: { type: string }
            f_name: { type: string }
            l_name: { type: string }
    responses:
      201:
        description: Created
      409:
        description: Username already registered
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = user_create_schema.load(payload)
    user = get_auth_flow().register(**data)
    return jsonify({"data": user_out_schema.dump(user)}), 201


@bp.post("/authenticate")
def authenticate():
    """
    Authenticate: returns an access token, sets the refresh token cookie
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
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (access token in body, refresh token in cookie)
      401:
        description: Username or password is incorrect
    """
    payload = request.get_json(silent=True) or {}
    data = authenticate_schema.load(payload)
    user, access_token, refresh_token = get_auth_flow().authenticate(
        data["username"], data["password"], client_ip()
    )
    return token_response(user, access_token, refresh_token)


@bp.post("/refresh-token")
def refresh_token():
    """
    Rotate the refresh token held in the cookie and issue a new access token
    ---
    tags:
      - Auth
    responses:
      200:
        description: OK (new access token in body, new refresh token in cookie)
      401:
        description: Invalid token
    """
    token = request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"], "")
    user, access_token, new_token = get_auth_flow().refresh_token(token, client_ip())
    return token_response(user, access_token, new_token)


@bp.post("/revoke-token")
@jwt_required()
def revoke_token():
    """
    Revoke a refresh token (from the body, else from the cookie)
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
    responses:
      200:
        description: Token revoked
      400:
        description: Token is required
      401:
        description: Invalid token
    """
    payload = request.get_json(silent=True) or {}
    data = revoke_token_schema.load(payload)
    token = data.get("token") or request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])
    if not token:
        raise ValidationError("Token is required")

    get_auth_flow().revoke_token(token, client_ip())
    return jsonify({"message": "Token revoked"}), 200
