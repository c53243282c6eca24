from __future__ import annotations

from flask import Blueprint, jsonify, g, abort

from models.schemas.user import UserOutSchema
from models.schemas.refresh_token import RefreshTokenOutSchema
from utils.decorators import get_auth_flow, jwt_required

bp = Blueprint("users", __name__)

user_out_schema = UserOutSchema()
user_list_out_schema = UserOutSchema(many=True)
refresh_tokens_out_schema = RefreshTokenOutSchema(many=True)


@bp.get("/users")
@jwt_required()
def list_users():
    """
    List all Users
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200: { description: OK }
      401: { description: Unauthorized }
    """
    users = get_auth_flow().get_all()
    return jsonify({"data": user_list_out_schema.dump(users)}), 200


@bp.get("/users/<user_id>")
@jwt_required()
def get_user(user_id: str):
    """
    Get one user by id
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    user = get_auth_flow().get_by_id(user_id)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.get("/users/<user_id>/refresh-tokens")
@jwt_required()
def list_refresh_tokens(user_id: str):
    """
    List the refresh tokens of the current user (audit view of the chain)
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      403: { description: Not your tokens }
    """
    if g.current_user.id != user_id:
        abort(403, description="Only your own refresh tokens can be listed")
    user = get_auth_flow().get_by_id(user_id)
    return jsonify({"data": refresh_tokens_out_schema.dump(user.refresh_tokens)}), 200
