"""
Authentication blueprint: exchange credentials for an opaque token
"""
import secrets

from flask import Blueprint, request, jsonify
from werkzeug.security import check_password_hash

import storage
from db import get_db
from utils.logger import get_logger
from utils.validators import validate_json_object, validate_required, ValidationError

logger = get_logger(__name__)
auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route("/login", methods=["POST"])
def login():
    """Validate admin credentials and issue a token"""
    try:
        data = validate_json_object(request.get_json(silent=True))
        username = validate_required(data.get("username"), "Username").lower()
        password = validate_required(data.get("password"), "Password")
    except ValidationError as e:
        logger.warning(f"Login validation error: {str(e)}")
        return jsonify({"success": False, "message": str(e)}), 400

    user = storage.get_user_by_username(get_db(), username)
    if user is None or not check_password_hash(user["password_hash"], password):
        logger.warning(f"Failed login attempt for username: {username}")
        return jsonify({"success": False, "message": "Invalid username or password"}), 401

    logger.info(f"Admin login successful: {username}")
    return jsonify({
        "success": True,
        "token": secrets.token_urlsafe(32),
        "user": {"id": user["id"], "username": user["username"], "role": user["role"]},
    })
