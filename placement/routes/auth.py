from __future__ import annotations

import hmac
from typing import Any

from flask import Blueprint, current_app, jsonify, request
from pymongo.errors import DuplicateKeyError

from placement.utils.auth import (
    ROLE_ADMIN,
    ROLE_STUDENT,
    ROLES,
    create_access_token,
    get_current_user,
    hash_password,
    login_required,
    require_roles,
    verify_password,
)
from placement.utils.datetime import utc_now
from placement.utils.errors import ApiError, ErrorCode
from placement.utils.validators import require_json, validate_email, validate_password


auth_bp = Blueprint("auth", __name__)


def _insert_user(db, *, email: str, password: str, name: str, role: str) -> dict[str, Any]:
    now = utc_now()
    user = {
        "email": email,
        "passwordHash": hash_password(password),
        "name": name,
        "role": role,
        "status": "ACTIVE",
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        user["_id"] = db.users.insert_one(user).inserted_id
    except DuplicateKeyError as e:
        raise ApiError(ErrorCode.CONFLICT, "Email already exists") from e
    return user


def _public_user(user: dict[str, Any]) -> dict[str, Any]:
    return {"id": str(user["_id"]), "email": user["email"], "name": user.get("name", ""), "role": user.get("role", "")}


@auth_bp.post("/bootstrap")
def bootstrap():
    bootstrap_token = current_app.config["CFG"].BOOTSTRAP_TOKEN.strip()
    if not bootstrap_token:
        raise ApiError(ErrorCode.FORBIDDEN, "Bootstrap is disabled")

    provided = str(request.headers.get("X-Bootstrap-Token") or "").strip()
    if not provided or not hmac.compare_digest(provided.encode("utf-8"), bootstrap_token.encode("utf-8")):
        raise ApiError(ErrorCode.FORBIDDEN, "Invalid bootstrap token")

    db = current_app.extensions["mongo_db"]
    if db.users.count_documents({"role": ROLE_ADMIN}) > 0:
        raise ApiError(ErrorCode.CONFLICT, "Bootstrap already completed")

    body = require_json()
    user = _insert_user(
        db,
        email=validate_email(body.get("email")),
        password=validate_password(body.get("password"), allow_short=False),
        name=str(body.get("name") or "").strip() or "Administrator",
        role=ROLE_ADMIN,
    )
    return jsonify({"success": True, "data": _public_user(user)}), 201


@auth_bp.post("/register")
def register():
    body = require_json()
    db = current_app.extensions["mongo_db"]
    user = _insert_user(
        db,
        email=validate_email(body.get("email")),
        password=validate_password(body.get("password"), allow_short=False),
        name=str(body.get("name") or "").strip(),
        role=ROLE_STUDENT,
    )
    return jsonify({"success": True, "data": _public_user(user)}), 201


@auth_bp.post("/login")
def login():
    body = require_json()
    email = validate_email(body.get("email"))
    password = validate_password(body.get("password"), allow_short=False)

    db = current_app.extensions["mongo_db"]
    user = db.users.find_one({"email": email})
    if not user:
        raise ApiError(ErrorCode.AUTH_INVALID, "Invalid credentials")

    if str(user.get("status") or "ACTIVE").upper() != "ACTIVE":
        raise ApiError(ErrorCode.FORBIDDEN, "User is disabled")

    if not verify_password(password, str(user.get("passwordHash") or "")):
        raise ApiError(ErrorCode.AUTH_INVALID, "Invalid credentials")

    token = create_access_token(current_app, user)
    db.users.update_one({"_id": user["_id"]}, {"$set": {"lastLoginAt": utc_now()}})

    return jsonify(
        {
            "success": True,
            "data": {"access_token": token, "token_type": "bearer", "user": _public_user(user)},
        }
    )


@auth_bp.get("/me")
@login_required
def me():
    user = get_current_user()
    return jsonify(
        {"success": True, "data": {"id": str(user["id"]), "email": user["email"], "name": user["name"], "role": user["role"]}}
    )


@auth_bp.post("/users")
@require_roles([ROLE_ADMIN])
def create_user():
    body = require_json()
    role = str(body.get("role") or "").strip().upper() or ROLE_STUDENT
    if role not in ROLES:
        raise ApiError(ErrorCode.BAD_REQUEST, f"role must be one of {'|'.join(sorted(ROLES))}")

    db = current_app.extensions["mongo_db"]
    user = _insert_user(
        db,
        email=validate_email(body.get("email")),
        password=validate_password(body.get("password"), allow_short=False),
        name=str(body.get("name") or "").strip(),
        role=role,
    )
    return jsonify({"success": True, "data": _public_user(user)}), 201
