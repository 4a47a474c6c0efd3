from flask import jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from tagmark.auth import auth_bp
from tagmark.extensions import db
from tagmark.models import User


def _credentials():
    payload = request.get_json(silent=True) or request.form
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    return email, password


@auth_bp.route("/signup", methods=["POST"])
def signup():
    email, password = _credentials()
    if not email or not password:
        return jsonify({"error": "email and password are required"}), 400
    if User.query.filter_by(email=email).first():
        return jsonify({"error": "email already registered"}), 409

    user = User(email=email, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    login_user(user)
    return jsonify({"status": "created", "user_id": user.id, "email": user.email}), 201


@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "GET":
        if current_user.is_authenticated:
            return jsonify({"authenticated": True, "email": current_user.email})
        return jsonify({"authenticated": False}), 401

    email, password = _credentials()
    user = User.query.filter_by(email=email).first()
    if user and user.is_active and user.check_password(password):
        login_user(user)
        return jsonify({"status": "signed_in", "user_id": user.id, "email": user.email})
    return jsonify({"error": "invalid credentials"}), 401


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"status": "signed_out"})


@auth_bp.route("/session")
def session_state():
    if not current_user.is_authenticated:
        return jsonify({"authenticated": False})
    return jsonify(
        {
            "authenticated": True,
            "user_id": current_user.id,
            "email": current_user.email,
        }
    )
