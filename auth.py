# auth.py
import logging

from flask import Blueprint, current_app, render_template, request, jsonify, redirect, url_for
from flask_login import login_user, logout_user, login_required, current_user

import actions
from errors import AuthError
from identity import IdentitySession

logger = logging.getLogger("wastetrack.auth")

auth_bp = Blueprint("auth", __name__)


def identity_session() -> IdentitySession:
    factory = current_app.extensions["identity_provider"]
    return IdentitySession(factory())


def _wants_json() -> bool:
    return request.is_json or request.path.startswith("/api/")


@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "GET":
        return render_template("login.html")
    data = request.get_json(silent=True) or request.form
    credentials = {k: v for k, v in data.items()}
    try:
        with identity_session() as session:
            info = session.connect(**credentials)
        user = actions.get_user_by_email(info["email"])
        if user is None:
            user = actions.create_user(info["email"], info.get("name") or "Anonymous User")
    except AuthError as e:
        if _wants_json():
            return jsonify({"ok": False, "error": e.message}), 401
        return render_template("login.html", error=e.message), 401
    login_user(user)
    logger.info("user %s logged in", user.id)
    if _wants_json():
        return jsonify({"ok": True, "user": {"email": user.email, "name": user.name}})
    return redirect(url_for("main.index"))


@auth_bp.route("/signup", methods=["GET", "POST"])
def signup():
    if request.method == "GET":
        return render_template("signup.html")
    data = request.get_json(silent=True) or request.form
    email = (data.get("email") or "").strip().lower()
    name = data.get("name") or ""
    password = data.get("password") or ""
    if not email or not password:
        return jsonify({"ok": False, "error": "Missing fields"}), 400
    if actions.get_user_by_email(email):
        return jsonify({"ok": False, "error": "Email already registered"}), 409
    user = actions.create_user(email, name or "Anonymous User", password=password)
    login_user(user)
    if _wants_json():
        return jsonify({"ok": True, "user": {"email": user.email, "name": user.name}}), 201
    return redirect(url_for("main.index"))


@auth_bp.route("/api/session", methods=["GET"])
def api_session():
    if not current_user.is_authenticated:
        return jsonify({"ok": True, "connected": False, "user": None})
    return jsonify({
        "ok": True,
        "connected": True,
        "user": {"email": current_user.email, "name": current_user.name},
    })


def _disconnect():
    session = identity_session()
    session.init()
    try:
        session.logout()
    finally:
        session.dispose()
    logout_user()


@auth_bp.route("/api/logout", methods=["POST"])
@login_required
def api_logout():
    try:
        _disconnect()
    except AuthError as e:
        return jsonify({"ok": False, "error": e.message}), 401
    return jsonify({"ok": True})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout_post():
    try:
        _disconnect()
    except AuthError as e:
        return jsonify({"ok": False, "error": e.message}), 401
    return jsonify({"ok": True}), 200


@auth_bp.route("/logout", methods=["GET"])
@login_required
def logout_get():
    try:
        _disconnect()
    except AuthError as e:
        return render_template("login.html", error=e.message), 401
    return redirect("/")
