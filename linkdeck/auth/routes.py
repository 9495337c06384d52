from flask import flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required, login_user, logout_user

from linkdeck.auth import auth_bp
from linkdeck.services.exceptions import IdentityError
from linkdeck.services.identity import IDENTITY_PROFILE_KEY, get_identity_provider
from linkdeck.services.session_bridge import bridge_session, clear_session, install_session
from linkdeck.services.store import get_store


@auth_bp.route("/login")
def login():
    if current_user.is_authenticated:
        return redirect(url_for("web.dashboard"))
    return render_template("login.html", app_name="Linkdeck")


@auth_bp.route("/auth/callback", methods=["GET", "POST"])
def callback():
    credential = request.form.get("credential") or request.args.get("credential") or ""
    identity = get_identity_provider()
    try:
        user = identity.authenticate(credential)
    except IdentityError as exc:
        flash(exc.message, "error")
        return redirect(url_for("auth.login"))

    if current_user.is_authenticated and current_user.id != user.id:
        logout_user()
        clear_session()

    login_user(user)
    session[IDENTITY_PROFILE_KEY] = user.as_dict()
    install_session(bridge_session(identity, user, get_store()))
    return redirect(url_for("web.dashboard"))


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    clear_session()
    session.pop(IDENTITY_PROFILE_KEY, None)
    return redirect(url_for("auth.login"))
