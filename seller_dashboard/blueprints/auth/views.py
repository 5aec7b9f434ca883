"""Sign-in, sign-up and session endpoints."""
import hmac
import logging
import secrets
from flask import current_app, jsonify, redirect, request, session
from seller_dashboard.blueprints.auth import auth_bp
from seller_dashboard.errors import AuthError
from seller_dashboard.services import auth_service
from seller_dashboard.services.auth_service import AuthMethod, AuthView

logger = logging.getLogger(__name__)


@auth_bp.route("/otp/request", methods=["POST"])
def request_otp():
    """Send a code for login (phone or email) or sign-up (phone)."""
    data = request.get_json(silent=True) or {}
    view = AuthView.parse(data.get("view"))
    method = AuthMethod.parse(data.get("method", "phone"))
    otp = auth_service.request_otp(
        view,
        method,
        data.get("destination", ""),
        full_name=data.get("full_name"),
        email=data.get("email"),
    )
    return jsonify({
        "status": "sent",
        "channel": otp.channel,
        "destination": otp.destination,
        "resend_after": current_app.config["OTP_RESEND_COOLDOWN_SECONDS"],
    })


@auth_bp.route("/otp/verify", methods=["POST"])
def verify_otp():
    data = request.get_json(silent=True) or {}
    method = AuthMethod.parse(data.get("method", "phone"))
    seller = auth_service.verify_otp(method, data.get("destination", ""), data.get("code", ""))
    auth_service.login_seller(seller)
    return jsonify({"status": "ok", "seller": seller.to_dict()})


@auth_bp.route("/google/start")
def google_start():
    state = secrets.token_urlsafe(32)
    session["oauth_state"] = state
    return redirect(auth_service.google_authorization_url(state))


@auth_bp.route("/google/callback")
def google_callback():
    expected = session.pop("oauth_state", None)
    state = request.args.get("state", "")
    if not expected or not hmac.compare_digest(state, expected):
        logger.warning("Google callback with bad state")
        raise AuthError("Sign-in expired. Please try again.")
    if request.args.get("error"):
        raise AuthError(f"Google sign-in was cancelled: {request.args['error']}")

    profile = auth_service.google_fetch_profile(request.args.get("code", ""))
    seller = auth_service.get_or_create_google_seller(profile)
    auth_service.login_seller(seller)
    return redirect("/")


@auth_bp.route("/logout", methods=["POST"])
def logout():
    auth_service.logout()
    return jsonify({"status": "ok"})


@auth_bp.route("/session")
def current_session():
    """Whether a seller is signed in; the front end gates the dashboard on it."""
    seller = auth_service.current_seller()
    return jsonify({
        "authenticated": seller is not None,
        "seller": seller.to_dict() if seller else None,
    })
