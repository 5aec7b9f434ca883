"""Seller sign-in with one-time codes or Google, and profile updates."""
import enum
import hashlib
import hmac
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

import httpx
from flask import current_app, g, session
from rq import Retry

from seller_dashboard.errors import AuthError, RateLimitedError, ValidationError
from seller_dashboard.extensions import db, get_queue
from seller_dashboard.models.audit_log import AuditLog
from seller_dashboard.models.otp_code import OtpCode
from seller_dashboard.models.seller import Seller

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AuthMethod(enum.Enum):
    PHONE = "phone"
    EMAIL = "email"

    @classmethod
    def parse(cls, value):
        try:
            return cls(value)
        except ValueError:
            raise ValidationError("Use phone or email.", field="method")


class AuthView(enum.Enum):
    LOGIN = "login"
    SIGNUP = "signup"

    @classmethod
    def parse(cls, value):
        try:
            return cls(value or "login")
        except ValueError:
            raise ValidationError("Unknown sign-in view.", field="view")


class OtpPurpose(enum.Enum):
    LOGIN = "login"
    SIGNUP = "signup"
    EMAIL_CHANGE = "email_change"
    PHONE_CHANGE = "phone_change"


def _now():
    return datetime.now(timezone.utc)


def _aware(dt):
    # SQLite hands back naive datetimes
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def normalize_phone(raw):
    digits = re.sub(r"[^\d+]", "", raw or "")
    if not digits:
        raise ValidationError("Phone number is required.", field="phone")
    if not digits.startswith("+"):
        digits = current_app.config["DEFAULT_PHONE_PREFIX"] + digits
    if len(re.sub(r"\D", "", digits)) < 10:
        raise ValidationError("Invalid phone number.", field="phone")
    return digits


def normalize_email(raw):
    email = (raw or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address.", field="email")
    return email


def normalize_destination(method, raw):
    if method is AuthMethod.PHONE:
        return normalize_phone(raw)
    if method is AuthMethod.EMAIL:
        return normalize_email(raw)
    raise AssertionError(f"Unhandled auth method {method!r}")


def _hash_code(code):
    key = current_app.config["SECRET_KEY"].encode()
    return hmac.new(key, code.encode(), hashlib.sha256).hexdigest()


def _check_cooldown(destination, purpose):
    cooldown = current_app.config["OTP_RESEND_COOLDOWN_SECONDS"]
    last = (
        OtpCode.query.filter_by(destination=destination, purpose=purpose.value)
        .order_by(OtpCode.created_at.desc())
        .first()
    )
    if last is None:
        return
    elapsed = (_now() - _aware(last.created_at)).total_seconds()
    if elapsed < cooldown:
        raise RateLimitedError(int(cooldown - elapsed) + 1)


def _issue_code(method, destination, purpose, seller_id=None, full_name=None, email=None):
    _check_cooldown(destination, purpose)
    code = f"{secrets.randbelow(10**6):06d}"
    otp = OtpCode(
        channel=method.value,
        destination=destination,
        purpose=purpose.value,
        code_hash=_hash_code(code),
        seller_id=seller_id,
        signup_full_name=full_name,
        signup_email=email,
        created_at=_now(),
        expires_at=_now() + timedelta(seconds=current_app.config["OTP_TTL_SECONDS"]),
    )
    db.session.add(otp)
    db.session.commit()

    from seller_dashboard.workers.otp_delivery import deliver_otp

    get_queue().enqueue(
        deliver_otp, method.value, destination, code, purpose.value, retry=Retry(max=3)
    )
    logger.info("Issued %s code for %s", purpose.value, method.value)
    return otp


def _consume_code(destination, code, purposes):
    candidates = (
        OtpCode.query.filter(
            OtpCode.destination == destination,
            OtpCode.purpose.in_([p.value for p in purposes]),
            OtpCode.consumed_at.is_(None),
        )
        .order_by(OtpCode.created_at.desc())
        .all()
    )
    expected = _hash_code((code or "").strip())
    now = _now()
    for otp in candidates:
        if _aware(otp.expires_at) < now:
            continue
        if hmac.compare_digest(otp.code_hash, expected):
            otp.consumed_at = now
            return otp
    raise AuthError("Invalid or expired code.")


def request_otp(view, method, destination, full_name=None, email=None):
    """Send a sign-in or sign-up code.

    Sign-up always goes to a phone number and needs the seller's full name.
    """
    if view is AuthView.SIGNUP:
        if not (full_name or "").strip() or not (destination or "").strip():
            raise ValidationError("Full Name and Phone Number are required.")
        phone = normalize_phone(destination)
        optional_email = normalize_email(email) if (email or "").strip() else None
        return _issue_code(
            AuthMethod.PHONE, phone, OtpPurpose.SIGNUP,
            full_name=full_name.strip(), email=optional_email,
        )
    if view is AuthView.LOGIN:
        return _issue_code(method, normalize_destination(method, destination), OtpPurpose.LOGIN)
    raise AssertionError(f"Unhandled auth view {view!r}")


def _find_seller(method, destination):
    if method is AuthMethod.PHONE:
        return Seller.query.filter_by(phone=destination).first()
    return Seller.query.filter_by(email=destination).first()


def verify_otp(method, destination, code):
    """Check a login/sign-up code and return the (possibly new) seller."""
    destination = normalize_destination(method, destination)
    otp = _consume_code(destination, code, (OtpPurpose.LOGIN, OtpPurpose.SIGNUP))

    seller = _find_seller(method, destination)
    if seller is None:
        seller = Seller(auth_provider="otp", full_name=otp.signup_full_name or "")
        if method is AuthMethod.PHONE:
            seller.phone = destination
        else:
            seller.email = destination
        if otp.signup_email and not Seller.query.filter_by(email=otp.signup_email).first():
            seller.email = otp.signup_email
        db.session.add(seller)
    db.session.commit()
    logger.info("Seller %s signed in with %s code", seller.id, method.value)
    return seller


# -- session ---------------------------------------------------------------

def login_seller(seller):
    session.clear()
    session["seller_id"] = seller.id
    session.permanent = True


def logout():
    session.clear()


def current_seller():
    seller_id = session.get("seller_id")
    if not seller_id:
        return None
    seller = g.get("seller")
    if seller is None or seller.id != seller_id:
        seller = g.seller = db.session.get(Seller, seller_id)
    return seller


# -- profile ---------------------------------------------------------------

def update_full_name(seller, full_name):
    full_name = (full_name or "").strip()
    if not full_name:
        raise ValidationError("Full name cannot be empty.", field="full_name")
    seller.full_name = full_name
    db.session.add(
        AuditLog(seller_id=seller.id, action="UPDATE_PROFILE", payload={"field": "full_name"})
    )
    db.session.commit()
    return seller


def request_contact_change(seller, method, value):
    if method is AuthMethod.EMAIL and seller.is_google_user:
        raise ValidationError("Your email is managed by Google.", field="email")
    destination = normalize_destination(method, value)
    if _find_seller(method, destination) is not None:
        raise ValidationError(f"That {method.value} is already in use.", field=method.value)
    purpose = OtpPurpose.EMAIL_CHANGE if method is AuthMethod.EMAIL else OtpPurpose.PHONE_CHANGE
    return _issue_code(method, destination, purpose, seller_id=seller.id)


def verify_contact_change(seller, method, value, code):
    destination = normalize_destination(method, value)
    purpose = OtpPurpose.EMAIL_CHANGE if method is AuthMethod.EMAIL else OtpPurpose.PHONE_CHANGE
    otp = _consume_code(destination, code, (purpose,))
    if otp.seller_id != seller.id:
        raise AuthError("Invalid or expired code.")
    if method is AuthMethod.EMAIL:
        seller.email = destination
    else:
        seller.phone = destination
    db.session.add(
        AuditLog(seller_id=seller.id, action="UPDATE_PROFILE", payload={"field": method.value})
    )
    db.session.commit()
    return seller


# -- Google ----------------------------------------------------------------

def google_authorization_url(state):
    params = {
        "client_id": current_app.config["GOOGLE_CLIENT_ID"],
        "redirect_uri": current_app.config["GOOGLE_REDIRECT_URI"],
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
        "prompt": "select_account",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def google_fetch_profile(code):
    """Exchange an authorization code and return Google's userinfo."""
    try:
        token_resp = httpx.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": current_app.config["GOOGLE_CLIENT_ID"],
                "client_secret": current_app.config["GOOGLE_CLIENT_SECRET"],
                "redirect_uri": current_app.config["GOOGLE_REDIRECT_URI"],
                "grant_type": "authorization_code",
            },
            timeout=10,
        )
        token_resp.raise_for_status()
        access_token = token_resp.json()["access_token"]
        info_resp = httpx.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=10,
        )
        info_resp.raise_for_status()
        return info_resp.json()
    except (httpx.HTTPError, KeyError, ValueError) as e:
        logger.exception("Google sign-in failed")
        raise AuthError(f"Google sign-in failed: {e}")


def get_or_create_google_seller(profile):
    email = (profile.get("email") or "").lower()
    if not email or not profile.get("email_verified", False):
        raise AuthError("Your Google account has no verified email.")
    seller = Seller.query.filter_by(email=email).first()
    if seller is None:
        seller = Seller(email=email, full_name=profile.get("name", ""), auth_provider="google")
        db.session.add(seller)
        db.session.commit()
        logger.info("Created seller %s from Google sign-in", seller.id)
    return seller
