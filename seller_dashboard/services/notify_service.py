"""Outbound delivery of one-time codes through the SMS/email gateway."""
import logging
import httpx
from flask import current_app

logger = logging.getLogger(__name__)

TEMPLATES = {
    "login": "Your seller dashboard login code is {code}.",
    "signup": "Welcome! Your seller dashboard verification code is {code}.",
    "email_change": "Use {code} to confirm your new email address.",
    "phone_change": "Use {code} to confirm your new phone number.",
}


def _post(path, **kwargs):
    """POST to the delivery gateway and return its JSON body."""
    base = current_app.config["OTP_GATEWAY_URL"].rstrip("/")
    headers = {"Authorization": f"Bearer {current_app.config['OTP_GATEWAY_TOKEN']}"}
    resp = httpx.post(f"{base}/{path}", headers=headers, timeout=10, **kwargs)
    try:
        data = resp.json()
    except ValueError:
        data = {}
    if resp.status_code >= 400 or data.get("ok") is False:
        logger.error("OTP gateway error %s: %s", resp.status_code, data)
        raise RuntimeError(f"OTP gateway error: {data.get('description', resp.status_code)}")
    return data


def send_sms(phone, text):
    return _post("sms", json={"to": phone, "text": text})


def send_email(email, subject, text):
    return _post("email", json={"to": email, "subject": subject, "text": text})


def send_code(channel, destination, code, purpose):
    """Deliver a code on ``channel`` ("phone" or "email")."""
    text = TEMPLATES.get(purpose, TEMPLATES["login"]).format(code=code)
    if not current_app.config.get("OTP_GATEWAY_URL"):
        if current_app.debug or current_app.testing:
            logger.warning("OTP gateway not configured, code for %s: %s", destination, code)
            return None
        raise RuntimeError("OTP gateway is not configured")
    if channel == "phone":
        return send_sms(destination, text)
    if channel == "email":
        return send_email(destination, "Your verification code", text)
    raise ValueError(f"Unknown delivery channel: {channel}")
