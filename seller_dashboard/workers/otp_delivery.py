"""RQ worker job: deliver a one-time code."""
import logging
from flask import current_app, has_app_context
from seller_dashboard import create_app
from seller_dashboard.services import notify_service

logger = logging.getLogger(__name__)

_worker_app = None


def _get_app():
    """Return an app instance for worker execution.

    Reuse the current app when already inside an app context (tests/CLI),
    otherwise lazily create the worker app once.
    """
    global _worker_app
    if has_app_context():
        return current_app._get_current_object()
    if _worker_app is None:
        _worker_app = create_app()
    return _worker_app


def deliver_otp(channel, destination, code, purpose):
    """Send a code to a phone number or email address.

    Enqueued by the auth service when a code is issued. Failures are
    re-raised so RQ can retry.
    """
    app = _get_app()
    with app.app_context():
        try:
            notify_service.send_code(channel, destination, code, purpose)
            logger.info("Delivered %s code via %s", purpose, channel)
        except Exception:
            logger.exception("OTP delivery via %s failed", channel)
            raise  # let RQ handle retry
