"""Tests for OTP delivery job logic (mocked)."""
from unittest.mock import MagicMock, patch

import pytest

from seller_dashboard.workers.otp_delivery import deliver_otp


def test_deliver_otp_sends_code(app):
    with patch("seller_dashboard.workers.otp_delivery.notify_service") as mock_notify:
        deliver_otp("phone", "+919876543210", "123456", "login")
        mock_notify.send_code.assert_called_once_with("phone", "+919876543210", "123456", "login")


def test_deliver_otp_reraises_for_retry(app):
    with patch("seller_dashboard.workers.otp_delivery.notify_service") as mock_notify:
        mock_notify.send_code.side_effect = RuntimeError("gateway down")
        with pytest.raises(RuntimeError):
            deliver_otp("email", "a@example.com", "123456", "login")


def test_send_code_posts_to_gateway(app):
    from seller_dashboard.services import notify_service

    app.config["OTP_GATEWAY_URL"] = "https://gateway.test/v1/"
    app.config["OTP_GATEWAY_TOKEN"] = "tok"
    response = MagicMock(status_code=200)
    response.json.return_value = {"ok": True}

    with patch("seller_dashboard.services.notify_service.httpx.post", return_value=response) as post:
        notify_service.send_code("phone", "+919876543210", "654321", "signup")

    url = post.call_args.args[0]
    assert url == "https://gateway.test/v1/sms"
    assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"
    assert "654321" in post.call_args.kwargs["json"]["text"]


def test_send_code_gateway_error(app):
    from seller_dashboard.services import notify_service

    app.config["OTP_GATEWAY_URL"] = "https://gateway.test"
    response = MagicMock(status_code=500)
    response.json.return_value = {"description": "boom"}

    with patch("seller_dashboard.services.notify_service.httpx.post", return_value=response):
        with pytest.raises(RuntimeError, match="boom"):
            notify_service.send_code("email", "a@example.com", "654321", "login")


def test_send_code_without_gateway_logs_in_testing(app):
    from seller_dashboard.services import notify_service

    assert notify_service.send_code("phone", "+919876543210", "111222", "login") is None
