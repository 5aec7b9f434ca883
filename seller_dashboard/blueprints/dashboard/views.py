"""Seller dashboard: listings, history, analytics, profile and support."""
import logging
from flask import current_app, jsonify, request
from seller_dashboard.blueprints.dashboard import dashboard_bp
from seller_dashboard.errors import AuthError, ValidationError
from seller_dashboard.extensions import get_storage
from seller_dashboard.services import (
    auth_service,
    dashboard_service,
    support_service,
    version_service,
)
from seller_dashboard.services.auth_service import AuthMethod

logger = logging.getLogger(__name__)


@dashboard_bp.before_request
def require_seller():
    if auth_service.current_seller() is None:
        raise AuthError("Please sign in to continue.")


def _seller_id():
    return auth_service.current_seller().id


@dashboard_bp.route("/products")
def products():
    """Latest version of every listing, with totals and review notices."""
    latest = dashboard_service.latest_versions(_seller_id())
    return jsonify({
        "products": [v.to_dict() for v in latest],
        "metrics": dashboard_service.compute_metrics(latest),
        "notifications": dashboard_service.notifications(latest),
    })


@dashboard_bp.route("/analytics")
def analytics():
    latest = dashboard_service.latest_versions(_seller_id())
    return jsonify(dashboard_service.analytics(latest))


@dashboard_bp.route("/categories")
def categories():
    return jsonify({
        "categories": current_app.config["AVAILABLE_CATEGORIES"],
        "allowed_image_types": list(current_app.config["ALLOWED_IMAGE_TYPES"]),
        "max_image_count": current_app.config["MAX_IMAGE_COUNT"],
    })


@dashboard_bp.route("/products/<group_id>", methods=["DELETE"])
def delete_product(group_id):
    result = dashboard_service.delete_group(get_storage(), _seller_id(), group_id)
    return jsonify({"status": "deleted", **result})


@dashboard_bp.route("/products/<group_id>/versions")
def versions(group_id):
    history = version_service.list_versions(_seller_id(), group_id)
    latest = history[0]
    items = []
    for v in history:
        item = v.to_dict()
        item["is_latest"] = v is latest
        item["can_revert"] = v is not latest and not v.is_rejected
        if item["can_revert"]:
            item["confirmation"] = version_service.revert_confirmation_message(history, v)
        items.append(item)
    return jsonify({"versions": items})


@dashboard_bp.route("/products/<group_id>/revert", methods=["POST"])
def revert(group_id):
    """Revert to ``edit_count``; requires ``confirm: true`` in the body."""
    data = request.get_json(silent=True) or {}
    try:
        edit_count = int(data["edit_count"])
    except (KeyError, TypeError, ValueError):
        raise ValidationError("edit_count is required.", field="edit_count")

    seller_id = _seller_id()
    if data.get("confirm") is not True:
        history = version_service.list_versions(seller_id, group_id)
        target = version_service.find_version(history, edit_count)
        version_service.check_revert_eligible(history, target)
        return jsonify({
            "status": "confirm",
            "message": version_service.revert_confirmation_message(history, target),
        })

    result = version_service.revert_to_version(get_storage(), seller_id, group_id, edit_count)
    return jsonify({"status": "reverted", **result})


@dashboard_bp.route("/queries", methods=["POST"])
def submit_query():
    data = request.get_json(silent=True) or {}
    query = support_service.submit_query(_seller_id(), data.get("subject"), data.get("body"))
    return jsonify({"status": "submitted", "id": query.id}), 201


@dashboard_bp.route("/profile")
def profile():
    return jsonify(auth_service.current_seller().to_dict())


@dashboard_bp.route("/profile", methods=["PATCH"])
def update_profile():
    data = request.get_json(silent=True) or {}
    seller = auth_service.update_full_name(auth_service.current_seller(), data.get("full_name"))
    return jsonify(seller.to_dict())


@dashboard_bp.route("/profile/contact", methods=["POST"])
def request_contact_change():
    data = request.get_json(silent=True) or {}
    method = AuthMethod.parse(data.get("method"))
    otp = auth_service.request_contact_change(
        auth_service.current_seller(), method, data.get("value")
    )
    return jsonify({
        "status": "sent",
        "message": f"Verification code sent to {otp.destination}.",
    })


@dashboard_bp.route("/profile/contact/verify", methods=["POST"])
def verify_contact_change():
    data = request.get_json(silent=True) or {}
    method = AuthMethod.parse(data.get("method"))
    seller = auth_service.verify_contact_change(
        auth_service.current_seller(), method, data.get("value"), data.get("code")
    )
    return jsonify(seller.to_dict())
