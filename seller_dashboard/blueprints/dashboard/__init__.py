from flask import Blueprint

dashboard_bp = Blueprint("dashboard", __name__)

from seller_dashboard.blueprints.dashboard import views, drafts  # noqa: F401, E402
