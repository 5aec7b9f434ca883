from seller_dashboard.models.seller import Seller
from seller_dashboard.models.product_version import ProductVersion
from seller_dashboard.models.support_query import SupportQuery
from seller_dashboard.models.otp_code import OtpCode
from seller_dashboard.models.audit_log import AuditLog

__all__ = ["Seller", "ProductVersion", "SupportQuery", "OtpCode", "AuditLog"]
