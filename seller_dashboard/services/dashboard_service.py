"""Latest listing per product group, fleet metrics and analytics."""
import logging

from sqlalchemy.exc import SQLAlchemyError

from seller_dashboard.errors import NotFoundError, PersistenceError, StorageError
from seller_dashboard.extensions import db
from seller_dashboard.models.audit_log import AuditLog
from seller_dashboard.models.product_version import ProductVersion

logger = logging.getLogger(__name__)

TOP_PRODUCTS = 5
LABEL_LENGTH = 15


def latest_versions(seller_id):
    """Exactly one row per group: the one with the highest edit_count."""
    latest = (
        db.session.query(
            ProductVersion.product_group_id.label("group_id"),
            db.func.max(ProductVersion.edit_count).label("max_edit"),
        )
        .filter(ProductVersion.user_id == seller_id)
        .group_by(ProductVersion.product_group_id)
        .subquery()
    )
    try:
        return (
            ProductVersion.query.join(
                latest,
                db.and_(
                    ProductVersion.product_group_id == latest.c.group_id,
                    ProductVersion.edit_count == latest.c.max_edit,
                ),
            )
            .order_by(ProductVersion.created_at.desc())
            .all()
        )
    except SQLAlchemyError as e:
        logger.exception("Could not load products for %s", seller_id)
        raise PersistenceError("Could not load your products", cause=e)


def compute_metrics(latest):
    """Product count, quantity left (non-rejected) and quantity sold (all)."""
    return {
        "total_products": len(latest),
        "total_quantity_left": sum(
            v.quantity_left for v in latest if not v.is_rejected
        ),
        "total_quantity_sold": sum(v.quantity_sold for v in latest),
    }


def _label(title):
    return title[:LABEL_LENGTH] + "..." if len(title) > LABEL_LENGTH else title


def analytics(latest):
    """Revenue breakdowns for products that have sold at least once."""
    sold = [v for v in latest if v.quantity_sold > 0]
    if not sold:
        return {"locked": True, "top_products": [], "revenue_by_category": []}

    by_revenue = sorted(sold, key=lambda v: v.revenue, reverse=True)[:TOP_PRODUCTS]
    top_products = [
        {"label": _label(v.title), "revenue": v.revenue} for v in by_revenue
    ]

    per_category = {}
    for v in sold:
        for cat in v.category or ["Uncategorized"]:
            per_category[cat] = per_category.get(cat, 0) + v.revenue
    revenue_by_category = [
        {"category": name, "revenue": revenue}
        for name, revenue in sorted(per_category.items(), key=lambda kv: kv[1], reverse=True)
    ]
    return {
        "locked": False,
        "top_products": top_products,
        "revenue_by_category": revenue_by_category,
    }


def notifications(latest):
    """Groups whose latest version still awaits review or was rejected."""
    items = []
    for v in latest:
        if v.approval_status == "pending":
            items.append({
                "product_group_id": v.product_group_id,
                "title": v.title,
                "latest_status": "pending",
                "message": f'"{v.title}" (version {v.edit_count}) is awaiting approval.',
            })
        elif v.approval_status == "rejected":
            items.append({
                "product_group_id": v.product_group_id,
                "title": v.title,
                "latest_status": "rejected",
                "reject_explanation": v.reject_explanation,
                "message": f'"{v.title}" was rejected: {v.reject_explanation or "no reason given"}',
            })
    return items


def group_image_urls(versions):
    """Every image URL of the group, deduplicated, in first-seen order."""
    urls = []
    for v in versions:
        for url in v.image_url or []:
            if url not in urls:
                urls.append(url)
    return urls


def delete_group(storage, seller_id, product_group_id):
    """Delete a product with all its versions.

    Storage goes first; if it fails the rows are kept so no stored file is
    left without a row pointing at it.
    """
    versions = ProductVersion.query.filter_by(
        product_group_id=product_group_id, user_id=seller_id
    ).all()
    if not versions:
        raise NotFoundError("Product not found")

    urls = group_image_urls(versions)
    try:
        storage.remove_urls(urls)
    except Exception as e:
        logger.warning("Could not delete images of %s: %s", product_group_id, e)
        raise StorageError("Could not delete product images. Please try again.") from e

    try:
        ProductVersion.query.filter_by(
            product_group_id=product_group_id, user_id=seller_id
        ).delete(synchronize_session=False)
        db.session.add(
            AuditLog(
                seller_id=seller_id,
                action="DELETE_GROUP",
                product_group_id=product_group_id,
                payload={"versions": len(versions), "images": len(urls)},
            )
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Could not delete rows of %s", product_group_id)
        raise PersistenceError("Could not delete the product", cause=e)

    logger.info("Deleted product group %s (%d versions)", product_group_id, len(versions))
    return {"deleted_versions": len(versions), "deleted_images": len(urls)}


def get_stats():
    """Version counts by approval status, for the ``stats`` command."""
    rows = (
        db.session.query(ProductVersion.approval_status, db.func.count(ProductVersion.id))
        .group_by(ProductVersion.approval_status)
        .all()
    )
    return dict(rows)
