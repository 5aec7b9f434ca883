"""Version history of a product group and reverting to an older version.

Reverting never edits a row. It deletes every version newer than the
target in two phases: first the images only those versions referenced
are removed from storage (best effort), then the rows themselves.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from seller_dashboard.errors import NotFoundError, PersistenceError, RevertError
from seller_dashboard.extensions import db
from seller_dashboard.models.audit_log import AuditLog
from seller_dashboard.models.product_version import ProductVersion

logger = logging.getLogger(__name__)


def list_versions(seller_id, product_group_id):
    """All versions of a group, latest first."""
    versions = (
        ProductVersion.query.filter_by(
            product_group_id=product_group_id, user_id=seller_id
        )
        .order_by(ProductVersion.edit_count.desc())
        .all()
    )
    if not versions:
        raise NotFoundError("Product not found")
    return versions


def find_version(versions, edit_count):
    for v in versions:
        if v.edit_count == edit_count:
            return v
    raise NotFoundError(f"Version {edit_count} not found")


def newer_versions(versions, target):
    return sorted(
        (v for v in versions if v.edit_count > target.edit_count),
        key=lambda v: v.edit_count,
    )


def check_revert_eligible(versions, target):
    latest = max(v.edit_count for v in versions)
    if target.edit_count == latest:
        raise RevertError(f"Version {target.edit_count} is already the latest version.")
    if target.is_rejected:
        raise RevertError(f"Version {target.edit_count} was rejected and cannot be restored.")


def revert_confirmation_message(versions, target):
    newer = newer_versions(versions, target)
    message = f"Are you sure you want to revert to Version {target.edit_count}?"
    if newer:
        labels = ", ".join(f"V{v.edit_count}" for v in newer)
        message += f" All newer versions ({labels}) will be permanently deleted."
    return message


def orphaned_images(versions, target):
    """URLs used by versions newer than target and by no surviving version."""
    surviving = set()
    for v in versions:
        if v.edit_count <= target.edit_count:
            surviving.update(v.image_url or [])

    orphans = []
    for v in newer_versions(versions, target):
        for url in v.image_url or []:
            if url not in surviving and url not in orphans:
                orphans.append(url)
    return orphans


def cleanup_orphaned_images(storage, urls):
    """Phase one. Returns False when storage refused; never raises."""
    if not urls:
        return True
    try:
        storage.remove_urls(urls)
    except Exception:
        logger.warning(
            "Could not delete %d orphaned images; leaving them in storage",
            len(urls), exc_info=True,
        )
        return False
    return True


def delete_newer_versions(product_group_id, target_edit_count):
    """Phase two. Deletes rows with edit_count above the target."""
    try:
        deleted = ProductVersion.query.filter(
            ProductVersion.product_group_id == product_group_id,
            ProductVersion.edit_count > target_edit_count,
        ).delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Could not delete versions of %s", product_group_id)
        raise PersistenceError("Could not revert the product", cause=e)
    return deleted


def revert_to_version(storage, seller_id, product_group_id, target_edit_count):
    """Make target_edit_count the latest version of the group.

    Returns a summary with the removed version numbers and image cleanup
    outcome.
    """
    versions = list_versions(seller_id, product_group_id)
    target = find_version(versions, target_edit_count)
    check_revert_eligible(versions, target)

    removed = [v.edit_count for v in newer_versions(versions, target)]
    orphans = orphaned_images(versions, target)

    images_removed = cleanup_orphaned_images(storage, orphans)
    delete_newer_versions(product_group_id, target.edit_count)

    db.session.add(
        AuditLog(
            seller_id=seller_id,
            action="REVERT",
            product_group_id=product_group_id,
            payload={"to": target.edit_count, "removed": removed, "orphans": len(orphans)},
        )
    )
    db.session.commit()
    logger.info(
        "Reverted %s to version %d (removed %s)", product_group_id, target.edit_count, removed
    )
    return {
        "reverted_to": target.edit_count,
        "removed_versions": removed,
        "orphaned_images": orphans,
        "images_removed": images_removed,
    }
