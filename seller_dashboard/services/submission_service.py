"""Publishing listings: image upload followed by one new version row."""
import logging
import uuid
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait

from sqlalchemy.exc import SQLAlchemyError

from seller_dashboard.errors import PersistenceError, UploadError, ValidationError
from seller_dashboard.extensions import db
from seller_dashboard.models.audit_log import AuditLog
from seller_dashboard.models.product_version import ProductVersion
from seller_dashboard.services.product_form import is_dirty, take_snapshot

logger = logging.getLogger(__name__)


def build_image_path(seller_id, instance_id, index, extension="jpg"):
    """Storage key for the index-th image of one submission."""
    extension = (extension or "jpg").lstrip(".").lower()
    return f"{seller_id}/{instance_id}/image_{index}.{extension}"


def upload_images(storage, seller_id, images, max_workers=5):
    """Upload pending images concurrently and return their URLs in order.

    Every upload is dispatched; the join fails on the first error and
    whatever already reached the bucket stays there.
    """
    if not images:
        return []
    instance_id = uuid.uuid4().hex
    jobs = [
        (build_image_path(seller_id, instance_id, i, img.original.extension), img.cropped)
        for i, img in enumerate(images)
    ]
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(jobs)))) as pool:
        futures = [
            pool.submit(storage.upload, key, data, "image/jpeg") for key, data in jobs
        ]
        wait(futures, return_when=FIRST_EXCEPTION)
        failed = next((f for f in futures if f.done() and f.exception()), None)
        if failed is not None:
            for f in futures:
                f.cancel()
            cause = failed.exception()
            uploaded = sum(1 for f in futures if f.done() and not f.cancelled() and not f.exception())
            logger.error(
                "Image upload failed for seller %s (%d of %d stored before failure): %s",
                seller_id, uploaded, len(jobs), cause,
            )
            raise UploadError("Image upload failed", cause=cause)
        return [f.result() for f in futures]


def _insert_version(version, action, seller_id):
    try:
        db.session.add(version)
        db.session.flush()
        db.session.add(
            AuditLog(
                seller_id=seller_id,
                action=action,
                product_group_id=version.product_group_id,
                payload={"edit_count": version.edit_count, "images": len(version.image_url)},
            )
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Could not insert product version")
        raise PersistenceError("Could not save the product", cause=getattr(e, "orig", None) or e)
    return version


def create_listing(storage, seller_id, form, intake, max_workers=5):
    """First version (edit_count 0) of a brand-new product group."""
    intake.check_open()
    form.clean(intake.image_count)
    image_urls = upload_images(storage, seller_id, intake.pending, max_workers=max_workers)

    version = ProductVersion(
        product_group_id=str(uuid.uuid4()),
        user_id=seller_id,
        image_url=intake.existing_urls + image_urls,
        edit_count=0,
        quantity_sold=0,
        approval_status="pending",
        product_status="available",
        reject_explanation=None,
        **form.to_row_values(),
    )
    _insert_version(version, "CREATE_LISTING", seller_id)
    logger.info("Created product group %s for seller %s", version.product_group_id, seller_id)
    intake.close()
    return version


def next_edit_count(product_group_id):
    current = (
        db.session.query(db.func.max(ProductVersion.edit_count))
        .filter(ProductVersion.product_group_id == product_group_id)
        .scalar()
    )
    return 0 if current is None else current + 1


def edit_listing(storage, seller_id, version, form, intake, initial, max_workers=5):
    """Insert the next version of ``version``'s group. Prior rows are untouched."""
    if version.user_id != seller_id:
        raise ValidationError("You can only edit your own products.")
    # a submit that waited on the draft lock finds the form already closed
    intake.check_open()

    current = take_snapshot(form, intake.existing_urls, len(intake.pending))
    if not is_dirty(initial, current):
        raise ValidationError("No changes to save.")
    form.clean(intake.image_count)

    new_urls = upload_images(storage, seller_id, intake.pending, max_workers=max_workers)

    new_version = ProductVersion(
        product_group_id=version.product_group_id,
        user_id=seller_id,
        image_url=intake.existing_urls + new_urls,
        edit_count=next_edit_count(version.product_group_id),
        quantity_sold=version.quantity_sold,
        approval_status="pending",
        product_status="available",
        reject_explanation=None,
        **form.to_row_values(),
    )
    _insert_version(new_version, "EDIT_LISTING", seller_id)
    logger.info(
        "Saved %s as version %d", new_version.product_group_id, new_version.edit_count
    )
    intake.close()
    return new_version
