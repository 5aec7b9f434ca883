"""Add/edit product forms: image intake, cropping and submission."""
import io
import logging
from flask import current_app, jsonify, request, send_file
from seller_dashboard.blueprints.dashboard import dashboard_bp
from seller_dashboard.errors import NotFoundError, ValidationError
from seller_dashboard.extensions import db, get_drafts, get_storage
from seller_dashboard.models.product_version import ProductVersion
from seller_dashboard.services import auth_service, submission_service
from seller_dashboard.services.crop_engine import CropMode, PercentCrop, PixelCrop
from seller_dashboard.services.intake import IncomingFile
from seller_dashboard.services.product_form import (
    ProductForm,
    continue_bullet,
    diff_snapshot,
    insert_bullet,
    take_snapshot,
)

logger = logging.getLogger(__name__)


def _seller_id():
    return auth_service.current_seller().id


def _draft(draft_id):
    return get_drafts().get(draft_id, _seller_id())


def _own_version(version_id):
    version = db.session.get(ProductVersion, version_id)
    if version is None or version.user_id != _seller_id():
        raise NotFoundError("Product not found")
    return version


def _position(data, key, default):
    try:
        return int(data.get(key, default))
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be a whole number.", field=key)


@dashboard_bp.route("/drafts", methods=["POST"])
def open_draft():
    """Open an empty add form, or an edit form for ``version_id``."""
    data = request.get_json(silent=True) or {}
    registry = get_drafts()
    registry.prune(current_app.config["DRAFT_IDLE_SECONDS"])

    version_id = data.get("version_id")
    if not version_id:
        draft = registry.open(_seller_id(), current_app.config)
        return jsonify({"draft": draft.to_dict(), "form": None}), 201

    version = _own_version(version_id)
    form = ProductForm.from_version(version)
    initial = take_snapshot(form, version.image_url)
    draft = registry.open(
        _seller_id(),
        current_app.config,
        existing_urls=version.image_url,
        version_id=version.id,
        initial=initial,
    )
    return jsonify({
        "draft": draft.to_dict(),
        "form": {
            "title": form.title,
            "description": form.description,
            "categories": form.categories,
            "type": form.type.value,
            "quantity": form.quantity,
            "price": form.price,
            "session": form.session,
        },
    }), 201


@dashboard_bp.route("/drafts/<draft_id>")
def show_draft(draft_id):
    return jsonify(_draft(draft_id).to_dict())


@dashboard_bp.route("/drafts/<draft_id>", methods=["DELETE"])
def close_draft(draft_id):
    get_drafts().close(draft_id, _seller_id())
    return jsonify({"status": "closed"})


@dashboard_bp.route("/drafts/<draft_id>/files", methods=["POST"])
def add_files(draft_id):
    """Queue chosen or dropped files for cropping."""
    uploads = request.files.getlist("files")
    if not uploads:
        raise ValidationError("No files were sent.", field="images")
    files = [
        IncomingFile(filename=f.filename or "image", content_type=f.mimetype or "", data=f.read())
        for f in uploads
    ]
    draft = _draft(draft_id)
    with draft.lock:
        draft.intake.add_files(files)
        return jsonify(draft.to_dict())


@dashboard_bp.route("/drafts/<draft_id>/crop/mode", methods=["PUT"])
def set_crop_mode(draft_id):
    data = request.get_json(silent=True) or {}
    mode = CropMode.parse(data.get("mode"))
    draft = _draft(draft_id)
    with draft.lock:
        draft.intake.set_mode(mode)
        return jsonify(draft.to_dict())


@dashboard_bp.route("/drafts/<draft_id>/crop", methods=["PUT"])
def move_crop(draft_id):
    """Update the active crop.

    Accepts either a percent rectangle (``crop``) or an on-screen pixel
    rectangle (``pixel``) with the displayed image size.
    """
    data = request.get_json(silent=True) or {}
    draft = _draft(draft_id)
    with draft.lock:
        if "pixel" in data:
            p = data["pixel"]
            try:
                pixel = PixelCrop(float(p["x"]), float(p["y"]), float(p["width"]), float(p["height"]))
                display = (float(data["display_width"]), float(data["display_height"]))
            except (KeyError, TypeError, ValueError):
                raise ValidationError("Pixel crop needs x, y, width, height and display size.", field="crop")
            active = draft.intake.active
            if active is None:
                raise ValidationError("No image is waiting to be cropped.", field="crop")
            active.session.move(pixel, *display)
        else:
            draft.intake.adjust(PercentCrop.from_dict(data.get("crop") or {}))
        return jsonify(draft.to_dict())


@dashboard_bp.route("/drafts/<draft_id>/crop/confirm", methods=["POST"])
def confirm_crop(draft_id):
    data = request.get_json(silent=True) or {}
    crop = PercentCrop.from_dict(data["crop"]) if data.get("crop") else None
    mode = CropMode.parse(data["mode"]) if data.get("mode") else None
    draft = _draft(draft_id)
    with draft.lock:
        image = draft.intake.confirm_crop(crop=crop, mode=mode)
        return jsonify({"image": image.to_dict(), "draft": draft.to_dict()})


@dashboard_bp.route("/drafts/<draft_id>/crop/cancel", methods=["POST"])
def cancel_crop(draft_id):
    draft = _draft(draft_id)
    with draft.lock:
        draft.intake.cancel_crop()
        return jsonify(draft.to_dict())


@dashboard_bp.route("/drafts/<draft_id>/images/<path:image_id>/crop", methods=["POST"])
def recrop(draft_id, image_id):
    draft = _draft(draft_id)
    with draft.lock:
        draft.intake.begin_recrop(image_id)
        return jsonify(draft.to_dict())


@dashboard_bp.route("/drafts/<draft_id>/images/<path:image_id>", methods=["DELETE"])
def delete_image(draft_id, image_id):
    draft = _draft(draft_id)
    with draft.lock:
        if image_id.startswith("existing-"):
            draft.intake.delete_existing(image_id)
        else:
            draft.intake.delete_pending(image_id)
        return jsonify(draft.to_dict())


@dashboard_bp.route("/drafts/<draft_id>/images/<path:image_id>/preview")
def preview(draft_id, image_id):
    draft = _draft(draft_id)
    with draft.lock:
        image = draft.intake.find_pending(image_id)
        data = image.preview.read()
    return send_file(io.BytesIO(data), mimetype="image/jpeg")


@dashboard_bp.route("/drafts/<draft_id>/changes", methods=["POST"])
def changes(draft_id):
    """Fields that differ from the version being edited."""
    draft = _draft(draft_id)
    if not draft.is_edit:
        raise ValidationError("Only edit forms track changes.")
    form = ProductForm.from_payload(request.get_json(silent=True) or {})
    with draft.lock:
        current = take_snapshot(form, draft.intake.existing_urls, len(draft.intake.pending))
    changed = diff_snapshot(draft.initial, current)
    return jsonify({"dirty": bool(changed), "changed": changed})


@dashboard_bp.route("/drafts/<draft_id>/submit", methods=["POST"])
def submit(draft_id):
    """Publish the form: a new product, or the next version of one."""
    form = ProductForm.from_payload(request.get_json(silent=True) or {})
    registry = get_drafts()
    seller_id = _seller_id()
    draft = registry.get(draft_id, seller_id)
    workers = current_app.config["UPLOAD_WORKERS"]

    with draft.lock:
        if draft.intake.active is not None or draft.intake.queued_count:
            raise ValidationError("Finish cropping your images first.", field="images")
        if draft.is_edit:
            version = _own_version(draft.version_id)
            saved = submission_service.edit_listing(
                get_storage(), seller_id, version, form, draft.intake, draft.initial,
                max_workers=workers,
            )
        else:
            saved = submission_service.create_listing(
                get_storage(), seller_id, form, draft.intake, max_workers=workers
            )
    registry.close(draft_id, seller_id)
    return jsonify({"status": "saved", "product": saved.to_dict()}), 201


def _description(data):
    text = data.get("text", "")
    if not isinstance(text, str):
        raise ValidationError("text must be a string.", field="text")
    return text


@dashboard_bp.route("/description/bullet", methods=["POST"])
def add_bullet():
    data = request.get_json(silent=True) or {}
    text = _description(data)
    start = _position(data, "start", len(text))
    end = _position(data, "end", start)
    new_text, cursor = insert_bullet(text, start, end)
    return jsonify({"text": new_text, "cursor": cursor})


@dashboard_bp.route("/description/newline", methods=["POST"])
def newline():
    data = request.get_json(silent=True) or {}
    text = _description(data)
    cursor = _position(data, "cursor", len(text))
    result = continue_bullet(text, cursor)
    if result is None:
        return jsonify({"handled": False})
    new_text, new_cursor = result
    return jsonify({"handled": True, "text": new_text, "cursor": new_cursor})
