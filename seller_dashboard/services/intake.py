"""Validation and sequential cropping of newly selected product photos."""
import logging
import os
import time
from collections import deque
from dataclasses import dataclass

from seller_dashboard.errors import (
    CropError,
    ImageCountExceeded,
    ImageTooLarge,
    NotFoundError,
    UnsupportedImageType,
    ValidationError,
)
from seller_dashboard.services.crop_engine import CropSession
from seller_dashboard.services.previews import PreviewHandle

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
    "image/svg+xml",
    "image/tiff",
)


@dataclass
class IncomingFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self):
        return len(self.data)

    @property
    def extension(self):
        ext = os.path.splitext(self.filename)[1].lstrip(".").lower()
        return ext or "jpg"


class PendingImage:
    """A cropped, not yet uploaded image. Owns exactly one preview handle."""

    def __init__(self, image_id, original, crop, mode, cropped):
        self.id = image_id
        self.original = original
        self.crop = crop
        self.mode = mode
        self.cropped = cropped
        self.preview = PreviewHandle(cropped)

    def replace(self, cropped, crop, mode):
        self.preview.release()
        self.cropped = cropped
        self.crop = crop
        self.mode = mode
        self.preview = PreviewHandle(cropped)

    def release(self):
        self.preview.release()

    def to_dict(self):
        return {
            "id": self.id,
            "filename": self.original.filename,
            "crop": self.crop.to_dict(),
            "mode": self.mode.value,
            "preview": self.preview.token,
        }


@dataclass
class ExistingImage:
    """Already stored image of the listing being edited. No crop history."""

    id: str
    url: str

    def to_dict(self):
        return {"id": self.id, "url": self.url}


class ActiveCrop:
    """The single crop session currently open.

    ``target_id`` is None for a brand-new file taken from the queue, or the
    id of the pending image being re-cropped.
    """

    def __init__(self, session, source, target_id=None):
        self.session = session
        self.source = source
        self.target_id = target_id

    @property
    def is_recrop(self):
        return self.target_id is not None

    def to_dict(self):
        data = self.session.to_dict()
        data["target_id"] = self.target_id
        return data


class ImageIntake:
    """Image set of one product form.

    Files are validated as a batch, queued FIFO and cropped one at a time;
    at most one crop session is ever open.
    """

    def __init__(self, existing_urls=(), max_count=5, max_bytes=12 * 1024 * 1024,
                 allowed_types=DEFAULT_ALLOWED_TYPES, quality=95):
        self.existing = [
            ExistingImage(id=f"existing-{i}-{url}", url=url)
            for i, url in enumerate(existing_urls)
        ]
        self.pending = []
        self.queue = deque()
        self.active = None
        self.unreadable = []
        self.max_count = max_count
        self.max_bytes = max_bytes
        self.allowed_types = tuple(allowed_types)
        self.quality = quality
        self.closed = False

    @classmethod
    def from_config(cls, config, existing_urls=()):
        return cls(
            existing_urls=existing_urls,
            max_count=config["MAX_IMAGE_COUNT"],
            max_bytes=config["MAX_IMAGE_BYTES"],
            allowed_types=config["ALLOWED_IMAGE_TYPES"],
            quality=config["CROP_JPEG_QUALITY"],
        )

    # -- counts ---------------------------------------------------------

    @property
    def image_count(self):
        """Images that would be submitted right now."""
        return len(self.existing) + len(self.pending)

    @property
    def queued_count(self):
        # the active new file stays at the head of the queue until resolved
        return len(self.queue)

    @property
    def existing_urls(self):
        return [img.url for img in self.existing]

    # -- intake ---------------------------------------------------------

    def add_files(self, files):
        """Validate a batch and queue it for cropping.

        The first violation rejects the whole batch and leaves state as it was.
        """
        files = list(files)
        self.check_open()
        if self.image_count + self.queued_count + len(files) > self.max_count:
            raise ImageCountExceeded(self.max_count)

        for f in files:
            if f.size > self.max_bytes:
                raise ImageTooLarge(f.filename, self.max_bytes)
            if f.content_type not in self.allowed_types:
                raise UnsupportedImageType(f.filename)

        self.queue.extend(files)
        self._surface_next()
        return len(files)

    def _surface_next(self):
        while self.active is None and self.queue:
            head = self.queue[0]
            try:
                session = CropSession(head.data, filename=head.filename, quality=self.quality)
            except CropError as e:
                # undecodable file: drop it so the queue keeps moving
                self.queue.popleft()
                self.unreadable.append(head.filename)
                logger.warning("Dropped %s from crop queue: %s", head.filename, e.message)
                continue
            self.active = ActiveCrop(session, head)

    def _require_active(self):
        if self.active is None:
            raise ValidationError("No image is waiting to be cropped.", field="crop")
        return self.active

    # -- crop session ---------------------------------------------------

    def set_mode(self, mode):
        return self._require_active().session.set_mode(mode)

    def adjust(self, crop):
        return self._require_active().session.adjust(crop)

    def confirm_crop(self, crop=None, mode=None):
        """Render the active crop and record it. Returns the pending image."""
        active = self._require_active()
        session = active.session
        if mode is not None:
            session.mode = mode
        if crop is not None:
            session.adjust(crop)
        cropped = session.confirm()

        if active.is_recrop:
            image = self.find_pending(active.target_id)
            image.replace(cropped, session.crop, session.mode)
        else:
            original = self.queue.popleft()
            image = PendingImage(
                self._new_id(original.filename), original, session.crop, session.mode, cropped
            )
            self.pending.append(image)

        self.active = None
        self._surface_next()
        return image

    def cancel_crop(self):
        """Close the active session.

        A brand-new file is dropped; a re-crop keeps the previous crop.
        """
        active = self._require_active()
        if not active.is_recrop:
            self.queue.popleft()
        self.active = None
        self._surface_next()

    def begin_recrop(self, image_id):
        self.check_open()
        if self.active is not None:
            raise ValidationError("Finish the current crop first.", field="crop")
        image = self.find_pending(image_id)
        session = CropSession(
            image.original.data,
            filename=image.original.filename,
            crop=image.crop,
            mode=image.mode,
            quality=self.quality,
        )
        self.active = ActiveCrop(session, image.original, target_id=image.id)
        return self.active

    # -- removal --------------------------------------------------------

    def delete_pending(self, image_id):
        image = self.find_pending(image_id)
        if self.active is not None and self.active.target_id == image_id:
            self.active = None
        image.release()
        self.pending.remove(image)
        self._surface_next()

    def delete_existing(self, image_id):
        for img in self.existing:
            if img.id == image_id:
                self.existing.remove(img)
                return img
        raise NotFoundError(f"Image {image_id} not found")

    def close(self):
        """Release every preview and drop queued work."""
        for image in self.pending:
            image.release()
        self.pending = []
        self.queue.clear()
        self.active = None
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # -- helpers --------------------------------------------------------

    def check_open(self):
        if self.closed:
            raise ValidationError("This form has been closed.")

    def find_pending(self, image_id):
        for image in self.pending:
            if image.id == image_id:
                return image
        raise NotFoundError(f"Image {image_id} not found")

    def _new_id(self, filename):
        image_id = f"{filename}-{time.time_ns() // 1_000_000}"
        taken = {img.id for img in self.pending}
        suffix = 1
        candidate = image_id
        while candidate in taken:
            suffix += 1
            candidate = f"{image_id}-{suffix}"
        return candidate

    def to_dict(self):
        return {
            "existing": [img.to_dict() for img in self.existing],
            "pending": [img.to_dict() for img in self.pending],
            "queued": [f.filename for f in self.queue],
            "active": self.active.to_dict() if self.active else None,
            "image_count": self.image_count,
            "max_count": self.max_count,
            "unreadable": list(self.unreadable),
        }
