"""Tests for image validation, the crop queue and preview ownership."""
import os

import pytest

from seller_dashboard.errors import (
    ImageCountExceeded,
    ImageTooLarge,
    NotFoundError,
    UnsupportedImageType,
    ValidationError,
)
from seller_dashboard.services.crop_engine import CropMode, PercentCrop
from seller_dashboard.services.intake import ImageIntake, IncomingFile


@pytest.fixture
def jpeg(make_image):
    def _file(name="photo.jpg", width=400, height=300):
        return IncomingFile(name, "image/jpeg", make_image(width, height))

    return _file


def test_batch_over_cap_is_rejected_whole(jpeg):
    intake = ImageIntake()
    with pytest.raises(ImageCountExceeded) as exc:
        intake.add_files([jpeg(f"{i}.jpg") for i in range(6)])
    assert exc.value.message == "You can only have a maximum of 5 images in total."
    assert intake.queued_count == 0
    assert intake.active is None


def test_cap_counts_existing_images(jpeg):
    urls = [f"https://cdn.test/product_images/{i}.jpg" for i in range(4)]
    intake = ImageIntake(existing_urls=urls)
    intake.add_files([jpeg("one.jpg")])
    with pytest.raises(ImageCountExceeded):
        intake.add_files([jpeg("two.jpg")])


def test_oversized_file_rejects_batch(jpeg):
    intake = ImageIntake(max_bytes=2000)
    small = IncomingFile("tiny.jpg", "image/jpeg", b"x" * 10)
    with pytest.raises(ImageTooLarge, match='"huge.jpg" exceeds the 0 MB size limit'):
        intake.add_files([small, jpeg("huge.jpg", 2000, 2000)])
    assert intake.queued_count == 0


def test_unsupported_type(jpeg):
    intake = ImageIntake()
    with pytest.raises(UnsupportedImageType) as exc:
        intake.add_files([jpeg(), IncomingFile("notes.pdf", "application/pdf", b"%PDF")])
    assert exc.value.message == 'File type for "notes.pdf" is not supported.'
    assert intake.queued_count == 0


def test_queue_is_fifo(jpeg):
    intake = ImageIntake()
    intake.add_files([jpeg("a.jpg"), jpeg("b.jpg")])
    assert intake.active.source.filename == "a.jpg"

    first = intake.confirm_crop()
    assert first.original.filename == "a.jpg"
    assert intake.active.source.filename == "b.jpg"

    intake.confirm_crop()
    assert [p.original.filename for p in intake.pending] == ["a.jpg", "b.jpg"]
    assert intake.active is None
    assert intake.image_count == 2


def test_cancel_drops_new_file(jpeg):
    intake = ImageIntake()
    intake.add_files([jpeg("a.jpg"), jpeg("b.jpg")])
    intake.cancel_crop()
    assert intake.pending == []
    assert intake.active.source.filename == "b.jpg"


def test_confirm_with_mode_and_crop(jpeg):
    intake = ImageIntake()
    intake.add_files([jpeg()])
    crop = PercentCrop(0, 0, 50, 50)
    image = intake.confirm_crop(crop=crop, mode=CropMode.AUTO)
    assert image.crop == crop
    assert image.mode is CropMode.AUTO
    assert os.path.exists(image.preview.path)


def test_recrop_replaces_in_place_and_releases_old_preview(jpeg):
    intake = ImageIntake()
    intake.add_files([jpeg()])
    image = intake.confirm_crop()
    old_preview = image.preview

    intake.begin_recrop(image.id)
    assert intake.active.is_recrop
    assert intake.active.session.crop == image.crop

    new_crop = PercentCrop(10, 10, 30, 30)
    intake.confirm_crop(crop=new_crop)

    assert len(intake.pending) == 1
    assert intake.pending[0] is image
    assert image.crop == new_crop
    assert old_preview.released
    assert not os.path.exists(old_preview.path)


def test_cancel_recrop_keeps_previous_crop(jpeg):
    intake = ImageIntake()
    intake.add_files([jpeg()])
    image = intake.confirm_crop()
    crop = image.crop

    intake.begin_recrop(image.id)
    intake.cancel_crop()
    assert intake.pending == [image]
    assert image.crop == crop
    assert not image.preview.released


def test_only_one_crop_at_a_time(jpeg):
    intake = ImageIntake()
    intake.add_files([jpeg("a.jpg")])
    image = intake.confirm_crop()
    intake.add_files([jpeg("b.jpg")])
    with pytest.raises(ValidationError):
        intake.begin_recrop(image.id)


def test_unreadable_file_is_skipped(jpeg):
    intake = ImageIntake()
    intake.add_files([IncomingFile("junk.png", "image/png", b"not an image"), jpeg("ok.jpg")])
    assert intake.unreadable == ["junk.png"]
    assert intake.active.source.filename == "ok.jpg"


def test_delete_pending_releases_preview(jpeg):
    intake = ImageIntake()
    intake.add_files([jpeg()])
    image = intake.confirm_crop()
    intake.delete_pending(image.id)
    assert intake.pending == []
    assert image.preview.released


def test_delete_existing():
    url = "https://cdn.test/product_images/a.jpg"
    intake = ImageIntake(existing_urls=[url])
    intake.delete_existing(f"existing-0-{url}")
    assert intake.existing_urls == []
    with pytest.raises(NotFoundError):
        intake.delete_existing("existing-9-nope")


def test_close_releases_everything(jpeg):
    with ImageIntake() as intake:
        intake.add_files([jpeg("a.jpg"), jpeg("b.jpg"), jpeg("c.jpg")])
        a = intake.confirm_crop()
        b = intake.confirm_crop()
    assert a.preview.released and b.preview.released
    assert intake.active is None
    assert intake.queued_count == 0
    with pytest.raises(ValidationError):
        intake.add_files([jpeg()])


def test_to_dict(jpeg):
    intake = ImageIntake(existing_urls=["https://cdn.test/product_images/a.jpg"])
    intake.add_files([jpeg("b.jpg")])
    data = intake.to_dict()
    assert data["image_count"] == 1
    assert data["queued"] == ["b.jpg"]
    assert data["active"]["filename"] == "b.jpg"
    assert data["active"]["mode"] == "square"
