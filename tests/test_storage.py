"""Tests for the bucket wrapper against a mocked boto3 client."""
from unittest.mock import MagicMock

import pytest

from seller_dashboard.services.storage_service import StorageClient


@pytest.fixture
def s3():
    client = MagicMock()
    client.delete_objects.return_value = {}
    return client


def test_upload_returns_public_url(s3):
    storage = StorageClient(s3, "product_images", "https://cdn.test/product_images/")
    url = storage.upload("s1/abc/image_0.jpg", b"jpeg")

    assert url == "https://cdn.test/product_images/s1/abc/image_0.jpg"
    kwargs = s3.put_object.call_args.kwargs
    assert kwargs["Bucket"] == "product_images"
    assert kwargs["ContentType"] == "image/jpeg"


def test_key_from_url(s3):
    storage = StorageClient(s3, "product_images", "https://cdn.test/product_images")
    assert storage.key_from_url("https://cdn.test/product_images/s1/a.jpg") == "s1/a.jpg"
    assert storage.key_from_url("https://elsewhere.test/a.jpg") is None
    assert storage.key_from_url("") is None


def test_remove_urls_skips_foreign(s3):
    storage = StorageClient(s3, "product_images", "https://cdn.test/product_images")
    keys = storage.remove_urls([
        "https://cdn.test/product_images/s1/a.jpg",
        "https://elsewhere.test/b.jpg",
    ])

    assert keys == ["s1/a.jpg"]
    objects = s3.delete_objects.call_args.kwargs["Delete"]["Objects"]
    assert objects == [{"Key": "s1/a.jpg"}]


def test_remove_nothing_makes_no_call(s3):
    StorageClient(s3, "product_images", "https://cdn.test").remove([])
    s3.delete_objects.assert_not_called()


def test_remove_raises_on_per_key_errors(s3):
    s3.delete_objects.return_value = {"Errors": [{"Key": "s1/a.jpg", "Code": "AccessDenied"}]}
    storage = StorageClient(s3, "product_images", "https://cdn.test")
    with pytest.raises(RuntimeError, match="s1/a.jpg"):
        storage.remove(["s1/a.jpg"])
