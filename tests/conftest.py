import io
import threading
import uuid
from decimal import Decimal

import pytest
from PIL import Image as PILImage

from seller_dashboard import create_app
from seller_dashboard.extensions import db as _db
from seller_dashboard.models import ProductVersion, Seller
from seller_dashboard.services.storage_service import StorageClient


class FakeStorage(StorageClient):
    """In-memory bucket. Set ``fail_uploads`` or ``fail_remove`` to simulate outages."""

    def __init__(self, public_url):
        super().__init__(client=None, bucket="product_images", public_url=public_url)
        self.objects = {}
        self.removed = []
        self.fail_uploads = False
        self.fail_remove = False
        self._lock = threading.Lock()

    def upload(self, storage_key, data, content_type="image/jpeg"):
        if self.fail_uploads:
            raise RuntimeError("bucket unavailable")
        with self._lock:
            self.objects[storage_key] = data
        return self.get_public_url(storage_key)

    def remove(self, storage_keys):
        if self.fail_remove:
            raise RuntimeError("Storage refused to delete")
        with self._lock:
            for key in storage_keys:
                self.objects.pop(key, None)
                self.removed.append(key)


@pytest.fixture
def app():
    """Create application for testing."""
    app = create_app("testing")
    app.extensions["storage"] = FakeStorage(app.config["S3_PUBLIC_URL"])
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def storage(app):
    return app.extensions["storage"]


@pytest.fixture
def seller(db):
    s = Seller(full_name="Asha Rao", phone="+919876543210", auth_provider="otp")
    db.session.add(s)
    db.session.commit()
    return s


@pytest.fixture
def auth_client(client, seller):
    with client.session_transaction() as sess:
        sess["seller_id"] = seller.id
    return client


@pytest.fixture
def make_image():
    def _make(width=400, height=300, fmt="JPEG"):
        mode = "RGBA" if fmt == "PNG" else "RGB"
        color = (200, 30, 30, 255) if mode == "RGBA" else (200, 30, 30)
        buf = io.BytesIO()
        PILImage.new(mode, (width, height), color).save(buf, format=fmt)
        return buf.getvalue()

    return _make


@pytest.fixture
def make_version(db, seller, storage):
    """Insert a version row; ``images`` are bucket keys turned into URLs."""

    def _make(group_id=None, edit_count=0, images=("a.jpg",), **fields):
        values = {
            "title": "Calculus Textbook",
            "description": "• Hardcover\n• Barely used",
            "category": ["Books"],
            "type": "buy",
            "quantity_left": 3,
            "quantity_sold": 0,
            "price": Decimal("250.00"),
            "approval_status": "approved",
        }
        values.update(fields)
        version = ProductVersion(
            product_group_id=group_id or str(uuid.uuid4()),
            user_id=values.pop("user_id", seller.id),
            edit_count=edit_count,
            image_url=[storage.get_public_url(key) for key in images],
            **values,
        )
        db.session.add(version)
        db.session.commit()
        return version

    return _make
