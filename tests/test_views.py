"""Tests for the HTTP surface."""
import io

import seller_dashboard.extensions as ext
from seller_dashboard import create_app
from seller_dashboard.models import ProductVersion, SupportQuery
from seller_dashboard.services import notify_service


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["db"] == "ok"
    assert data["redis"] == "not configured"


def test_health_does_not_leak_internal_errors(client, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("database password leaked")

    monkeypatch.setattr(ext.db.session, "execute", boom)

    resp = client.get("/health")
    assert resp.status_code == 503
    data = resp.get_json()
    assert data["db"] == "error"
    assert "password" not in str(data).lower()


def test_missing_backend_settings_show_config_page():
    app = create_app("testing", overrides={"S3_PUBLIC_URL": ""})
    client = app.test_client()

    resp = client.get("/dashboard/products")
    assert resp.status_code == 503
    assert b"Configuration error" in resp.data
    assert b"S3_PUBLIC_URL" in resp.data

    resp = client.get("/auth/session")
    assert resp.status_code == 503


def test_dashboard_requires_sign_in(client):
    resp = client.get("/dashboard/products")
    assert resp.status_code == 401
    assert resp.get_json()["status"] == "error"


def test_otp_sign_in_flow(client, monkeypatch):
    sent = []
    monkeypatch.setattr(
        notify_service, "send_code", lambda channel, destination, code, purpose: sent.append(code)
    )

    resp = client.post("/auth/otp/request", json={
        "view": "signup", "destination": "9811122233", "full_name": "Kiran",
    })
    assert resp.status_code == 200
    assert resp.get_json()["destination"] == "+919811122233"

    resp = client.post("/auth/otp/request", json={"view": "signup", "destination": "9811122233",
                                                  "full_name": "Kiran"})
    assert resp.status_code == 429
    assert "retry_after" in resp.get_json()

    resp = client.post("/auth/otp/verify", json={
        "method": "phone", "destination": "9811122233", "code": sent[0],
    })
    assert resp.status_code == 200
    assert resp.get_json()["seller"]["full_name"] == "Kiran"

    session = client.get("/auth/session").get_json()
    assert session["authenticated"] is True

    client.post("/auth/logout")
    assert client.get("/auth/session").get_json()["authenticated"] is False


def test_google_callback_rejects_bad_state(client):
    resp = client.get("/auth/google/start")
    assert resp.status_code == 302
    assert "accounts.google.com" in resp.headers["Location"]

    resp = client.get("/auth/google/callback?state=forged&code=x")
    assert resp.status_code == 401


def test_products_listing(auth_client, make_version):
    make_version(quantity_left=2, quantity_sold=1)
    data = auth_client.get("/dashboard/products").get_json()
    assert len(data["products"]) == 1
    assert data["metrics"]["total_quantity_left"] == 2


def test_create_listing_through_draft(auth_client, storage, make_image):
    resp = auth_client.post("/dashboard/drafts", json={})
    assert resp.status_code == 201
    draft_id = resp.get_json()["draft"]["draft_id"]

    resp = auth_client.post(
        f"/dashboard/drafts/{draft_id}/files",
        data={"files": (io.BytesIO(make_image()), "lamp.jpg", "image/jpeg")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 200
    assert resp.get_json()["active"]["filename"] == "lamp.jpg"

    resp = auth_client.put(f"/dashboard/drafts/{draft_id}/crop/mode", json={"mode": "portrait"})
    assert resp.get_json()["active"]["mode"] == "portrait"

    resp = auth_client.post(f"/dashboard/drafts/{draft_id}/crop/confirm", json={})
    image_id = resp.get_json()["image"]["id"]

    resp = auth_client.get(f"/dashboard/drafts/{draft_id}/images/{image_id}/preview")
    assert resp.status_code == 200
    assert resp.mimetype == "image/jpeg"

    resp = auth_client.post(f"/dashboard/drafts/{draft_id}/submit", json={
        "title": "Study Lamp",
        "description": "• LED",
        "categories": ["Home & Kitchen Essentials"],
        "type": "buy",
        "quantity": 1,
        "price": "300",
    })
    assert resp.status_code == 201
    product = resp.get_json()["product"]
    assert product["edit_count"] == 0
    assert len(product["image_url"]) == 1
    assert len(storage.objects) == 1

    # submitting closes the draft
    assert auth_client.get(f"/dashboard/drafts/{draft_id}").status_code == 404


def test_too_many_files(auth_client, make_image):
    draft_id = auth_client.post("/dashboard/drafts", json={}).get_json()["draft"]["draft_id"]
    files = [(io.BytesIO(make_image(20, 20)), f"{i}.jpg", "image/jpeg") for i in range(6)]
    resp = auth_client.post(
        f"/dashboard/drafts/{draft_id}/files",
        data={"files": files},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "You can only have a maximum of 5 images in total."


def test_edit_draft_tracks_changes(auth_client, make_version):
    v = make_version()
    resp = auth_client.post("/dashboard/drafts", json={"version_id": v.id})
    body = resp.get_json()
    assert body["form"]["price"] == "250"
    draft_id = body["draft"]["draft_id"]

    unchanged = dict(body["form"])
    resp = auth_client.post(f"/dashboard/drafts/{draft_id}/changes", json=unchanged)
    assert resp.get_json() == {"dirty": False, "changed": []}

    edited = dict(unchanged, price="275")
    resp = auth_client.post(f"/dashboard/drafts/{draft_id}/changes", json=edited)
    assert resp.get_json()["changed"] == ["price"]

    resp = auth_client.post(f"/dashboard/drafts/{draft_id}/submit", json=edited)
    assert resp.status_code == 201
    assert resp.get_json()["product"]["edit_count"] == 1


def test_revert_asks_for_confirmation(auth_client, make_version):
    v0 = make_version()
    make_version(group_id=v0.product_group_id, edit_count=1)
    url = f"/dashboard/products/{v0.product_group_id}/revert"

    resp = auth_client.post(url, json={"edit_count": 0})
    assert resp.get_json()["status"] == "confirm"
    assert ProductVersion.query.count() == 2

    resp = auth_client.post(url, json={"edit_count": 0, "confirm": True})
    assert resp.get_json()["removed_versions"] == [1]
    assert ProductVersion.query.count() == 1


def test_version_list_flags(auth_client, make_version):
    v0 = make_version()
    make_version(group_id=v0.product_group_id, edit_count=1)
    versions = auth_client.get(f"/dashboard/products/{v0.product_group_id}/versions").get_json()["versions"]
    assert [(v["edit_count"], v["is_latest"], v["can_revert"]) for v in versions] == [
        (1, True, False),
        (0, False, True),
    ]


def test_delete_product(auth_client, storage, make_version):
    v = make_version()
    resp = auth_client.delete(f"/dashboard/products/{v.product_group_id}")
    assert resp.status_code == 200
    assert ProductVersion.query.count() == 0


def test_delete_product_storage_failure(auth_client, storage, make_version):
    v = make_version()
    storage.fail_remove = True
    resp = auth_client.delete(f"/dashboard/products/{v.product_group_id}")
    assert resp.status_code == 502
    assert resp.get_json()["message"] == "Could not delete product images. Please try again."
    assert ProductVersion.query.count() == 1


def test_submit_query(auth_client):
    resp = auth_client.post("/dashboard/queries", json={"subject": " ", "body": "Images won't upload"})
    assert resp.status_code == 201
    assert SupportQuery.query.one().subject is None

    resp = auth_client.post("/dashboard/queries", json={"subject": "Help", "body": "  "})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "The description of the problem cannot be empty."


def test_bullet_helpers(auth_client):
    resp = auth_client.post("/dashboard/description/newline", json={"text": "• one", "cursor": 5})
    assert resp.get_json() == {"handled": True, "text": "• one\n• ", "cursor": 8}
    resp = auth_client.post("/dashboard/description/bullet", json={"text": ""})
    assert resp.get_json() == {"text": "• ", "cursor": 2}


def test_bullet_helpers_reject_bad_positions(auth_client):
    resp = auth_client.post("/dashboard/description/bullet", json={"text": "abc", "start": "x"})
    assert resp.status_code == 400
    assert resp.get_json()["fields"] == {"start": "start must be a whole number."}

    resp = auth_client.post("/dashboard/description/bullet", json={"text": "abc", "end": [1]})
    assert resp.status_code == 400

    resp = auth_client.post("/dashboard/description/newline", json={"text": "• a", "cursor": None})
    assert resp.status_code == 400
    assert resp.get_json()["fields"] == {"cursor": "cursor must be a whole number."}

    resp = auth_client.post("/dashboard/description/newline", json={"text": 5})
    assert resp.status_code == 400
