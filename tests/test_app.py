import base64
import io

import pytest

import app as app_module
from conftest import slot_labels


@pytest.fixture
def client():
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as client:
        yield client


def encode(data):
    return base64.b64encode(data).decode("ascii")


def test_health(client):
    assert client.get("/api/health").get_json() == {"status": "healthy"}


def test_merge_spread_from_base64_json(client, source_bytes):
    resp = client.post("/merge-spread", json={"pdfBase64": encode(source_bytes)})
    assert resp.status_code == 200
    assert resp.mimetype == "application/pdf"
    assert "wrapped_bleed_spread.pdf" in resp.headers["Content-Disposition"]
    assert len(slot_labels(resp.data)) == 10


def test_merge_spread_accepts_data_urls(client, source_bytes):
    payload = "data:application/pdf;base64," + encode(source_bytes)
    resp = client.post("/merge-spread", json={"pdfBase64": payload})
    assert resp.status_code == 200


def test_merge_spread_from_multipart(client, source_bytes):
    resp = client.post(
        "/merge-spread",
        data={"file": (io.BytesIO(source_bytes), "book.pdf")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 200
    assert resp.data.startswith(b"%PDF")


def test_custom_pairs_and_layout(client, source_bytes):
    resp = client.post(
        "/merge-spread",
        data={
            "file": (io.BytesIO(source_bytes), "book.pdf"),
            "pagePairs": '[[3, "blank"], [0, 1]]',
            "layout": "border",
        },
        content_type="multipart/form-data",
    )
    assert resp.status_code == 200
    assert "merged_spread_with_border.pdf" in resp.headers["Content-Disposition"]
    assert slot_labels(resp.data) == [("P3", None), ("P0", "P1")]


@pytest.mark.parametrize("kwargs", [
    {"json": {}},
    {"json": {"pdfBase64": ""}},
    {"json": [1, 2]},
    {"json": "x"},
    {"json": 5},
    {"data": {}, "content_type": "multipart/form-data"},
])
def test_missing_input(client, kwargs):
    resp = client.post("/merge-spread", **kwargs)
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "No PDF data provided."}


def test_malformed_document(client):
    resp = client.post("/merge-spread", json={"pdfBase64": encode(b"not a pdf at all")})
    assert resp.status_code == 400
    assert resp.mimetype == "application/json"
    assert "could not be read" in resp.get_json()["error"]


def test_invalid_base64(client):
    resp = client.post("/merge-spread", json={"pdfBase64": "abc"})
    assert resp.status_code == 400
    assert "base64" in resp.get_json()["error"]


def test_out_of_range_pages(client, short_source_bytes):
    resp = client.post("/merge-spread", json={"pdfBase64": encode(short_source_bytes)})
    assert resp.status_code == 422
    assert resp.mimetype == "application/json"
    assert "out of range" in resp.get_json()["error"]


def test_negative_page_index(client, source_bytes):
    resp = client.post("/merge-spread", json={
        "pdfBase64": encode(source_bytes),
        "pagePairs": [[-1, 0]],
    })
    assert resp.status_code == 422


@pytest.mark.parametrize("body", [
    {"pagePairs": [[0]]},
    {"pagePairs": "0,1"},
    {"layout": "poster"},
])
def test_bad_request_options(client, source_bytes, body):
    resp = client.post("/merge-spread", json={"pdfBase64": encode(source_bytes), **body})
    assert resp.status_code == 400
    assert "error" in resp.get_json()


def test_unexpected_failure_is_reported_generically(client, source_bytes, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(app_module, "impose_bytes", explode)
    resp = client.post("/merge-spread", json={"pdfBase64": encode(source_bytes)})
    assert resp.status_code == 500
    assert resp.get_json() == {"error": app_module.GENERIC_ERROR}


def test_upload_limit(client, monkeypatch):
    monkeypatch.setitem(app_module.app.config, "MAX_CONTENT_LENGTH", 1024)
    resp = client.post(
        "/merge-spread",
        data={"file": (io.BytesIO(b"%PDF" + b"0" * 4096), "big.pdf")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 413
    assert "limit" in resp.get_json()["error"]


def test_preview(client, source_bytes):
    resp = client.post(
        "/api/preview",
        data={"file": (io.BytesIO(source_bytes), "book.pdf")},
        content_type="multipart/form-data",
    )
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["page_count"] == 17
    assert len(body["thumbnails"]) == 17
    assert body["pages"][0] == {"index": 0, "width_pt": 200.0, "height_pt": 200.0}
    assert base64.b64decode(body["thumbnails"][0]).startswith(b"\x89PNG")


def test_preview_rejects_garbage(client):
    resp = client.post(
        "/api/preview",
        data={"file": (io.BytesIO(b"garbage"), "x.pdf")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400


def test_empty_multipart_pairs_are_rejected(client, source_bytes):
    resp = client.post(
        "/merge-spread",
        data={"file": (io.BytesIO(source_bytes), "book.pdf"), "pagePairs": "[]"},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "At least one page pair is required."}


def test_blank_multipart_pairs_use_default_table(client, source_bytes):
    resp = client.post(
        "/merge-spread",
        data={"file": (io.BytesIO(source_bytes), "book.pdf"), "pagePairs": "  "},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 200
    assert len(slot_labels(resp.data)) == 10
