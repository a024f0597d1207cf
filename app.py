#!/usr/bin/env python3
"""
PDF Spread Merger – Web UI.

Run:
    python app.py

Then open http://localhost:3000 in your browser. HOST and PORT can be set in
the environment or in a .env file next to this script.
"""

import base64
import binascii
import io
import json
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, request, jsonify, send_file, send_from_directory
from werkzeug.exceptions import HTTPException

import fitz  # pymupdf – for thumbnail rendering
from pikepdf import Name

from imposition import (
    ImpositionError, InvalidPairing, MalformedDocument, MissingInput,
    PageOutOfRange, UnknownLayout,
    get_layout, get_page_dimensions, impose_bytes, open_source, parse_pairs,
)

# ── Constants ─────────────────────────────────────────────────────────────────
MAX_UPLOAD_BYTES = 50 * 1024 * 1024
THUMBNAIL_DPI = 72
GENERIC_ERROR = ("Please verify your PDF page numbers or try again "
                 "due to a technical issue.")

ERROR_STATUS = {
    MissingInput: 400,
    MalformedDocument: 400,
    InvalidPairing: 400,
    UnknownLayout: 400,
    PageOutOfRange: 422,
}

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

load_dotenv(Path(__file__).resolve().parent / ".env")

app = Flask(__name__, static_folder="static")
app.config["MAX_CONTENT_LENGTH"] = MAX_UPLOAD_BYTES


# ── Request decoding ──────────────────────────────────────────────────────────

def _strip_data_url(value):
    # "data:application/pdf;base64,JVBERi0..." from FileReader.readAsDataURL
    if value.startswith("data:") and "," in value:
        return value.split(",", 1)[1]
    return value


def read_json_upload():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise MissingInput()
    encoded = payload.get("pdfBase64")
    if not encoded or not isinstance(encoded, str):
        raise MissingInput()
    try:
        data = base64.b64decode(_strip_data_url(encoded))
    except (binascii.Error, ValueError) as e:
        raise MalformedDocument("The PDF data is not valid base64.") from e
    return data, payload.get("pagePairs"), payload.get("layout")


def read_multipart_upload():
    file = request.files.get("file") or request.files.get("pdfFile")
    if file is None:
        raise MissingInput()
    data = file.read()

    # absent or blank field means the default table; "[]" is passed on as-is
    raw_pairs = None
    field = request.form.get("pagePairs", "").strip()
    if field:
        try:
            raw_pairs = json.loads(field)
        except json.JSONDecodeError as e:
            raise InvalidPairing(f"pagePairs is not valid JSON: {e}") from e
    return data, raw_pairs, request.form.get("layout")


def read_upload():
    """Return (pdf_bytes, raw_pairs, layout_name) from JSON or multipart."""
    if request.is_json:
        return read_json_upload()
    return read_multipart_upload()


def error_response(exc):
    status = ERROR_STATUS.get(type(exc), 400)
    logger.warning("Rejected request (%s): %s", type(exc).__name__, exc)
    return jsonify({"error": str(exc)}), status


def render_thumbnails(data, dpi=THUMBNAIL_DPI):
    """Return list of base64-encoded PNG thumbnails, one per page."""
    doc = fitz.open(stream=data, filetype="pdf")
    thumbs = []
    try:
        zoom = dpi / 72.0
        mat = fitz.Matrix(zoom, zoom)
        for page in doc:
            pix = page.get_pixmap(matrix=mat, alpha=False)
            thumbs.append(base64.b64encode(pix.tobytes("png")).decode("ascii"))
    finally:
        doc.close()
    return thumbs


# ── Routes ────────────────────────────────────────────────────────────────────

@app.route("/")
def index():
    return send_from_directory("static", "index.html")


@app.route("/api/health")
def health_check():
    return jsonify({"status": "healthy"})


@app.route("/merge-spread", methods=["POST"])
def merge_spread():
    """Impose the uploaded PDF into spreads and return the finished file."""
    try:
        data, raw_pairs, layout = read_upload()
        config = get_layout(layout)
        pairs = parse_pairs(raw_pairs) if raw_pairs is not None else None
        pdf_bytes = impose_bytes(data, pairs, config)
    except ImpositionError as e:
        return error_response(e)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error generating merged spread")
        return jsonify({"error": GENERIC_ERROR}), 500

    return send_file(
        io.BytesIO(pdf_bytes),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=config.download_name,
    )


@app.route("/api/preview", methods=["POST"])
def api_preview():
    """Return page sizes and thumbnails of an upload so the user can check
    page numbers before building spreads."""
    try:
        data, _, _ = read_multipart_upload()
        pdf = open_source(data)
    except ImpositionError as e:
        return error_response(e)

    try:
        pages_info = []
        for i, page in enumerate(pdf.pages):
            _, _, w, h = get_page_dimensions(page)
            rot = int(page.obj.get(Name.Rotate, 0)) % 360
            if rot in (90, 270):
                w, h = h, w
            pages_info.append({
                "index": i,
                "width_pt": round(w, 3),
                "height_pt": round(h, 3),
            })
        thumbs = render_thumbnails(data)
    except Exception:
        logger.exception("Error rendering preview")
        return jsonify({"error": GENERIC_ERROR}), 500
    finally:
        pdf.close()

    return jsonify({
        "page_count": len(pages_info),
        "pages": pages_info,
        "thumbnails": thumbs,
    })


@app.errorhandler(413)
def too_large(_):
    limit_mb = MAX_UPLOAD_BYTES // (1024 * 1024)
    return jsonify({"error": f"Upload exceeds the {limit_mb} MB limit."}), 413


if __name__ == "__main__":
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3000"))
    logger.info("Server running at http://localhost:%s", port)
    app.run(host=host, port=port, debug=False)
