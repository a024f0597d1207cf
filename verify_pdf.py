#!/usr/bin/env python3
"""Verify the page boxes of an imposed spread PDF against its layout."""

import sys

import pikepdf
from pikepdf import Name

from imposition import compute_geometry, get_layout


def _box(page, name):
    return [float(v) for v in page.obj.get(name, page.mediabox)]


def verify_page(page, sheet, wrap=None):
    """Return PASS/FAIL checks for one output page."""
    if wrap is not None:
        ox, oy = wrap.offset_x, wrap.offset_y
        media_w, media_h = wrap.wrap_width, wrap.wrap_height
    else:
        ox = oy = 0
        media_w, media_h = sheet.sheet_width, sheet.sheet_height

    b = sheet.bleed
    mbox = _box(page, Name.MediaBox)
    tbox = _box(page, Name.TrimBox)
    bbox = _box(page, Name.BleedBox)

    trim_w = tbox[2] - tbox[0]
    trim_h = tbox[3] - tbox[1]

    checks = [
        (f"MediaBox width = {media_w:.2f} pt",
         abs(mbox[2] - mbox[0] - media_w) < 0.01),
        (f"MediaBox height = {media_h:.2f} pt",
         abs(mbox[3] - mbox[1] - media_h) < 0.01),
        (f"Trim width = {2 * sheet.image_size:.2f} pt",
         abs(trim_w - 2 * sheet.image_size) < 0.01),
        (f"Trim height = {sheet.image_size:.2f} pt",
         abs(trim_h - sheet.image_size) < 0.01),
        (f"Bleed Left = {b:.3f} pt", abs(tbox[0] - bbox[0] - b) < 0.001),
        (f"Bleed Right = {b:.3f} pt", abs(bbox[2] - tbox[2] - b) < 0.001),
        (f"Bleed Bottom = {b:.3f} pt", abs(tbox[1] - bbox[1] - b) < 0.001),
        (f"Bleed Top = {b:.3f} pt", abs(bbox[3] - tbox[3] - b) < 0.001),
        ("Spread centred on canvas",
         abs(bbox[0] - ox) < 0.001 and abs(bbox[1] - oy) < 0.001),
        ("TrimBox present", Name.TrimBox in page.obj),
        ("BleedBox present", Name.BleedBox in page.obj),
    ]
    return [{"label": label, "pass": ok} for label, ok in checks]


def verify_document(pdf, sheet, wrap=None):
    verification = []
    for i, page in enumerate(pdf.pages):
        checks = verify_page(page, sheet, wrap)
        verification.append({
            "page": i + 1,
            "checks": checks,
            "all_pass": all(c["pass"] for c in checks),
        })
    return verification


def print_verification(verification):
    print("VERIFICATION:")
    print(f"{'─'*60}")
    for result in verification:
        print(f"  Page {result['page']}:")
        for check in result["checks"]:
            status = "PASS" if check["pass"] else "FAIL"
            print(f"    [{status}] {check['label']}")
        if result["all_pass"]:
            print("    All checks passed.")
        else:
            print("    WARNING: Some checks failed!")
        print()


def verify(path, layout=None):
    sheet, wrap = compute_geometry(get_layout(layout))
    with pikepdf.open(path) as pdf:
        verification = verify_document(pdf, sheet, wrap)
    print_verification(verification)
    return all(r["all_pass"] for r in verification)


if __name__ == "__main__":
    path = sys.argv[1] if len(sys.argv) > 1 else "test_output.pdf"
    layout = sys.argv[2] if len(sys.argv) > 2 else None
    sys.exit(0 if verify(path, layout) else 1)
