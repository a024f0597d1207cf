#!/usr/bin/env python3
"""Create a numbered test PDF for validating the spread imposition tool."""

import io
import sys

from reportlab.lib.colors import HexColor
from reportlab.pdfgen import canvas

PAGE_SIZE = 200    # pt, square like the imposition slots
PAGE_COLORS = ["#f5f0e8", "#1a2332", "#2d4a6f", "#cc4444"]


def page_label(index):
    return f"P{index}"


def draw_test_pages(c, page_count, size=PAGE_SIZE):
    """Draw one page per index with its label in the middle.

    Labels are zero-based so they match the indices used in page pairs.
    """
    for i in range(page_count):
        bg = PAGE_COLORS[i % len(PAGE_COLORS)]
        c.setFillColor(HexColor(bg))
        c.rect(0, 0, size, size, fill=1, stroke=0)

        # Corner markers to check nothing gets clipped
        c.setFillColor(HexColor("#00ff88"))
        for x, y in [(8, 8), (size - 8, 8), (8, size - 8), (size - 8, size - 8)]:
            c.circle(x, y, 4, fill=1, stroke=0)

        c.setFillColor(HexColor("#ffffff") if i % len(PAGE_COLORS) else HexColor("#333333"))
        c.setFont("Helvetica-Bold", 40)
        c.drawCentredString(size / 2, size / 2 - 14, page_label(i))
        c.showPage()


def build_test_pdf(page_count=17, size=PAGE_SIZE):
    """Return the bytes of a ``page_count`` page square PDF."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(size, size))
    draw_test_pages(c, page_count, size)
    c.save()
    return buf.getvalue()


def create_test_pdf(output_path="test_input.pdf", page_count=17):
    with open(output_path, "wb") as f:
        f.write(build_test_pdf(page_count))
    print(f"Created test PDF: {output_path} ({page_count} pages, "
          f"{PAGE_SIZE/72:.2f}\" square)")


if __name__ == "__main__":
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 17
    create_test_pdf(page_count=count)
