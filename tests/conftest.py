import fitz
import pikepdf
import pytest

from create_test_pdf import build_test_pdf


def slot_labels(pdf_bytes):
    """(left, right) page label per output page; None for an empty slot."""
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    result = []
    try:
        for page in doc:
            mid = page.rect.width / 2
            left = right = None
            for x0, _, x1, _, word, *_ in page.get_text("words"):
                if (x0 + x1) / 2 < mid:
                    left = word
                else:
                    right = word
            result.append((left, right))
    finally:
        doc.close()
    return result


@pytest.fixture(scope="session")
def source_bytes():
    return build_test_pdf(17)


@pytest.fixture(scope="session")
def short_source_bytes():
    return build_test_pdf(3)


@pytest.fixture
def source_pdf(source_bytes, tmp_path):
    path = tmp_path / "source.pdf"
    path.write_bytes(source_bytes)
    with pikepdf.open(path) as pdf:
        yield pdf
