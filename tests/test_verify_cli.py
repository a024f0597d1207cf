import pikepdf
import pytest

import impose_spreads
from imposition import LAYOUTS, compute_geometry, impose_bytes, parse_pairs
from verify_pdf import verify, verify_document


def test_verify_document_passes_for_default_layout(source_bytes, tmp_path):
    path = tmp_path / "out.pdf"
    path.write_bytes(impose_bytes(source_bytes))
    sheet, wrap = compute_geometry(LAYOUTS["bleed"])
    with pikepdf.open(path) as pdf:
        results = verify_document(pdf, sheet, wrap)
    assert len(results) == 10
    assert all(r["all_pass"] for r in results)


def test_verify_detects_the_wrong_layout(source_bytes, tmp_path):
    path = tmp_path / "out.pdf"
    path.write_bytes(impose_bytes(source_bytes, parse_pairs([[0, 1]])))
    assert verify(str(path), "bleed") is True
    assert verify(str(path), "border") is False


def test_cli_writes_spreads(source_bytes, tmp_path, capsys):
    src = tmp_path / "book.pdf"
    src.write_bytes(source_bytes)
    impose_spreads.main([str(src), "--pairs", '[[0, "blank"], [1, 2]]'])

    out = tmp_path / "book_spreads.pdf"
    with pikepdf.open(out) as pdf:
        assert len(pdf.pages) == 2
    printed = capsys.readouterr().out
    assert "Saved spread PDF" in printed
    assert "WARNING" not in printed


def test_cli_reports_out_of_range_pages(short_source_bytes, tmp_path, capsys):
    src = tmp_path / "short.pdf"
    src.write_bytes(short_source_bytes)
    with pytest.raises(SystemExit) as exc_info:
        impose_spreads.main([str(src), str(tmp_path / "out.pdf")])
    assert exc_info.value.code == 1
    assert "out of range" in capsys.readouterr().out
    assert not (tmp_path / "out.pdf").exists()
