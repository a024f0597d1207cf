#!/usr/bin/env python3
"""
PDF Spread Imposition Tool

Prepares two-up spreads for print by:
1. Pairing source pages left/right according to a page-pair table
2. Placing each pair on a sheet with bleed on all four sides
3. Adding cut marks (or a border frame, depending on the layout)
4. Centring every sheet on a padded wrap canvas
5. Setting TrimBox and BleedBox on every output page

Usage:
    python impose_spreads.py input.pdf [output.pdf] [--pairs JSON] [--layout NAME]

If no output path is given, produces input_spreads.pdf
"""

import argparse
import json
import os
import sys

import pikepdf

from imposition import (
    DEFAULT_PAIRS, ImpositionError, LAYOUTS,
    compute_geometry, get_layout, impose, parse_pairs,
)
from verify_pdf import print_verification, verify_document


def describe_pairs(pairs):
    for i, pair in enumerate(pairs):
        left = "blank" if pair.left.is_blank else pair.left.index
        right = "blank" if pair.right.is_blank else pair.right.index
        print(f"  Sheet {i + 1}: left={left}  right={right}")


def process_pdf(input_path, output_path=None, pairs=None, layout=None):
    """Impose ``input_path`` into spreads and verify the result."""
    if not os.path.isfile(input_path):
        print(f"Error: File not found: {input_path}")
        sys.exit(1)

    if output_path is None:
        base, ext = os.path.splitext(input_path)
        output_path = f"{base}_spreads{ext}"

    config = get_layout(layout)
    sheet, wrap = compute_geometry(config)
    pairs = DEFAULT_PAIRS if pairs is None else pairs

    print("PDF Spread Imposition Tool")
    print(f"{'='*60}")
    print(f"Input:  {input_path}")
    print(f"Output: {output_path}")
    print(f"Layout: {layout or 'bleed'}")
    print(f"Sheet:  {sheet.sheet_width:.2f} × {sheet.sheet_height:.2f} pt "
          f"(bleed {sheet.bleed:.3f} pt)")
    if wrap is not None:
        print(f"Wrap:   {wrap.wrap_width:.2f} × {wrap.wrap_height:.2f} pt "
              f"(padding {wrap.padding} pt)")
    print(f"{'='*60}")
    print()

    with pikepdf.open(input_path) as source:
        print(f"Source has {len(source.pages)} page(s), "
              f"building {len(pairs)} sheet(s)...\n")
        describe_pairs(pairs)
        print()

        final, intermediate = impose(source, pairs, config)
        try:
            final.save(output_path, linearize=False)
        finally:
            if final is not intermediate:
                final.close()
            intermediate.close()

    print(f"{'='*60}")
    print(f"Saved spread PDF: {output_path}")
    print()

    with pikepdf.open(output_path) as result:
        verification = verify_document(result, sheet, wrap)
    print_verification(verification)
    return output_path


def main(argv=None):
    parser = argparse.ArgumentParser(description="Impose PDF pages into two-up spreads.")
    parser.add_argument("input", help="Input PDF file")
    parser.add_argument("output", nargs="?", help="Output PDF file")
    parser.add_argument("--pairs", help='Page pairs as JSON, e.g. \'[[2, "blank"], [0, 1]]\'')
    parser.add_argument("--layout", choices=sorted(LAYOUTS), default="bleed")
    args = parser.parse_args(argv)

    try:
        pairs = parse_pairs(json.loads(args.pairs)) if args.pairs else None
        process_pdf(args.input, args.output, pairs, args.layout)
    except json.JSONDecodeError as e:
        print(f"Error: --pairs is not valid JSON: {e}")
        sys.exit(1)
    except (ImpositionError, pikepdf.PdfError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
