"""
Spread imposition engine.

Rearranges pages of a source PDF into two-up spreads:
1. Resolves a pairing table (left/right page references, blanks allowed)
   against the pages of the source document
2. Places each pair side by side on a sheet with bleed on all four sides
3. Draws cut marks (and optionally a gutter mark or a border frame)
4. Wraps every finished sheet in a larger, uniformly padded canvas

Every page is embedded as a Form XObject, so vector artwork, fonts and
images of the source are preserved untouched.
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional

import pikepdf
from pikepdf import Pdf, Name, Array, Dictionary

logger = logging.getLogger(__name__)


# ── Constants (all in points: 1 inch = 72 pt) ──────────────────────────────
POINTS_PER_MM = 2.83465            # 72 / 25.4
IMAGE_SIZE = 575.525               # square slot, ~203 mm
BLEED_MM = 5
WRAP_PADDING = 30
MARK_LENGTH = 10
MARK_WEIGHT = 1


# ── Errors ─────────────────────────────────────────────────────────────────

class ImpositionError(Exception):
    """Base class for every failure the engine reports on purpose."""


class MissingInput(ImpositionError):
    def __init__(self, message="No PDF data provided."):
        super().__init__(message)


class MalformedDocument(ImpositionError):
    def __init__(self, message="The uploaded file could not be read as a PDF."):
        super().__init__(message)


class PageOutOfRange(ImpositionError):
    """A pairing references pages the source document does not have."""

    def __init__(self, indices, page_count):
        self.indices = sorted(indices)
        self.page_count = page_count
        listed = ", ".join(str(i) for i in self.indices)
        valid = f"valid indices are 0 to {page_count - 1}" if page_count else "it is empty"
        super().__init__(
            f"Page index {listed} is out of range: the document has "
            f"{page_count} page(s), {valid}."
        )


class InvalidPairing(ImpositionError):
    pass


class UnknownLayout(ImpositionError):
    pass


# ── Page references ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PageRef:
    """Either a zero-based source page index or a blank slot."""

    index: Optional[int] = None

    @classmethod
    def page(cls, index):
        return cls(index)

    @property
    def is_blank(self):
        return self.index is None

    def __repr__(self):
        return "BLANK" if self.is_blank else f"PageRef({self.index})"


BLANK = PageRef()


@dataclass(frozen=True)
class PagePair:
    left: PageRef
    right: PageRef

    def refs(self):
        return (self.left, self.right)


def _parse_ref(value, position):
    if isinstance(value, PageRef):
        return value
    if value is None or (isinstance(value, str) and value.strip().lower() == "blank"):
        return BLANK
    # bool is an int subclass; True/False are never page numbers
    if isinstance(value, int) and not isinstance(value, bool):
        return PageRef.page(value)
    raise InvalidPairing(
        f"Pair {position}: expected a page index or 'blank', got {value!r}."
    )


def parse_pairs(raw):
    """Turn ``[[2, "blank"], ["blank", 1], ...]`` into a list of PagePair.

    ``None`` and the string ``"blank"`` both mean an empty slot.
    """
    if isinstance(raw, (str, bytes)) or not hasattr(raw, "__iter__"):
        raise InvalidPairing("Page pairs must be a list of [left, right] pairs.")

    pairs = []
    for position, entry in enumerate(raw):
        if isinstance(entry, PagePair):
            pairs.append(entry)
            continue
        if isinstance(entry, (str, bytes, dict)) or not hasattr(entry, "__len__") \
                or len(entry) != 2:
            raise InvalidPairing(
                f"Pair {position}: expected exactly two entries, got {entry!r}."
            )
        left, right = entry
        pairs.append(PagePair(_parse_ref(left, position), _parse_ref(right, position)))

    if not pairs:
        raise InvalidPairing("At least one page pair is required.")
    return pairs


DEFAULT_PAIRS = parse_pairs([
    [2, "blank"],
    ["blank", 1],
    [6, 3],
    [4, 5],
    [10, 7],
    [8, 9],
    [14, 11],
    [12, 13],
    ["blank", 15],
    [16, 0],
])


# ── Layout configuration and geometry ──────────────────────────────────────

@dataclass(frozen=True)
class LayoutConfig:
    image_size: float = IMAGE_SIZE
    bleed_mm: float = BLEED_MM
    points_per_mm: float = POINTS_PER_MM
    wrap_padding: Optional[float] = WRAP_PADDING
    mark_length: float = MARK_LENGTH
    cut_marks: bool = True
    center_mark: bool = False
    border_mm: float = 0
    # None centres the slots vertically inside the bleed
    slot_y: Optional[float] = None
    download_name: str = "wrapped_bleed_spread.pdf"


@dataclass(frozen=True)
class SheetGeometry:
    image_size: float
    bleed: float
    sheet_width: float
    sheet_height: float
    left_slot_x: float
    right_slot_x: float
    slot_y: float
    border: float = 0


@dataclass(frozen=True)
class WrapGeometry:
    padding: float
    wrap_width: float
    wrap_height: float
    offset_x: float
    offset_y: float


LAYOUTS = {
    "bleed": LayoutConfig(),
    "bleed_center": LayoutConfig(center_mark=True),
    "border": LayoutConfig(
        bleed_mm=4,                 # 1 mm border + 3 mm gap
        points_per_mm=2.835,
        wrap_padding=None,
        cut_marks=False,
        border_mm=1,
        download_name="merged_spread_with_border.pdf",
    ),
}


def get_layout(name):
    if not name:
        return LAYOUTS["bleed"]
    try:
        return LAYOUTS[name]
    except KeyError:
        known = ", ".join(sorted(LAYOUTS))
        raise UnknownLayout(f"Unknown layout {name!r}; choose one of: {known}.") from None


def compute_geometry(config):
    """Derive sheet and wrap geometry from a layout.

    Returns ``(SheetGeometry, WrapGeometry)``; the wrap geometry is None
    when the layout does not wrap its sheets.
    """
    image = config.image_size
    bleed = config.bleed_mm * config.points_per_mm
    sheet = SheetGeometry(
        image_size=image,
        bleed=bleed,
        sheet_width=image * 2 + bleed * 2,
        sheet_height=image + bleed * 2,
        left_slot_x=bleed,
        right_slot_x=bleed + image,
        slot_y=bleed if config.slot_y is None else config.slot_y,
        border=config.border_mm * config.points_per_mm,
    )

    wrap = None
    if config.wrap_padding is not None:
        pad = config.wrap_padding
        wrap = WrapGeometry(
            padding=pad,
            wrap_width=sheet.sheet_width + pad * 2,
            wrap_height=sheet.sheet_height + pad * 2,
            offset_x=pad,
            offset_y=pad,
        )
    return sheet, wrap


# ── Page embedding ─────────────────────────────────────────────────────────

def get_page_dimensions(page):
    """Return (x0, y0, width, height) in points from the page's MediaBox."""
    x0, y0, x1, y1 = [float(v) for v in page.mediabox]
    return x0, y0, x1 - x0, y1 - y0


def read_page_content(page_obj):
    if Name.Contents not in page_obj:
        return b""
    contents = page_obj[Name.Contents]
    if isinstance(contents, pikepdf.Array):
        data = b""
        for stream_ref in contents:
            data += stream_ref.read_bytes() + b"\n"
        return data
    return contents.read_bytes()


def page_to_form_xobject(pdf, page):
    """Wrap a page of ``pdf`` in a Form XObject drawn at (0, 0).

    The form's BBox matches the page's MediaBox; its Matrix moves the
    MediaBox origin to (0, 0) so callers only need to scale and translate.
    """
    x0, y0, w, h = get_page_dimensions(page)
    page_obj = page.obj

    form = pikepdf.Stream(pdf, read_page_content(page_obj))
    form[Name.Type] = Name.XObject
    form[Name.Subtype] = Name.Form
    form[Name.BBox] = Array([x0, y0, x0 + w, y0 + h])
    form[Name.Resources] = page_obj.get(Name.Resources, Dictionary())
    form[Name.Matrix] = Array([1, 0, 0, 1, -x0, -y0])
    return form


def embed_pages(target, source, indices):
    """Copy ``source`` pages into ``target`` and return them as Form XObjects.

    The pages are appended to ``target`` only long enough to bring their
    objects across, then removed again; the returned forms (one per index,
    in order) stay owned by ``target``. ``source`` is not modified.
    """
    start = len(target.pages)
    for idx in indices:
        target.pages.append(source.pages[idx])

    forms = [
        page_to_form_xobject(target, target.pages[start + i])
        for i in range(len(indices))
    ]
    del target.pages[start:]
    return forms


# ── Page resolution ────────────────────────────────────────────────────────

def referenced_indices(pairs):
    """Unique non-blank indices in first-seen order."""
    seen = {}
    for pair in pairs:
        for ref in pair.refs():
            if not ref.is_blank:
                seen.setdefault(ref.index, None)
    return list(seen)


def resolve_pages(pairs, source, target):
    """Map every referenced source page index to a Form XObject in ``target``.

    Each index is extracted once, however many pairs reference it.
    """
    indices = referenced_indices(pairs)
    page_count = len(source.pages)
    missing = [i for i in indices if i < 0 or i >= page_count]
    if missing:
        raise PageOutOfRange(missing, page_count)

    forms = embed_pages(target, source, indices)
    logger.debug("Resolved %d unique page(s) out of %d", len(indices), page_count)
    return dict(zip(indices, forms))


# ── Marks ──────────────────────────────────────────────────────────────────

def _line(x1, y1, x2, y2):
    return f"{x1:.4f} {y1:.4f} m {x2:.4f} {y2:.4f} l S"


def _stroke_block(segments, weight=MARK_WEIGHT):
    lines = ["q", f"{weight} w", "0 0 0 RG"]
    lines.extend(_line(*seg) for seg in segments)
    lines.append("Q")
    return "\n".join(lines)


def draw_cut_marks(width, height, bleed, length=MARK_LENGTH):
    """Content-stream operators for the four corner cut marks.

    The top corners keep their 9 pt inward anchor and the 1-2 pt nudges
    as fixed values so output stays comparable with earlier proofs.
    """
    b, w, h, n = bleed, width, height, length
    segments = [
        # bottom left
        (b - n, b, b, b),
        (b, b - n, b, b),
        # bottom right
        (w - b, b, w - b + n, b),
        (w - b, b - n, w - b, b),
        # top left
        (b - n, h - b - 9, b + 1, h - b - 9),
        (b, h - b - n, b, h - b),
        # top right
        (w - b - 2, h - b - 9, w - b + 9, h - b - 9),
        (w - b - 1, h - b - 9, w - b - 1, h - b + 1),
    ]
    return _stroke_block(segments)


def draw_center_mark(image_width, bleed, height, length=MARK_LENGTH):
    """Gutter ticks at the left/right slot boundary, in the bleed area."""
    x = bleed + image_width
    segments = [
        (x, bleed - length, x, bleed),
        (x, height - bleed, x, height - bleed + length),
    ]
    return _stroke_block(segments)


def draw_border(width, height, thickness):
    """Frame around the whole sheet, stroked inside the page edge."""
    half = thickness / 2
    return "\n".join([
        "q",
        f"{thickness:.4f} w",
        "0 0 0 RG",
        f"{half:.4f} {half:.4f} {width - thickness:.4f} {height - thickness:.4f} re S",
        "Q",
    ])


# ── Composition ────────────────────────────────────────────────────────────

def _place_form(name, form, x, y, width, height):
    """Operators drawing ``form`` scaled into the rectangle (x, y, width, height)."""
    bx0, by0, bx1, by1 = [float(v) for v in form[Name.BBox]]
    sx = width / (bx1 - bx0)
    sy = height / (by1 - by0)
    return "\n".join([
        "q",
        f"{sx:.6f} 0 0 {sy:.6f} {x:.4f} {y:.4f} cm",
        f"{name} Do",
        "Q",
    ])


def _new_page(pdf, width, height, content, xobjects, trim_box, bleed_box):
    page = pdf.add_blank_page(page_size=(width, height))
    resources = Dictionary()
    if xobjects:
        xobj_dict = Dictionary()
        for name, form in xobjects.items():
            xobj_dict[name] = form
        resources[Name.XObject] = xobj_dict
    resources[Name.ProcSet] = Array([
        Name.PDF, Name.Text, Name.ImageB, Name.ImageC, Name.ImageI,
    ])
    page.obj[Name.Resources] = resources
    page.obj[Name.Contents] = pikepdf.Stream(pdf, content.encode("latin-1"))
    page.obj[Name.TrimBox] = Array(trim_box)
    page.obj[Name.BleedBox] = Array(bleed_box)
    return page


def compose_spreads(pdf, pairs, page_map, sheet, config):
    """Append one sheet per pair to ``pdf``, in table order.

    ``pdf`` must be the document that owns the forms in ``page_map``; it is
    populated in place and returned.
    """
    w, h, b = sheet.sheet_width, sheet.sheet_height, sheet.bleed
    size = sheet.image_size

    for pair in pairs:
        cl = []
        xobjects = {}
        slots = ((pair.left, sheet.left_slot_x), (pair.right, sheet.right_slot_x))
        for ref, x in slots:
            if ref.is_blank:
                continue
            name = Name(f"/Pg{ref.index}")
            form = page_map[ref.index]
            xobjects[name] = form
            cl.append(_place_form(name, form, x, sheet.slot_y, size, size))

        if sheet.border:
            cl.append(draw_border(w, h, sheet.border))
        if config.cut_marks:
            cl.append(draw_cut_marks(w, h, b, config.mark_length))
        if config.center_mark:
            cl.append(draw_center_mark(size, b, h, config.mark_length))

        _new_page(pdf, w, h, "\n".join(cl), xobjects,
                  trim_box=[b, b, w - b, h - b],
                  bleed_box=[0, 0, w, h])

    logger.debug("Composed %d spread sheet(s) of %.2f x %.2f pt",
                 len(pairs), w, h)
    return pdf


def wrap_spreads(intermediate, sheet, wrap):
    """Centre every sheet of ``intermediate`` on a padded canvas.

    Returns a new document; the intermediate pages are only referenced.
    """
    w, h, b = sheet.sheet_width, sheet.sheet_height, sheet.bleed
    ox, oy = wrap.offset_x, wrap.offset_y
    name = Name("/Spread")

    final = Pdf.new()
    try:
        forms = embed_pages(final, intermediate, range(len(intermediate.pages)))
        for form in forms:
            content = _place_form(name, form, ox, oy, w, h)
            _new_page(final, wrap.wrap_width, wrap.wrap_height, content, {name: form},
                      trim_box=[ox + b, oy + b, ox + w - b, oy + h - b],
                      bleed_box=[ox, oy, ox + w, oy + h])
    except Exception:
        final.close()
        raise
    return final


# ── Pipeline ───────────────────────────────────────────────────────────────

def open_source(data):
    """Open uploaded bytes as a Pdf, raising MissingInput/MalformedDocument."""
    if not data:
        raise MissingInput()
    try:
        return Pdf.open(io.BytesIO(data))
    except pikepdf.PdfError as e:
        logger.warning("Could not parse uploaded PDF: %s", e)
        raise MalformedDocument() from e


def impose(source, pairs=None, config=None):
    """Run resolve -> compose -> wrap on an open source Pdf.

    Returns ``(final, intermediate)``. Both must stay open, together with
    ``source``, until ``final`` has been saved: copied page content is read
    lazily from the documents it came from.
    """
    pairs = DEFAULT_PAIRS if pairs is None else pairs
    config = config or LAYOUTS["bleed"]
    sheet, wrap = compute_geometry(config)

    intermediate = Pdf.new()
    try:
        page_map = resolve_pages(pairs, source, intermediate)
        compose_spreads(intermediate, pairs, page_map, sheet, config)
        final = intermediate if wrap is None else wrap_spreads(intermediate, sheet, wrap)
    except Exception:
        intermediate.close()
        raise
    return final, intermediate


def impose_bytes(data, pairs=None, config=None):
    """Impose spreads from PDF bytes and return the finished PDF as bytes."""
    source = open_source(data)
    try:
        final, intermediate = impose(source, pairs, config)
        try:
            out = io.BytesIO()
            final.save(out, linearize=False)
        finally:
            if final is not intermediate:
                final.close()
            intermediate.close()
    finally:
        source.close()

    logger.info("Imposed %d spread(s) from a %d byte upload",
                len(pairs if pairs is not None else DEFAULT_PAIRS), len(data))
    return out.getvalue()
