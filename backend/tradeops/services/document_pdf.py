from __future__ import annotations

import textwrap
from html.parser import HTMLParser
from typing import Iterable

# A4: 595 x 842 points
PAGE_W = 595
PAGE_H = 842
MARGIN = 50
LINE_HEIGHT = 14
FONT_SIZE = 10
WRAP_CHARS = 95
LINES_PER_PAGE = (PAGE_H - 2 * MARGIN) // LINE_HEIGHT

_BLOCK_TAGS = {
    "p", "div", "br", "tr", "li", "table", "thead", "tbody", "section",
    "h1", "h2", "h3", "h4", "h5", "h6", "hr", "ul", "ol", "header", "footer",
}
_CELL_TAGS = {"td", "th"}
_SKIP_TAGS = {"style", "script", "head", "title"}
_VOID_TAGS = {"br", "hr", "img", "meta", "link", "input", "col"}


class _PagedTextParser(HTMLParser):
    """
    Flatten rendered document HTML into text lines, one block per element
    carrying the ``page`` class. Layout and styling are dropped.
    """

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.pages: list[list[str]] = [[]]
        self._line: list[str] = []
        self._stack: list[tuple[str, bool]] = []
        self._skip_depth = 0
        self._break_pending = False

    def _flush_line(self) -> None:
        text = " ".join("".join(self._line).split())
        self._line = []
        if not text:
            return
        if self._break_pending and self.pages[-1]:
            self.pages.append([])
        self._break_pending = False
        self.pages[-1].append(text)

    def _start_page(self) -> None:
        self._flush_line()
        if self.pages[-1]:
            self.pages.append([])
        self._break_pending = False

    def handle_starttag(self, tag: str, attrs):
        tag = tag.lower()
        if tag in _SKIP_TAGS:
            self._skip_depth += 1
            return
        classes = (dict(attrs).get("class") or "").split()
        is_page = "page" in classes
        if is_page:
            self._start_page()
        elif tag in _BLOCK_TAGS:
            self._flush_line()
        elif tag in _CELL_TAGS and self._line:
            self._line.append("  ")
        if tag not in _VOID_TAGS:
            self._stack.append((tag, is_page))

    def handle_endtag(self, tag: str):
        tag = tag.lower()
        if tag in _SKIP_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)
            return
        if tag in _BLOCK_TAGS:
            self._flush_line()
        if not any(open_tag == tag for open_tag, _ in self._stack):
            return
        while self._stack:
            open_tag, is_page = self._stack.pop()
            if is_page:
                self._flush_line()
                self._break_pending = True
            if open_tag == tag:
                break

    def handle_data(self, data: str):
        if self._skip_depth:
            return
        self._line.append(data)

    def close(self) -> None:
        super().close()
        self._flush_line()


def html_to_page_blocks(html: str) -> list[list[str]]:
    parser = _PagedTextParser()
    parser.feed(html or "")
    parser.close()
    return [page for page in parser.pages if page] or [[]]


def paginate(blocks: Iterable[list[str]], *, lines_per_page: int = LINES_PER_PAGE) -> list[list[str]]:
    """Wrap long lines and split each block over as many PDF pages as it needs."""

    pages: list[list[str]] = []
    for block in blocks:
        wrapped: list[str] = []
        for line in block:
            wrapped.extend(textwrap.wrap(line, width=WRAP_CHARS) or [""])
        if not wrapped:
            pages.append([])
            continue
        for start in range(0, len(wrapped), lines_per_page):
            pages.append(wrapped[start:start + lines_per_page])
    return pages or [[]]


def _escape_pdf_literal_string(text: str) -> str:
    # PDF literal string escaping for (), \.
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _latin1(text: str) -> str:
    return str(text).encode("latin-1", errors="replace").decode("latin-1")


def _page_stream(lines: list[str], footer: str | None) -> bytes:
    content_lines: list[str] = ["BT", f"/F1 {FONT_SIZE} Tf", f"{MARGIN} {PAGE_H - MARGIN} Td"]
    for idx, line in enumerate(lines):
        text = _escape_pdf_literal_string(_latin1(line))
        if idx == 0:
            content_lines.append(f"({text}) Tj")
        else:
            content_lines.append(f"0 -{LINE_HEIGHT} Td ({text}) Tj")
    content_lines.append("ET")

    if footer:
        content_lines.extend(
            [
                "BT",
                "/F1 8 Tf",
                f"{MARGIN} {MARGIN - 20} Td ({_escape_pdf_literal_string(_latin1(footer))}) Tj",
                "ET",
            ]
        )
    return ("\n".join(content_lines) + "\n").encode("latin-1")


def build_text_pdf_bytes(pages: list[list[str]], *, footer: str | None = None) -> bytes:
    """Build a deterministic multi-page PDF of plain text lines.

    Notes:
    - No wall-clock timestamps or random IDs.
    - Uses Base14 Helvetica (no embedded fonts).
    - Text is encoded as latin-1 with replacement.
    - ``footer`` may contain ``{page}`` and ``{pages}``.
    """

    pages = pages or [[]]
    n_pages = len(pages)

    # Object layout: 1 catalog, 2 pages, 3 font, then (page, content) pairs.
    page_obj_nums = [4 + 2 * i for i in range(n_pages)]

    parts: list[bytes] = [b"%PDF-1.4\n"]
    offsets: list[int] = [0]  # xref object 0

    def _emit(obj_num: int, body: bytes) -> None:
        offsets.append(sum(len(p) for p in parts))
        parts.append(f"{obj_num} 0 obj\n".encode("ascii"))
        parts.append(body)
        if not body.endswith(b"\n"):
            parts.append(b"\n")
        parts.append(b"endobj\n")

    _emit(1, b"<< /Type /Catalog /Pages 2 0 R >>\n")
    kids = " ".join(f"{n} 0 R" for n in page_obj_nums)
    _emit(2, f"<< /Type /Pages /Kids [{kids}] /Count {n_pages} >>\n".encode("ascii"))
    _emit(3, b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>\n")

    for idx, lines in enumerate(pages):
        page_num = page_obj_nums[idx]
        page_footer = footer.format(page=idx + 1, pages=n_pages) if footer else None
        stream = _page_stream(lines, page_footer)
        _emit(
            page_num,
            (
                f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 {PAGE_W} {PAGE_H}] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {page_num + 1} 0 R >>\n"
            ).encode("ascii"),
        )
        _emit(
            page_num + 1,
            f"<< /Length {len(stream)} >>\nstream\n".encode("ascii") + stream + b"endstream\n",
        )

    xref_start = sum(len(p) for p in parts)
    parts.append(b"xref\n")
    parts.append(f"0 {len(offsets)}\n".encode("ascii"))
    parts.append(b"0000000000 65535 f \n")
    for off in offsets[1:]:
        parts.append(f"{off:010d} 00000 n \n".encode("ascii"))

    parts.append(b"trailer\n")
    parts.append(f"<< /Size {len(offsets)} /Root 1 0 R >>\n".encode("ascii"))
    parts.append(b"startxref\n")
    parts.append(f"{xref_start}\n".encode("ascii"))
    parts.append(b"%%EOF\n")

    return b"".join(parts)


def render_html_to_pdf(html: str, *, footer: str | None = "Page {page} of {pages}") -> bytes:
    return build_text_pdf_bytes(paginate(html_to_page_blocks(html)), footer=footer)
