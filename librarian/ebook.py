"""EPUB / MOBI extraction through pandoc (and calibre for MOBI), plus markup cleanup."""

from __future__ import annotations

import os
import re
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Union

from librarian.domain import Document, ExtractedText, SpanKind, TextSpan

# Calibre wraps inline code as <span class="kbd ...">; escaped \< may appear inside.
_RX_KBD = re.compile(r'<span class="[^"]*\bkbd\b[^"]*">((?:[^<]|\\<)+?)</span>')
_RX_ANCHOR = re.compile(r'<a\s+href="[^"]*"[^>]*>([^<]+)</a>')
_RX_SPAN = re.compile(r"<span\b[^>]*>([^<]*)</span>")
_RX_EMPTY_ANCHOR = re.compile(r'<span id="[^"]*"></span>')
_RX_DIV_LINE = re.compile(r"^[ \t]*</?div\b[^>]*>[ \t]*$", re.MULTILINE)
_RX_WRAPPER_TAGS = re.compile(r"</?(?:aside|article)\b[^>]*>")
_RX_FIGURE_BLOCK = re.compile(r"<figure\b[^>]*>.*?</figure>", re.DOTALL)
_RX_SVG_BLOCK = re.compile(r"<svg\b[^>]*>.*?</svg>", re.DOTALL)
_RX_IMAGE_TAG = re.compile(r"<(?:image|img)\b[^>]*/?>")
_RX_MCE_FENCE = re.compile(r"^```\s*mce-root\s*$", re.MULTILINE)
_RX_BLANK_RUN = re.compile(r"\n{3,}")

_SPAN_PASSES = 5
_STDERR_TAIL_LINES = 8


def clean(text: str) -> str:
    """Strip the HTML scaffolding pandoc leaves in GFM output of an ebook."""
    s = _RX_KBD.sub(r"`\1`", text)
    s = _RX_ANCHOR.sub(r"\1", s)
    s = _RX_WRAPPER_TAGS.sub("", s)

    for _ in range(_SPAN_PASSES):
        stripped = _RX_SPAN.sub(r"\1", s)
        if stripped == s:
            break
        s = stripped
    s = _RX_EMPTY_ANCHOR.sub("", s)

    s = _RX_DIV_LINE.sub("", s)

    s = _RX_FIGURE_BLOCK.sub("", s)
    s = _RX_SVG_BLOCK.sub("", s)
    s = _RX_IMAGE_TAG.sub("", s)

    s = _RX_MCE_FENCE.sub("```", s)
    return _RX_BLANK_RUN.sub("\n\n", s)


class EbookExtractError(Exception):
    """Base for ebook extraction failures."""


class PandocError(EbookExtractError):
    """pandoc failed or produced unreadable output."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"pandoc: {detail}")
        self.detail = detail


class CalibreError(EbookExtractError):
    """ebook-convert failed."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"ebook-convert: {detail}")
        self.detail = detail


class UnsupportedExtensionError(EbookExtractError):
    """The file extension is not an ebook format this extractor handles."""

    def __init__(self, extension: str) -> None:
        super().__init__(f"unsupported extension: {extension}")
        self.extension = extension


class EmptyOutputError(EbookExtractError):
    """Extraction produced no text."""

    def __init__(self) -> None:
        super().__init__("empty extracted output")


def _failure_detail(result: subprocess.CompletedProcess) -> str:
    stderr = result.stderr.decode("utf-8", errors="replace")
    tail = " | ".join(stderr.splitlines()[-_STDERR_TAIL_LINES:])
    return f"exit {result.returncode}: {tail}"


class EbookExtractor:
    """EPUB goes straight to pandoc; MOBI/AZW is first converted to EPUB by calibre."""

    name = "extractor-ebook"

    def __init__(
        self,
        pandoc_bin: Optional[Union[str, os.PathLike]] = None,
        ebook_convert_bin: Optional[Union[str, os.PathLike]] = None,
    ) -> None:
        self.pandoc_bin = Path(pandoc_bin or os.environ.get("PANDOC_BIN", "pandoc"))
        self.ebook_convert_bin = Path(
            ebook_convert_bin or os.environ.get("EBOOK_CONVERT_BIN", "ebook-convert")
        )

    def version(self) -> str:
        return "0.1.0-pandoc-clean"

    def config_hash(self) -> str:
        return "pandoc-gfm+clean-v1"

    def extract(self, doc: Document) -> ExtractedText:
        ext = doc.path.suffix[1:].lower()
        if ext == "epub":
            markdown = self._pandoc_to_md(doc.path)
        elif ext in ("mobi", "azw3", "azw"):
            with tempfile.TemporaryDirectory() as tmp:
                epub_path = Path(tmp) / "converted.epub"
                self._calibre_to_epub(doc.path, epub_path)
                markdown = self._pandoc_to_md(epub_path)
        else:
            raise UnsupportedExtensionError(ext)

        body = clean(markdown)
        if not body.strip():
            raise EmptyOutputError()
        length = len(body.encode("utf-8"))
        return ExtractedText(
            spans=[TextSpan(kind=SpanKind.PARAGRAPH, text=body, page=None, byte_range=range(0, length))]
        )

    def _pandoc_to_md(self, epub: Path) -> str:
        result = subprocess.run(
            [str(self.pandoc_bin), "-f", "epub", "-t", "gfm", "--wrap=none", str(epub)],
            capture_output=True,
        )
        if result.returncode != 0:
            raise PandocError(_failure_detail(result))
        try:
            return result.stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PandocError(f"non-UTF-8 pandoc output: {exc}") from exc

    def _calibre_to_epub(self, src: Path, dst: Path) -> None:
        result = subprocess.run(
            [str(self.ebook_convert_bin), str(src), str(dst)],
            capture_output=True,
        )
        if result.returncode != 0:
            raise CalibreError(_failure_detail(result))