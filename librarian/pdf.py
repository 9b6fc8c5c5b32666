"""PDF extraction to markdown through the marker command-line tool."""

from __future__ import annotations

import os
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Union

from librarian.domain import Document, ExtractedText, SpanKind, TextSpan

_STDERR_TAIL_LINES = 8


class PdfExtractError(Exception):
    """marker failed or produced no usable output."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"marker: {detail}")
        self.detail = detail


class PdfExtractor:
    """Runs ``marker_single`` once per document and reads back its markdown."""

    name = "extractor-pdf"

    def __init__(self, marker_bin: Optional[Union[str, os.PathLike]] = None) -> None:
        self.marker_bin = Path(marker_bin or os.environ.get("MARKER_BIN", "marker_single"))

    def with_marker_bin(self, path: Union[str, os.PathLike]) -> "PdfExtractor":
        """Use ``path`` as the marker binary; returns this extractor."""
        self.marker_bin = Path(path)
        return self

    def version(self) -> str:
        return "0.2.0-marker"

    def config_hash(self) -> str:
        return "marker-default"

    def extract(self, doc: Document) -> ExtractedText:
        with tempfile.TemporaryDirectory() as tmp:
            result = subprocess.run(
                [
                    str(self.marker_bin),
                    str(doc.path),
                    "--output_dir",
                    tmp,
                    "--disable_image_extraction",
                ],
                capture_output=True,
            )
            if result.returncode != 0:
                stderr = result.stderr.decode("utf-8", errors="replace")
                tail = " | ".join(stderr.splitlines()[-_STDERR_TAIL_LINES:])
                raise PdfExtractError(f"exit {result.returncode}: {tail}")

            stem = doc.path.stem
            body = (Path(tmp) / stem / f"{stem}.md").read_text(encoding="utf-8")

        if not body.strip():
            raise PdfExtractError("empty markdown output")
        length = len(body.encode("utf-8"))
        return ExtractedText(
            spans=[TextSpan(kind=SpanKind.PARAGRAPH, text=body, page=None, byte_range=range(0, length))]
        )