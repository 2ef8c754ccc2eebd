"""Document provider — text buffer, language id and position/offset mapping.

A ``Document`` is the only view the scanner and affordance generator have
of a source file.  It exposes the full text, the language identifier and
the conversions between editor positions and absolute character offsets.
"""

from __future__ import annotations

import bisect
from pathlib import Path

from lambda_lens.contracts import (
    Position,
    PositionRange,
    RangeLike,
    SourceRange,
)

# ---------------------------------------------------------------------------
# Language detection
# ---------------------------------------------------------------------------

_EXTENSION_LANGUAGE: dict[str, str] = {
    ".py": "python",
    ".pyw": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
}


def detect_language(path: str) -> str:
    """Detect language identifier from file extension.

    Returns ``"unknown"`` for unrecognised extensions.
    """
    return _EXTENSION_LANGUAGE.get(Path(path).suffix.lower(), "unknown")


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


class Document:
    """Immutable snapshot of a source file's text."""

    __slots__ = ("path", "text", "language_id", "_line_starts")

    def __init__(self, path: str | Path, text: str, language_id: str | None = None) -> None:
        self.path = Path(path).resolve()
        self.text = text
        self.language_id = language_id or detect_language(str(path))
        self._line_starts: list[int] | None = None

    @classmethod
    def from_path(cls, path: str | Path, language_id: str | None = None) -> "Document":
        """Read *path* from disk (UTF-8) into a document snapshot."""
        p = Path(path)
        return cls(p, p.read_text(encoding="utf-8"), language_id)

    @property
    def uri(self) -> str:
        return self.path.as_uri()

    @property
    def stem(self) -> str:
        """File name without extension — the module part of a handler name."""
        return self.path.stem

    def __len__(self) -> int:
        return len(self.text)

    def __repr__(self) -> str:
        return f"Document({str(self.path)!r}, language_id={self.language_id!r})"

    # ------------------------------------------------------------------
    # Position <-> offset
    # ------------------------------------------------------------------

    @property
    def line_starts(self) -> list[int]:
        if self._line_starts is None:
            starts = [0]
            for idx, ch in enumerate(self.text):
                if ch == "\n":
                    starts.append(idx + 1)
            self._line_starts = starts
        return self._line_starts

    def position_at(self, offset: int) -> Position:
        """Convert an absolute offset to a line/character position.

        Offsets outside ``[0, len(text)]`` are clamped.
        """
        offset = max(0, min(offset, len(self.text)))
        line = bisect.bisect_right(self.line_starts, offset) - 1
        return Position(line=line, character=offset - self.line_starts[line])

    def offset_at(self, position: Position) -> int:
        """Convert a line/character position to an absolute offset.

        Lines past the end clamp to the end of the text; characters past
        the end of a line clamp to that line's end.
        """
        starts = self.line_starts
        if position.line >= len(starts):
            return len(self.text)
        line_start = starts[position.line]
        if position.line + 1 < len(starts):
            line_end = starts[position.line + 1] - 1  # before the newline
        else:
            line_end = len(self.text)
        return min(line_start + position.character, line_end)

    def to_position_range(self, rng: SourceRange) -> PositionRange:
        return PositionRange(
            start=self.position_at(rng.position_start),
            end=self.position_at(rng.position_end),
        )

    def normalize_range(self, rng: RangeLike) -> SourceRange:
        """Canonicalise either range shape into absolute offsets."""
        if isinstance(rng, SourceRange):
            return rng
        return SourceRange(
            position_start=self.offset_at(rng.start),
            position_end=self.offset_at(rng.end),
        )

    def text_in(self, rng: RangeLike) -> str:
        r = self.normalize_range(rng)
        return self.text[r.position_start:r.position_end]


__all__ = [
    "Document",
    "detect_language",
]
