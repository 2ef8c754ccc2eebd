"""Handler scanning — per-language detection of handler entry points.

``scan_document`` returns a ``HandlerScan``: a lazy, finite, restartable
iterable of ``HandlerCandidate``.  Each ``iter()`` re-runs the language
scanner over the document text, so a scan object can be replayed after
the document snapshot is handed around.

Scanners live in ``SCANNERS`` (language id → generator function).
Unsupported languages yield nothing.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator

from lambda_lens.contracts import HandlerCandidate
from lambda_lens.document import Document

logger = logging.getLogger(__name__)

Scanner = Callable[[Document], Iterator[HandlerCandidate]]


class CancellationToken:
    """Cooperative cancellation flag checked between scan work units."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class HandlerScan:
    """Restartable iterable over the handler candidates of one document."""

    __slots__ = ("_document", "_scanner", "_token")

    def __init__(
        self,
        document: Document,
        scanner: Scanner | None,
        token: CancellationToken | None = None,
    ) -> None:
        self._document = document
        self._scanner = scanner
        self._token = token

    def __iter__(self) -> Iterator[HandlerCandidate]:
        if self._scanner is None:
            return
        for candidate in self._scanner(self._document):
            if self._token is not None and self._token.cancelled:
                logger.debug("[lens:scan] cancelled %s", self._document.path)
                return
            yield candidate


def _python_scanner(document: Document) -> Iterator[HandlerCandidate]:
    from lambda_lens.lang.python_handlers import scan_python
    return scan_python(document)


def _js_scanner(document: Document) -> Iterator[HandlerCandidate]:
    from lambda_lens.lang.js_handlers import scan_javascript
    return scan_javascript(document)


SCANNERS: dict[str, Scanner] = {
    "python": _python_scanner,
    "javascript": _js_scanner,
    "typescript": _js_scanner,
}


def scan_document(
    document: Document,
    language: str | None = None,
    *,
    token: CancellationToken | None = None,
) -> HandlerScan:
    """Return a lazy scan of *document* using the scanner for *language*.

    *language* defaults to the document's own language id.
    """
    lang = language or document.language_id
    scanner = SCANNERS.get(lang)
    if scanner is None:
        logger.debug("[lens:scan] no scanner for language %r", lang)
    return HandlerScan(document, scanner, token)


__all__ = [
    "SCANNERS",
    "CancellationToken",
    "HandlerScan",
    "scan_document",
]
