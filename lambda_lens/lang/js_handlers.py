"""JavaScript / TypeScript handler detection — regex-based export outline.

Recognised top-level exports (column 0 only)::

    exports.NAME = function (event, context) { ... }
    module.exports.NAME = async (event) => { ... }
    export async function NAME(event, context, callback) { ... }
    export const NAME = async event => { ... }

An export counts as a handler when its value is a function taking at most
three parameters (``event, context, callback``).  The fully-qualified name
is ``<file stem>.<NAME>``.

Matching runs over a copy of the text with comments and string contents
blanked, so commented-out exports are not reported.

An export whose parameter list never closes is a malformed construct: it
is logged and skipped, and scanning continues with the next export.
"""

from __future__ import annotations

import logging
import re
from typing import Iterator

from lambda_lens.contracts import HandlerCandidate, SourceRange
from lambda_lens.document import Document
from lambda_lens.errors import ScanError

logger = logging.getLogger(__name__)

MAX_HANDLER_PARAMS = 3

_IDENT = r"[A-Za-z_$][A-Za-z0-9_$]*"

# exports.NAME = ... / module.exports.NAME = ...
_ASSIGN_EXPORT_RE = re.compile(
    rf"^(?P<head>(?:module\.)?exports\.(?P<name>{_IDENT}))\s*=\s*",
    re.MULTILINE,
)

# export [default] [async] function [*] NAME
_FUNCTION_EXPORT_RE = re.compile(
    rf"^(?P<head>export\s+(?:default\s+)?(?:async\s+)?function\s*\*?\s*(?P<name>{_IDENT}))\s*",
    re.MULTILINE,
)

# export const|let|var NAME [: Type] =
_BINDING_EXPORT_RE = re.compile(
    rf"^(?P<head>export\s+(?:const|let|var)\s+(?P<name>{_IDENT}))\s*(?::[^=\n]+)?=(?!=)\s*",
    re.MULTILINE,
)

_ASYNC_RE = re.compile(r"async\s+")
_FUNCTION_EXPR_RE = re.compile(rf"function\s*\*?\s*(?:{_IDENT})?\s*")
_SINGLE_PARAM_ARROW_RE = re.compile(rf"{_IDENT}\s*=>")
_ARROW_AFTER_PARAMS_RE = re.compile(r"\s*(?::[^=\n{]+)?=>")
_TYPE_PARAMS_RE = re.compile(r"<[^()]*?>\s*")

_OPENERS = "([{"
_CLOSERS = ")]}"


def scan_javascript(document: Document) -> Iterator[HandlerCandidate]:
    """Yield handler candidates found in a JS/TS document, in source order."""
    if not document.text.strip():
        return
    source = mask_comments_and_strings(document.text)

    matches: list[tuple[re.Match[str], str]] = []
    for m in _ASSIGN_EXPORT_RE.finditer(source):
        matches.append((m, "value"))
    for m in _BINDING_EXPORT_RE.finditer(source):
        matches.append((m, "value"))
    for m in _FUNCTION_EXPORT_RE.finditer(source):
        matches.append((m, "declaration"))
    matches.sort(key=lambda pair: pair[0].start())

    for m, form in matches:
        try:
            param_count = _handler_param_count(source, m.end(), form, document)
        except ScanError as exc:
            logger.warning("[lens:scan] skipping malformed export: %s", exc)
            continue
        if param_count is None or param_count > MAX_HANDLER_PARAMS:
            continue
        yield HandlerCandidate(
            handler_name=f"{document.stem}.{m.group('name')}",
            range=SourceRange(position_start=m.start("head"), position_end=m.end("name")),
        )


def mask_comments_and_strings(source: str) -> str:
    """Blank out comments and string contents, keeping offsets and newlines.

    Comments vanish entirely; string and template literals keep their
    quote characters with the contents replaced by spaces.  Regex
    literals are not recognised.
    """
    out = list(source)
    i, n = 0, len(source)
    while i < n:
        if source.startswith("//", i):
            end = source.find("\n", i)
            end = n if end == -1 else end
            _blank(out, i, end)
            i = end
            continue
        if source.startswith("/*", i):
            end = source.find("*/", i + 2)
            end = n if end == -1 else end + 2
            _blank(out, i, end)
            i = end
            continue
        ch = source[i]
        if ch in "'\"`":
            j = i + 1
            while j < n and source[j] != ch:
                if source[j] == "\\":
                    j += 2
                    continue
                if source[j] == "\n" and ch != "`":
                    break
                j += 1
            _blank(out, i + 1, min(j, n))
            i = j + 1
            continue
        i += 1
    return "".join(out)


def _blank(out: list[str], start: int, end: int) -> None:
    for k in range(start, end):
        if out[k] != "\n":
            out[k] = " "


def _handler_param_count(
    source: str, pos: int, form: str, document: Document
) -> int | None:
    """Return the parameter count of the function at *pos*, or ``None``
    when the exported value is not a function.
    """
    if form == "declaration":
        tp = _TYPE_PARAMS_RE.match(source, pos)
        if tp:
            pos = tp.end()
        if pos >= len(source) or source[pos] != "(":
            return None
        params, _ = _read_params(source, pos, document)
        return params

    a = _ASYNC_RE.match(source, pos)
    if a:
        pos = a.end()

    fn = _FUNCTION_EXPR_RE.match(source, pos)
    if fn:
        pos = fn.end()
        tp = _TYPE_PARAMS_RE.match(source, pos)
        if tp:
            pos = tp.end()
        if pos >= len(source) or source[pos] != "(":
            return None
        params, _ = _read_params(source, pos, document)
        return params

    if _SINGLE_PARAM_ARROW_RE.match(source, pos):
        return 1

    tp = _TYPE_PARAMS_RE.match(source, pos)
    if tp:
        pos = tp.end()
    if pos < len(source) and source[pos] == "(":
        params, close = _read_params(source, pos, document)
        if _ARROW_AFTER_PARAMS_RE.match(source, close + 1):
            return params
    return None


def _read_params(source: str, open_idx: int, document: Document) -> tuple[int, int]:
    """Count top-level parameters in the list opening at *open_idx*.

    Returns ``(count, index of the closing paren)``.
    Raises ``ScanError`` when the list is never closed.
    """
    depth = 0
    count = 0
    has_content = False
    quote: str | None = None
    i = open_idx
    while i < len(source):
        ch = source[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "'\"`":
            quote = ch
            has_content = True
        elif ch in _OPENERS:
            depth += 1
            if depth > 1:
                has_content = True
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                return (count + 1 if has_content else count), i
        elif ch == "," and depth == 1:
            if has_content:
                count += 1
            has_content = False
        elif not ch.isspace() and depth >= 1:
            has_content = True
        i += 1

    line = source.count("\n", 0, open_idx) + 1
    raise ScanError(str(document.path), line, "unterminated parameter list")


__all__ = [
    "MAX_HANDLER_PARAMS",
    "mask_comments_and_strings",
    "scan_javascript",
]
