"""Python handler detection — ``ast``-based.

A handler is a module-level ``def`` / ``async def`` taking exactly two
positional parameters (``event, context``).  Its fully-qualified name is
``<file stem>.<function>``, e.g. ``app.handler`` for ``app.py``.

When the file does not parse as a whole, the source is split into
top-level blocks and each block is parsed on its own, so one malformed
statement only costs the handlers inside that block.
"""

from __future__ import annotations

import ast
import logging
import re
from typing import Iterator

from lambda_lens.contracts import HandlerCandidate, SourceRange
from lambda_lens.document import Document
from lambda_lens.errors import ScanError

logger = logging.getLogger(__name__)

HANDLER_PARAM_COUNT = 2

# Column-0 lines that continue the previous compound statement.
_CONTINUATION_RE = re.compile(r"^(?:else|elif|except|finally|case)\b|^[)\]}]")

_BLOCK_KEYWORD_RE = re.compile(r"^(?:@|(?:async\s+)?def\s|class\s)")


def scan_python(document: Document) -> Iterator[HandlerCandidate]:
    """Yield handler candidates found in a Python document."""
    source = document.text
    if not source.strip():
        return

    try:
        tree = ast.parse(source)
    except SyntaxError:
        logger.debug("[lens:scan] %s does not parse, scanning block by block", document.path)
        yield from _scan_blocks(document)
        return

    yield from _candidates_from_body(document, tree.body)


def _scan_blocks(document: Document) -> Iterator[HandlerCandidate]:
    lines = document.text.splitlines(keepends=True)
    for start_line, block in split_top_level_blocks(lines):
        try:
            tree = _parse_block(document, start_line, block)
        except ScanError as exc:
            logger.warning("[lens:scan] skipping malformed block: %s", exc)
            continue
        ast.increment_lineno(tree, start_line)
        yield from _candidates_from_body(document, tree.body)


def _parse_block(document: Document, start_line: int, block: str) -> ast.Module:
    try:
        return ast.parse(block)
    except SyntaxError as exc:
        raise ScanError(str(document.path), start_line + (exc.lineno or 1), exc.msg) from exc


def split_top_level_blocks(lines: list[str]) -> list[tuple[int, str]]:
    """Group source lines into top-level statements.

    Returns ``(zero-based start line, block text)`` pairs.  A block starts
    at every column-0 line, except for continuation keywords
    (``else``/``except``/...), the line after a decorator, and lines that
    open inside a string, a bracket or a backslash continuation.
    """
    blocks: list[tuple[int, list[str]]] = []
    for idx, (line, inside) in enumerate(zip(lines, _opens_inside(lines))):
        starts_block = (
            not inside
            and bool(line.strip())
            and not line[0].isspace()
            and not line.startswith("#")
            and not _CONTINUATION_RE.match(line)
        )
        if starts_block and blocks and not _only_decorators(blocks[-1][1]):
            blocks.append((idx, [line]))
        elif not blocks:
            blocks.append((idx, [line]))
        else:
            blocks[-1][1].append(line)
    return [(start, "".join(body)) for start, body in blocks]


def _opens_inside(lines: list[str]) -> Iterator[bool]:
    """Yield, per line, whether it begins inside an open construct.

    Tracks string delimiters, bracket depth and trailing backslashes.  A
    column-0 ``def``/``class``/decorator outside any string drops the
    bracket depth, so one unclosed bracket cannot swallow the rest of
    the file.
    """
    quote: str | None = None
    depth = 0
    continued = False
    for line in lines:
        if quote is None and depth and _BLOCK_KEYWORD_RE.match(line):
            depth = 0
        yield quote is not None or depth > 0 or continued

        body = line.rstrip("\r\n")
        i = 0
        comment = False
        while i < len(body):
            ch = body[i]
            if quote:
                if ch == "\\":
                    i += 2
                    continue
                if body.startswith(quote, i):
                    i += len(quote)
                    quote = None
                    continue
            elif ch == "#":
                comment = True
                break
            elif ch in "'\"":
                quote = ch * 3 if body.startswith(ch * 3, i) else ch
                i += len(quote)
                continue
            elif ch in "([{":
                depth += 1
            elif ch in ")]}":
                depth = max(0, depth - 1)
            i += 1

        continued = not comment and body.endswith("\\")
        # single-quoted strings end at the line break unless escaped
        if quote is not None and len(quote) == 1 and not continued:
            quote = None


def _only_decorators(block: list[str]) -> bool:
    code = [ln for ln in block if ln.strip() and not ln.lstrip().startswith("#")]
    return bool(code) and all(ln.startswith("@") for ln in code)


def _candidates_from_body(
    document: Document, body: list[ast.stmt]
) -> Iterator[HandlerCandidate]:
    for node in body:
        if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        params = node.args.posonlyargs + node.args.args
        if len(params) != HANDLER_PARAM_COUNT:
            continue
        rng = _def_range(document, node)
        if rng is None:
            logger.warning(
                "[lens:scan] could not locate 'def %s' in %s", node.name, document.path
            )
            continue
        yield HandlerCandidate(handler_name=f"{document.stem}.{node.name}", range=rng)


def _def_range(
    document: Document, node: ast.FunctionDef | ast.AsyncFunctionDef
) -> SourceRange | None:
    """Offsets from the ``def``/``async`` keyword to the end of the name."""
    line_idx = node.lineno - 1
    starts = document.line_starts
    if line_idx >= len(starts):
        return None
    line_start = starts[line_idx]
    line_end = starts[line_idx + 1] if line_idx + 1 < len(starts) else len(document.text)
    line_text = document.text[line_start:line_end]

    # ast reports UTF-8 byte columns
    col = len(line_text.encode("utf-8")[:node.col_offset].decode("utf-8", errors="ignore"))
    m = re.compile(rf"(?:async\s+)?def\s+{re.escape(node.name)}\b").match(line_text, col)
    if m is None:
        return None
    return SourceRange(position_start=line_start + m.start(), position_end=line_start + m.end())


__all__ = [
    "HANDLER_PARAM_COUNT",
    "scan_python",
    "split_top_level_blocks",
]
