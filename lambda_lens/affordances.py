"""Affordance generator — handler candidates to run/debug/configure items.

Per candidate, in discovery order:

* ``run``        — always
* ``debug``      — only for languages in the debug-support policy table
* ``configure``  — only when the handler name is well formed

A document outside every workspace folder fails the whole call with
``WorkspaceResolutionError``.  An invalid handler name only drops that
handler's configure item; it is logged, not raised.
"""

from __future__ import annotations

import logging
from typing import Iterable

from lambda_lens.contracts import (
    Affordance,
    AffordanceAction,
    HandlerCandidate,
    SourceRange,
    WorkspaceFolder,
)
from lambda_lens.document import Document
from lambda_lens.errors import HandlerNameValidationError
from lambda_lens.handler_config import validate_handler_name
from lambda_lens.workspace import WorkspaceResolver, require_workspace_folder

logger = logging.getLogger(__name__)

CONFIGURE_COMMAND = "lambda.configure"

TITLES: dict[AffordanceAction, str] = {
    AffordanceAction.RUN: "Run Locally",
    AffordanceAction.DEBUG: "Debug Locally",
    AffordanceAction.CONFIGURE: "Configure",
}

# Languages whose local invocations can attach a debugger.
DEBUG_SUPPORTED: set[str] = {"javascript"}


def register_debug_support(language: str) -> None:
    DEBUG_SUPPORTED.add(language)


def supports_debug(language: str) -> bool:
    return language in DEBUG_SUPPORTED


def get_invoke_cmd_key(language: str) -> str:
    return f"lambda.local.invoke.{language}"


def make_affordances(
    document: Document,
    candidates: Iterable[HandlerCandidate],
    language: str,
    resolver: WorkspaceResolver,
) -> list[Affordance]:
    """Build affordances for every candidate of *document*.

    Raises ``WorkspaceResolutionError`` if *document* is outside every
    workspace folder.
    """
    affordances: list[Affordance] = []

    for candidate in candidates:
        rng = document.normalize_range(candidate.range)
        workspace_folder = require_workspace_folder(resolver, document)

        def _make(action: AffordanceAction) -> Affordance:
            return _affordance(
                document, candidate.handler_name, rng, workspace_folder, language, action,
            )

        affordances.append(_make(AffordanceAction.RUN))
        if supports_debug(language):
            affordances.append(_make(AffordanceAction.DEBUG))

        try:
            validate_handler_name(candidate.handler_name)
        except HandlerNameValidationError as exc:
            logger.error(
                "[lens:affordance] no 'configure' item for handler '%s': %s",
                candidate.handler_name, exc,
            )
            continue
        affordances.append(_make(AffordanceAction.CONFIGURE))

    return affordances


def _affordance(
    document: Document,
    handler_name: str,
    rng: SourceRange,
    workspace_folder: WorkspaceFolder,
    language: str,
    action: AffordanceAction,
) -> Affordance:
    command = (
        CONFIGURE_COMMAND if action is AffordanceAction.CONFIGURE
        else get_invoke_cmd_key(language)
    )
    return Affordance(
        document_uri=document.uri,
        handler_name=handler_name,
        range=rng,
        workspace_folder=workspace_folder,
        language=language,
        action=action,
        command=command,
        title=TITLES[action],
    )


__all__ = [
    "CONFIGURE_COMMAND",
    "DEBUG_SUPPORTED",
    "TITLES",
    "get_invoke_cmd_key",
    "make_affordances",
    "register_debug_support",
    "supports_debug",
]
