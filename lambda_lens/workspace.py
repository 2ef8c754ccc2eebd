"""Workspace resolver — maps a document to the workspace folder that owns it.

The host editor normally answers this question; ``FolderResolver`` is the
plain implementation over a list of root folders.  When folders nest, the
deepest containing folder wins.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from lambda_lens.contracts import WorkspaceFolder
from lambda_lens.document import Document
from lambda_lens.errors import WorkspaceResolutionError

logger = logging.getLogger(__name__)


class WorkspaceResolver(Protocol):
    def resolve(self, document: Document) -> WorkspaceFolder | None: ...


class FolderResolver:
    """Resolve documents against a fixed set of workspace root folders.

    Usage::

        resolver = FolderResolver(["/work/api", "/work/web"])
        folder = resolver.resolve(Document.from_path("/work/api/app.py"))
    """

    def __init__(self, roots: list[str | Path]) -> None:
        self._folders: list[WorkspaceFolder] = []
        for idx, root in enumerate(roots):
            p = Path(root).resolve()
            self._folders.append(WorkspaceFolder(name=p.name, path=str(p), index=idx))

    @property
    def folders(self) -> list[WorkspaceFolder]:
        return list(self._folders)

    def resolve(self, document: Document) -> WorkspaceFolder | None:
        best: WorkspaceFolder | None = None
        best_depth = -1
        for folder in self._folders:
            root = Path(folder.path)
            if document.path == root or root in document.path.parents:
                depth = len(root.parts)
                if depth > best_depth:
                    best, best_depth = folder, depth
        return best


def require_workspace_folder(
    resolver: WorkspaceResolver, document: Document
) -> WorkspaceFolder:
    """Return the owning folder or raise ``WorkspaceResolutionError``."""
    folder = resolver.resolve(document)
    if folder is None:
        logger.error("[lens:workspace] %s is outside every workspace folder", document.uri)
        raise WorkspaceResolutionError(document.uri)
    return folder


__all__ = [
    "FolderResolver",
    "WorkspaceResolver",
    "require_workspace_folder",
]
