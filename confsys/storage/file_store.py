"""FileStore — paper documents on local disk.

Uploads are classified by their content, never by the client's file name or
content type, and are written under a generated name.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from confsys.services import ServerError

log = structlog.get_logger(__name__)

_ENV_PAPERS_DIR = "CONFSYS_PAPERS_DIR"
_DEFAULT_PAPERS_DIR = "papers"
# session.info key holding documents to remove once the transaction commits
_DISCARD_KEY = "confsys.discarded_documents"

_PDF_MAGIC = b"%PDF-"
# only the head of a document is inspected
_SNIFF_BYTES = 8192
_LATEX_MARKERS = (
    "\\documentclass",
    "\\documentstyle",
    "\\begin{document}",
    "\\usepackage",
    "\\section",
    "\\input{",
)

PDF_EXTENSION = ".pdf"
TEX_EXTENSION = ".tex"


def _looks_like_latex(head: bytes) -> bool:
    if b"\x00" in head:
        return False
    # a multi-byte sequence cut at the sniff boundary is still text
    text = head.decode("utf-8", errors="ignore")
    return any(marker in text for marker in _LATEX_MARKERS)


def detect_extension(content: bytes) -> str | None:
    """Return ``.pdf`` or ``.tex`` for a supported document, None otherwise."""
    head = content[:_SNIFF_BYTES]
    if head.lstrip(b"\xef\xbb\xbf").startswith(_PDF_MAGIC):
        return PDF_EXTENSION
    if _looks_like_latex(head):
        return TEX_EXTENSION
    return None


class FileStore:
    """Stores documents as ``<root>/<generated_name>``.

    Filesystem calls run in a worker thread so request handlers stay
    responsive. Every I/O failure is logged and surfaced as a generic
    :class:`ServerError`.
    """

    def __init__(self, root: str | os.PathLike | None = None) -> None:
        self.root = Path(root or os.getenv(_ENV_PAPERS_DIR, _DEFAULT_PAPERS_DIR))

    def is_supported(self, content: bytes) -> bool:
        return detect_extension(content) is not None

    def extension_of(self, content: bytes) -> str | None:
        return detect_extension(content)

    def _path(self, generated_name: str) -> Path:
        path = self.root / generated_name
        # generated names are UUID strings; anything else never reaches disk
        if path.parent != self.root or generated_name in ("", ".", ".."):
            log.error("file_store.invalid_name", name=generated_name)
            raise ServerError()
        return path

    async def store(self, content: bytes, generated_name: str) -> None:
        path = self._path(generated_name)
        try:
            await asyncio.to_thread(self._store_sync, path, content)
        except OSError:
            log.warning("file_store.store_failed", name=generated_name, exc_info=True)
            raise ServerError()

    def _store_sync(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    async def retrieve(self, generated_name: str) -> bytes:
        """Read a stored document. A missing file is a server fault."""
        path = self._path(generated_name)
        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError:
            log.warning("file_store.retrieve_failed", name=generated_name, exc_info=True)
            raise ServerError()
        log.info("file_store.retrieved", name=generated_name)
        return content

    async def delete(self, generated_name: str) -> bool:
        """Remove a stored document. Returns False if it was already gone."""
        path = self._path(generated_name)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            log.warning("file_store.delete_missing", name=generated_name)
            return False
        except OSError:
            log.warning("file_store.delete_failed", name=generated_name, exc_info=True)
            raise ServerError()
        log.info("file_store.deleted", name=generated_name)
        return True

    def discard_after_commit(self, session: AsyncSession, generated_name: str) -> None:
        """Queue a document for removal once *session* commits.

        A rolled back transaction still references the document, so it must
        stay on disk until :meth:`purge_discarded` runs after the commit.
        """
        session.info.setdefault(_DISCARD_KEY, []).append(generated_name)

    async def purge_discarded(self, session: AsyncSession) -> None:
        """Remove the documents queued on *session*. Call after a successful commit."""
        for name in session.info.pop(_DISCARD_KEY, []):
            try:
                await self.delete(name)
            except ServerError:
                # the commit already happened; the file is left orphaned
                log.warning("file_store.orphaned", name=name)
