"""Document fetcher: download link to bytes on local scoped storage.

Cloud file stores put an HTML "can't scan this file for viruses" page in
front of large files. When the first response is HTML the fetcher pulls the
``confirm`` token out of the page and retries exactly once with the token
appended, so an interstitial page is never handed on as the document.

States: initial request -> (extract token -> retry with token)? -> stream to
disk -> done. Every failure removes whatever was written.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from types import TracebackType
from urllib.parse import unquote

import httpx

from src.errors import DownloadError
from src.models import StageResult

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".pdf"
FALLBACK_FILE_NAME = "downloaded.pdf"
DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_BYTES = 50 * 1024 * 1024

_CHUNK_SIZE = 64 * 1024
_SCOPE_PREFIX = "docrelay-"
_DRIVE_DOWNLOAD_URL = "https://drive.google.com/uc?export=download"

_CONFIRM_TOKEN = re.compile(r"confirm=([0-9A-Za-z_\-]+)")
_DRIVE_FILE_ID = re.compile(r"(?:/d/|[?&]id=)([^/&?#]+)")
_URL_FILE_ID = re.compile(r"[?&]id=([^&#]+)")


@dataclass
class FetchedDocument:
    """A downloaded file that must be released once the send attempt is over."""

    path: Path
    file_name: str
    size_bytes: int
    _released: bool = field(default=False, repr=False)

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Delete the file and its per-invocation directory. Safe to call twice."""
        if self._released:
            return
        self.path.unlink(missing_ok=True)
        shutil.rmtree(self.path.parent, ignore_errors=True)
        self._released = True

    def __enter__(self) -> FetchedDocument:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


# --- Helpers ---


def resolve_download_url(link: str) -> str:
    """Turn a Drive share link, or a bare file id, into a direct download URL."""
    link = link.strip()
    if not link.lower().startswith(("http://", "https://")):
        return f"{_DRIVE_DOWNLOAD_URL}&id={link}"
    if "drive.google.com" in link:
        match = _DRIVE_FILE_ID.search(link)
        if match:
            return f"{_DRIVE_DOWNLOAD_URL}&id={match.group(1)}"
        logger.warning("Drive link has no extractable file id, using as-is: %s", link)
    return link


def is_html(content_type: str | None) -> bool:
    return bool(content_type) and "text/html" in content_type.lower()


def extract_confirm_token(html: str) -> str | None:
    match = _CONFIRM_TOKEN.search(html)
    return match.group(1) if match else None


def _safe_name(name: str | None) -> str | None:
    if not name:
        return None
    base = PurePosixPath(name.replace("\\", "/")).name.strip()
    if base in ("", ".", ".."):
        return None
    return base


def filename_from_disposition(disposition: str | None) -> str | None:
    """Return the filename component from a Content-Disposition header."""

    if not disposition:
        return None
    parts = [segment.strip() for segment in disposition.split(";") if segment.strip()]
    for part in parts:
        lower = part.lower()
        if lower.startswith("filename*="):
            value = part.split("=", 1)[1].strip()
            _, _, encoded = value.partition("''")
            candidate = unquote(encoded or value).strip('"')
            if candidate:
                return candidate
        if lower.startswith("filename="):
            candidate = part.split("=", 1)[1].strip().strip('"')
            if candidate:
                return candidate
    return None


def resolve_file_name(disposition: str | None, url: str) -> str:
    """Header name, else ``<id>.pdf`` from the URL, else the fixed fallback."""
    name = _safe_name(filename_from_disposition(disposition))
    if name:
        return name
    match = _URL_FILE_ID.search(url)
    if match:
        name = _safe_name(f"{unquote(match.group(1))}{DEFAULT_EXTENSION}")
        if name:
            return name
    return FALLBACK_FILE_NAME


# --- Fetcher ---


class DocumentFetcher:
    """Downloads one document per call into its own temporary directory."""

    def __init__(
        self,
        download_dir: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_bytes: int = DEFAULT_MAX_BYTES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._download_dir = download_dir
        self._timeout = timeout
        self._max_bytes = max_bytes
        self._transport = transport

    async def fetch(self, link: str) -> StageResult[FetchedDocument]:
        url = resolve_download_url(link)
        if self._download_dir:
            Path(self._download_dir).mkdir(parents=True, exist_ok=True)
        scope = Path(tempfile.mkdtemp(prefix=_SCOPE_PREFIX, dir=self._download_dir))

        succeeded = False
        try:
            async with httpx.AsyncClient(
                verify=True,
                transport=self._transport,
                timeout=self._timeout,
                follow_redirects=True,
            ) as client:
                document = await asyncio.wait_for(
                    self._download(client, url, scope), timeout=self._timeout,
                )
            succeeded = True
        except DownloadError as exc:
            logger.error("Download failed for %s: %s", url, exc)
            return StageResult.failed(exc)
        except TimeoutError:
            logger.error("Download timed out after %.0fs: %s", self._timeout, url)
            return StageResult.failed(DownloadError("download timed out", url=url))
        except (httpx.HTTPError, OSError) as exc:
            logger.error("Download failed for %s: %s", url, exc)
            return StageResult.failed(DownloadError(f"download failed: {exc}", url=url))
        finally:
            if not succeeded:
                shutil.rmtree(scope, ignore_errors=True)

        logger.info(
            "Downloaded %s (%d bytes) to scoped storage",
            document.file_name, document.size_bytes,
        )
        return StageResult.found(document)

    async def _download(
        self, client: httpx.AsyncClient, url: str, scope: Path,
    ) -> FetchedDocument:
        async with client.stream("GET", url) as response:
            self._check_response(response, url)
            if not is_html(response.headers.get("content-type")):
                return await self._stream_to_disk(response, url, scope)
            logger.warning("Received HTML content. Attempting to extract confirmation token")
            html = await self._read_text(response, url)

        token = extract_confirm_token(html)
        if token is None:
            raise DownloadError("confirmation token missing", url=url)

        logger.info("Retrying download with confirmation token")
        async with client.stream("GET", f"{url}&confirm={token}") as response:
            self._check_response(response, url)
            if is_html(response.headers.get("content-type")):
                raise DownloadError("confirmation page returned after retry", url=url)
            return await self._stream_to_disk(response, url, scope)

    def _check_response(self, response: httpx.Response, url: str) -> None:
        if response.status_code >= 400:
            raise DownloadError(
                f"download returned HTTP {response.status_code}",
                url=url, status_code=response.status_code,
            )
        declared = response.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self._max_bytes:
            raise DownloadError(
                f"document declares {declared} bytes, limit is {self._max_bytes}", url=url,
            )

    async def _read_text(self, response: httpx.Response, url: str) -> str:
        buffer = bytearray()
        async for chunk in response.aiter_bytes():
            buffer.extend(chunk)
            if len(buffer) > self._max_bytes:
                raise DownloadError("confirmation page exceeds size limit", url=url)
        return buffer.decode("utf-8", errors="replace")

    async def _stream_to_disk(
        self, response: httpx.Response, url: str, scope: Path,
    ) -> FetchedDocument:
        file_name = resolve_file_name(response.headers.get("content-disposition"), url)
        path = scope / file_name
        size = 0
        with path.open("wb") as fh:
            async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                size += len(chunk)
                if size > self._max_bytes:
                    raise DownloadError(
                        f"document exceeds {self._max_bytes} bytes", url=url,
                    )
                fh.write(chunk)
        return FetchedDocument(path=path, file_name=file_name, size_bytes=size)
