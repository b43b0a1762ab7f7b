"""
Ingestion sources: zip archives and GitHub repositories.
"""

from __future__ import annotations

import base64
import io
import posixpath
import re
import zipfile
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from legacylens.core.config import GitHubSettings, settings
from legacylens.core.constants import SUPPORTED_EXTENSIONS
from legacylens.core.exceptions import IngestionSourceError, InvalidRequestError, ValidationError
from legacylens.core.logging import get_logger

logger = get_logger(__name__)

_REPO_URL_RE = re.compile(
    r"^(?:https?://(?:www\.)?github\.com/)?(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?/?$"
)


@dataclass(frozen=True)
class SourceFile:
    """One source file to be chunked."""

    path: str
    content: str
    language: str


def language_for(path: str) -> Optional[str]:
    """Language tag of a supported file (its extension), None if unsupported."""
    extension = posixpath.splitext(path)[1].lower()
    if extension not in SUPPORTED_EXTENSIONS:
        return None
    return extension.lstrip(".")


def extract_archive(data: bytes) -> list[SourceFile]:
    """
    Read supported source files out of a zip archive.

    Raises:
        ValidationError: Not a zip archive, or no supported files inside
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise ValidationError("Uploaded file is not a valid zip archive") from e

    files = []
    with archive:
        for info in archive.infolist():
            if info.is_dir() or info.filename.startswith("__MACOSX/"):
                continue
            language = language_for(info.filename)
            if language is None:
                continue
            content = archive.read(info).decode("utf-8", errors="replace")
            files.append(SourceFile(path=info.filename, content=content, language=language))

    if not files:
        raise ValidationError(
            "No supported source files found in archive",
            details={"supported_extensions": list(SUPPORTED_EXTENSIONS)},
        )

    logger.info("Archive extracted", files=len(files))
    return files


def parse_repo_url(repo_url: str) -> tuple[str, str]:
    """
    Split a GitHub URL (or ``owner/repo``) into owner and repository name.

    Raises:
        InvalidRequestError: The URL does not name a repository
    """
    match = _REPO_URL_RE.match(repo_url.strip())
    if not match:
        raise InvalidRequestError(f"Invalid GitHub repository URL: {repo_url}", field="repo_url")
    return match.group("owner"), match.group("repo")


class GitHubSource:
    """
    Fetches supported source files from a GitHub repository through the
    contents API.
    """

    def __init__(
        self,
        config: Optional[GitHubSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the source.

        Args:
            config: GitHub settings (defaults to application settings)
            transport: Optional httpx transport, used by tests
        """
        self.config = config or settings.github
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/vnd.github+json"}
            if self.config.token:
                headers["Authorization"] = f"Bearer {self.config.token}"
            self._client = httpx.AsyncClient(
                base_url=self.config.api_url.rstrip("/"),
                timeout=httpx.Timeout(self.config.timeout),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch(self, repo_url: str) -> tuple[str, list[SourceFile]]:
        """
        Fetch every supported file of the repository.

        Returns:
            Repository name (``owner/repo``) and its source files

        Raises:
            InvalidRequestError: Invalid repository URL
            ValidationError: The repository has no supported files
            IngestionSourceError: The GitHub API call failed
        """
        owner, repo = parse_repo_url(repo_url)
        repo_name = f"{owner}/{repo}"

        files: list[SourceFile] = []
        await self._walk(owner, repo, "", files)

        if not files:
            raise ValidationError(
                f"No supported source files found in {repo_name}",
                details={"supported_extensions": list(SUPPORTED_EXTENSIONS)},
            )

        logger.info("Repository fetched", repo=repo_name, files=len(files))
        return repo_name, files

    async def _walk(self, owner: str, repo: str, path: str, files: list[SourceFile]) -> None:
        entries = await self._get_json(f"/repos/{owner}/{repo}/contents/{path}")
        if isinstance(entries, dict):
            entries = [entries]

        for entry in entries:
            entry_path = entry.get("path", "")
            if entry.get("type") == "dir":
                await self._walk(owner, repo, entry_path, files)
            elif entry.get("type") == "file":
                language = language_for(entry_path)
                if language is None:
                    continue
                content = await self._file_content(owner, repo, entry)
                files.append(SourceFile(path=entry_path, content=content, language=language))

    async def _file_content(self, owner: str, repo: str, entry: dict[str, Any]) -> str:
        """Decoded file body; directory listings omit it, so fetch when absent."""
        if not entry.get("content"):
            entry = await self._get_json(f"/repos/{owner}/{repo}/contents/{entry['path']}")
        raw = base64.b64decode(entry.get("content") or "")
        return raw.decode("utf-8", errors="replace")

    async def _get_json(self, url: str) -> Any:
        client = await self._get_client()
        try:
            response = await client.get(url)
        except httpx.RequestError as e:
            logger.error("GitHub request error", url=url, error=str(e))
            raise IngestionSourceError(f"Request failed: {e}") from e

        if response.status_code == 404:
            raise IngestionSourceError("Repository or path not found", details={"url": url})
        if response.is_error:
            logger.error("GitHub request failed", url=url, status_code=response.status_code)
            raise IngestionSourceError(
                f"HTTP {response.status_code}", details={"url": url, "status_code": response.status_code}
            )
        return response.json()
