"""
Document Store
==============
The ban list lives in a single remote JSON document. A store hands out the
document together with a version token and accepts a new version only if the
caller still holds the current token (compare-and-swap). No copy of the list
is kept between calls.

Two backends:

- GitHubDocumentStore: a file in a GitHub repository, read and written through
  the contents API. The blob SHA is the version token and every write is a
  commit, so the repository history is the audit log of all ban changes.
- InMemoryDocumentStore: process-local, for development and tests.
"""

import base64
import binascii
import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from app.core.config import Settings
from app.core.exceptions import StoreCorrupt, StoreUnavailable, VersionConflict
from app.models.ban import BanEntry, VersionedDocument, now_ms

logger = logging.getLogger("uvicorn.error")


def serialize_ban_list(entries: list[BanEntry]) -> str:
    """Render a ban list in the persisted wire format (pretty-printed JSON array)."""
    return json.dumps([entry.model_dump(by_alias=True) for entry in entries], indent=2)


def parse_ban_list(raw: str | bytes) -> list[BanEntry]:
    """Parse a persisted ban list.

    Raises StoreCorrupt only when the document is not a JSON array. Entries
    without a usable `ip` are skipped, so the next write drops them.
    """
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise StoreCorrupt(f"Ban list is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise StoreCorrupt(f"Ban list must be a JSON array, got {type(data).__name__}")

    entries = []
    for position, item in enumerate(data):
        try:
            entries.append(BanEntry.model_validate(item))
        except ValidationError as exc:
            logger.warning(
                "Ban list: skipping unreadable entry #%d (%d error(s))", position, exc.error_count(),
            )
    return entries


def commit_message(entries: list[BanEntry], expected_token: str | None, file_path: str) -> str:
    if expected_token is None:
        return f"Create {file_path} ({len(entries)} entries)"
    return f"Update banned IP list ({len(entries)} entries)"


class DocumentStore(ABC):
    """Single-document store with optimistic concurrency."""

    @abstractmethod
    async def fetch(self) -> VersionedDocument:
        """Return the current ban list and its version token.

        A missing document is not an error: it comes back empty with no token.
        """

    @abstractmethod
    async def write(self, entries: list[BanEntry], expected_token: str | None) -> str | None:
        """Commit `entries` if the document is still at `expected_token`.

        `expected_token=None` means create, failing if the document exists.
        Returns the new version token, or None if the store accepted the write
        without reporting one. Raises VersionConflict when another
        writer got there first.
        """

    async def aclose(self) -> None:
        """Release any connections held by the store."""


# ------------------------------------------------------------------
# GitHub contents API


class GitHubDocumentStore(DocumentStore):
    def __init__(
        self,
        owner: str,
        repo: str,
        file_path: str,
        branch: str = "main",
        token: str = "",
        api_url: str = "https://api.github.com",
        timeout: float = 10.0,
        committer_name: str | None = None,
        committer_email: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.file_path = file_path
        self.branch = branch
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._committer = (
            {"name": committer_name, "email": committer_email}
            if committer_name and committer_email
            else None
        )
        self._transport = transport
        # Shared httpx client (connection-pooled, reused across requests)
        self._http_client: httpx.AsyncClient | None = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            headers = {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "KinAPI-BanList/1.0",
            }
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._http_client = httpx.AsyncClient(
                base_url=self._api_url,
                headers=headers,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    @property
    def _contents_url(self) -> str:
        return f"/repos/{self.owner}/{self.repo}/contents/{self.file_path}"

    async def fetch(self) -> VersionedDocument:
        client = self._get_http_client()
        try:
            response = await client.get(self._contents_url, params={"ref": self.branch})
        except httpx.HTTPError as exc:
            logger.error("[GitHub]: error reading %s: %s", self.file_path, exc)
            raise StoreUnavailable(f"Could not read {self.file_path} from GitHub: {exc}") from exc

        if response.status_code == 404:
            logger.warning("[GitHub]: %s does not exist yet, starting empty", self.file_path)
            return VersionedDocument()
        if response.status_code != 200:
            logger.error(
                "[GitHub]: error reading %s: HTTP %d", self.file_path, response.status_code,
            )
            raise StoreUnavailable(
                f"Could not read {self.file_path} from GitHub: HTTP {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise StoreCorrupt(f"GitHub returned a non-JSON response for {self.file_path}") from exc
        if not isinstance(payload, dict) or payload.get("type", "file") != "file":
            raise StoreCorrupt(f"{self.file_path} is not a file")
        # Files over 1 MB come back with encoding "none" and no inline content
        if payload.get("encoding") != "base64" or payload.get("content") is None:
            raise StoreCorrupt(f"{self.file_path} has no inline base64 content")

        try:
            raw = base64.b64decode(payload["content"])
        except (binascii.Error, ValueError) as exc:
            raise StoreCorrupt(f"{self.file_path} content is not valid base64") from exc

        entries = parse_ban_list(raw)
        sha = payload.get("sha")
        if not sha:
            raise StoreCorrupt(f"GitHub response for {self.file_path} has no SHA")
        logger.info("[GitHub]: read %s (%d entries). SHA: %s", self.file_path, len(entries), sha)
        return VersionedDocument(entries=entries, version_token=sha, exists=True)

    async def write(self, entries: list[BanEntry], expected_token: str | None) -> str | None:
        content = serialize_ban_list(entries)
        body = {
            "message": commit_message(entries, expected_token, self.file_path),
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": self.branch,
        }
        if expected_token is not None:
            body["sha"] = expected_token
        if self._committer:
            body["committer"] = self._committer

        client = self._get_http_client()
        try:
            response = await client.put(self._contents_url, json=body)
        except httpx.HTTPError as exc:
            logger.error("[GitHub]: error updating %s: %s", self.file_path, exc)
            raise StoreUnavailable(f"Could not write {self.file_path} to GitHub: {exc}") from exc

        if response.status_code == 409:
            raise VersionConflict(expected_token)
        if response.status_code == 422 and expected_token is None:
            # Created by someone else between our fetch and this write
            raise VersionConflict(None, f"{self.file_path} already exists")
        if response.status_code not in (200, 201):
            logger.error(
                "[GitHub]: error updating %s: HTTP %d", self.file_path, response.status_code,
            )
            raise StoreUnavailable(
                f"Could not write {self.file_path} to GitHub: HTTP {response.status_code}"
            )

        try:
            new_sha = response.json()["content"]["sha"]
        except (ValueError, KeyError, TypeError):
            # Committed; the next fetch picks up the real SHA
            logger.warning(
                "[GitHub]: updated %s (%d entries) but the response carried no SHA",
                self.file_path, len(entries),
            )
            return None
        logger.info(
            "[GitHub]: updated %s (%d entries). SHA: %s", self.file_path, len(entries), new_sha,
        )
        return new_sha


# ------------------------------------------------------------------
# In-memory


@dataclass(frozen=True)
class CommitRecord:
    message: str
    version_token: str
    entry_count: int
    committed_at: int


class InMemoryDocumentStore(DocumentStore):
    def __init__(
        self,
        entries: list[BanEntry] | None = None,
        file_path: str = "banned_ips.json",
    ) -> None:
        self.file_path = file_path
        self._content: str | None = None
        self._token: str | None = None
        self.history: list[CommitRecord] = []
        if entries is not None:
            self._content = serialize_ban_list(entries)
            self._token = uuid.uuid4().hex

    @property
    def version_token(self) -> str | None:
        return self._token

    async def fetch(self) -> VersionedDocument:
        if self._content is None:
            return VersionedDocument()
        return VersionedDocument(
            entries=parse_ban_list(self._content),
            version_token=self._token,
            exists=True,
        )

    async def write(self, entries: list[BanEntry], expected_token: str | None) -> str:
        # No await between the check and the swap, so this is atomic on the event loop
        if expected_token != self._token:
            raise VersionConflict(expected_token)
        message = commit_message(entries, expected_token, self.file_path)
        self._content = serialize_ban_list(entries)
        self._token = uuid.uuid4().hex
        self.history.append(CommitRecord(message, self._token, len(entries), now_ms()))
        return self._token


def build_document_store(settings: Settings) -> DocumentStore:
    """Create the store selected by STORE_BACKEND."""
    if settings.STORE_BACKEND == "memory":
        return InMemoryDocumentStore(file_path=settings.GITHUB_FILE_PATH)
    return GitHubDocumentStore(
        owner=settings.GITHUB_OWNER,
        repo=settings.GITHUB_REPO,
        file_path=settings.GITHUB_FILE_PATH,
        branch=settings.GITHUB_BRANCH,
        token=settings.GITHUB_ACCESS_TOKEN,
        api_url=settings.GITHUB_API_URL,
        timeout=settings.STORE_TIMEOUT_SECONDS,
        committer_name=settings.GITHUB_COMMITTER_NAME,
        committer_email=settings.GITHUB_COMMITTER_EMAIL,
    )
