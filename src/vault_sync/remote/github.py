"""GitHub contents-API remote store."""

import base64
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from ..constants import DEFAULT_API_URL, DEFAULT_BRANCH
from ..core import EntryKind
from ..errors import AuthError, NetworkError, NotFoundError, RemoteError, StaleObjectError
from ..utils import get_iso_timestamp, parse_iso_timestamp
from .base import RemoteItem, RemoteObject

logger = logging.getLogger(__name__)

GITHUB_ACCEPT = "application/vnd.github+json"
GITHUB_API_VERSION = "2022-11-28"


class GitHubContentsStore:
    """Remote store backed by a GitHub repository through the REST API.

    Every put and delete is its own commit on the configured branch. The
    contents API addresses files by their git blob sha, which is what we use
    as object id.
    """

    supports_concurrent_writes = False

    def __init__(
        self,
        owner: str,
        repository: str,
        token: str,
        branch: str = DEFAULT_BRANCH,
        api_url: str = DEFAULT_API_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ):
        """Initialize the store.

        Args:
            owner: Account owning the repository
            repository: Repository name
            token: Personal access token
            branch: Branch that holds the vault
            api_url: API root (override for GitHub Enterprise)
            session: Optional pre-built session (for testing)
            timeout: Per-request timeout in seconds
        """
        self.owner = owner
        self.repository = repository
        self.branch = branch
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": GITHUB_ACCEPT,
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        })

    # ---- plumbing -----------------------------------------------------------

    def _repo_url(self, name: Optional[str] = None) -> str:
        return f"{self.api_url}/repos/{self.owner}/{name or self.repository}"

    def _contents_url(self, path: str) -> str:
        return f"{self._repo_url()}/contents/{quote(path, safe='/')}"

    def _request(
        self,
        method: str,
        url: str,
        stale_path: Optional[str] = None,
        **kwargs: Any,
    ) -> requests.Response:
        """Issue a request and map failures onto the error hierarchy.

        Args:
            method: HTTP method
            url: Absolute URL
            stale_path: Set for conditional writes; 409/422 then mean the
                base object id was stale
        """
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Cannot connect to {self.api_url}: {e}") from e

        status = resp.status_code
        if status < 400:
            return resp

        message = _error_message(resp)
        if status in (401, 403):
            raise AuthError(f"Authentication failed for {self.owner}/{self.repository}: {message}")
        if status in (409, 422) and stale_path is not None:
            raise StaleObjectError(stale_path, kwargs.get("json", {}).get("sha"))
        if status in (404, 409):
            # 409 is what GitHub answers for history queries on an empty repository
            raise NotFoundError(f"{method} {url}: {message}")
        if status >= 500:
            raise NetworkError(f"GitHub error {status}: {message}")
        raise RemoteError(f"GitHub rejected {method} {url} ({status}): {message}")

    # ---- objects ------------------------------------------------------------

    def list_children(self, path: str) -> List[RemoteItem]:
        resp = self._request("GET", self._contents_url(path), params={"ref": self.branch})
        data = resp.json()
        if not isinstance(data, list):
            raise RemoteError(f"Expected a directory listing at '{path}', got a {data.get('type')}")

        items = []
        for entry in data:
            kind = entry.get("type")
            if kind == "dir":
                items.append(RemoteItem(entry["path"], EntryKind.DIRECTORY))
            elif kind == "file":
                items.append(RemoteItem(entry["path"], EntryKind.FILE, entry["sha"]))
            else:
                logger.debug("Skipping remote %s entry %s", kind, entry.get("path"))
        return items

    def get_object(self, path: str) -> Optional[RemoteObject]:
        try:
            resp = self._request("GET", self._contents_url(path), params={"ref": self.branch})
        except NotFoundError:
            return None

        data = resp.json()
        if isinstance(data, list) or data.get("type") != "file":
            return None

        sha = data["sha"]
        if data.get("encoding") == "base64":
            content = base64.b64decode(data.get("content", ""))
        else:
            # Files above 1 MB come back without inline content
            content = self._get_blob(sha)
        return RemoteObject(content=content, object_id=sha)

    def _get_blob(self, sha: str) -> bytes:
        resp = self._request("GET", f"{self._repo_url()}/git/blobs/{sha}")
        data = resp.json()
        if data.get("encoding") != "base64":
            raise RemoteError(f"Unsupported blob encoding for {sha}: {data.get('encoding')}")
        return base64.b64decode(data["content"])

    def put_object(self, path: str, content: bytes, base_object_id: Optional[str] = None) -> str:
        verb = "Update" if base_object_id else "Create"
        body: Dict[str, Any] = {
            "message": f"{verb} {path} ({get_iso_timestamp()})",
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.branch,
        }
        if base_object_id:
            body["sha"] = base_object_id

        resp = self._request("PUT", self._contents_url(path), stale_path=path, json=body)
        object_id = resp.json()["content"]["sha"]
        logger.debug("%s %s -> %s", verb, path, object_id[:12])
        return object_id

    def delete_object(self, path: str, object_id: str) -> None:
        body = {
            "message": f"Delete {path} ({get_iso_timestamp()})",
            "sha": object_id,
            "branch": self.branch,
        }
        self._request("DELETE", self._contents_url(path), stale_path=path, json=body)
        logger.debug("Deleted %s", path)

    def last_change_time(self, path: str) -> Optional[float]:
        try:
            resp = self._request(
                "GET",
                f"{self._repo_url()}/commits",
                params={"path": path, "sha": self.branch, "per_page": 1},
            )
        except NotFoundError:
            return None

        commits = resp.json()
        if not commits:
            return None
        commit = commits[0]["commit"]
        stamp = (commit.get("committer") or commit.get("author") or {}).get("date")
        return parse_iso_timestamp(stamp) if stamp else None

    # ---- repository lifecycle -----------------------------------------------

    def create_repository(self, name: str) -> None:
        self._request(
            "POST",
            f"{self.api_url}/user/repos",
            json={"name": name, "private": True, "auto_init": False},
        )
        logger.info("Created repository %s/%s", self.owner, name)

    def delete_repository(self, name: str) -> None:
        self._request("DELETE", self._repo_url(name))
        logger.info("Deleted repository %s/%s", self.owner, name)

    def repository_exists(self, name: str) -> bool:
        try:
            self._request("GET", self._repo_url(name))
        except NotFoundError:
            return False
        return True


def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return data["message"]
    return resp.reason or f"HTTP {resp.status_code}"
