"""Read, write and delete a single file through the GitHub contents API."""

import base64
import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

from github_api import SUCCESS, ApiError, GitHubApi, GitHubError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteFile:
    path: str
    content: Optional[str]
    sha: Optional[str]

    @property
    def exists(self) -> bool:
        return self.sha is not None


def _contents_endpoint(path: str) -> str:
    return f"/contents/{quote(path.lstrip('/'))}"


def _commit_sha(response: Any) -> str:
    if isinstance(response, dict):
        return (response.get("commit") or {}).get("sha", "")
    return ""


def verify_token(api: GitHubApi) -> bool:
    """Read the repository itself; True when the token has at least read access."""
    try:
        response = api.request("", "GET")
    except GitHubError as e:
        log.error("Token verification failed: %s", getattr(e, "message", e))
        return False

    if not isinstance(response, dict) or "name" not in response:
        log.error("Token verification failed: unexpected response for %s", api.full_name)
        return False

    log.log(SUCCESS, "Token verification successful. Repository: %s",
            response.get("full_name") or response["name"])
    permissions = response.get("permissions")
    if isinstance(permissions, dict) and not permissions.get("push"):
        log.warning("Token can read %s but has no push permission; writes will fail.", api.full_name)
    return True


def get_file_content(api: GitHubApi, path: str, branch: Optional[str] = None) -> RemoteFile:
    """Fetch `path`; a missing file comes back as RemoteFile(path, None, None)."""
    params = {"ref": branch} if branch else None
    try:
        response = api.request(_contents_endpoint(path), params=params)
    except ApiError as e:
        if e.is_not_found:
            return RemoteFile(path, None, None)
        raise

    if not isinstance(response, dict) or "sha" not in response:
        raise GitHubError(f"{path} is not a file in {api.full_name}")
    # GitHub wraps the base64 payload every 60 chars; b64decode drops the newlines.
    # non-UTF-8 files decode lossily; only the sha matters for an update
    content = base64.b64decode(response.get("content", "")).decode("utf-8", errors="replace")
    return RemoteFile(path, content, response["sha"])


def create_or_update_file(api: GitHubApi, path: str, content: str, message: str,
                          sha: Optional[str] = None, branch: Optional[str] = None) -> Any:
    """Create `path`, or update it when `sha` names the version being replaced."""
    data = {
        "message": message,
        "content": base64.b64encode(content.encode("utf-8")).decode(),
    }
    if sha:
        data["sha"] = sha
    if branch:
        data["branch"] = branch

    try:
        response = api.request(_contents_endpoint(path), "PUT", data)
    except GitHubError as e:
        log.error("Error creating/updating %s: %s", path, e)
        raise
    log.debug("PUT %s -> commit %s", path, _commit_sha(response) or "?")
    return response


def delete_file(api: GitHubApi, path: str, sha: Optional[str], message: str,
                branch: Optional[str] = None) -> Any:
    if not sha:
        raise ValueError(f"Refusing to delete {path} without a sha")
    data = {"message": message, "sha": sha}
    if branch:
        data["branch"] = branch

    try:
        response = api.request(_contents_endpoint(path), "DELETE", data)
    except GitHubError as e:
        log.error("Error deleting %s: %s", path, e)
        raise
    log.debug("DELETE %s -> commit %s", path, _commit_sha(response) or "?")
    return response
