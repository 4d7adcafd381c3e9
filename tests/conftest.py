import base64
import hashlib
import json
from urllib.parse import unquote

import pytest

from github_api import ApiError, GitHubApi


def _b64_wrapped(content) -> str:
    # GitHub returns base64 content broken into 60-char lines
    if isinstance(content, str):
        content = content.encode("utf-8")
    raw = base64.b64encode(content).decode()
    return "\n".join(raw[i:i + 60] for i in range(0, len(raw), 60)) + "\n"


class FakeGitHub(GitHubApi):
    """In-memory stand-in for the contents API of a single repository."""

    def __init__(self, token="ghp_valid", valid_tokens=("ghp_valid",), push=True,
                 stale_reads=0):
        super().__init__(token, "octo", "sandbox")
        self.valid_tokens = set(valid_tokens)
        self.push = push
        self.files = {}
        self.calls = []
        # number of GETs after each write that still see the previous state
        self.stale_reads = stale_reads
        self._pending_stale = 0
        self._previous = {}
        self._counter = 0

    def seed(self, path, content):
        self.files[path] = (content, self._new_sha(content))
        return self.files[path][1]

    def _new_sha(self, content):
        self._counter += 1
        return hashlib.sha1(f"{self._counter}:{content}".encode()).hexdigest()

    def _error(self, status, message):
        raise ApiError(status, json.dumps({"message": message}))

    def request(self, endpoint, method="GET", data=None, params=None):
        self.calls.append((method, endpoint, data, params))
        if self.token not in self.valid_tokens:
            self._error(401, "Bad credentials")

        if endpoint == "":
            return {"name": self.repo, "full_name": self.full_name,
                    "permissions": {"pull": True, "push": self.push}}

        path = unquote(endpoint[len("/contents/"):])
        handler = getattr(self, f"_{method.lower()}")
        return handler(path, data)

    def _get(self, path, data):
        files = self.files
        if self._pending_stale:
            self._pending_stale -= 1
            files = self._previous
        if path not in files:
            self._error(404, "Not Found")
        content, sha = files[path]
        return {"type": "file", "path": path, "sha": sha, "content": _b64_wrapped(content)}

    def _snapshot(self):
        self._previous = dict(self.files)
        self._pending_stale = self.stale_reads

    def _put(self, path, data):
        if not self.push:
            self._error(403, "Resource not accessible by personal access token")
        current = self.files.get(path)
        if current and "sha" not in data:
            self._error(422, "Invalid request.\n\n\"sha\" wasn't supplied.")
        if current and data["sha"] != current[1]:
            self._error(409, f"{path} does not match {data['sha']}")
        content = base64.b64decode(data["content"]).decode("utf-8")
        self._snapshot()
        sha = self._new_sha(content)
        self.files[path] = (content, sha)
        return {"content": {"path": path, "sha": sha}, "commit": {"sha": self._new_sha("commit")}}

    def _delete(self, path, data):
        current = self.files.get(path)
        if current is None:
            self._error(404, "Not Found")
        if not data.get("sha"):
            self._error(422, "Invalid request.\n\n\"sha\" wasn't supplied.")
        if data["sha"] != current[1]:
            self._error(409, f"{path} does not match {data['sha']}")
        self._snapshot()
        del self.files[path]
        return {"content": None, "commit": {"sha": self._new_sha("commit")}}


@pytest.fixture
def github(make_github):
    return make_github()


@pytest.fixture
def make_github():
    """Factory for fakes that need a non-default token, permission or lag."""
    return FakeGitHub
