import json
import logging
from typing import Any, Dict, Optional

import requests

GITHUB_API = "https://api.github.com"
USER_AGENT = "GitHub-API-Test"

# between INFO and WARNING
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

log = logging.getLogger(__name__)


class GitHubError(RuntimeError):
    """Base class for everything that goes wrong talking to GitHub."""


class ApiError(GitHubError):
    """Non-2xx response. `message` is the raw response body."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code} {message[:200]}")
        self.status_code = status_code
        self.message = message

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_conflict(self) -> bool:
        # 409: sha does not match, 422: sha missing for an existing file
        return self.status_code in (409, 422)


class ApiConnectionError(GitHubError):
    """DNS, TLS, reset or timeout before a response arrived."""


class GitHubApi:
    def __init__(self, token: str, owner: str, repo: str,
                 api_url: str = GITHUB_API, user_agent: str = USER_AGENT,
                 timeout: Optional[float] = 30):
        self.token = token
        self.owner = owner
        self.repo = repo
        self.base_url = f"{api_url.rstrip('/')}/repos/{owner}/{repo}"
        self.user_agent = user_agent
        self.timeout = timeout

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github.v3+json",
        }

    def request(self, endpoint: str, method: str = "GET", data: Any = None,
                params: Optional[Dict[str, str]] = None) -> Any:
        """Send one request to `<base_url><endpoint>` and return the decoded body.

        A fresh connection is used for every call. 2xx bodies are parsed as
        JSON (empty body -> {}, unparsable body -> raw text); anything else
        raises ApiError, network failures raise ApiConnectionError.
        """
        url = f"{self.base_url}{endpoint}"
        headers = self.headers()
        body = None
        if data is not None:
            body = json.dumps(data).encode("utf-8")
            headers["Content-Type"] = "application/json"
            headers["Content-Length"] = str(len(body))

        log.debug("%s %s", method, url)
        try:
            r = requests.request(method, url, headers=headers, data=body,
                                 params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise ApiConnectionError(f"{method} {url} failed: {e}") from e

        if not 200 <= r.status_code < 300:
            raise ApiError(r.status_code, r.text)
        if not r.text:
            return {}
        try:
            return r.json()
        except ValueError:
            log.debug("%s %s returned non-JSON body, passing raw text through", method, url)
            return r.text
