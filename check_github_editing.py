"""
Check that a GitHub token can create, update and delete a file in a repository.

Reads GITHUB_TOKEN and GITHUB_REPOSITORY (owner/repo) from the environment or a
.env file, writes TEST_FILE_PATH, waits, re-reads it and deletes it again.
"""
import argparse
import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from github_api import GITHUB_API, SUCCESS, USER_AGENT, GitHubApi, GitHubError
from github_contents import (
    RemoteFile,
    create_or_update_file,
    delete_file,
    get_file_content,
    verify_token,
)

log = logging.getLogger("github-edit-check")

DEFAULT_PATH = "test-file.md"
DEFAULT_DELAY = 5.0

CONTENT_TEMPLATE = (
    "# Test File\n\n"
    "This is a test file created by the GitHub editing test script at {timestamp}\n\n"
    "If you see this file, the GitHub API editing is working correctly!"
)


# ——————————————————————————————————————————————
#                  CONFIG
# ——————————————————————————————————————————————
class ConfigError(ValueError):
    pass


class MissingTokenError(ConfigError):
    pass


@dataclass
class EditCheckConfig:
    token: str
    owner: str
    repo: str
    path: str = DEFAULT_PATH
    branch: Optional[str] = None
    api_url: str = GITHUB_API
    user_agent: str = USER_AGENT
    delay: float = DEFAULT_DELAY
    poll_attempts: int = 0
    timeout: Optional[float] = 30

    @classmethod
    def from_env(cls, env=None, **overrides) -> "EditCheckConfig":
        """Build a config from environment variables; non-None overrides win."""
        env = os.environ if env is None else env
        token = env.get("GITHUB_TOKEN", "").strip()
        if not token:
            raise MissingTokenError(
                "GitHub token not found. Please set the GITHUB_TOKEN environment variable."
            )

        repository = overrides.pop("repository", None) or env.get("GITHUB_REPOSITORY", "").strip()
        owner, repo = split_repository(repository)

        values = {
            "path": env.get("TEST_FILE_PATH", "").strip() or DEFAULT_PATH,
            "branch": env.get("GITHUB_BRANCH", "").strip() or None,
            "api_url": env.get("GITHUB_API_URL", "").strip() or GITHUB_API,
        }
        try:
            values["delay"] = float(env.get("EDIT_CHECK_DELAY", DEFAULT_DELAY))
            values["poll_attempts"] = int(env.get("EDIT_CHECK_POLL_ATTEMPTS", 0))
        except ValueError as e:
            raise ConfigError(f"Bad numeric setting: {e}") from e

        values.update({k: v for k, v in overrides.items() if v is not None})
        if values["delay"] < 0:
            raise ConfigError(f"Delay must not be negative, got {values['delay']:g}")
        if values["poll_attempts"] < 0:
            raise ConfigError(f"Poll attempts must not be negative, got {values['poll_attempts']}")
        if values.get("timeout") is not None and values["timeout"] <= 0:
            raise ConfigError(f"Timeout must be positive, got {values['timeout']:g}")
        return cls(token=token, owner=owner, repo=repo, **values)


def split_repository(repository: str):
    parts = (repository or "").strip().strip("/").split("/")
    if len(parts) != 2 or not all(parts):
        raise ConfigError(f"Repository must look like owner/repo, got {repository!r}")
    return parts[0], parts[1]


# ——————————————————————————————————————————————
#                  LOGGING
# ——————————————————————————————————————————————
THEME = Theme({
    "logging.level.debug": "cyan",
    "logging.level.info": "blue",
    "logging.level.success": "green",
    "logging.level.warning": "yellow",
    "logging.level.error": "red",
    "logging.level.critical": "bold red",
})

console = Console(theme=THEME)


def make_handler(target: Optional[Console] = None) -> RichHandler:
    """Leveled console handler; rich drops the colors when the output is not a terminal."""
    return RichHandler(console=target or console, show_time=False, show_path=False,
                       markup=False, rich_tracebacks=True)


def setup_logging(verbose: bool = False, target: Optional[Console] = None) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO,
                        format="%(message)s", handlers=[make_handler(target)], force=True)
    # keep urllib3 connection chatter out of -v output
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_banner(target: Optional[Console] = None) -> None:
    target = target or console
    rule = "=" * 48
    target.print(f"[bold cyan]{rule}\n       GitHub Editing Test Script        \n{rule}[/bold cyan]")


# ——————————————————————————————————————————————
#                  CHECK
# ——————————————————————————————————————————————
class EditCheck:
    def __init__(self, config: EditCheckConfig, api: Optional[GitHubApi] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 now: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.config = config
        self.api = api or GitHubApi(config.token, config.owner, config.repo,
                                    api_url=config.api_url,
                                    user_agent=config.user_agent,
                                    timeout=config.timeout)
        self.sleep = sleep
        self.now = now

    def render_content(self) -> str:
        return CONTENT_TEMPLATE.format(timestamp=self.now().isoformat())

    def run(self) -> bool:
        if not verify_token(self.api):
            log.error("Please check your GitHub token and permissions.")
            return False

        try:
            self._run_file_operations()
        except GitHubError as e:
            log.error("Error during file operations: %s", e)
            return False

        log.log(SUCCESS, "All GitHub API operations completed successfully!")
        log.log(SUCCESS, "You should be able to edit files on GitHub using the API.")
        log.info("If you still cannot edit files through the web interface, "
                 "check branch protection rules and the token's repository access.")
        return True

    def _run_file_operations(self) -> None:
        cfg = self.config
        path = cfg.path

        log.info("Checking if %s exists...", path)
        initial = get_file_content(self.api, path, cfg.branch)

        new_content = self.render_content()
        if initial.content is None:
            log.info("Creating new file: %s...", path)
            create_or_update_file(self.api, path, new_content, "Create test file via API",
                                  branch=cfg.branch)
            log.log(SUCCESS, "File created successfully!")
        else:
            log.info("Updating existing file: %s...", path)
            create_or_update_file(self.api, path, new_content, "Update test file via API",
                                  sha=initial.sha, branch=cfg.branch)
            log.log(SUCCESS, "File updated successfully!")

        current = self._wait_for_new_version(initial)

        log.info("Deleting file: %s...", path)
        delete_file(self.api, path, current.sha, "Delete test file via API", branch=cfg.branch)
        log.log(SUCCESS, "File deleted successfully!")

    def _wait_for_new_version(self, before: RemoteFile) -> RemoteFile:
        """Re-read the file after the write; the pre-write sha must never be returned."""
        cfg = self.config
        attempts = max(cfg.poll_attempts, 1)
        if cfg.poll_attempts <= 0:
            log.info("Waiting %g seconds before deleting the test file...", cfg.delay)

        current = before
        for attempt in range(1, attempts + 1):
            if cfg.poll_attempts > 0:
                log.info("Waiting for the new version of %s (%d/%d)...", cfg.path, attempt, attempts)
            self.sleep(cfg.delay)
            current = get_file_content(self.api, cfg.path, cfg.branch)
            if current.exists and current.sha != before.sha:
                return current

        raise GitHubError(f"New version of {cfg.path} not visible after write")


# ——————————————————————————————————————————————
#                  ENTRY POINT
# ——————————————————————————————————————————————
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check that a GitHub token can create, update and delete a file.")
    parser.add_argument("--repo", dest="repository", default=None,
                        help="Target repository as owner/repo (default: $GITHUB_REPOSITORY).")
    parser.add_argument("--path", default=None,
                        help=f"File to create and delete (default: $TEST_FILE_PATH or {DEFAULT_PATH}).")
    parser.add_argument("--branch", default=None,
                        help="Branch to write to (default: the repository's default branch).")
    parser.add_argument("--api-url", default=None, help=f"API root (default: {GITHUB_API}).")
    parser.add_argument("--delay", type=float, default=None,
                        help=f"Seconds to wait after writing (default: {DEFAULT_DELAY:g}).")
    parser.add_argument("--poll-attempts", type=int, default=None,
                        help="Re-read up to N times until the new version shows up (default: single pause).")
    parser.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every request.")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()
    setup_logging(args.verbose)
    print_banner()

    try:
        config = EditCheckConfig.from_env(
            repository=args.repository,
            path=args.path,
            branch=args.branch,
            api_url=args.api_url,
            delay=args.delay,
            poll_attempts=args.poll_attempts,
            timeout=args.timeout,
        )
    except ConfigError as e:
        log.error("%s", e)
        return 2

    log.info("Repository: %s, file: %s", f"{config.owner}/{config.repo}", config.path)
    try:
        ok = EditCheck(config).run()
    except Exception:
        log.exception("Unhandled error:")
        raise
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
