"""Git hosting gateway: push a generated export to GitHub or GitLab.

Adapters (Strategy pattern):
  - GitHubAdapter  — Bearer token; create repo with auto_init, then one
                     contents PUT per file on branch ``main``.
  - GitLabAdapter  — PRIVATE-TOKEN header; create project, then commits of
                     up to 20 file actions each.

Every public call returns a GitHostResult and never raises: HTTP and network
failures are captured in ``.error``. A push only fails when the repository
cannot be created or when every file (GitHub) / every batch (GitLab) fails.

The user's access token is passed per call and is never logged or stored.
"""

from __future__ import annotations

import base64
import logging
import time
from abc import ABC, abstractmethod

import requests

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30
_GITLAB_BATCH_SIZE = 20
# Hosts initialise the default branch asynchronously after repo creation.
_SETTLE_SECONDS = 2

GITHUB_API = "https://api.github.com"
GITLAB_API = "https://gitlab.com/api/v4"


class GitHostResult:
    """Outcome of a push. Check .ok before reading .url."""

    __slots__ = ("ok", "status_code", "url", "error", "failed_files", "duration_ms")

    def __init__(
        self,
        *,
        ok: bool,
        status_code: int | None = None,
        url: str | None = None,
        error: str | None = None,
        failed_files: list[str] | None = None,
        duration_ms: int = 0,
    ) -> None:
        self.ok = ok
        self.status_code = status_code
        self.url = url
        self.error = error
        self.failed_files = failed_files or []
        self.duration_ms = duration_ms

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "status_code": self.status_code,
            "url": self.url,
            "error": self.error,
            "failed_files": self.failed_files,
            "duration_ms": self.duration_ms,
        }


def _error_message(resp: requests.Response, fallback: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"{fallback} (HTTP {resp.status_code})"
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, dict):
            message = "; ".join(f"{k}: {v}" for k, v in message.items())
        if message:
            return str(message)[:500]
    return f"{fallback} (HTTP {resp.status_code})"


# ── Adapters ─────────────────────────────────────────────────────────────────


class BaseGitHostAdapter(ABC):
    """Host-specific push logic. Adapters raise requests.RequestException on
    network failure; GitHostGateway converts that into a result."""

    name = "git"

    def __init__(self, session: requests.Session, settle_seconds: float = _SETTLE_SECONDS) -> None:
        self._session = session
        self._settle_seconds = settle_seconds

    def _settle(self) -> None:
        if self._settle_seconds:
            time.sleep(self._settle_seconds)

    @abstractmethod
    def push(self, token: str, repo_name: str, files: dict[str, str], *,
             private: bool = False, description: str | None = None) -> GitHostResult:
        """Create the repository and commit ``files`` ({path: content})."""


class GitHubAdapter(BaseGitHostAdapter):
    name = "github"

    def __init__(self, session, settle_seconds=_SETTLE_SECONDS, api_url=GITHUB_API):
        super().__init__(session, settle_seconds)
        self._api = api_url.rstrip("/")

    @staticmethod
    def _headers(token):
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "Content-Type": "application/json",
        }

    def push(self, token, repo_name, files, *, private=False, description=None):
        headers = self._headers(token)
        resp = self._session.post(
            f"{self._api}/user/repos",
            headers=headers,
            json={
                "name": repo_name,
                "description": description or "",
                "private": bool(private),
                "auto_init": True,
            },
            timeout=_DEFAULT_TIMEOUT,
        )
        if not resp.ok:
            return GitHostResult(ok=False, status_code=resp.status_code,
                                 error=_error_message(resp, "Failed to create GitHub repository"))

        repo = resp.json()
        owner = (repo.get("owner") or {}).get("login")
        html_url = repo.get("html_url")
        self._settle()

        failed = []
        for path, content in files.items():
            body = {
                "message": f"Add {path}",
                "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
                "branch": "main",
            }
            # auto_init already committed a README
            if path == "README.md":
                existing = self._session.get(
                    f"{self._api}/repos/{owner}/{repo_name}/contents/{path}",
                    headers=headers, params={"ref": "main"}, timeout=_DEFAULT_TIMEOUT,
                )
                if existing.ok:
                    body["sha"] = existing.json().get("sha")
            put = self._session.put(
                f"{self._api}/repos/{owner}/{repo_name}/contents/{path}",
                headers=headers, json=body, timeout=_DEFAULT_TIMEOUT,
            )
            if not put.ok:
                failed.append(f"{path}: {_error_message(put, 'upload failed')}")

        if files and len(failed) == len(files):
            return GitHostResult(ok=False, status_code=resp.status_code, url=html_url,
                                 error=f"Failed to upload files: {failed[0]}", failed_files=failed)
        return GitHostResult(ok=True, status_code=resp.status_code, url=html_url, failed_files=failed)


class GitLabAdapter(BaseGitHostAdapter):
    name = "gitlab"

    def __init__(self, session, settle_seconds=_SETTLE_SECONDS, api_url=GITLAB_API):
        super().__init__(session, settle_seconds)
        self._api = api_url.rstrip("/")

    def push(self, token, repo_name, files, *, private=False, description=None):
        headers = {"PRIVATE-TOKEN": token, "Content-Type": "application/json"}
        resp = self._session.post(
            f"{self._api}/projects",
            headers=headers,
            json={
                "name": repo_name,
                "description": description or "",
                "visibility": "private" if private else "public",
                "initialize_with_readme": True,
                "default_branch": "main",
            },
            timeout=_DEFAULT_TIMEOUT,
        )
        if not resp.ok:
            return GitHostResult(ok=False, status_code=resp.status_code,
                                 error=_error_message(resp, "Failed to create GitLab project"))

        project = resp.json()
        web_url = project.get("web_url")
        self._settle()

        actions = [
            {"action": "update" if path == "README.md" else "create", "file_path": path, "content": content}
            for path, content in files.items()
        ]
        batches = [actions[i:i + _GITLAB_BATCH_SIZE] for i in range(0, len(actions), _GITLAB_BATCH_SIZE)]
        failed = []
        for number, batch in enumerate(batches, start=1):
            commit = self._session.post(
                f"{self._api}/projects/{project.get('id')}/repository/commits",
                headers=headers,
                json={
                    "branch": "main",
                    "commit_message": f"Add project files (batch {number})",
                    "actions": batch,
                },
                timeout=_DEFAULT_TIMEOUT,
            )
            if not commit.ok:
                failed.append(f"Batch {number}: {_error_message(commit, 'commit failed')}")

        if batches and len(failed) == len(batches):
            return GitHostResult(ok=False, status_code=resp.status_code, url=web_url,
                                 error=f"Failed to upload files: {failed[0]}", failed_files=failed)
        return GitHostResult(ok=True, status_code=resp.status_code, url=web_url, failed_files=failed)


# ── Gateway ──────────────────────────────────────────────────────────────────


class GitHostGateway:
    """Provider-agnostic push entry point.

    Usage:
        gw = build_git_host_gateway("github")
        result = gw.push(token, "my-repo", {"README.md": "# hi"})
        if result.ok:
            url = result.url
    """

    def __init__(self, provider: str, session: requests.Session | None = None,
                 settle_seconds: float = _SETTLE_SECONDS) -> None:
        self.provider = (provider or "").lower()
        self.session = session or requests.Session()
        match self.provider:
            case "github":
                self._adapter = GitHubAdapter(self.session, settle_seconds)
            case "gitlab":
                self._adapter = GitLabAdapter(self.session, settle_seconds)
            case _:
                raise ValueError(f"Unknown git host: '{provider}'. Must be one of: github, gitlab.")

    def push(self, token: str, repo_name: str, files: dict[str, str], *,
             private: bool = False, description: str | None = None) -> GitHostResult:
        t0 = time.perf_counter()
        try:
            result = self._adapter.push(token, repo_name, files, private=private, description=description)
        except requests.Timeout:
            result = GitHostResult(ok=False, error=f"Request timed out after {_DEFAULT_TIMEOUT}s")
        except requests.RequestException as exc:
            result = GitHostResult(ok=False, error=str(exc)[:500])
        except ValueError as exc:
            # malformed JSON from the host
            result = GitHostResult(ok=False, error=f"Invalid response from {self.provider}: {exc}"[:500])
        result.duration_ms = int((time.perf_counter() - t0) * 1000)

        if result.ok:
            logger.info("Pushed %d files to %s repo=%s failed=%d (%dms)",
                        len(files), self.provider, repo_name, len(result.failed_files), result.duration_ms)
        else:
            logger.warning("Push to %s failed repo=%s status=%s error=%s",
                           self.provider, repo_name, result.status_code, result.error)
        return result


def build_git_host_gateway(provider: str) -> GitHostGateway:
    """Factory used by the export service; tests patch it to inject a mock session."""
    return GitHostGateway(provider)
