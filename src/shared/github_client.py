from __future__ import annotations

from typing import Callable, Optional

import requests

from shared.constants import GITHUB_API_BASE, GITHUB_API_VERSION, GITHUB_HTTP_TIMEOUT


class GitHubClient:
    """Thin wrapper over the pull request endpoints of the GitHub REST API.

    Failed requests raise ``requests.HTTPError``; nothing is retried.
    """

    def __init__(
        self,
        token_provider: Callable[[], str],
        api_base: str = GITHUB_API_BASE,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._token_provider = token_provider
        self._api_base = api_base.rstrip("/")
        self._session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self._api_base}{path}"
        headers = dict(kwargs.pop("headers", {}))
        headers.update(
            {
                "Authorization": f"token {self._token_provider()}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            }
        )
        response = self._session.request(method, url, headers=headers, timeout=GITHUB_HTTP_TIMEOUT, **kwargs)
        response.raise_for_status()
        return response

    def get_pull_request(self, owner: str, repo: str, pull_number: int) -> dict:
        response = self._request("GET", f"/repos/{owner}/{repo}/pulls/{pull_number}")
        return response.json()

    def update_pull_request(
        self, owner: str, repo: str, pull_number: int, **kwargs,
    ) -> dict:
        """Update a pull request (title, body, state, etc.)."""
        response = self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/pulls/{pull_number}",
            json=kwargs,
        )
        return response.json()

    def create_pull_review(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        body: str,
        event: str = "COMMENT",
    ) -> dict:
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{pull_number}/reviews",
            json={"event": event, "body": body},
        )
        return response.json()
