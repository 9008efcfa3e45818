from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

_BOT_SUFFIX = "[bot]"


class AuthorKind(str, Enum):
    USER = "User"
    BOT = "Bot"

    @classmethod
    def from_user_type(cls, value: Optional[str]) -> "AuthorKind":
        return cls.BOT if value == cls.BOT.value else cls.USER


@dataclass(frozen=True)
class PullRequestContext:
    """Snapshot of the pull request fields the ticket check looks at."""

    owner: str
    repo: str
    number: int
    title: str
    branch: str
    body: Optional[str]
    author_login: str
    author_kind: AuthorKind = AuthorKind.USER

    @property
    def sender(self) -> str:
        """Author login with the ``[bot]`` marker stripped from app accounts."""
        if self.author_kind is AuthorKind.BOT and self.author_login.endswith(_BOT_SUFFIX):
            return self.author_login[: -len(_BOT_SUFFIX)]
        return self.author_login

    @classmethod
    def from_pull_request(cls, pr: dict[str, Any], owner: str, repo: str) -> "PullRequestContext":
        """Build a context from a pull request object (webhook payload or REST response)."""
        user = pr.get("user") or {}
        # A missing key means the body was never provided; null means the description is empty.
        body: Optional[str] = None
        if "body" in pr:
            body = pr["body"] or ""

        return cls(
            owner=owner,
            repo=repo,
            number=int(pr["number"]),
            title=pr.get("title") or "",
            branch=(pr.get("head") or {}).get("ref") or "",
            body=body,
            author_login=user.get("login") or "",
            author_kind=AuthorKind.from_user_type(user.get("type")),
        )

    @classmethod
    def from_event(cls, payload: dict[str, Any], repository: Optional[str] = None) -> "PullRequestContext":
        """Build a context from a ``pull_request`` / ``pull_request_target`` event payload.

        ``repository`` is the ``owner/repo`` fallback used when the payload has no
        repository object (``GITHUB_REPOSITORY`` in Actions).
        """
        pull_request = payload.get("pull_request")
        if not pull_request:
            raise ValueError("Event payload does not contain a pull request")

        full_name = (payload.get("repository") or {}).get("full_name") or repository or ""
        if "/" not in full_name:
            raise ValueError("Could not determine the repository owner and name")
        owner, repo = full_name.split("/", maxsplit=1)

        if pull_request.get("number") is None and payload.get("number") is not None:
            pull_request = {**pull_request, "number": payload["number"]}
        if pull_request.get("number") is None:
            raise ValueError("Event payload does not contain a pull request number")

        return cls.from_pull_request(pull_request, owner, repo)


def load_event(path: str) -> dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))
