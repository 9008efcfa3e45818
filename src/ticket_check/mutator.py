from __future__ import annotations

from shared.github_client import GitHubClient
from shared.logging import get_logger

logger = get_logger("ticket_check.mutator")


class GitHubPullRequestMutator:
    """Applies the resolver's title updates and review comments through the REST API.

    With ``dry_run`` set, requests are logged and not sent.
    """

    def __init__(self, client: GitHubClient, dry_run: bool = False) -> None:
        self._client = client
        self._dry_run = dry_run

    def update_title(self, owner: str, repo: str, number: int, title: str) -> None:
        log = logger.bind(repo=f"{owner}/{repo}", pr_number=number)
        if self._dry_run:
            log.info("dry_run_title_update", extra={"extra": {"title": title}})
            return
        self._client.update_pull_request(owner, repo, number, title=title)
        log.info("pr_title_updated", extra={"extra": {"title": title}})

    def post_comment(self, owner: str, repo: str, number: int, body: str, event: str = "COMMENT") -> None:
        log = logger.bind(repo=f"{owner}/{repo}", pr_number=number)
        if self._dry_run:
            log.info("dry_run_review_comment", extra={"extra": {"event": event}})
            return
        self._client.create_pull_review(owner, repo, number, body, event=event)
        log.info("pr_review_comment_posted", extra={"extra": {"event": event}})
