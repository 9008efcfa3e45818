"""Ticket check entrypoints.

Supports two triggers:
- GitHub Actions (``python -m ticket_check``): inputs from ``INPUT_*``
  variables, the pull request from the event file at ``GITHUB_EVENT_PATH``.
- SQS (Lambda): each record names a pull request, which is fetched through
  the GitHub App installation and checked with ``TICKET_CHECK_*`` settings.
"""

from __future__ import annotations

import json
import os
from typing import Any, Mapping, Optional

from shared.constants import GITHUB_API_BASE
from shared.github_app_auth import GitHubAppAuth
from shared.github_client import GitHubClient
from shared.logging import get_logger
from ticket_check.config import InputReader, TicketCheckConfig, load_config
from ticket_check.context import PullRequestContext, load_event
from ticket_check.diagnostics import ActionDiagnostics, LoggingDiagnostics
from ticket_check.mutator import GitHubPullRequestMutator
from ticket_check.resolver import Diagnostics, Outcome, TicketResolver

logger = get_logger("ticket_check")


def run_check(
    gh: GitHubClient,
    ctx: PullRequestContext,
    config: TicketCheckConfig,
    diagnostics: Diagnostics,
) -> Outcome:
    mutator = GitHubPullRequestMutator(gh, dry_run=config.dry_run)
    return TicketResolver(config, mutator, diagnostics).resolve(ctx)


# ---- GitHub Actions ----------------------------------------------------------


def main(environ: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if environ is None else environ
    diagnostics = ActionDiagnostics()

    try:
        event_path = env.get("GITHUB_EVENT_PATH")
        if not event_path:
            raise ValueError("GITHUB_EVENT_PATH is not set")
        event = load_event(event_path)
        diagnostics.debug("context", json.dumps(event))

        config = load_config(InputReader(env, style="action"))
        ctx = PullRequestContext.from_event(event, repository=env.get("GITHUB_REPOSITORY"))
        gh = GitHubClient(
            token_provider=lambda: config.token,
            api_base=env.get("GITHUB_API_URL") or GITHUB_API_BASE,
        )
        run_check(gh, ctx, config, diagnostics)
    except Exception as exc:  # noqa: BLE001
        logger.exception("ticket_check_error")
        diagnostics.fail(str(exc))

    return 1 if diagnostics.failed else 0


# ---- Lambda handler ----------------------------------------------------------


def _build_client(config: TicketCheckConfig, installation_id: Optional[str]) -> GitHubClient:
    api_base = os.getenv("GITHUB_API_BASE", GITHUB_API_BASE)
    if config.token:
        return GitHubClient(token_provider=lambda: config.token, api_base=api_base)

    auth = GitHubAppAuth(
        app_ids_secret_arn=os.environ["GITHUB_APP_IDS_SECRET_ARN"],
        private_key_secret_arn=os.environ["GITHUB_APP_PRIVATE_KEY_SECRET_ARN"],
        api_base=api_base,
    )
    return GitHubClient(token_provider=auth.token_provider(installation_id), api_base=api_base)


def _process_sqs_record(record: dict[str, Any]) -> Outcome:
    """Check a single pull request named by an SQS record."""
    message = json.loads(record["body"])
    owner, repo = message["repo_full_name"].split("/", maxsplit=1)
    pr_number = int(message["pr_number"])
    installation_id = str(message["installation_id"]) if message.get("installation_id") else None

    config = load_config(InputReader(os.environ, style="lambda"), require_token=False)
    gh = _build_client(config, installation_id)

    pr = gh.get_pull_request(owner, repo, pr_number)
    ctx = PullRequestContext.from_pull_request(pr, owner, repo)

    diagnostics = LoggingDiagnostics(logger.bind(repo=f"{owner}/{repo}", pr_number=pr_number))
    outcome = run_check(gh, ctx, config, diagnostics)
    if outcome.failed:
        logger.warning(
            "ticket_missing",
            extra={"repo": f"{owner}/{repo}", "pr_number": pr_number, "extra": {"reason": outcome.message}},
        )
    return outcome


def lambda_handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    failures: list[dict[str, str]] = []
    for record in event.get("Records") or []:
        try:
            _process_sqs_record(record)
        except Exception:  # noqa: BLE001
            logger.exception("ticket_check_record_failed", extra={"message_id": record.get("messageId")})
            failures.append({"itemIdentifier": record["messageId"]})
    return {"batchItemFailures": failures}
