"""Ticket detection and title resolution.

The check runs as a small state machine over the pull request:

    CHECK_TITLE -> CHECK_EXEMPTION -> CHECK_BRANCH -> CHECK_BODY

Each stage either hands over to the next one or finishes with an ``Outcome``.
The first stage that finishes wins, so a title reference always beats an
exemption, and a branch reference always beats one in the body.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Protocol, Union

from shared.logging import get_logger
from ticket_check.config import PatternInput, TicketCheckConfig
from ticket_check.context import PullRequestContext

logger = get_logger("ticket_check.resolver")

_PLACEHOLDER_RE = re.compile(r"%prefix%|%id%|%title%")

_NOTICE = (
    "Hey! I noticed that your PR contained a reference to the ticket in the {where} but not in the title. "
    "I went ahead and updated that for you. Hope you don't mind! ☺️"
)

BRANCH_EXTRACTION_FAILED = "Could not extract a ticket ID reference from the branch"
BODY_MISSING = "Could not retrieve the Pull Request body"
BODY_EXTRACTION_FAILED = "Could not extract a ticket shorthand reference from the body"
NO_TICKET_REFERENCED = "No ticket was referenced in this pull request"


class Stage(str, Enum):
    CHECK_TITLE = "check_title"
    CHECK_EXEMPTION = "check_exemption"
    CHECK_BRANCH = "check_branch"
    CHECK_BODY = "check_body"


class OutcomeKind(str, Enum):
    APPROVED = "approved"
    EXEMPTED = "exempted"
    TITLE_UPDATED = "title_updated"
    REJECTED = "rejected"


class TicketSource(str, Enum):
    BRANCH = "branch name"
    BODY = "body"


@dataclass(frozen=True)
class TicketReference:
    raw: str
    identifier: Optional[str]


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    source: Optional[TicketSource] = None
    new_title: Optional[str] = None
    message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.kind is OutcomeKind.REJECTED


class Diagnostics(Protocol):
    def debug(self, label: str, message: str) -> None: ...

    def fail(self, message: str) -> None: ...


class PullRequestMutator(Protocol):
    def update_title(self, owner: str, repo: str, number: int, title: str) -> None: ...

    def post_comment(self, owner: str, repo: str, number: int, body: str, event: str = "COMMENT") -> None: ...


def extract_id(value: str, ticket_pattern: PatternInput) -> Optional[str]:
    """Return the first ticket identifier found in ``value``, if any."""
    match = ticket_pattern.search(value)
    if match is None:
        return None
    return match.group(0)


def format_title(template: str, prefix: str, ticket_id: str, title: str) -> str:
    """Fill the first ``%prefix%``, ``%id%`` and ``%title%`` in ``template``.

    Substitution is literal and single-pass: values are never scanned for
    placeholders themselves.
    """
    values = {"%prefix%": prefix, "%id%": ticket_id, "%title%": title}
    used: set[str] = set()

    def _replace(match: re.Match) -> str:
        token = match.group(0)
        if token in used:
            return token
        used.add(token)
        return values[token]

    return _PLACEHOLDER_RE.sub(_replace, template)


def notice_for(source: TicketSource) -> str:
    return _NOTICE.format(where=source.value)


Transition = Union[Stage, Outcome]


class TicketResolver:
    def __init__(
        self,
        config: TicketCheckConfig,
        mutator: PullRequestMutator,
        diagnostics: Diagnostics,
    ) -> None:
        self._config = config
        self._mutator = mutator
        self._diagnostics = diagnostics
        self._stages: Dict[Stage, Callable[[PullRequestContext], Transition]] = {
            Stage.CHECK_TITLE: self._check_title,
            Stage.CHECK_EXEMPTION: self._check_exemption,
            Stage.CHECK_BRANCH: self._check_branch,
            Stage.CHECK_BODY: self._check_body,
        }

    def resolve(self, ctx: PullRequestContext) -> Outcome:
        state: Transition = Stage.CHECK_TITLE
        while isinstance(state, Stage):
            state = self.step(state, ctx)

        logger.info(
            "ticket_check_resolved",
            extra={
                "repo": f"{ctx.owner}/{ctx.repo}",
                "pr_number": ctx.number,
                "outcome": state.kind.value,
            },
        )
        return state

    def step(self, stage: Stage, ctx: PullRequestContext) -> Transition:
        """Run a single stage and return the next stage or the final outcome."""
        return self._stages[stage](ctx)

    # ---- stages ----------------------------------------------------------

    def _check_title(self, ctx: PullRequestContext) -> Transition:
        self._diagnostics.debug("title", ctx.title)
        if self._config.title.search(ctx.title) is not None:
            self._diagnostics.debug("success", "Title includes a ticket ID")
            return Outcome(OutcomeKind.APPROVED)
        return Stage.CHECK_EXEMPTION

    def _check_exemption(self, ctx: PullRequestContext) -> Transition:
        sender = ctx.sender
        self._diagnostics.debug("sender", sender)
        self._diagnostics.debug("sender type", ctx.author_kind.value)
        self._diagnostics.debug("quiet mode", str(self._config.quiet).lower())
        self._diagnostics.debug("exempt users", ",".join(self._config.exempt_users))

        if self._config.is_exempt(sender):
            self._diagnostics.debug("success", "User is listed as exempt")
            return Outcome(OutcomeKind.EXEMPTED)
        return Stage.CHECK_BRANCH

    def _check_branch(self, ctx: PullRequestContext) -> Transition:
        if self._config.branch.search(ctx.branch) is None:
            return Stage.CHECK_BODY

        self._diagnostics.debug("success", "Branch name contains a reference to a ticket, updating title")
        reference = TicketReference(raw=ctx.branch, identifier=extract_id(ctx.branch, self._config.ticket))
        return self._apply(ctx, reference, TicketSource.BRANCH, BRANCH_EXTRACTION_FAILED)

    def _check_body(self, ctx: PullRequestContext) -> Transition:
        if ctx.body is None:
            self._diagnostics.debug("failure", "Body is undefined")
            return self._reject(BODY_MISSING)

        self._diagnostics.debug("body contents", ctx.body)
        match = self._config.body.search(ctx.body)
        if match is None:
            self._diagnostics.debug("failure", "Title, branch, and body do not contain a reference to a ticket")
            return self._reject(NO_TICKET_REFERENCED)

        self._diagnostics.debug("success", "Body contains a reference to a ticket, updating title")
        matched = match.group(0)
        reference = TicketReference(raw=matched, identifier=extract_id(matched, self._config.ticket))
        return self._apply(ctx, reference, TicketSource.BODY, BODY_EXTRACTION_FAILED)

    # ---- helpers ---------------------------------------------------------

    def _apply(
        self,
        ctx: PullRequestContext,
        reference: TicketReference,
        source: TicketSource,
        extraction_error: str,
    ) -> Outcome:
        if reference.identifier is None:
            return self._reject(extraction_error)

        new_title = format_title(
            self._config.title_format,
            self._config.ticket_prefix,
            reference.identifier,
            ctx.title,
        )
        # Comment only after the update returned.
        self._mutator.update_title(ctx.owner, ctx.repo, ctx.number, new_title)
        if not self._config.quiet:
            self._mutator.post_comment(ctx.owner, ctx.repo, ctx.number, notice_for(source), event="COMMENT")

        return Outcome(OutcomeKind.TITLE_UPDATED, source=source, new_title=new_title)

    def _reject(self, message: str) -> Outcome:
        self._diagnostics.fail(message)
        return Outcome(OutcomeKind.REJECTED, message=message)
