"""Tests for ticket_check.resolver: stage precedence, extraction, title formatting."""

from __future__ import annotations

from typing import Any, Optional
from unittest.mock import MagicMock, patch

import pytest

from ticket_check.config import PatternInput, TicketCheckConfig
from ticket_check.context import AuthorKind, PullRequestContext
from ticket_check.resolver import (
    BODY_EXTRACTION_FAILED,
    BODY_MISSING,
    BRANCH_EXTRACTION_FAILED,
    NO_TICKET_REFERENCED,
    OutcomeKind,
    Stage,
    TicketResolver,
    TicketSource,
    extract_id,
    format_title,
    notice_for,
)


class FakeDiagnostics:
    def __init__(self) -> None:
        self.entries: list[tuple[str, str]] = []
        self.failures: list[str] = []

    def debug(self, label: str, message: str) -> None:
        self.entries.append((label, message))

    def fail(self, message: str) -> None:
        self.failures.append(message)

    def labels(self) -> list[str]:
        return [label for label, _ in self.entries]


def _config(**overrides: Any) -> TicketCheckConfig:
    values: dict[str, Any] = {
        "ticket": PatternInput(source=r"[A-Z]+-\d+"),
        "title": PatternInput(source=r"^\[?[A-Z]+-\d+", flags="g"),
        "branch": PatternInput(source=r"[A-Z]+-\d+", flags="gi"),
        "body": PatternInput(source=r"(?:closes|fixes) [A-Z]+-\d+", flags="gim"),
        "title_format": "%id%: %title%",
        "ticket_prefix": "",
        "exempt_users": "",
    }
    values.update(overrides)
    return TicketCheckConfig(**values)


def _ctx(
    title: str = "Fix bug",
    branch: str = "main-fix",
    body: Optional[str] = "",
    login: str = "alice",
    kind: AuthorKind = AuthorKind.USER,
) -> PullRequestContext:
    return PullRequestContext(
        owner="o",
        repo="r",
        number=7,
        title=title,
        branch=branch,
        body=body,
        author_login=login,
        author_kind=kind,
    )


def _resolver(config: TicketCheckConfig) -> tuple[TicketResolver, MagicMock, FakeDiagnostics]:
    mutator = MagicMock()
    diagnostics = FakeDiagnostics()
    return TicketResolver(config, mutator, diagnostics), mutator, diagnostics


# -- extract_id ----------------------------------------------------------------


def test_extract_id_returns_first_full_match() -> None:
    assert extract_id("feature/ABC-12-and-DEF-34", PatternInput(source=r"[A-Z]+-\d+")) == "ABC-12"


def test_extract_id_returns_none_without_match() -> None:
    assert extract_id("feature/login", PatternInput(source=r"[A-Z]+-\d+")) is None


# -- format_title --------------------------------------------------------------


class TestFormatTitle:
    def test_replaces_each_placeholder(self) -> None:
        assert format_title("%prefix%-%id%: %title%", "JIRA", "1234", "Fix bug") == "JIRA-1234: Fix bug"

    def test_title_containing_placeholder_is_not_substituted_again(self) -> None:
        assert format_title("%prefix%-%id%: %title%", "JIRA", "1234", "Fix %id% parsing") == (
            "JIRA-1234: Fix %id% parsing"
        )

    def test_prefix_containing_placeholder_is_not_rescanned(self) -> None:
        assert format_title("%prefix%%id% %title%", "%title%", "7", "Fix") == "%title%7 Fix"

    def test_only_first_occurrence_is_replaced(self) -> None:
        assert format_title("%id% %id% %title%", "", "42", "Fix") == "42 %id% Fix"

    def test_missing_placeholders_are_left_alone(self) -> None:
        assert format_title("%title% (%prefix%)", "", "42", "Fix") == "Fix ()"


# -- title stage ---------------------------------------------------------------


def test_title_match_approves_without_mutation() -> None:
    resolver, mutator, diagnostics = _resolver(_config(exempt_users="alice"))

    outcome = resolver.resolve(_ctx(title="ABC-1 Fix bug", branch="XYZ-9-thing", body="Closes XYZ-10"))

    assert outcome.kind is OutcomeKind.APPROVED
    assert mutator.method_calls == []
    assert diagnostics.failures == []
    assert "sender" not in diagnostics.labels()


def test_step_moves_from_title_to_exemption_when_title_does_not_match() -> None:
    resolver, _, _ = _resolver(_config())
    assert resolver.step(Stage.CHECK_TITLE, _ctx()) is Stage.CHECK_EXEMPTION


def test_step_moves_through_stages_in_order() -> None:
    resolver, _, _ = _resolver(_config())
    ctx = _ctx()
    assert resolver.step(Stage.CHECK_EXEMPTION, ctx) is Stage.CHECK_BRANCH
    assert resolver.step(Stage.CHECK_BRANCH, ctx) is Stage.CHECK_BODY


# -- exemption stage -----------------------------------------------------------


def test_exempt_user_skips_branch_and_body() -> None:
    resolver, mutator, diagnostics = _resolver(_config(exempt_users="bob, alice ,carol"))

    outcome = resolver.resolve(_ctx(branch="feature/ABC-1", body="Closes ABC-2"))

    assert outcome.kind is OutcomeKind.EXEMPTED
    assert mutator.method_calls == []
    assert diagnostics.failures == []


def test_bot_sender_is_normalized_before_exemption() -> None:
    resolver, mutator, _ = _resolver(_config(exempt_users="dependabot"))

    outcome = resolver.resolve(_ctx(login="dependabot[bot]", kind=AuthorKind.BOT, branch="feature/ABC-1"))

    assert outcome.kind is OutcomeKind.EXEMPTED
    assert mutator.method_calls == []


def test_bot_login_with_marker_is_not_exempt_under_full_name() -> None:
    resolver, _, _ = _resolver(_config(exempt_users="dependabot[bot]"))

    outcome = resolver.resolve(_ctx(login="dependabot[bot]", kind=AuthorKind.BOT, branch="feature/ABC-1"))

    assert outcome.kind is OutcomeKind.TITLE_UPDATED


def test_user_kind_keeps_marker_in_sender() -> None:
    resolver, _, diagnostics = _resolver(_config(exempt_users="foo"))

    outcome = resolver.resolve(_ctx(login="foo[bot]", kind=AuthorKind.USER, branch="feature/ABC-1"))

    assert outcome.kind is OutcomeKind.TITLE_UPDATED
    assert ("sender", "foo[bot]") in diagnostics.entries


def test_empty_sender_is_never_exempt() -> None:
    resolver, _, _ = _resolver(_config(exempt_users="alice,"))
    assert resolver.step(Stage.CHECK_EXEMPTION, _ctx(login="")) is Stage.CHECK_BRANCH


# -- branch stage --------------------------------------------------------------


def test_branch_reference_updates_title_and_comments() -> None:
    resolver, mutator, _ = _resolver(_config())

    outcome = resolver.resolve(_ctx(branch="feature/ABC-12-login"))

    assert outcome.kind is OutcomeKind.TITLE_UPDATED
    assert outcome.source is TicketSource.BRANCH
    assert outcome.new_title == "ABC-12: Fix bug"
    mutator.update_title.assert_called_once_with("o", "r", 7, "ABC-12: Fix bug")
    mutator.post_comment.assert_called_once_with("o", "r", 7, notice_for(TicketSource.BRANCH), event="COMMENT")


def test_branch_takes_precedence_over_body() -> None:
    resolver, mutator, _ = _resolver(_config())

    outcome = resolver.resolve(_ctx(branch="feature/ABC-1", body="Closes XYZ-2"))

    assert outcome.new_title == "ABC-1: Fix bug"
    mutator.update_title.assert_called_once_with("o", "r", 7, "ABC-1: Fix bug")


def test_quiet_mode_updates_title_without_comment() -> None:
    resolver, mutator, _ = _resolver(_config(quiet="true"))

    resolver.resolve(_ctx(branch="feature/ABC-1"))

    assert mutator.update_title.call_count == 1
    assert mutator.post_comment.call_count == 0


def test_branch_extraction_failure_does_not_check_body() -> None:
    # Branch pattern is case-insensitive, ticket pattern is not.
    config = _config()
    with patch.object(TicketResolver, "_check_body") as body_stage:
        resolver, mutator, diagnostics = _resolver(config)
        outcome = resolver.resolve(_ctx(branch="feature/abc-1", body="Closes XYZ-2"))

    assert outcome.kind is OutcomeKind.REJECTED
    assert outcome.message == BRANCH_EXTRACTION_FAILED
    assert diagnostics.failures == [BRANCH_EXTRACTION_FAILED]
    body_stage.assert_not_called()
    assert mutator.method_calls == []


def test_update_failure_propagates_and_skips_comment() -> None:
    resolver, mutator, _ = _resolver(_config())
    mutator.update_title.side_effect = RuntimeError("HTTP 500")

    with pytest.raises(RuntimeError, match="HTTP 500"):
        resolver.resolve(_ctx(branch="feature/ABC-1"))

    mutator.post_comment.assert_not_called()


# -- body stage ----------------------------------------------------------------


def test_body_reference_uses_matched_text_only() -> None:
    resolver, mutator, diagnostics = _resolver(_config())

    outcome = resolver.resolve(_ctx(body="Related to ABC-1.\n\nCloses TICK-7"))

    assert outcome.kind is OutcomeKind.TITLE_UPDATED
    assert outcome.source is TicketSource.BODY
    assert outcome.new_title == "TICK-7: Fix bug"
    mutator.post_comment.assert_called_once_with("o", "r", 7, notice_for(TicketSource.BODY), event="COMMENT")
    assert ("body contents", "Related to ABC-1.\n\nCloses TICK-7") in diagnostics.entries


def test_body_extraction_failure_rejects() -> None:
    resolver, mutator, diagnostics = _resolver(_config(body=PatternInput(source=r"#\d+", flags="g")))

    outcome = resolver.resolve(_ctx(body="Fixes #12"))

    assert outcome.kind is OutcomeKind.REJECTED
    assert diagnostics.failures == [BODY_EXTRACTION_FAILED]
    assert mutator.method_calls == []


def test_missing_body_rejects() -> None:
    resolver, _, diagnostics = _resolver(_config())

    outcome = resolver.resolve(_ctx(body=None))

    assert outcome.message == BODY_MISSING
    assert diagnostics.failures == [BODY_MISSING]


def test_no_reference_anywhere_rejects() -> None:
    resolver, mutator, diagnostics = _resolver(_config())

    outcome = resolver.resolve(_ctx(body="Just a description"))

    assert outcome.kind is OutcomeKind.REJECTED
    assert outcome.failed
    assert diagnostics.failures == [NO_TICKET_REFERENCED]
    assert mutator.method_calls == []


def test_notice_mentions_where_the_ticket_was_found() -> None:
    assert "in the branch name but not in the title" in notice_for(TicketSource.BRANCH)
    assert "in the body but not in the title" in notice_for(TicketSource.BODY)


# -- end to end ----------------------------------------------------------------


def test_branch_ticket_rewrites_title_with_prefix_template() -> None:
    config = _config(
        ticket=PatternInput(source=r"\d+"),
        title=PatternInput(source=r"^\[TICK-\d+\]", flags="g"),
        branch=PatternInput(source=r"TICK-\d+", flags="g"),
        title_format="[%prefix%-%id%] %title%",
        ticket_prefix="TICK",
    )
    resolver, mutator, _ = _resolver(config)

    outcome = resolver.resolve(_ctx(title="Add login flow", branch="feature/TICK-42-login"))

    assert outcome.new_title == "[TICK-42] Add login flow"
    mutator.update_title.assert_called_once_with("o", "r", 7, "[TICK-42] Add login flow")
    assert mutator.post_comment.call_count == 1
