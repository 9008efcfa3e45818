#!/usr/bin/env python3
"""Run the ticket check against the sample event without touching GitHub."""
import os
import sys

sys.path.append("src")
from ticket_check.app import main  # noqa: E402


def main_local() -> int:
    env = dict(os.environ)
    env.setdefault("GITHUB_EVENT_PATH", "scripts/sample_pull_request_event.json")
    env.setdefault("INPUT_TOKEN", "local-dev-token")
    env.setdefault("INPUT_TICKETREGEX", r"\d+")
    env.setdefault("INPUT_TITLEREGEX", r"^\[TICK-\d+\]")
    env.setdefault("INPUT_TITLEREGEXFLAGS", "g")
    env.setdefault("INPUT_BRANCHREGEX", r"TICK-\d+")
    env.setdefault("INPUT_BRANCHREGEXFLAGS", "gi")
    env.setdefault("INPUT_BODYREGEX", r"TICK-\d+")
    env.setdefault("INPUT_BODYREGEXFLAGS", "gim")
    env.setdefault("INPUT_TITLEFORMAT", "[%prefix%-%id%] %title%")
    env.setdefault("INPUT_TICKETPREFIX", "TICK")
    env["INPUT_DRYRUN"] = "true"
    return main(env)


if __name__ == "__main__":
    raise SystemExit(main_local())
