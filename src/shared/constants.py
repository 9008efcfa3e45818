"""Shared constants used by the ticket check entrypoints."""

from __future__ import annotations

GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"

# Per-request timeout for GitHub REST calls, in seconds
GITHUB_HTTP_TIMEOUT = 20

# Installation tokens are refreshed this many seconds before GitHub expires them
INSTALLATION_TOKEN_REFRESH_MARGIN = 60
