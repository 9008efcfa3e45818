"""Configuration inputs for the ticket check.

Inputs arrive as plain strings (GitHub Action ``INPUT_*`` variables or Lambda
environment variables). Regex inputs use JavaScript-style flag strings, so
they are translated and compiled here, once, before any check runs.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    # Only the first match is ever used, so these change nothing.
    "g": 0,
    "u": 0,
    "d": 0,
    # Sticky: handled by anchoring the match at the start of the text.
    "y": 0,
}

_JS_NAMED_GROUP_RE = re.compile(r"(?<!\\)\(\?<([A-Za-z_][A-Za-z0-9_]*)>")
_JS_BACKREF_RE = re.compile(r"\\k<([A-Za-z_][A-Za-z0-9_]*)>")

_TRUTHY = {"1", "true", "t", "yes", "y", "on"}


class ConfigError(Exception):
    """Raised when a required input is missing or an input is invalid."""


def _translate_pattern(source: str) -> str:
    source = _JS_NAMED_GROUP_RE.sub(r"(?P<\1>", source)
    return _JS_BACKREF_RE.sub(r"(?P=\1)", source)


def translate_flags(flags: str) -> int:
    value = 0
    for flag in flags:
        value |= _FLAG_MAP[flag]
    return value


class PatternInput(BaseModel):
    """A user-supplied regular expression plus its flag string."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: str
    flags: str = ""

    @field_validator("flags")
    @classmethod
    def validate_flags(cls, value: str) -> str:
        unknown = sorted({flag for flag in value if flag not in _FLAG_MAP})
        if unknown:
            raise ValueError(f"unsupported regex flags: {''.join(unknown)}")
        if len(set(value)) != len(value):
            raise ValueError(f"repeated regex flags: {value}")
        return value

    @model_validator(mode="after")
    def validate_compiles(self) -> "PatternInput":
        try:
            re.compile(_translate_pattern(self.source), translate_flags(self.flags))
        except re.error as exc:
            raise ValueError(f"invalid regular expression {self.source!r}: {exc}") from exc
        return self

    @property
    def sticky(self) -> bool:
        return "y" in self.flags

    @property
    def pattern(self) -> re.Pattern:
        # re keeps its own cache of compiled patterns
        return re.compile(_translate_pattern(self.source), translate_flags(self.flags))

    def search(self, text: str) -> Optional[re.Match]:
        if self.sticky:
            return self.pattern.match(text)
        return self.pattern.search(text)


class TicketCheckConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    ticket: PatternInput
    title: PatternInput
    branch: PatternInput
    body: PatternInput
    title_format: str
    ticket_prefix: str = ""
    exempt_users: tuple[str, ...] = ()
    quiet: bool = False
    dry_run: bool = False
    token: Optional[str] = None

    @field_validator("exempt_users", mode="before")
    @classmethod
    def split_exempt_users(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(user.strip() for user in value.split(","))
        return value

    @field_validator("quiet", mode="before")
    @classmethod
    def parse_quiet(cls, value: Any) -> Any:
        # Only the literal "true" turns quiet mode on.
        if isinstance(value, str):
            return value == "true"
        return value

    @field_validator("dry_run", mode="before")
    @classmethod
    def parse_dry_run(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() in _TRUTHY
        return value

    def is_exempt(self, sender: str) -> bool:
        return bool(sender) and sender in self.exempt_users


_INPUT_STYLES = ("action", "lambda")


def _env_key(name: str, style: str) -> str:
    if style == "action":
        return "INPUT_" + name.replace(" ", "_").upper()
    return "TICKET_CHECK_" + re.sub(r"(?<!^)(?=[A-Z])", "_", name).upper()


class InputReader:
    """Reads named inputs from an environment mapping."""

    def __init__(self, environ: Mapping[str, str], style: str = "action") -> None:
        if style not in _INPUT_STYLES:
            raise ValueError(f"Unknown input style: {style}")
        self._environ = environ
        self._style = style

    def get_input(self, name: str, required: bool = False) -> str:
        value = (self._environ.get(_env_key(name, self._style)) or "").strip()
        if required and not value:
            raise ConfigError(f"Input required and not supplied: {name}")
        return value


def _pattern(reader: InputReader, name: str, flags_name: Optional[str] = None) -> PatternInput:
    source = reader.get_input(name, required=True)
    flags = reader.get_input(flags_name, required=True) if flags_name else ""
    try:
        return PatternInput(source=source, flags=flags)
    except ValidationError as exc:
        reasons = "; ".join(error["msg"] for error in exc.errors())
        raise ConfigError(f"Invalid {name}: {reasons}") from exc


def load_config(reader: InputReader, require_token: bool = True) -> TicketCheckConfig:
    """Read and validate every input before any check runs."""
    ticket = _pattern(reader, "ticketRegex")
    title = _pattern(reader, "titleRegex", "titleRegexFlags")
    branch = _pattern(reader, "branchRegex", "branchRegexFlags")
    body = _pattern(reader, "bodyRegex", "bodyRegexFlags")
    title_format = reader.get_input("titleFormat", required=True)
    token = reader.get_input("token", required=require_token) or None

    try:
        return TicketCheckConfig(
            ticket=ticket,
            title=title,
            branch=branch,
            body=body,
            title_format=title_format,
            ticket_prefix=reader.get_input("ticketPrefix"),
            exempt_users=reader.get_input("exemptUsers"),
            quiet=reader.get_input("quiet"),
            dry_run=reader.get_input("dryRun"),
            token=token,
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
