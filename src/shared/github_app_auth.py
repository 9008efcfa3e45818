import json
import time
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

import boto3
import jwt
import requests
from botocore.client import BaseClient

from shared.constants import GITHUB_API_BASE, GITHUB_API_VERSION, INSTALLATION_TOKEN_REFRESH_MARGIN


def _parse_expiry(value: Optional[str]) -> float:
    # GitHub returns e.g. "2024-01-01T00:00:00Z"; tokens live one hour.
    if not value:
        return time.time() + 3600
    return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()


class GitHubAppAuth:
    """Mints GitHub App installation tokens from credentials kept in Secrets Manager.

    The app-ids secret holds ``{"app_id": ..., "installation_id": ...}``; the
    private key secret holds the PEM. Tokens are memoized per installation
    until shortly before they expire.
    """

    def __init__(
        self,
        app_ids_secret_arn: str,
        private_key_secret_arn: str,
        api_base: str = GITHUB_API_BASE,
        secrets_client: Optional[BaseClient] = None,
        http_session: Optional[requests.Session] = None,
    ) -> None:
        self._app_ids_secret_arn = app_ids_secret_arn
        self._private_key_secret_arn = private_key_secret_arn
        self._api_base = api_base.rstrip("/")
        self._secrets = secrets_client or boto3.client("secretsmanager")
        self._session = http_session or requests.Session()
        self._app_ids: Optional[Tuple[str, str]] = None
        self._private_key: Optional[str] = None
        self._tokens: Dict[str, Tuple[str, float]] = {}

    def _read_secret_string(self, secret_arn: str) -> str:
        response = self._secrets.get_secret_value(SecretId=secret_arn)
        secret_string = response.get("SecretString")
        if not secret_string:
            raise ValueError(f"Secret {secret_arn} has no SecretString")
        return secret_string

    def _load_app_ids(self) -> Tuple[str, str]:
        if self._app_ids is None:
            payload = json.loads(self._read_secret_string(self._app_ids_secret_arn))
            self._app_ids = (str(payload["app_id"]), str(payload["installation_id"]))
        return self._app_ids

    def _load_private_key(self) -> str:
        if self._private_key is None:
            self._private_key = self._read_secret_string(self._private_key_secret_arn)
        return self._private_key

    def create_app_jwt(self) -> str:
        app_id, _ = self._load_app_ids()
        now = int(time.time())
        payload = {
            "iat": now - 60,
            "exp": now + 540,
            "iss": app_id,
        }
        token = jwt.encode(payload, self._load_private_key(), algorithm="RS256")
        return token if isinstance(token, str) else token.decode("utf-8")

    def get_installation_token(self, installation_id_override: Optional[str] = None) -> str:
        _, default_installation_id = self._load_app_ids()
        installation_id = installation_id_override or default_installation_id

        cached = self._tokens.get(installation_id)
        if cached and cached[1] - INSTALLATION_TOKEN_REFRESH_MARGIN > time.time():
            return cached[0]

        response = self._session.post(
            f"{self._api_base}/app/installations/{installation_id}/access_tokens",
            headers={
                "Authorization": f"Bearer {self.create_app_jwt()}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
            timeout=15,
        )
        response.raise_for_status()
        data = response.json()
        token = data.get("token")
        if not token:
            raise ValueError("GitHub installation token missing from response")

        self._tokens[installation_id] = (token, _parse_expiry(data.get("expires_at")))
        return token

    def token_provider(self, installation_id: Optional[str] = None) -> Callable[[], str]:
        """Return a callable suitable for ``GitHubClient(token_provider=...)``."""
        return lambda: self.get_installation_token(installation_id)
