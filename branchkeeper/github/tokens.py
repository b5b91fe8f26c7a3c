"""Credential issuers for git and API authentication.

An issuer returns a fresh short-lived token each time issue() is called.
The active issuer is selected by name (BRANCHKEEPER_TOKEN_SOURCE).

To add a new issuer:
  1. Subclass TokenIssuer
  2. Add it to _ISSUERS below
"""
from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Mapping

import httpx

from ..config import BranchkeeperConfig

logger = logging.getLogger("branchkeeper.github.tokens")

TOKEN_ENV_VARS = ("OVERRIDE_GITHUB_TOKEN", "GITHUB_TOKEN")


class TokenIssuer(ABC):
    """Base class for all credential issuers."""

    name = ""

    @abstractmethod
    def issue(self) -> str:
        """Return a fresh token.

        Raises RuntimeError when no token can be obtained.
        """


class EnvTokenIssuer(TokenIssuer):
    """Reads the token from the environment on every call.

    A supervising process may rotate the variable while the run is live.
    """

    name = "env"

    def __init__(self, config: BranchkeeperConfig | None = None, env: Mapping[str, str] | None = None) -> None:
        self._env = env

    def issue(self) -> str:
        env = os.environ if self._env is None else self._env
        for var in TOKEN_ENV_VARS:
            token = env.get(var, "").strip()
            if token:
                logger.debug("Using token from %s", var)
                return token
        raise RuntimeError(f"No token found in {' or '.join(TOKEN_ENV_VARS)}")


class OidcTokenIssuer(TokenIssuer):
    """Exchanges the CI job's OIDC identity token for an app installation token."""

    name = "oidc"

    def __init__(self, config: BranchkeeperConfig, env: Mapping[str, str] | None = None) -> None:
        self.exchange_url = config.token_exchange_url
        self.audience = config.token_audience
        self.timeout = config.http_timeout
        self._env = env

    def _request_oidc_token(self, env: Mapping[str, str]) -> str:
        request_url = env.get("ACTIONS_ID_TOKEN_REQUEST_URL", "")
        request_token = env.get("ACTIONS_ID_TOKEN_REQUEST_TOKEN", "")
        if not request_url or not request_token:
            raise RuntimeError(
                "OIDC token request is unavailable; the job needs 'id-token: write' permission"
            )
        response = httpx.get(
            request_url,
            params={"audience": self.audience},
            headers={"Authorization": f"Bearer {request_token}"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        value = response.json().get("value", "")
        if not value:
            raise RuntimeError("OIDC provider returned an empty token")
        return value

    def issue(self) -> str:
        if not self.exchange_url:
            raise RuntimeError("BRANCHKEEPER_TOKEN_EXCHANGE_URL is not configured")
        env = os.environ if self._env is None else self._env
        try:
            oidc_token = self._request_oidc_token(env)
            response = httpx.post(
                self.exchange_url,
                headers={"Authorization": f"Bearer {oidc_token}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RuntimeError(f"Token exchange failed: {exc.response.status_code}") from exc
        except httpx.RequestError as exc:
            raise RuntimeError(f"Token exchange connection failed: {exc}") from exc

        token = response.json().get("token", "")
        if not token:
            raise RuntimeError("Token exchange returned no token")
        logger.info("Obtained app token via OIDC exchange")
        return token


_ISSUERS: dict[str, type[TokenIssuer]] = {
    EnvTokenIssuer.name: EnvTokenIssuer,
    OidcTokenIssuer.name: OidcTokenIssuer,
}


def get_token_issuer(config: BranchkeeperConfig, env: Mapping[str, str] | None = None) -> TokenIssuer:
    """Return the issuer named by config.token_source."""
    request = config.token_source.lower()
    cls = _ISSUERS.get(request)
    if cls is None:
        raise ValueError(
            f"Unknown token source '{request}'. Available: {list(_ISSUERS.keys())}"
        )
    return cls(config, env=env)
