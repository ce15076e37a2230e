"""Authentication helpers for Databricks.

This module centralizes creation of a Databricks WorkspaceClient per
environment and applies small but important normalization rules (such as
sanitizing the host URL) to avoid subtle SDK and API issues.
"""

import re

from databricks.sdk import WorkspaceClient
from databricks.sdk.core import Config

from dbcomply.core.environments import Environment


class AuthError(RuntimeError):
    """Raised when Databricks authentication fails."""


def _format_auth_error(message: str, profile: str | None) -> str:
    """Return a user-friendly auth error message."""
    login_match = re.search(r"databricks auth login ([^\s]+)", message)
    host = login_match.group(1) if login_match else None
    if host:
        cmd = "databricks auth login"
        if profile:
            cmd = f"{cmd} --profile {profile}"
        return (
            "Databricks authentication failed. Your refresh token is invalid.\n"
            f"Re-authenticate with:\n  $ {cmd}"
        )
    return f"Databricks authentication failed: {message}"


def _sanitize_host(host: str | None) -> str | None:
    """
    Normalize a Databricks host URL.

    - Removes query strings (e.g. '?o=123456789')
    - Removes trailing slashes
    """
    if not host:
        return host
    host = host.split("?", 1)[0]
    return host.rstrip("/")


def get_client(
    environment: Environment, *, http_timeout: int = 30, retry_timeout: int = 1
) -> WorkspaceClient:
    """
    Create and return a WorkspaceClient for one environment.

    A configured profile wins; otherwise the environment host and token are
    used, and with no token the SDK's unified auth chain (environment
    variables, Databricks Apps OAuth) resolves credentials.

    The SDK's built-in retry window is kept short (`retry_timeout` seconds;
    0 would mean its 300s default) so rate limiting reaches the
    RateLimitedTransport instead of being retried inside the client.
    """
    timeouts = {
        "http_timeout_seconds": http_timeout,
        "retry_timeout_seconds": max(retry_timeout, 1),
    }
    try:
        if environment.profile:
            cfg = Config(profile=environment.profile, **timeouts)
        else:
            cfg = Config(
                host=_sanitize_host(environment.base_url),
                token=environment.auth_token,
                **timeouts,
            )
    except ValueError as exc:
        raise AuthError(_format_auth_error(str(exc), environment.profile)) from exc
    cfg.host = _sanitize_host(cfg.host)
    return WorkspaceClient(config=cfg)
