"""
Credential resolution for executors that call configured APIs.

Sources (``apiSourceType``):
    main         — api_settings (base path + bearer token)
    secondary    — a named secondary_api_configs row
    auth_config  — a login exchange against api_auth_config
    inline       — URL and token straight from the step config

For ``main``/``secondary`` an ``authConfigId`` overrides the stored token
with one obtained from a login exchange.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from app.core.constants import ApiSourceType
from app.core.logging import get_logger, mask_secret
from app.workflow.config_store import AuthConfig, ConfigStore
from app.workflow.errors import AuthenticationError, ConfigurationError

logger = get_logger(__name__)


@dataclass
class ResolvedCredentials:
    base_url: str = ""
    auth_token: str = ""
    source: str = ApiSourceType.INLINE.value


async def login_for_token(http: httpx.AsyncClient, auth: AuthConfig) -> str:
    """
    POST ``{username, password}`` to the login endpoint and return the token
    found under ``token_field_name``.

    Raises:
        ConfigurationError: The auth config lacks endpoint, username or password.
        AuthenticationError: The login failed or returned no token.
    """
    if not auth.is_complete:
        raise ConfigurationError(
            "Auth config missing required fields (login_endpoint, username, password)",
            details={"auth_config": auth.name},
        )

    try:
        response = await http.post(
            auth.login_endpoint,
            json={"username": auth.username, "password": auth.password},
            headers={"Content-Type": "application/json"},
        )
    except httpx.HTTPError as exc:
        raise AuthenticationError(f"Authentication login failed: {exc}") from exc

    if not response.is_success:
        raise AuthenticationError(f"Authentication login failed: {response.status_code} {response.text}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise AuthenticationError(f"Authentication login returned invalid JSON: {exc}") from exc

    token_field = auth.token_field_name or "access_token"
    token = payload.get(token_field) if isinstance(payload, dict) else None
    if not token:
        raise AuthenticationError(f"Login response missing '{token_field}' field")

    logger.info("Token authentication successful", auth_config=auth.name, token=mask_secret(str(token)))
    return str(token)


async def resolve_credentials(
    config: dict[str, Any],
    store: ConfigStore,
    http: httpx.AsyncClient,
    *,
    default_source: str = ApiSourceType.MAIN.value,
) -> ResolvedCredentials:
    """Resolve base URL + token for a step according to its ``apiSourceType``."""
    source = config.get("apiSourceType") or default_source
    creds = ResolvedCredentials(source=source)

    if source == ApiSourceType.MAIN:
        settings_row = await store.main_api_settings()
        if settings_row is not None:
            creds.base_url = settings_row.base_url
            creds.auth_token = settings_row.auth_token
            logger.info("Loaded main API config", token=mask_secret(creds.auth_token))
    elif source == ApiSourceType.SECONDARY and config.get("secondaryApiId"):
        secondary = await store.secondary_api_config(str(config["secondaryApiId"]))
        if secondary is not None:
            creds.base_url = secondary.base_url
            creds.auth_token = secondary.auth_token
            logger.info("Loaded secondary API config", name=secondary.name, token=mask_secret(creds.auth_token))
    elif source == ApiSourceType.INLINE:
        creds.base_url = config.get("baseUrl") or ""
        creds.auth_token = config.get("authToken") or ""

    auth_config_id = config.get("authConfigId")
    if auth_config_id and source in (ApiSourceType.MAIN, ApiSourceType.SECONDARY, ApiSourceType.AUTH_CONFIG):
        auth = await store.auth_config(str(auth_config_id))
        if auth is None:
            raise ConfigurationError(f"Auth config not found: {auth_config_id}")
        creds.auth_token = await login_for_token(http, auth)

    return creds
