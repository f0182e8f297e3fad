"""Structured logging helpers for the Cognito client.

This module purposefully restricts **which** contextual attributes are attached
to log records in order to avoid accidentally leaking secrets.  All helpers
ONLY inject the following *non-sensitive* fields:

- ``pool_id``        – The user pool identifier
- ``client_id``      – App client id (first 6 chars kept)
- ``user_name``      – Login name (first 3 chars kept)
- ``correlation_id`` – Optional id supplied by outer layers

Tokens, passwords and SRP values never reach a log record in full; use
:func:`mask_sensitive` when a fragment helps debugging.

Usage
-----
>>> from cognito_client.log_utils import get_auth_logger
>>> log = get_auth_logger(
...     base_logger_name="cognito-client.session",
...     pool_id="eu-west-1_abc123",
...     client_id="1example23456789",
... )
>>> log.info("Starting authentication")
INFO cognito-client.session pool_id=eu-west-1_abc123 client_id=1examp ...
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping

_TRUNCATE: dict[str, int] = {"client_id": 6, "user_name": 3}


def mask_sensitive(value: str | None, keep: int = 4) -> str:
    """Return *value* truncated to *keep* characters followed by ``****``."""
    if not value:
        return "<empty>"
    if keep <= 0 or len(value) <= keep:
        return "****"
    return f"{value[:keep]}****"


class _AuthLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted auth context into log records."""

    extra_keys = ("pool_id", "client_id", "user_name", "correlation_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if not extra or extra.get(k) is None:
                continue
            if k in _TRUNCATE:
                extra_clean[k] = str(extra[k])[: _TRUNCATE[k]]
            else:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if "extra" not in kwargs or kwargs["extra"] is None:
            kwargs["extra"] = {}
        # merge but do not overwrite call-site provided extras
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        return msg, kwargs


def get_auth_logger(
    *,
    base_logger_name: str = "cognito-client",
    pool_id: str | None = None,
    client_id: str | None = None,
    user_name: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with auth context."""
    logger = logging.getLogger(base_logger_name)
    return _AuthLoggerAdapter(
        logger,
        {
            "pool_id": pool_id,
            "client_id": client_id,
            "user_name": user_name,
            "correlation_id": correlation_id,
        },
    )
