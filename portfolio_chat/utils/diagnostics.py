"""
DIAGNOSTICS LOGGING
===================

Logs the outbound provider payload and failure details. Both helpers are
best-effort: a payload that can't be serialized or a broken handler is
reported once at debug level and never reaches the request path.
"""

import json
import logging
import traceback
from typing import Any, Dict, Optional


logger = logging.getLogger("PortfolioChat")


def log_outbound_payload(provider_name: str, messages: Any) -> None:
    """Log the full message list sent to the provider (indented JSON)."""
    try:
        logger.info(
            "Calling %s with messages: %s",
            provider_name,
            json.dumps(messages, indent=2, ensure_ascii=False, default=str),
        )
    except Exception as e:  # logging must never break a chat request
        logger.debug("Could not log outbound payload: %s", e)


def error_details(exc: BaseException) -> Dict[str, Optional[str]]:
    """message / code / name / stack of an exception, for the error log."""
    return {
        "message": str(exc),
        "code": getattr(exc, "code", None),
        "name": type(exc).__name__,
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    }


def log_error_detail(context: str, exc: BaseException) -> None:
    try:
        details = error_details(exc)
        stack = details.pop("stack")
        logger.error("%s: %s\n%s", context, json.dumps(details, default=str), stack)
    except Exception as e:
        logger.debug("Could not log error detail: %s", e)
