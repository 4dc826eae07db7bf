"""Shared-secret check for the admin area."""

import hmac

from alphascan.config import settings
from alphascan.logging import logger


def verify_password(candidate: str | None, secret: str | None = None) -> bool:
    """
    🔐 Compare a candidate password with the configured admin secret.

    Surrounding whitespace is ignored on both sides. An empty configured
    secret never matches, so an unconfigured deployment stays locked.

    Args:
        candidate: Password submitted by the user
        secret: Secret to compare against (defaults to settings.admin_password)

    Returns:
        True if the candidate matches the secret
    """
    expected = (secret if secret is not None else settings.admin_password).strip()
    provided = (candidate or "").strip()

    if not expected:
        logger.warning("Admin password is not configured; denying access")
        return False

    granted = hmac.compare_digest(provided.encode(), expected.encode())
    logger.info(
        "Admin password check input_provided={provided} granted={granted}",
        provided=bool(provided),
        granted=granted,
    )
    return granted
