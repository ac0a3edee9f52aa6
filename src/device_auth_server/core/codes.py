"""Random identifiers for registration codes, device secrets and state tokens."""

import logging
import secrets

from .errors import InternalError

logger = logging.getLogger(__name__)


def generate_code(num_bytes: int) -> str:
    """
    Generate a hex-encoded identifier from `num_bytes` of OS randomness.

    Args:
        num_bytes: Number of random bytes; the result has 2 * num_bytes hex chars

    Returns:
        Lowercase hex string

    Raises:
        InternalError: If the secure random source fails
    """
    try:
        return secrets.token_hex(num_bytes)
    except (OSError, NotImplementedError) as e:
        logger.error(f"Failure generating random identifier: {e}")
        raise InternalError("Failure generating code") from e


def code_length(num_bytes: int) -> int:
    """Expected hex length of an identifier generated from `num_bytes`."""
    return num_bytes * 2


def secrets_match(expected: str, presented: str) -> bool:
    """Constant-time comparison of a stored secret with one presented by a client."""
    return secrets.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))
