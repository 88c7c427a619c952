"""
Forwarding secret generation.

The secret authenticates the Velocity proxy to the backend (modern
forwarding), so it must come from a cryptographically secure source.
"""

import secrets
import string

SECRET_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
DEFAULT_SECRET_LENGTH = 12


def generate_secret(length: int = DEFAULT_SECRET_LENGTH) -> str:
    """
    Generates a random alphanumeric forwarding secret.

    :param length: Number of characters in the secret.
    :return: A fresh secret drawn from `secrets.SystemRandom`.
    """
    if length <= 0:
        raise ValueError(f"Secret length must be positive, got {length}")
    return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(length))
