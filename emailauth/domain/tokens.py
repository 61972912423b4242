"""
Token generation for login codes and recovery links.

Both kinds of token come from the secrets module (OS CSPRNG).
"""

import secrets
from dataclasses import dataclass

MIN_RECOVERY_TOKEN_BYTES = 16


@dataclass(frozen=True)
class TokenGenerator:
    """
    Produces unguessable tokens.

    Attributes:
        code_digits: Width of numeric login codes
        recovery_token_bytes: Entropy of recovery tokens in bytes (hex doubles the length)
    """

    code_digits: int = 6
    recovery_token_bytes: int = MIN_RECOVERY_TOKEN_BYTES

    def __post_init__(self) -> None:
        if self.code_digits < 1:
            raise ValueError("code_digits must be positive")
        if self.recovery_token_bytes < MIN_RECOVERY_TOKEN_BYTES:
            raise ValueError(f"recovery_token_bytes must be at least {MIN_RECOVERY_TOKEN_BYTES}")

    def generate_login_code(self) -> str:
        """
        Generate a zero-padded decimal code, uniform over [0, 10**code_digits).

        Returns string to preserve leading zeros.
        """
        return str(secrets.randbelow(10**self.code_digits)).zfill(self.code_digits)

    def generate_recovery_token(self) -> str:
        """Generate a lowercase hex token, safe as a URL path segment."""
        return secrets.token_hex(self.recovery_token_bytes)
