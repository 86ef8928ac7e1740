"""PKCE (Proof Key for Code Exchange, :rfc:`7636`) helpers.

The verifier is 32 random bytes encoded as unpadded base64url, which always
yields 43 characters. The challenge is the unpadded base64url SHA-256 digest
of the verifier's ASCII bytes (method ``S256``). The same generator also
produces the anti-replay ``state`` nonce used by the OAuth flow.

These functions hold no state and are safe to call from concurrent login
attempts.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
from dataclasses import dataclass

from copctl.auth.constants import CODE_CHALLENGE_METHOD
from copctl.exceptions import ChallengeMismatchError, RandomSourceError

VERIFIER_BYTES = 32


@dataclass(frozen=True)
class PKCEPair:
    """A code verifier and the challenge derived from it."""

    verifier: str
    challenge: str
    method: str = CODE_CHALLENGE_METHOD


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_verifier() -> str:
    """Generate a random code verifier.

    Returns:
        43 base64url characters encoding 32 bytes from the OS entropy source.

    Raises:
        RandomSourceError: If the system entropy source is unavailable.
    """
    try:
        raw = secrets.token_bytes(VERIFIER_BYTES)
    except (OSError, NotImplementedError) as exc:
        raise RandomSourceError(f"System random source unavailable: {exc}") from exc
    return _b64url(raw)


def derive_challenge(verifier: str) -> str:
    """Derive the ``S256`` code challenge for *verifier*.

    Example::

        >>> derive_challenge("test_verifier")
        '0Ku4rR8EgR1w3HyHLBCxVLtPsAAks5HOlpmTEt0XhVA'
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return _b64url(digest)


def validate_verifier(verifier: str, challenge: str) -> None:
    """Check that *verifier* hashes to *challenge*.

    Raises:
        ChallengeMismatchError: If the recomputed challenge differs.
    """
    try:
        expected = derive_challenge(verifier).encode("ascii")
    except UnicodeEncodeError:
        expected = b""
    if not expected or not hmac.compare_digest(expected, challenge.encode("utf-8")):
        raise ChallengeMismatchError("Invalid code verifier for the given challenge")


def generate_pkce_pair() -> PKCEPair:
    """Generate a fresh verifier together with its challenge."""
    verifier = generate_verifier()
    return PKCEPair(verifier=verifier, challenge=derive_challenge(verifier))
