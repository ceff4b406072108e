"""Bearer credential parsing, key generation and validation.

Credentials look like ``Bearer <prefix>_<key_id>.<secret>``:

key_id: public identifier stored in the key store (safe to log)
secret: at least 32 characters; only its SHA-256 digest is ever stored

Validation order after a structural match: existence → secret hash →
revocation → expiry. The secret is always verified with a constant-time
comparison; a record without a usable stored hash is rejected.
"""

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple, Union

from gateway.core.collaborators import KeyRecord, KeyStore, call_collaborator
from gateway.core.exceptions import UnauthorizedError

MIN_SECRET_LENGTH = 32
DEFAULT_SCOPES: Tuple[str, ...] = ("read:entries",)

SCOPE_READ_ENTRIES = "read:entries"
SCOPE_WRITE_ENTRIES = "write:entries"
SCOPE_READ_INSIGHTS = "read:insights"
KNOWN_SCOPES = (SCOPE_READ_ENTRIES, SCOPE_WRITE_ENTRIES, SCOPE_READ_INSIGHTS)


@dataclass(frozen=True)
class ParsedCredential:
    key_id: str
    secret: str


@dataclass(frozen=True)
class Principal:
    """Resolved caller identity."""

    user_id: str
    scopes: Tuple[str, ...]
    key_id: str

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes


def hash_secret(secret: str) -> str:
    """Return SHA-256 hex digest of the secret."""
    return hashlib.sha256(secret.encode()).hexdigest()


def generate_api_key(prefix: str = "oline") -> tuple[str, str, str]:
    """Generate a new credential for out-of-band provisioning.

    Returns
    -------
    key_id:     public identifier (16 random bytes, hex)
    token:      full ``<prefix>_<key_id>.<secret>`` shown to the owner once
    key_hash:   value to store; the secret itself is never stored
    """
    key_id = secrets.token_hex(16)
    secret = secrets.token_hex(32)
    return key_id, f"{prefix}_{key_id}.{secret}", hash_secret(secret)


def parse_authorization(header: Optional[str], prefix: str = "oline") -> ParsedCredential:
    """Split an Authorization header into key_id and secret.

    Raises UnauthorizedError on any structural mismatch.
    """
    expected = f"Bearer {prefix}_"
    if not header or not header.startswith(expected):
        raise UnauthorizedError(
            f"Missing or invalid Authorization header. Expected: Bearer {prefix}_<key_id>.<secret>"
        )

    token = header[len("Bearer "):]
    body = token[len(prefix) + 1:]
    key_id, dot, secret = body.partition(".")
    if not dot:
        raise UnauthorizedError(f"Invalid key format. Expected: {prefix}_<key_id>.<secret>")
    if not key_id or len(secret) < MIN_SECRET_LENGTH:
        raise UnauthorizedError("Invalid key format")
    return ParsedCredential(key_id=key_id, secret=secret)


def secret_matches(secret: str, stored_hash: Union[str, bytes, None]) -> bool:
    """Constant-time comparison of SHA-256(secret) with the stored hash.

    Accepts a hex string or the raw 32-byte digest.
    """
    if not stored_hash:
        return False
    digest = hashlib.sha256(secret.encode()).digest()
    if isinstance(stored_hash, (bytes, bytearray, memoryview)):
        return hmac.compare_digest(digest, bytes(stored_hash))
    return hmac.compare_digest(digest.hex(), stored_hash.strip().lower())


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class KeyValidator:
    """Resolves bearer credentials to a Principal using the key store."""

    def __init__(
        self,
        key_store: KeyStore,
        prefix: str = "oline",
        timeout_seconds: float = 10.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.key_store = key_store
        self.prefix = prefix
        self.timeout_seconds = timeout_seconds
        self._clock = clock

    async def _lookup(self, key_id: str) -> Optional[KeyRecord]:
        return await call_collaborator(self.key_store.lookup, key_id, timeout=self.timeout_seconds)

    def evaluate(self, credential: ParsedCredential, record: Optional[KeyRecord]) -> Principal:
        """Apply existence, secret, revocation and expiry checks to a looked-up record."""
        if record is None:
            raise UnauthorizedError("Invalid API key", key_id=credential.key_id)
        if not secret_matches(credential.secret, record.key_hash):
            raise UnauthorizedError("Invalid API key", key_id=credential.key_id)
        if record.revoked_at is not None:
            raise UnauthorizedError("API key has been revoked", key_id=credential.key_id)
        if record.expires_at is not None and _as_utc(record.expires_at) < self._clock():
            raise UnauthorizedError("API key has expired", key_id=credential.key_id)

        scopes = tuple(record.scopes) if record.scopes else DEFAULT_SCOPES
        return Principal(user_id=str(record.user_id), scopes=scopes, key_id=record.key_id)

    async def validate(self, authorization: Optional[str]) -> Principal:
        """
        Validate an Authorization header value.

        Args:
            authorization: Raw header value (may be None)

        Returns:
            Principal for the credential

        Raises:
            UnauthorizedError: Credential is malformed, unknown, revoked or expired
            InternalError: Key store failed or timed out
        """
        credential = parse_authorization(authorization, self.prefix)
        record = await self._lookup(credential.key_id)
        return self.evaluate(credential, record)
