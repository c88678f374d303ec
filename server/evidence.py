"""Signed, time-limited URLs for dispute evidence files.

The engine never stores blobs; evidence_files holds opaque storage paths
and readers get a short-lived URL for each one. EvidenceStore is the
seam; the HMAC signer suits a blob gateway that verifies the query
string, the stub suits tests.
"""

import hashlib
import hmac
import time
from abc import ABC, abstractmethod
from urllib.parse import quote, urlencode

SIGNED_URL_TTL = 3600


class EvidenceStore(ABC):
    """Abstract evidence storage. The engine injects one of these."""

    @abstractmethod
    def signed_url(self, path: str, expires_in: int = SIGNED_URL_TTL) -> str:
        """Return a URL granting read access to path until it expires.

        Raises on failure; callers omit the file rather than fail the read.
        """
        ...


class HMACEvidenceStore(EvidenceStore):
    """Signs path + expiry with a shared secret (sha256)."""

    def __init__(self, base_url: str, secret: str, clock=time.time):
        if not secret:
            raise ValueError("evidence signing secret is required")
        self.base_url = base_url.rstrip("/")
        self.secret = secret.encode()
        self.clock = clock

    def _signature(self, path: str, expires: int) -> str:
        message = f"{path}\n{expires}".encode()
        return hmac.new(self.secret, message, hashlib.sha256).hexdigest()

    def signed_url(self, path: str, expires_in: int = SIGNED_URL_TTL) -> str:
        if not path or path.startswith("/") or ".." in path.split("/"):
            raise ValueError(f"invalid evidence path: {path!r}")
        expires = int(self.clock()) + expires_in
        query = urlencode({"expires": expires, "signature": self._signature(path, expires)})
        return f"{self.base_url}/{quote(path)}?{query}"

    def verify(self, path: str, expires: int, signature: str) -> bool:
        if expires < self.clock():
            return False
        return hmac.compare_digest(self._signature(path, expires), signature)


class StubEvidenceStore(EvidenceStore):
    """No-op store for testing. Every path gets a fake URL."""

    def __init__(self):
        self.issued: list[str] = []  # log of signed paths for test assertions

    def signed_url(self, path: str, expires_in: int = SIGNED_URL_TTL) -> str:
        self.issued.append(path)
        return f"stub://evidence/{path}?expires_in={expires_in}"
