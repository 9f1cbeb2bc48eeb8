"""AWS Signature Version 4 signing for raw S3 requests.

Signs ``PUT``/``GET``/``HEAD`` requests against an S3 endpoint without a
managed SDK. The signing key is derived with the HMAC-SHA256 chain::

    key0 = "AWS4" + secret
    key1 = HMAC(key0, date)        # YYYYMMDD
    key2 = HMAC(key1, region)
    key3 = HMAC(key2, "s3")
    key4 = HMAC(key3, "aws4_request")

and the signature is ``hex(HMAC(key4, string_to_sign))``.

Two constructions of the request hash inside the string-to-sign exist
(see ``SigningMode``): the canonical request hash used by real S3
endpoints, and the bare payload digest kept for compatibility.

Example:
    ```python
    signer = RequestSigner("AKIA...", "secret", region="us-east-1")
    headers = signer.sign_request("PUT", url, hash_payload(body))
    ```
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import urllib.parse
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TypeAlias

from file_replicator.core.settings.replication import SigningMode
from file_replicator.core.settings.storage import DEFAULT_REGION

from .exceptions import InvalidKeyMaterialError, InvalidTimestampError, SigningError

logger = logging.getLogger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"
SERVICE = "s3"
TERMINATOR = "aws4_request"
AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
SIGNED_HEADERS = "host;x-amz-content-sha256;x-amz-date"

# SHA-256 of the empty body
EMPTY_SHA256 = hashlib.sha256(b"").hexdigest()

_TIMESTAMP_RE = re.compile(r"^\d{8}T\d{6}Z$")
_DIGEST_RE = re.compile(r"^[0-9a-f]{64}$")
_DEFAULT_PORTS = {"http": 80, "https": 443}

_AWS_UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)

KeyMaterial: TypeAlias = str | bytes


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


def hash_payload(data: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of a request body."""
    return hashlib.sha256(data).hexdigest()


def format_amz_date(moment: datetime | None = None) -> str:
    """Format a moment as ``YYYYMMDDTHHMMSSZ`` in UTC.

    Naive datetimes are taken to be UTC already. Defaults to now.
    """
    if moment is None:
        moment = datetime.now(UTC)
    elif moment.tzinfo is not None:
        moment = moment.astimezone(UTC)
    return moment.strftime(AMZ_DATE_FORMAT)


def validate_timestamp(timestamp: str) -> datetime:
    """Parse a ``YYYYMMDDTHHMMSSZ`` timestamp.

    Raises:
        InvalidTimestampError: On a format mismatch or an impossible date
            such as ``20240230T000000Z``.
    """
    if not isinstance(timestamp, str) or not _TIMESTAMP_RE.match(timestamp):
        raise InvalidTimestampError(str(timestamp))
    try:
        return datetime.strptime(timestamp, AMZ_DATE_FORMAT).replace(tzinfo=UTC)
    except ValueError as e:
        raise InvalidTimestampError(timestamp) from e


def _key_bytes(value: KeyMaterial | None, name: str) -> bytes:
    if isinstance(value, bytes):
        raw = value
    elif isinstance(value, str):
        raw = value.encode("utf-8")
    else:
        raise InvalidKeyMaterialError(
            f"{name} must be str or bytes, got {type(value).__name__}",
            metadata={"field": name},
        )
    if not raw:
        raise InvalidKeyMaterialError(f"{name} must not be empty", metadata={"field": name})
    return raw


def _access_key_text(value: KeyMaterial | None) -> str:
    raw = _key_bytes(value, "access_key")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidKeyMaterialError(
            "access_key must be valid UTF-8", metadata={"field": "access_key"}
        ) from e


@dataclass(frozen=True, slots=True)
class SigningContext:
    """Validated inputs for one signature. Built per request, never stored."""

    access_key: str
    secret_key: bytes
    region: str
    timestamp: str
    content_sha256: str
    service: str = SERVICE

    @classmethod
    def create(
        cls,
        secret: KeyMaterial,
        access_key: KeyMaterial,
        region: str,
        timestamp: str,
        content_digest: str,
    ) -> SigningContext:
        secret_key = _key_bytes(secret, "secret_key")
        access_key_text = _access_key_text(access_key)
        validate_timestamp(timestamp)
        if not region:
            raise SigningError("region must not be empty")
        if not isinstance(content_digest, str) or not _DIGEST_RE.match(content_digest):
            raise SigningError(
                "content digest must be a lowercase hex SHA-256",
                metadata={"content_digest": str(content_digest)},
            )
        return cls(
            access_key=access_key_text,
            secret_key=secret_key,
            region=region,
            timestamp=timestamp,
            content_sha256=content_digest,
        )

    @property
    def date_stamp(self) -> str:
        return self.timestamp[:8]

    @property
    def credential_scope(self) -> str:
        return build_credential_scope(self.date_stamp, self.region, self.service)


# ---------------------------------------------------------------------------
# Canonical request
# ---------------------------------------------------------------------------


def _uri_encode(value: str, *, encode_slash: bool = True) -> str:
    """Percent-encode everything outside the AWS unreserved set (UTF-8, uppercase hex)."""
    result: list[str] = []
    for ch in value:
        if ch in _AWS_UNRESERVED:
            result.append(ch)
        elif ch == "/" and not encode_slash:
            result.append("/")
        else:
            result.extend(f"%{byte:02X}" for byte in ch.encode("utf-8"))
    return "".join(result)


@dataclass(frozen=True, slots=True)
class CanonicalRequest:
    """The parts of an HTTP request that are covered by the signature."""

    method: str
    host: str
    path: str = "/"
    query: str = ""

    @classmethod
    def from_url(cls, method: str, url: str) -> CanonicalRequest:
        """Split an absolute URL into the signed request parts.

        The host keeps its port unless it is the scheme default, matching
        the ``Host`` header an HTTP client sends.
        """
        parts = urllib.parse.urlsplit(url)
        if not parts.hostname:
            raise SigningError(f"Cannot sign a URL without a host: {url}")
        host = parts.hostname
        if parts.port and parts.port != _DEFAULT_PORTS.get(parts.scheme):
            host = f"{host}:{parts.port}"
        return cls(method=method.upper(), host=host, path=parts.path or "/", query=parts.query)

    @property
    def canonical_uri(self) -> str:
        # S3 encodes the decoded path exactly once
        return _uri_encode(urllib.parse.unquote(self.path or "/"), encode_slash=False)

    @property
    def canonical_query(self) -> str:
        if not self.query:
            return ""
        pairs = urllib.parse.parse_qsl(self.query, keep_blank_values=True)
        encoded = sorted((_uri_encode(k), _uri_encode(v)) for k, v in pairs)
        return "&".join(f"{k}={v}" for k, v in encoded)


def build_credential_scope(date_stamp: str, region: str, service: str = SERVICE) -> str:
    """Return ``<date>/<region>/<service>/aws4_request``."""
    return f"{date_stamp}/{region}/{service}/{TERMINATOR}"


def build_canonical_request(request: CanonicalRequest, timestamp: str, payload_sha256: str) -> str:
    """Build the canonical request string for the three signed headers."""
    canonical_headers = (
        f"host:{request.host.strip().lower()}\n"
        f"x-amz-content-sha256:{payload_sha256}\n"
        f"x-amz-date:{timestamp}\n"
    )
    return "\n".join(
        [
            request.method.upper(),
            request.canonical_uri,
            request.canonical_query,
            canonical_headers,
            SIGNED_HEADERS,
            payload_sha256,
        ]
    )


def build_string_to_sign(timestamp: str, credential_scope: str, request_hash: str) -> str:
    """Return ``AWS4-HMAC-SHA256\\n<timestamp>\\n<scope>\\n<request hash>``."""
    return f"{ALGORITHM}\n{timestamp}\n{credential_scope}\n{request_hash}"


def derive_signing_key(
    secret: KeyMaterial,
    date_stamp: str,
    region: str,
    service: str = SERVICE,
) -> bytes:
    """Derive the SigV4 signing key (key4 of the HMAC chain)."""
    k_secret = b"AWS4" + _key_bytes(secret, "secret_key")
    k_date = hmac.new(k_secret, date_stamp.encode("utf-8"), hashlib.sha256).digest()
    k_region = hmac.new(k_date, region.encode("utf-8"), hashlib.sha256).digest()
    k_service = hmac.new(k_region, service.encode("utf-8"), hashlib.sha256).digest()
    return hmac.new(k_service, TERMINATOR.encode("utf-8"), hashlib.sha256).digest()


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------


def sign(
    secret: KeyMaterial,
    access_key: KeyMaterial,
    region: str,
    timestamp: str,
    content_digest: str,
    request: CanonicalRequest | None = None,
) -> str:
    """Produce the ``Authorization`` header value for one request.

    With ``request`` the string-to-sign carries the SHA-256 of the canonical
    request; without it the bare ``content_digest`` is used.

    Args:
        secret: Secret access key.
        access_key: Access key ID.
        region: Signing region.
        timestamp: Request time as ``YYYYMMDDTHHMMSSZ``; must equal the
            ``x-amz-date`` header sent with the request.
        content_digest: Lowercase hex SHA-256 of the exact body sent.
        request: Method, host, path and query of the request.

    Returns:
        ``AWS4-HMAC-SHA256 Credential=..., SignedHeaders=..., Signature=...``

    Raises:
        InvalidKeyMaterialError: Empty or unusable credentials.
        InvalidTimestampError: Malformed timestamp.
        SigningError: Empty region or malformed digest.
    """
    context = SigningContext.create(secret, access_key, region, timestamp, content_digest)

    if request is None:
        request_hash = context.content_sha256
    else:
        canonical = build_canonical_request(request, context.timestamp, context.content_sha256)
        request_hash = hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    string_to_sign = build_string_to_sign(context.timestamp, context.credential_scope, request_hash)
    signing_key = derive_signing_key(
        context.secret_key, context.date_stamp, context.region, context.service
    )
    signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    return (
        f"{ALGORITHM} Credential={context.access_key}/{context.credential_scope}, "
        f"SignedHeaders={SIGNED_HEADERS}, Signature={signature}"
    )


class RequestSigner:
    """Signs requests with one credential pair, region and signing mode.

    Args:
        access_key: Access key ID.
        secret_key: Secret access key.
        region: Signing region.
        mode: How the request hash in the string-to-sign is built.
        clock: Returns the current time; injectable for tests.

    Raises:
        InvalidKeyMaterialError: If either credential is empty or unusable.
    """

    def __init__(
        self,
        access_key: KeyMaterial,
        secret_key: KeyMaterial,
        region: str = DEFAULT_REGION,
        mode: SigningMode = SigningMode.CANONICAL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._access_key = _access_key_text(access_key)
        self._secret_key = _key_bytes(secret_key, "secret_key")
        if not region:
            raise SigningError("region must not be empty")
        self.region = region
        self.mode = SigningMode(mode)
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def access_key(self) -> str:
        return self._access_key

    def sign(
        self,
        timestamp: str,
        content_digest: str,
        request: CanonicalRequest | None = None,
    ) -> str:
        """Return the Authorization header value.

        In ``CONTENT_ONLY`` mode the request is ignored. In ``CANONICAL``
        mode it is required.
        """
        if self.mode is SigningMode.CONTENT_ONLY:
            request = None
        elif request is None:
            raise SigningError("Canonical signing requires the request method, host and path")
        return sign(
            self._secret_key,
            self._access_key,
            self.region,
            timestamp,
            content_digest,
            request=request,
        )

    def sign_request(
        self,
        method: str,
        url: str,
        payload_sha256: str,
        timestamp: str | None = None,
    ) -> dict[str, str]:
        """Return the headers that authenticate ``method url``.

        The ``Host`` header is left to the HTTP client; it is derived from
        the URL the same way here.
        """
        amz_date = timestamp or format_amz_date(self._clock())
        request = CanonicalRequest.from_url(method, url)
        authorization = self.sign(amz_date, payload_sha256, request=request)
        logger.debug(
            "Signed request",
            extra={"method": request.method, "host": request.host, "signing_mode": str(self.mode)},
        )
        return {
            "Authorization": authorization,
            "x-amz-date": amz_date,
            "x-amz-content-sha256": payload_sha256,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(access_key={self._access_key!r}, "
            f"region={self.region!r}, mode={self.mode.value!r})"
        )
