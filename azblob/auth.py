"""
Shared Key signing for the Blob service.

See: https://learn.microsoft.com/en-us/rest/api/storageservices/authorize-with-shared-key
"""

from __future__ import annotations

import base64
import binascii
import datetime as dt
import hashlib
import hmac
from email.utils import format_datetime
from urllib.parse import quote

from .errors import InvalidKeyError
from .types import BlobResource

__all__ = (
    "BLOB_TYPE",
    "OCTET_STREAM",
    "STORAGE_VERSION",
    "WRITE_METHODS",
    "authorization_header",
    "build_canonical_string",
    "canonical_headers",
    "canonical_resource",
    "decode_key",
    "encode_path",
    "format_ms_date",
    "sign",
)

STORAGE_VERSION = "2020-06-12"
BLOB_TYPE = "BlockBlob"
OCTET_STREAM = "application/octet-stream"

READ_METHODS = frozenset({"GET"})
WRITE_METHODS = frozenset({"PUT"})


def format_ms_date(when: dt.datetime | None = None) -> str:
    """RFC 1123 date in GMT, eg: 'Sun, 18 Oct 2026 10:00:00 GMT'."""
    _when = when or dt.datetime.now(dt.timezone.utc)
    if _when.tzinfo is None:
        _when = _when.replace(tzinfo=dt.timezone.utc)
    return format_datetime(_when.astimezone(dt.timezone.utc), usegmt=True)


def _check_method(method: str) -> str:
    _method = method.upper()
    if _method not in READ_METHODS | WRITE_METHODS:
        raise ValueError(f"Unsupported method {method!r}")
    return _method


def canonical_headers(method: str, ms_date: str, version: str = STORAGE_VERSION) -> list[tuple[str, str]]:
    """
    The x-ms-* headers of a request, sorted by name.

    The same list is folded into the string to sign and sent on the wire.
    """
    headers = [("x-ms-date", ms_date), ("x-ms-version", version)]
    if _check_method(method) in WRITE_METHODS:
        headers.append(("x-ms-blob-type", BLOB_TYPE))
    return sorted(headers)


def encode_path(resource: BlobResource) -> str:
    return quote(resource.validate().path, safe="/~")


def canonical_resource(account: str, resource: BlobResource) -> str:
    """
    /{account}/{path}, then one 'name:value' line per query parameter.

    Parameter names are lower-cased and sorted, repeated names have their values comma joined.
    """
    lines = [f"/{account}/{encode_path(resource)}"]
    params: dict[str, list[str]] = {}
    for name, value in resource.params:
        params.setdefault(name.lower(), []).append(value)
    lines.extend(f"{name}:{','.join(values)}" for name, values in sorted(params.items()))
    return "\n".join(lines)


def build_canonical_string(
    method: str,
    resource: BlobResource,
    content_length: int,
    *,
    account: str,
    ms_date: str,
    version: str = STORAGE_VERSION,
) -> str:
    """
    Build the string to sign for a request.

    `ms_date` must be the exact x-ms-date value sent with the request.
    """
    _method = _check_method(method)
    if isinstance(content_length, bool) or not isinstance(content_length, int) or content_length < 0:
        raise ValueError(f"Invalid content length {content_length!r}")
    is_write = _method in WRITE_METHODS
    _headers = "\n".join(f"{k}:{v}" for k, v in canonical_headers(_method, ms_date, version))
    return "\n".join(
        [
            _method,
            "",  # Content-Encoding
            "",  # Content-Language
            str(content_length) if content_length else "",
            "",  # Content-MD5
            OCTET_STREAM if is_write else "",
            "",  # Date, x-ms-date is used instead
            "",  # If-Modified-Since
            "",  # If-Match
            "",  # If-None-Match
            "",  # If-Unmodified-Since
            "",  # Range
            _headers,
            canonical_resource(account, resource),
        ]
    )


def decode_key(access_key: str) -> bytes:
    if not access_key:
        raise InvalidKeyError("Access key is missing")
    try:
        key = base64.b64decode(access_key.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidKeyError("Access key is not valid base64") from e
    if not key:
        raise InvalidKeyError("Access key decodes to an empty value")
    return key


def sign(access_key: str, canonical_string: str) -> str:
    """Base64 of HMAC-SHA256(decoded key, canonical string)."""
    digest = hmac.new(decode_key(access_key), canonical_string.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def authorization_header(account: str, signature: str) -> str:
    return f"SharedKey {account}:{signature}"
