from __future__ import annotations

import datetime as dt
from typing import NamedTuple
from urllib.parse import urlencode

from .auth import (
    OCTET_STREAM,
    STORAGE_VERSION,
    WRITE_METHODS,
    authorization_header,
    build_canonical_string,
    canonical_headers,
    encode_path,
    format_ms_date,
    sign,
)
from .config import AccountConfig
from .types import BlobResource

__all__ = ("DEFAULT_ENDPOINT", "BlobRequest", "assemble_request", "resource_url", "sign_request")

DEFAULT_ENDPOINT = "https://{account}.blob.core.windows.net"


class BlobRequest(NamedTuple):
    method: str
    url: str
    headers: dict[str, str]


def resource_url(account: str, resource: BlobResource, *, endpoint: str | None = None) -> str:
    """
    Eg:
        >>> resource_url('myaccount', BlobResource.listing('photos'))
        'https://myaccount.blob.core.windows.net/photos?restype=container&comp=list'
    """
    base = (endpoint or DEFAULT_ENDPOINT).format(account=account).rstrip("/")
    url = f"{base}/{encode_path(resource)}"
    if resource.params:
        url += "?" + urlencode(resource.params)
    return url


def assemble_request(
    account: str,
    method: str,
    resource: BlobResource,
    content_length: int,
    signature: str,
    *,
    ms_date: str,
    version: str = STORAGE_VERSION,
    endpoint: str | None = None,
) -> BlobRequest:
    """Build the request descriptor. `ms_date` must be the value the signature was computed with."""
    _method = method.upper()
    headers = dict(canonical_headers(_method, ms_date, version))
    if _method in WRITE_METHODS:
        headers["Content-Type"] = OCTET_STREAM
        headers["Content-Length"] = str(content_length)
    headers["Authorization"] = authorization_header(account, signature)
    return BlobRequest(_method, resource_url(account, resource, endpoint=endpoint), headers)


def sign_request(
    config: AccountConfig,
    method: str,
    resource: BlobResource,
    content_length: int = 0,
    *,
    when: dt.datetime | None = None,
    version: str = STORAGE_VERSION,
    endpoint: str | None = None,
) -> BlobRequest:
    """Sign and assemble a request; the date is captured once and used for both."""
    ms_date = format_ms_date(when)
    canonical = build_canonical_string(
        method, resource, content_length, account=config.account, ms_date=ms_date, version=version
    )
    signature = sign(config.access_key, canonical)
    return assemble_request(
        config.account,
        method,
        resource,
        content_length,
        signature,
        ms_date=ms_date,
        version=version,
        endpoint=endpoint,
    )
