from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable

try:
    import niquests
except ImportError:
    raise ImportError("Please install niquests to use azblob.client")

from .auth import STORAGE_VERSION
from .config import AccountConfig
from .errors import ServerRejectedError, TransportError
from .extract import aiter_elements, find_error
from .request import BlobRequest, resource_url, sign_request
from .types import BlobResource

if TYPE_CHECKING:
    from urllib3.util.retry import Retry

__all__ = ("BlobClient",)

logger = logging.getLogger(__name__)

MB_1 = 1024 * 1024

OnChunkFn = Callable[[bytes], None]


def _rejected(resp: niquests.Response, body: bytes | None) -> ServerRejectedError:
    """Error for a non 2xx response, using the server's error document when there is one"""
    error = find_error(body)
    if error is None:
        error = ServerRejectedError(resp.reason or f"HTTP {resp.status_code}")
    if error.code is None:
        error.code = resp.headers.get("x-ms-error-code")
    error.status_code = resp.status_code
    return error


async def _iter_chunks(resp: niquests.AsyncResponse, chunk_size: int = MB_1) -> AsyncIterator[bytes]:
    try:
        async for chunk in await resp.iter_content(chunk_size):
            yield chunk
    except niquests.exceptions.RequestException as e:
        raise TransportError(f"Failed to read response body: {e}") from e


@dataclass
class BlobClient:
    """
    Async Blob service client authenticating with the account's Shared Key.

    Usage:
        config = get_account(load_accounts())
        async with BlobClient(config) as client:
            async for name in client.list_blobs():
                print(name)
            url = await client.upload_file(Path('report.pdf'))

    `endpoint` is a template formatted with `account`, it defaults to
    https://{account}.blob.core.windows.net. Requests are never retried
    unless `retries` is set: a retried request keeps its original date and
    signature.
    """

    config: AccountConfig
    endpoint: str | None = None
    version: str = STORAGE_VERSION
    retries: int | Retry = 0
    hooks: Any = None
    session: niquests.AsyncSession = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.session = niquests.AsyncSession(retries=self.retries, hooks=self.hooks)

    async def __aenter__(self) -> BlobClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying session."""
        await self.session.close()

    def _resource(self, name: str | None = None, container: str | None = None) -> BlobResource:
        return BlobResource(container or self.config.container, name)

    def _sign(self, method: str, resource: BlobResource, content_length: int = 0) -> BlobRequest:
        return sign_request(
            self.config, method, resource, content_length, version=self.version, endpoint=self.endpoint
        )

    async def _send(
        self, request: BlobRequest, *, data: bytes | None = None, stream: bool = False
    ) -> niquests.AsyncResponse:
        logger.debug("%s %s", request.method, request.url)
        try:
            resp = await self.session.request(
                request.method, request.url, headers=request.headers, data=data, stream=stream
            )
        except niquests.exceptions.RequestException as e:
            raise TransportError(f"{request.method} {request.url} failed: {e}") from e
        logger.debug("%s %s -> %s", request.method, request.url, resp.status_code)
        if not resp.ok:
            body = b"".join([chunk async for chunk in _iter_chunks(resp)]) if stream else resp.content
            raise _rejected(resp, body)
        return resp  # pyright: ignore[reportReturnType]

    async def list_blobs(self, container: str | None = None) -> AsyncIterator[str]:
        """
        Yield the names of the blobs of a container (the default one if not given).

        The listing is parsed while it streams in; an error document raises
        `ServerRejectedError` even if some names were already yielded.
        """
        request = self._sign("GET", BlobResource.listing(container or self.config.container))
        resp = await self._send(request, stream=True)
        async for event in aiter_elements(_iter_chunks(resp)):
            logger.debug("Listed %s", event.text)
            yield event.text

    async def put_blob(self, name: str, data: bytes, *, container: str | None = None) -> str:
        """Upload `data` as a block blob, returns the blob URL."""
        request = self._sign("PUT", self._resource(name, container), len(data))
        await self._send(request, data=data)
        logger.info("Uploaded %d bytes to %s", len(data), request.url)
        return request.url

    async def upload_file(self, file: Path, *, container: str | None = None, name: str | None = None) -> str:
        """
        Upload a local file, named after the file unless `name` is given.
        This is a convenience wrapper around put_blob that reads the file content.
        """
        if not file.is_file():
            raise FileNotFoundError(f"File {file} does not exist")
        return await self.put_blob(name or file.name, file.read_bytes(), container=container)

    async def get_blob(self, name: str, *, container: str | None = None) -> bytes:
        request = self._sign("GET", self._resource(name, container))
        resp = await self._send(request)
        return resp.content or b""

    async def download_file(
        self,
        name: str,
        output: Path | None = None,
        *,
        container: str | None = None,
        chunk_size: int = MB_1,
        on_chunk: OnChunkFn | None = None,
    ) -> Path:
        """
        Stream a blob to `output` (the blob's base name in the current directory by default).

        Refuses to overwrite an existing file. The data is written next to the
        target and renamed once complete.
        """
        _output = output or Path(Path(name).name)
        if _output.exists():
            raise FileExistsError(f"File {_output} already exists locally. Remove it first")
        request = self._sign("GET", self._resource(name, container))
        resp = await self._send(request, stream=True)

        tmp = _output.with_name(f"{_output.name}.part")
        try:
            with tmp.open("wb") as f:
                async for chunk in _iter_chunks(resp, chunk_size):
                    f.write(chunk)
                    if on_chunk:
                        on_chunk(chunk)
            tmp.rename(_output)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.info("Downloaded %s to %s", request.url, _output)
        return _output

    def url(self, name: str | None = None, *, container: str | None = None) -> str:
        """Public URL of a container or blob (no signature involved)."""
        return resource_url(self.config.account, self._resource(name, container), endpoint=self.endpoint)
