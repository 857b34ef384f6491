import base64
import datetime as dt
import hashlib
import hmac
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from threading import Thread
from urllib.parse import parse_qsl, unquote, urlsplit
from xml.sax.saxutils import escape

import pytest

ACCOUNT = "myaccount"
CONTAINER = "photos"
# base64 of bytes 0x00..0x1f
ACCESS_KEY = "AAECAwQFBgcICQoLDA0ODxAREhMUFRYXGBkaGxwdHh8="
MS_DATE = "Sun, 18 Oct 2026 10:00:00 GMT"
WHEN = dt.datetime(2026, 10, 18, 10, 0, 0, tzinfo=dt.timezone.utc)

_SIGNED_HEADERS = (
    "Content-Encoding",
    "Content-Language",
    "Content-Length",
    "Content-MD5",
    "Content-Type",
    "Date",
    "If-Modified-Since",
    "If-Match",
    "If-None-Match",
    "If-Unmodified-Since",
    "Range",
)


def error_xml(code: str, message: str) -> bytes:
    return (
        f'<?xml version="1.0" encoding="utf-8"?><Error><Code>{code}</Code>'
        f"<Message>{escape(message)}\nRequestId:00000000-0000-0000-0000-000000000000</Message></Error>"
    ).encode()


def listing_xml(endpoint: str, container: str, names: list[str]) -> bytes:
    blobs = "".join(
        f"<Blob><Name>{escape(name)}</Name><Properties><Content-Type>application/octet-stream</Content-Type>"
        f"<BlobType>BlockBlob</BlobType></Properties></Blob>"
        for name in names
    )
    return (
        '\ufeff<?xml version="1.0" encoding="utf-8"?>'
        f'<EnumerationResults ServiceEndpoint="{escape(endpoint)}/" ContainerName="{escape(container)}">'
        f"<Blobs>{blobs}</Blobs><NextMarker /></EnumerationResults>"
    ).encode("utf-8")


class FakeBlobServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, *args, account: str, access_key: str, **kwargs):
        self.account = account
        self.access_key = access_key
        self.containers: dict[str, dict[str, bytes]] = {}
        self.requests: list[tuple[str, str, dict[str, str]]] = []
        super().__init__(*args, **kwargs)

    @property
    def endpoint(self) -> str:
        return "http://{}:{}".format(*self.server_address)


class FakeBlobHandler(BaseHTTPRequestHandler):
    """Blob service stand-in checking Shared Key signatures the way the server computes them"""

    protocol_version = "HTTP/1.1"
    server: FakeBlobServer

    def log_message(self, format, *args):
        # Overridden to prevent logging
        pass

    def _string_to_sign(self) -> str:
        url = urlsplit(self.path)
        resource = f"/{self.server.account}{url.path}"
        params: dict[str, list[str]] = {}
        for k, v in parse_qsl(url.query):
            params.setdefault(k.lower(), []).append(v)
        for k, values in sorted(params.items()):
            resource += f"\n{k}:{','.join(values)}"

        fields = [self.headers.get(h, "") for h in _SIGNED_HEADERS]
        if fields[2] == "0":
            fields[2] = ""
        ms_headers = sorted((k.lower(), v.strip()) for k, v in self.headers.items() if k.lower().startswith("x-ms-"))
        return "\n".join([self.command, *fields, "\n".join(f"{k}:{v}" for k, v in ms_headers), resource])

    def _is_authorized(self) -> bool:
        scheme, _, credentials = self.headers.get("Authorization", "").partition(" ")
        account, _, signature = credentials.partition(":")
        if scheme != "SharedKey" or account != self.server.account:
            return False
        expected = base64.b64encode(
            hmac.new(
                base64.b64decode(self.server.access_key), self._string_to_sign().encode("utf-8"), hashlib.sha256
            ).digest()
        ).decode()
        return hmac.compare_digest(expected, signature)

    def _send(self, status: int, body: bytes = b"", *, error_code: str | None = None):
        self.send_response(status)
        self.send_header("Content-Length", str(len(body)))
        if body:
            self.send_header("Content-Type", "application/xml")
        if error_code:
            self.send_header("x-ms-error-code", error_code)
        self.end_headers()
        if body:
            self.wfile.write(body)

    def _send_error(self, status: int, code: str, message: str):
        self._send(status, error_xml(code, message), error_code=code)

    def _target(self) -> tuple[str, str | None, dict[str, str]]:
        url = urlsplit(self.path)
        container, _, blob = unquote(url.path).lstrip("/").partition("/")
        return container, blob or None, dict(parse_qsl(url.query))

    def _check(self) -> bool:
        self.server.requests.append((self.command, self.path, {k.lower(): v for k, v in self.headers.items()}))
        if not self._is_authorized():
            self._send_error(
                403,
                "AuthenticationFailed",
                "Server failed to authenticate the request. "
                "Make sure the value of Authorization header is formed correctly including the signature.",
            )
            return False
        return True

    def do_GET(self):
        if not self._check():
            return
        container, blob, params = self._target()
        blobs = self.server.containers.get(container)
        if blobs is None:
            self._send_error(404, "ContainerNotFound", "The specified container does not exist.")
        elif blob is None and params == {"restype": "container", "comp": "list"}:
            self._send(200, listing_xml(self.server.endpoint, container, sorted(blobs)))
        elif blob is None:
            self._send_error(400, "InvalidQueryParameterValue", "Value for one of the query parameters is not valid.")
        elif blob not in blobs:
            self._send_error(404, "BlobNotFound", "The specified blob does not exist.")
        else:
            self._send(200, blobs[blob])

    def do_PUT(self):
        data = self.rfile.read(int(self.headers.get("Content-Length", 0)))
        if not self._check():
            return
        container, blob, _ = self._target()
        if container not in self.server.containers:
            self._send_error(404, "ContainerNotFound", "The specified container does not exist.")
        elif blob is None or self.headers.get("x-ms-blob-type") != "BlockBlob":
            self._send_error(
                400, "MissingRequiredHeader", "An HTTP header that's mandatory for this request is not specified."
            )
        else:
            self.server.containers[container][blob] = data
            self._send(201)


@pytest.fixture()
def blob_server():
    server = FakeBlobServer(("127.0.0.1", 0), FakeBlobHandler, account=ACCOUNT, access_key=ACCESS_KEY)
    server.containers[CONTAINER] = {}

    thread = Thread(target=server.serve_forever)
    thread.daemon = True
    thread.start()

    yield server

    server.shutdown()
    server.server_close()


@pytest.fixture()
def account_config():
    from azblob.config import AccountConfig

    return AccountConfig(account=ACCOUNT, container=CONTAINER, access_key=ACCESS_KEY)


@pytest.fixture()
def config_file(tmp_path):
    path = tmp_path / "azblob.conf"
    path.write_text(f"{ACCOUNT} {CONTAINER} {ACCESS_KEY}\nother archive {ACCESS_KEY}\n")
    return path
