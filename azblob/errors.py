from __future__ import annotations

__all__ = (
    "AzBlobError",
    "ConfigError",
    "InvalidKeyError",
    "InvalidResourceError",
    "ServerRejectedError",
    "TransportError",
    "XmlParseError",
)


class AzBlobError(Exception):
    """Base class of every error raised by azblob."""


class ConfigError(AzBlobError):
    """The account configuration is missing or malformed."""


class InvalidKeyError(AzBlobError):
    """The access key is not valid base64 or decodes to nothing."""


class InvalidResourceError(AzBlobError):
    """The addressed container/blob path is empty or malformed."""


class ServerRejectedError(AzBlobError):
    """
    The server answered with an error document.

    `message` is the server's `Error/Message` text, kept verbatim.
    """

    def __init__(self, message: str, code: str | None = None, status_code: int | None = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"{self.code}: {self.message}"
        return self.message


class XmlParseError(AzBlobError):
    """The response body is not well-formed enough to be scanned."""


class TransportError(AzBlobError):
    """No response could be obtained from the server."""
