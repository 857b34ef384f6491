from .auth import STORAGE_VERSION, build_canonical_string, decode_key, format_ms_date, sign
from .config import AccountConfig, get_account, load_accounts
from .errors import (
    AzBlobError,
    ConfigError,
    InvalidKeyError,
    InvalidResourceError,
    ServerRejectedError,
    TransportError,
    XmlParseError,
)
from .extract import ElementExtractor, aiter_elements, iter_elements
from .request import BlobRequest, assemble_request, sign_request
from .types import BlobResource, ElementEvent

__version__ = "0.1.0"

__all__ = [
    "STORAGE_VERSION",
    "__version__",
    # Signing
    "build_canonical_string",
    "decode_key",
    "format_ms_date",
    "sign",
    "BlobRequest",
    "assemble_request",
    "sign_request",
    # Config
    "AccountConfig",
    "get_account",
    "load_accounts",
    # Extraction
    "ElementExtractor",
    "aiter_elements",
    "iter_elements",
    # Types
    "BlobResource",
    "ElementEvent",
    # Errors
    "AzBlobError",
    "ConfigError",
    "InvalidKeyError",
    "InvalidResourceError",
    "ServerRejectedError",
    "TransportError",
    "XmlParseError",
]
