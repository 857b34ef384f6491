import logging
from typing import Any, Literal, TypeGuard, overload

try:
    from pythonjsonlogger.json import JsonFormatter
except ImportError:
    raise ImportError('Please install python-json-logger or azblob with "log" to use this module')

LogFormat = Literal["json", "console"]

_LOG_FMT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"


class VersionJsonFormatter(JsonFormatter):
    """JSON formatter tagging every record with the azblob version"""

    def __init__(self, version: str, *args, **kwargs):
        self.version: str = version
        super().__init__(*args, **kwargs)

    def add_fields(self, log_data: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]):
        super().add_fields(log_data, record, message_dict)
        if not log_data.get("version"):
            log_data["version"] = self.version


@overload
def init_logging(
    logger: logging.Logger,
    log_format: Literal["json"],
    version: str,
    *,
    level: int = ...,
    stream_handler: logging.StreamHandler | None = None,
) -> tuple[VersionJsonFormatter, logging.StreamHandler]: ...


@overload
def init_logging(
    logger: logging.Logger,
    log_format: Literal["console"],
    version: str,
    *,
    level: int = ...,
    stream_handler: logging.StreamHandler | None = None,
) -> tuple[logging.Formatter, logging.StreamHandler]: ...


def init_logging(
    logger: logging.Logger,
    log_format: LogFormat,
    version: str,
    *,
    level: int = logging.WARNING,
    stream_handler: logging.StreamHandler | None = None,
):
    _stream_handler = stream_handler or logging.StreamHandler()
    match log_format:
        case "json":
            formatter = VersionJsonFormatter(version, _LOG_FMT, datefmt=_DATE_FMT)
        case "console":
            formatter = logging.Formatter(_LOG_FMT, datefmt=_DATE_FMT)
        case _:
            raise NotImplementedError(f"Invalid log format {log_format!r}")

    _stream_handler.setFormatter(formatter)
    logger.addHandler(_stream_handler)
    logger.setLevel(level)

    return formatter, _stream_handler


def is_valid_log_format(log_format: str) -> TypeGuard[LogFormat]:
    return log_format in {"json", "console"}
