from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigError

__all__ = ("AccountConfig", "default_config_path", "get_account", "load_accounts", "parse_accounts")

CONFIG_SYNTAX = "STORAGE_ACCOUNT DEFAULT_CONTAINER ACCESS_KEY"


@dataclass(frozen=True)
class AccountConfig:
    """A storage account, its default container and its base64 access key."""

    account: str
    container: str
    access_key: str = field(repr=False)


def default_config_path() -> Path:
    """$AZBLOB_CONFIG or ~/.azblob"""
    if env_path := os.environ.get("AZBLOB_CONFIG"):
        return Path(env_path).expanduser()
    return Path.home() / ".azblob"


def parse_accounts(text: str, *, source: str = "<string>") -> list[AccountConfig]:
    accounts = []
    for i, line in enumerate(text.splitlines(), start=1):
        _line = line.strip()
        if not _line or _line.startswith("#"):
            continue
        fields = _line.split()
        if len(fields) < 3:
            raise ConfigError(f"Wrong syntax in file {source} line {i}")
        account, container, access_key = fields[:3]
        accounts.append(AccountConfig(account=account, container=container, access_key=access_key))
    return accounts


def load_accounts(path: Path | None = None) -> list[AccountConfig]:
    _path = path or default_config_path()
    if not _path.is_file():
        raise ConfigError(
            f"Configuration file {_path} is missing. Please create it using following syntax:\n\n{CONFIG_SYNTAX}\n..."
        )
    return parse_accounts(_path.read_text(), source=str(_path))


def get_account(accounts: list[AccountConfig], name: str | None = None) -> AccountConfig:
    """Returns the first configured account, or the first one named `name`"""
    if not accounts:
        raise ConfigError("No storage account configured")
    if name is None:
        return accounts[0]
    for account in accounts:
        if account.account == name:
            return account
    raise ConfigError(f"STORAGE_ACCOUNT {name} is not configured")
