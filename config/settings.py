from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv


SUPPORTED_BACKENDS = ("sqlite", "postgres")


@dataclass(frozen=True)
class StorageConfig:
    """
    Connection parameters for the player store.

    Resolved once at process start and handed to the storage gateway, so
    that no operation has to re-read the environment.
    """

    backend: str = "sqlite"
    address: str = ""
    server: str = "localhost"
    port: int = 5432
    username: str = ""
    password: str = ""
    database: str = "poker.db"
    logfile: Optional[str] = None
    timeout: float = 5.0


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    env_file: Optional[str] = None,
) -> StorageConfig:
    """
    Build a `StorageConfig` from the environment.

    When `environ` is not given, a `.env` file (or `env_file`) is loaded
    first and `os.environ` is used.
    """

    if environ is None:
        load_dotenv(env_file)
        environ = os.environ

    backend = environ.get("PLAYER_DB_BACKEND", "sqlite").strip().lower()
    if backend not in SUPPORTED_BACKENDS:
        raise ValueError(f"Unsupported PLAYER_DB_BACKEND: {backend!r}")

    raw_port = environ.get("PLAYER_DB_PORT", "5432")
    try:
        port = int(raw_port)
    except ValueError:
        raise ValueError(f"PLAYER_DB_PORT must be an integer, got {raw_port!r}") from None

    raw_timeout = environ.get("PLAYER_DB_TIMEOUT", "5")
    try:
        timeout = float(raw_timeout)
    except ValueError:
        raise ValueError(f"PLAYER_DB_TIMEOUT must be a number, got {raw_timeout!r}") from None

    return StorageConfig(
        backend=backend,
        address=environ.get("PLAYER_DB_ADDRESS", ""),
        server=environ.get("PLAYER_DB_SERVER", "localhost"),
        port=port,
        username=environ.get("PLAYER_DB_USERNAME", ""),
        password=environ.get("PLAYER_DB_PASSWORD", ""),
        database=environ.get("PLAYER_DB_NAME", "poker.db"),
        logfile=environ.get("PLAYER_DB_LOGFILE") or None,
        timeout=timeout,
    )
