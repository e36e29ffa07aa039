"""Client configuration: where the DSN lives and how it gets there.

The config file is a JSON object ``{"DSN": "<connection string>"}`` stored at
``$POSTBOARD_CONFIG`` or ``~/.postboard/config.json``. ``$POSTBOARD_DSN``, when
set, wins over the file (handy for scripts and CI).
"""
from __future__ import annotations
import json, os
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Optional, TextIO

from .errors import ConfigError
from .logging_util import debug, info

CONFIG_ENV = "POSTBOARD_CONFIG"
DSN_ENV = "POSTBOARD_DSN"
DSN_PROMPT = "Please enter your database connection string:"


@dataclass
class ClientConfig:
    dsn: str

    def to_json(self) -> dict:
        return {"DSN": self.dsn}

    @classmethod
    def from_json(cls, data, source: str = "<config>") -> "ClientConfig":
        if not isinstance(data, dict):
            raise ConfigError(f"{source}: expected a JSON object, got {type(data).__name__}")
        dsn = data.get("DSN")
        if not isinstance(dsn, str) or not dsn.strip():
            raise ConfigError(f"{source}: missing or empty \"DSN\" entry")
        return cls(dsn=dsn.strip())


def config_path() -> Path:
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(override)
    return Path.home() / ".postboard" / "config.json"


def load_config(path: Path) -> Optional[ClientConfig]:
    """Read the config file; None when it does not exist yet."""
    path = Path(path)
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"config {path} is not valid JSON: {e}") from e
    debug("config_loaded", path=str(path))
    return ClientConfig.from_json(data, source=str(path))


def save_config(config: ClientConfig, path: Path) -> None:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(config.to_json()) + "\n", encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot write config {path}: {e}") from e
    info("config_saved", path=str(path))


def prompt_for_dsn(stdin: IO, stdout: TextIO) -> ClientConfig:
    """Read one DSN line from stdin (text or binary stream)."""
    print(DSN_PROMPT, file=stdout, flush=True)
    answer = stdin.readline()
    if isinstance(answer, bytes):
        answer = answer.decode("utf-8", errors="replace")
    answer = answer.strip()
    if not answer:
        raise ConfigError("no connection string entered")
    return ClientConfig(dsn=answer)


def resolve_dsn(path: Path, stdin: IO, stdout: TextIO) -> str:
    """Env override, then config file, then first-run prompt (saved for next time)."""
    env_dsn = os.environ.get(DSN_ENV, "").strip()
    if env_dsn:
        return env_dsn
    config = load_config(path)
    if config is None:
        config = prompt_for_dsn(stdin, stdout)
        save_config(config, path)
    return config.dsn
