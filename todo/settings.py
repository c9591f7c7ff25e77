from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Mapping, Sequence

from dotenv import load_dotenv


DEFAULT_TLS_PORT = 8443

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


class ConfigurationError(RuntimeError):
    """Startup configuration is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    # App
    app_name: str = "Todo API"
    host: str = "0.0.0.0"
    port: int = 8080

    # TLS / redirect
    https_port: int | None = None
    ssl_certfile: str | None = None
    ssl_keyfile: str | None = None
    https_redirect: bool = True
    forwarded_allow_ips: str = "127.0.0.1"

    # Database
    database_url: str | None = None
    database_echo: bool = False

    # Logging
    log_level: str = "info"
    log_requests: bool = True
    log_request_body: bool = False

    @property
    def tls_enabled(self) -> bool:
        return bool(self.ssl_certfile)


def _normalize_key(key: str) -> str:
    return key.lstrip("-/").replace("-", "_").upper()


def parse_args(args: Sequence[str]) -> dict[str, str]:
    """
    Turn generic startup arguments into configuration overrides.

    Accepts `--key=value`, `--key value` and `key=value`. Anything else
    (bare positional words) is ignored, as are keys nobody reads.
    """
    out: dict[str, str] = {}
    items = list(args)
    i = 0
    while i < len(items):
        arg = items[i]
        if arg.startswith("--"):
            if "=" in arg:
                key, value = arg.split("=", 1)
            else:
                if i + 1 >= len(items) or items[i + 1].startswith("--"):
                    raise ConfigurationError(f"Missing value for argument {arg!r}")
                key, value = arg, items[i + 1]
                i += 1
            out[_normalize_key(key)] = value
        elif "=" in arg:
            key, value = arg.split("=", 1)
            out[_normalize_key(key)] = value
        i += 1
    return out


def _as_bool(key: str, raw: str) -> bool:
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {raw!r}")


def _as_int(key: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from e


def configure(args: Sequence[str] = (), environ: Mapping[str, str] | None = None) -> Settings:
    """Build the immutable settings from the environment, overridden by `args`."""
    if environ is None:
        # local .env fills gaps; real env vars win
        load_dotenv(override=False)
        environ = os.environ

    values = {k.upper(): v for k, v in environ.items()}
    values.update(parse_args(args))

    kwargs: dict[str, object] = {}
    for f in fields(Settings):
        key = f.name.upper()
        raw = values.get(key)
        # empty string counts as unset
        if raw is None or raw == "":
            continue
        if f.type in ("bool",):
            kwargs[f.name] = _as_bool(key, raw)
        elif f.type in ("int", "int | None"):
            kwargs[f.name] = _as_int(key, raw)
        else:
            kwargs[f.name] = raw

    settings = Settings(**kwargs)
    if settings.tls_enabled and settings.https_port is None:
        settings = replace(settings, https_port=DEFAULT_TLS_PORT)
    return settings
