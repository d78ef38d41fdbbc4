from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Iterable

import yaml

from healthcheck.models import ConfigFile, Endpoint

logger = logging.getLogger(__name__)

_ENV_REF = re.compile(r"\$\{([^}]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def expand_env(text: str) -> str:
    """Replace $VAR and ${VAR} with environment values; unset variables become ''."""
    return _ENV_REF.sub(lambda m: os.environ.get(m.group(1) or m.group(2), ""), text)


def load_config(path: str | Path) -> ConfigFile:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing config file at {path}")

    ext = path.suffix.lower()
    text = expand_env(path.read_text())

    if ext in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"parse YAML config: {e}") from e
    elif ext == ".json":
        try:
            data = json.loads(text) if text.strip() else {}
        except ValueError as e:
            raise ValueError(f"parse JSON config: {e}") from e
    else:
        raise ValueError(f"unsupported config format: {ext} (use .yml, .yaml, or .json)")

    cfg = ConfigFile.model_validate(data)

    seen = set()
    for ep in cfg.endpoints:
        if ep.name in seen:
            raise ValueError(f"Duplicate endpoint name: {ep.name}")
        seen.add(ep.name)

    logger.debug("loaded %d endpoints from %s", len(cfg.endpoints), path)
    return cfg


def endpoints_from_args(args: Iterable[str]) -> list[Endpoint]:
    out: list[Endpoint] = []
    for arg in args:
        if arg.startswith("http://") or arg.startswith("https://"):
            out.append(Endpoint.from_url(arg))
        else:
            logger.warning("ignoring argument %r: not an http:// or https:// URL", arg)
    return out
