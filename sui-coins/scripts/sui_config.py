"""Active network resolution from the environment and the Sui client config."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from error_map import ERR_CONFIG_INVALID
from known_tokens import detect_network

logger = logging.getLogger(__name__)

RPC_URL_ENV = "SUI_RPC_URL"
CONFIG_PATH_ENV = "SUI_CONFIG_PATH"


def default_config_path() -> Path:
    return Path.home() / ".sui" / "sui_config" / "client.yaml"


def resolve_config_path(env: Mapping[str, str] | None = None) -> Path:
    source = os.environ if env is None else env
    override = str(source.get(CONFIG_PATH_ENV, "")).strip()
    if override:
        return Path(override).expanduser()
    return default_config_path()


def load_client_config(path: Path) -> dict[str, Any]:
    """Read client.yaml; payload carries `config` or the reason it is unusable."""
    if not path.exists():
        return {
            "ok": False,
            "error_code": None,
            "error_message": f"sui client config not found: {path}",
            "config": None,
        }
    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as err:
        return {
            "ok": False,
            "error_code": ERR_CONFIG_INVALID,
            "error_message": f"failed to read sui client config: {err}",
            "config": None,
        }
    if not isinstance(parsed, dict):
        return {
            "ok": False,
            "error_code": ERR_CONFIG_INVALID,
            "error_message": "sui client config must be a YAML mapping",
            "config": None,
        }

    envs = parsed.get("envs") or []
    if not isinstance(envs, list):
        envs = []
    return {
        "ok": True,
        "error_code": None,
        "error_message": None,
        "config": {
            "active_env": parsed.get("active_env"),
            "active_address": parsed.get("active_address"),
            "envs": [e for e in envs if isinstance(e, dict)],
            "keystore": parsed.get("keystore"),
        },
    }


def resolve_active_endpoint(
    env: Mapping[str, str] | None = None,
    config_path: Path | None = None,
) -> dict[str, Any] | None:
    """Return {rpc_url, source, active_env, network} or None when nothing is configured."""
    source = os.environ if env is None else env
    override = str(source.get(RPC_URL_ENV, "")).strip()
    if override:
        return {
            "rpc_url": override,
            "source": "env",
            "active_env": None,
            "network": detect_network(override),
        }

    path = config_path if config_path is not None else resolve_config_path(source)
    loaded = load_client_config(path)
    if not loaded["ok"]:
        if loaded["error_code"]:
            logger.warning("%s", loaded["error_message"])
        else:
            logger.debug("%s", loaded["error_message"])
        return None

    config = loaded["config"]
    active_alias = config.get("active_env")
    for entry in config["envs"]:
        if entry.get("alias") != active_alias:
            continue
        rpc_url = str(entry.get("rpc") or "").strip()
        if not rpc_url:
            return None
        return {
            "rpc_url": rpc_url,
            "source": "client_config",
            "active_env": active_alias,
            "network": detect_network(rpc_url),
        }
    logger.debug("active env %r not present in %s", active_alias, path)
    return None
