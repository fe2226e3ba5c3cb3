import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(encoding='utf-8')  # do not print secrets

def _get_deployment_mode() -> str:
    """Get deployment mode from environment."""
    return os.getenv("DEPLOYMENT_MODE", "local").lower()

def _get_database_url() -> str:
    """Get database URL based on deployment mode."""
    mode = _get_deployment_mode()
    if mode == "local":
        local_url = os.getenv("DATABASE_URL_LOCAL")
        if local_url:
            return local_url
        # Docker compose hostnames are not resolvable from the host
        docker_url = os.getenv("DATABASE_URL", "")
        if "postgres:5432" in docker_url:
            return docker_url.replace("postgres:5432", "localhost:5432")
    return os.getenv("DATABASE_URL", "")

def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")

def _read_runtime_yaml() -> dict:
    p = BASE_DIR / "config" / "runtime.yaml"
    if p.exists():
        with p.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
            if isinstance(data, dict):
                return data
    return {}

def load_settings() -> dict:
    rt = _read_runtime_yaml()

    imports_cfg = rt.get("imports") or {}
    rate_cfg = rt.get("rate_limits") or {}
    http_cfg = rt.get("http") or {}

    settings = {
        # deployment configuration
        "DEPLOYMENT_MODE": _get_deployment_mode(),
        "LOG_LEVEL": (os.getenv("LOG_LEVEL") or rt.get("log_level") or "INFO").upper(),
        "AUTO_CREATE_SCHEMA": _env_bool("AUTO_CREATE_SCHEMA", bool(rt.get("auto_create_schema", True))),
        # tracked defaults, env wins
        "DEFAULT_REPORT_VERSION": os.getenv("DEFAULT_REPORT_VERSION") or imports_cfg.get("default_version", "v1"),
        "PERMALINK_SUFFIX": os.getenv("PERMALINK_SUFFIX") or imports_cfg.get("permalink_suffix", "us-market-report"),
        "IMPORTS_LIST_RATE_LIMIT": int(os.getenv("IMPORTS_LIST_RATE_LIMIT") or rate_cfg.get("imports_list_per_minute", 30)),
        "IMPORTS_UPLOAD_RATE_LIMIT": int(os.getenv("IMPORTS_UPLOAD_RATE_LIMIT") or rate_cfg.get("imports_upload_per_minute", 10)),
        "MAX_REQUEST_BYTES": int(os.getenv("MAX_REQUEST_BYTES") or http_cfg.get("max_request_bytes", 6 * 1024 * 1024)),
        # secrets & endpoints (env ONLY)
        "DATABASE_URL": _get_database_url(),
        "ALLOWED_ORIGINS": os.getenv("ALLOWED_ORIGINS", ""),
    }
    return settings

settings = load_settings()
