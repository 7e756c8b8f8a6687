from pydantic import BaseModel
import os
import logging
from pathlib import Path
from typing import Dict, List

logger = logging.getLogger(__name__)

# Load .env file if it exists (before reading os.getenv)
_env_path = Path(__file__).resolve().parent.parent / ".env"
if _env_path.exists():
    with open(_env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                # Only set if not already in environment (env vars take precedence)
                if key not in os.environ:
                    os.environ[key] = value


def _sanitize_ascii(val: str) -> str:
    """Strip non-ASCII characters from config values (prevents encoding errors)"""
    return val.encode('ascii', errors='ignore').decode('ascii').strip()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def parse_mcp_servers(value: str, legacy_url: str = "") -> Dict[str, str]:
    """Parse 'name=url,name=url' into an ordered name -> url map.

    OCP_MCP_URL is still honoured and registered as 'ocp' unless MCP_SERVERS
    already names it.
    """
    servers: Dict[str, str] = {}
    for item in value.split(","):
        item = _sanitize_ascii(item)
        if not item:
            continue
        name, sep, url = item.partition("=")
        if not sep or not name.strip() or not url.strip():
            logger.warning(f"Ignoring malformed MCP_SERVERS entry: {item!r}")
            continue
        servers[name.strip()] = url.strip()
    legacy_url = _sanitize_ascii(legacy_url)
    if legacy_url and "ocp" not in servers:
        servers["ocp"] = legacy_url
    return servers


class Settings(BaseModel):
    # Network
    web_host: str = os.getenv("WEB_HOST", "0.0.0.0")
    web_port: int = int(os.getenv("WEB_PORT", "8080"))
    cors_origins: List[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    # Static chat front-end (served at / when the directory exists)
    app_root: str = os.getenv("APP_ROOT", "")

    # Reasoning backend (any OpenAI-compatible chat completions endpoint)
    llm_url: str = _sanitize_ascii(os.getenv("LLM_URL", "https://api.openai.com/v1"))
    llm_token: str = _sanitize_ascii(os.getenv("LLM_TOKEN", ""))
    llm_model: str = _sanitize_ascii(os.getenv("LLM_MODEL", "gpt-4o"))
    llm_max_tokens: int = int(os.getenv("LLM_MAX_TOKENS", "8192"))
    llm_timeout_s: float = float(os.getenv("LLM_TIMEOUT", "60"))

    # Tool backends
    mcp_servers: Dict[str, str] = parse_mcp_servers(
        os.getenv("MCP_SERVERS", ""), os.getenv("OCP_MCP_URL", "")
    )
    mcp_timeout_s: float = float(os.getenv("MCP_TIMEOUT", "30"))
    builtin_tools: bool = _env_bool("BUILTIN_TOOLS", "true")

    # Whole-pipeline budget for one /chat request
    request_timeout_s: float = float(os.getenv("REQUEST_TIMEOUT", "120"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


def check_startup_config(cfg: "Settings") -> None:
    """Refuse to start without the settings the pipeline cannot run without."""
    if not cfg.llm_token:
        raise SystemExit("FATAL: LLM_TOKEN is not set. Set it in the environment or .env before starting.")
    if not cfg.llm_url:
        raise SystemExit("FATAL: LLM_URL is empty.")


settings = Settings()

# Log config for debugging
_llm_key = '***' + settings.llm_token[-4:] if len(settings.llm_token) > 4 else 'EMPTY'
logger.info(f"Config: LLM → {settings.llm_url}, model={settings.llm_model} (key={_llm_key})")
logger.info(f"Config: MCP servers → {list(settings.mcp_servers)}, builtin_tools={settings.builtin_tools}")
