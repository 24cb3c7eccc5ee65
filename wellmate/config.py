"""Runtime settings read from the environment (and .env via python-dotenv).

  LLM_BASE_URL       chat-completions base URL
  LLM_API_KEY        bearer token; only required once a model call is made
  LLM_MODEL          model id sent in the request body
  LLM_ECHO           1 to answer with EchoLLM instead of calling a model
  DIALOGUE_TIMEOUT   dialogue deadline in seconds (60)
  CHART_TIMEOUT      chart interpretation deadline in seconds (2)
  DATA_DIR           JSON storage root (./data)
  PROFILES_DIR       character presets (packaged presets by default)
  HOST / PORT        uvicorn bind address
  LOG_LEVEL          logging level name (INFO)
"""

import os
from pathlib import Path

from pydantic import BaseModel

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


class Settings(BaseModel):
    llm_base_url: str = "https://api.openai.com/v1"
    llm_api_key: str = ""
    llm_model: str = ""
    llm_echo: bool = False
    dialogue_timeout: float = 60.0
    chart_timeout: float = 2.0
    data_dir: Path = DEFAULT_DATA_DIR
    profiles_dir: Path | None = None
    host: str = "0.0.0.0"
    port: int = 13013
    log_level: str = "INFO"


_ENV_KEYS = {
    "llm_base_url": "LLM_BASE_URL",
    "llm_api_key": "LLM_API_KEY",
    "llm_model": "LLM_MODEL",
    "llm_echo": "LLM_ECHO",
    "dialogue_timeout": "DIALOGUE_TIMEOUT",
    "chart_timeout": "CHART_TIMEOUT",
    "data_dir": "DATA_DIR",
    "profiles_dir": "PROFILES_DIR",
    "host": "HOST",
    "port": "PORT",
    "log_level": "LOG_LEVEL",
}


def load_settings(**overrides) -> Settings:
    """Build Settings from environment variables; keyword overrides win."""
    values = {field: os.getenv(env) for field, env in _ENV_KEYS.items()}
    values = {k: v for k, v in values.items() if v}
    values.update(overrides)
    return Settings.model_validate(values)
