"""
Configuration for the Sleek design agent backend.

Reads settings and API keys from backend/.env using python-dotenv.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv, set_key
import anthropic
from google import genai
from google.genai import errors as genai_errors

logger = logging.getLogger(__name__)

ENV_PATH = Path(__file__).resolve().parent / ".env"

API_KEY_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer, using %d", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number, using %s", name, raw, default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw not in ("0", "false", "no", "off")


@dataclass
class Settings:
    provider: str = "anthropic"
    model: str | None = None
    max_steps: int = 10
    throttle_ms: int = 120
    timeout_s: float = 30.0
    planner: bool = True
    thinking: bool = True
    stream_args: bool = False
    image_api_url: str | None = None
    anthropic_api_key: str | None = None
    google_api_key: str | None = None

    @classmethod
    def from_env(cls, load: bool = True) -> "Settings":
        """Build settings from os.environ, loading backend/.env first unless *load* is False."""
        if load:
            load_dotenv(ENV_PATH, override=False)
        return cls(
            provider=os.environ.get("DESIGN_AGENT_PROVIDER", "anthropic").strip().lower() or "anthropic",
            model=os.environ.get("DESIGN_AGENT_MODEL") or None,
            max_steps=max(1, _env_int("DESIGN_AGENT_MAX_STEPS", 10)),
            throttle_ms=max(0, _env_int("DESIGN_AGENT_THROTTLE_MS", 120)),
            timeout_s=_env_float("DESIGN_AGENT_TIMEOUT_S", 30.0),
            planner=_env_bool("DESIGN_AGENT_PLANNER", True),
            thinking=_env_bool("DESIGN_AGENT_THINKING", True),
            stream_args=_env_bool("DESIGN_AGENT_STREAM_ARGS", False),
            image_api_url=os.environ.get("IMAGE_GEN_API_URL") or None,
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY") or None,
            google_api_key=os.environ.get("GOOGLE_API_KEY") or None,
        )

    @property
    def api_key(self) -> str | None:
        if self.provider == "gemini":
            return self.google_api_key
        return self.anthropic_api_key


def save_api_key(key: str, provider: str = "anthropic") -> None:
    """Persist the API key to backend/.env and set it in the current process."""
    var = API_KEY_VARS.get(provider, "ANTHROPIC_API_KEY")
    ENV_PATH.touch(exist_ok=True)
    set_key(str(ENV_PATH), var, key)
    os.environ[var] = key


async def validate_api_key(key: str, provider: str = "anthropic") -> tuple[bool, str]:
    """Make a minimal API call to verify the key. Returns (valid, error_message)."""
    if provider == "gemini":
        try:
            client = genai.Client(api_key=key)
            await client.aio.models.get(model="gemini-2.0-flash")
            return True, ""
        except genai_errors.ClientError as e:
            return False, f"Invalid API key: {e.message or e}"
        except Exception as e:
            return False, str(e)
    try:
        client = anthropic.AsyncAnthropic(api_key=key)
        await client.messages.create(
            model="claude-haiku-4-5-20251001",
            max_tokens=1,
            messages=[{"role": "user", "content": "hi"}],
        )
        return True, ""
    except anthropic.AuthenticationError:
        return False, "Invalid API key"
    except anthropic.APIConnectionError:
        return False, "Could not connect to Anthropic API"
    except Exception as e:
        return False, str(e)
