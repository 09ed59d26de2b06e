"""
Runtime configuration.

All settings come from environment variables. A `.env` file at the project
root is loaded first (existing environment variables take precedence).
Vendor credentials are optional: a missing key disables that vendor.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "https://voice-agent-elevenlab.vercel.app",
    "https://autoincome.theretirementpaycheck.com",
    "https://theretirementpaycheck.com",
]


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    try:
        return int(value) if value else default
    except ValueError:
        print(f"⚠️ Ignoring invalid integer for {name}: {value!r}")
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.getenv(name)
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    """Application settings."""
    # Language models
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    groq_api_key: Optional[str] = None
    groq_model: str = "llama-3.3-70b-versatile"

    # Speech
    deepgram_api_key: Optional[str] = None
    deepgram_model: str = "nova-2"
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_voice: str = "rachel"
    elevenlabs_model: str = "eleven_monolingual_v1"

    # Income Conductor automation
    income_conductor_url: str = "https://app.incomeconductor.com"
    income_conductor_username: Optional[str] = None
    income_conductor_password: Optional[str] = None
    income_conductor_client: str = "Average, Joe"
    automation_proxy: Optional[str] = None
    automation_proxy_username: Optional[str] = None
    automation_proxy_password: Optional[str] = None
    automation_headless: bool = True
    automation_slow_mo_ms: int = 50
    automation_screenshot_path: str = "automation-screenshot.png"

    # Persistence and forms
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    pdf_template_path: str = str(PROJECT_ROOT / "forms" / "account_transfer.pdf")

    # Web server
    port: int = 3001
    secret_key: Optional[str] = None
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))

    @property
    def has_llm(self) -> bool:
        return bool(self.openai_api_key or self.groq_api_key)

    @property
    def has_site_credentials(self) -> bool:
        return bool(self.income_conductor_username and self.income_conductor_password)

    @property
    def has_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    def proxy_settings(self) -> Optional[dict]:
        """Proxy block in the shape Playwright's launch() expects."""
        if not self.automation_proxy:
            return None
        server = self.automation_proxy
        if "://" not in server:
            server = f"http://{server}"
        proxy = {"server": server}
        if self.automation_proxy_username:
            proxy["username"] = self.automation_proxy_username
            proxy["password"] = self.automation_proxy_password or ""
        return proxy

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", defaults.openai_model),
            groq_api_key=os.getenv("GROQ_API_KEY") or None,
            groq_model=os.getenv("GROQ_MODEL", defaults.groq_model),
            deepgram_api_key=os.getenv("DEEPGRAM_API_KEY") or None,
            deepgram_model=os.getenv("DEEPGRAM_MODEL", defaults.deepgram_model),
            elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY") or None,
            elevenlabs_voice=os.getenv("ELEVENLABS_VOICE", defaults.elevenlabs_voice),
            elevenlabs_model=os.getenv("ELEVENLABS_MODEL", defaults.elevenlabs_model),
            income_conductor_url=os.getenv("INCOME_CONDUCTOR_URL", defaults.income_conductor_url),
            income_conductor_username=os.getenv("INCOME_CONDUCTOR_USERNAME") or None,
            income_conductor_password=os.getenv("INCOME_CONDUCTOR_PASSWORD") or None,
            income_conductor_client=os.getenv("INCOME_CONDUCTOR_CLIENT", defaults.income_conductor_client),
            automation_proxy=os.getenv("AUTOMATION_PROXY") or None,
            automation_proxy_username=os.getenv("AUTOMATION_PROXY_USERNAME") or None,
            automation_proxy_password=os.getenv("AUTOMATION_PROXY_PASSWORD") or None,
            automation_headless=_env_bool("AUTOMATION_HEADLESS", defaults.automation_headless),
            automation_slow_mo_ms=_env_int("AUTOMATION_SLOW_MO_MS", defaults.automation_slow_mo_ms),
            automation_screenshot_path=os.getenv(
                "AUTOMATION_SCREENSHOT_PATH", defaults.automation_screenshot_path
            ),
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_key=os.getenv("SUPABASE_KEY") or None,
            pdf_template_path=os.getenv("PDF_TEMPLATE_PATH", defaults.pdf_template_path),
            port=_env_int("PORT", defaults.port),
            secret_key=os.getenv("SECRET_KEY") or None,
            cors_origins=_env_list("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
        )


_settings: Optional[Settings] = None


def load_env_file(path: Optional[Path] = None) -> bool:
    """Load a .env file without overriding the real environment."""
    env_path = path or PROJECT_ROOT / ".env"
    if not env_path.exists():
        return False
    return load_dotenv(env_path, override=False)


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        load_env_file()
        _settings = Settings.from_env()
    return _settings


def reload_settings() -> Settings:
    """Re-read the environment (used by tests and after .env edits)."""
    global _settings
    _settings = None
    return get_settings()
