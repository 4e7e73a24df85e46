import os
from dataclasses import dataclass

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in _TRUTHY


@dataclass(frozen=True)
class Settings:
    api_url: str = "https://api.revolt.chat"
    ws_url: str = "wss://ws.revolt.chat"
    token: str = ""
    # A bare token is treated as a bot token; user sessions log in instead
    bot: bool = True
    # Synthesize id-only placeholders instead of returning nothing
    partials: bool = False
    ping_interval: float = 30.0

def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        api_url=os.getenv("CHATSYNC_API_URL", "").strip() or defaults.api_url,
        ws_url=os.getenv("CHATSYNC_WS_URL", "").strip() or defaults.ws_url,
        token=os.getenv("CHATSYNC_TOKEN", "").strip(),
        bot=_env_flag("CHATSYNC_BOT", defaults.bot),
        partials=_env_flag("CHATSYNC_PARTIALS", defaults.partials),
        ping_interval=float(
            os.getenv("CHATSYNC_PING_INTERVAL", "").strip() or defaults.ping_interval
        ),
    )
