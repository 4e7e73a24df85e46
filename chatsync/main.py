from __future__ import annotations

import asyncio

from .client import Client
from .config import load_settings
from .logging_config import setup_logging


def main() -> int:
    log = setup_logging()
    settings = load_settings()
    if not settings.token:
        log.error(
            "CHATSYNC_TOKEN is not set. "
            "Export it in your environment before running."
        )
        return 2
    client = Client(settings)

    def on_ready() -> None:
        log.info(
            "Cache holds %d users, %d servers, %d members, %d channels, %d emojis",
            len(client.users),
            len(client.servers),
            len(client.server_members),
            len(client.channels),
            len(client.emojis),
        )

    client.on("ready", on_ready)

    async def runner():
        try:
            if settings.bot:
                await client.login_bot(settings.token)
            else:
                await client.use_existing_session(
                    {"token": settings.token, "user_id": ""}
                )
            await client.wait_until_ready()
            # keep the socket open; the event channel reports disconnects
            await asyncio.Event().wait()
        finally:
            await client.close()
        return 0

    try:
        return asyncio.run(runner())
    except KeyboardInterrupt:
        log.info("Shutting down...")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
