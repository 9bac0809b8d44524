import asyncio
import threading
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Tuple
import discord

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DISCORD_LIMIT = 2000
CHUNK_SIZE = 1900


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')


def _rank(level: str) -> int:
    level = level.upper()
    return LEVELS.index(level) if level in LEVELS else LEVELS.index("INFO")


class LoggingHelper:
    """
    Console logging, mirrored to a Discord channel when the cog has one configured.

    Messages below discord_level only reach the console. Anything logged before the bot is
    ready (or from a worker thread without a running loop) is queued and sent by
    flush_init_log_queue() once the cog is up. Without a bot (tests, scripts) it is console-only.
    """

    def __init__(self, bot: Optional[discord.Client] = None, log_channel_id: Optional[int] = None,
                 discord_level: str = "INFO"):
        self.bot = bot
        self.log_channel_id = log_channel_id
        self.discord_level = discord_level
        self._pending: List[Tuple[str, str]] = []
        self._pending_lock = threading.Lock()

    @property
    def mirrors_to_discord(self) -> bool:
        return self.bot is not None and self.log_channel_id is not None

    def _hold(self, message: str, level: str):
        with self._pending_lock:
            self._pending.append((message, level))

    @staticmethod
    def _chunks(message: str) -> Iterator[str]:
        for start in range(0, len(message), CHUNK_SIZE):
            yield message[start:start + CHUNK_SIZE]

    def _resolve_channel(self) -> Optional[discord.TextChannel]:
        channel = self.bot.get_channel(self.log_channel_id)
        if isinstance(channel, discord.TextChannel):
            return channel
        print(f"[LOG_ERROR] Channel {self.log_channel_id} is missing or not a text channel.")
        return None

    async def log_to_discord(self, message: str, level: str = "INFO", embed: Optional[discord.Embed] = None):
        """Posts one message to the log channel, split into numbered chunks when it is too long."""

        if not self.mirrors_to_discord or _rank(level) < _rank(self.discord_level):
            return

        if not self.bot.is_ready():
            self._hold(message, level)
            return

        channel = self._resolve_channel()
        if channel is None:
            return

        header = f"`[{_utc_stamp()}] [{level.upper()}]` "
        no_mentions = discord.AllowedMentions.none()
        try:
            if len(header) + len(message) <= DISCORD_LIMIT:
                await channel.send(content=header + message, embed=embed, allowed_mentions=no_mentions)
                return

            await channel.send(content=f"{header}Message too long, continued below.", embed=embed,
                               allowed_mentions=no_mentions)
            for number, chunk in enumerate(self._chunks(message), start=1):
                await channel.send(f"```{level.upper()} part {number}```\n{chunk}", allowed_mentions=no_mentions)
        except discord.Forbidden:
            print(f"[LOG_FORBIDDEN] Missing permission to post in channel {self.log_channel_id}.")
        except discord.HTTPException as e:
            print(f"[LOG_HTTP_ERROR] Posting to channel {self.log_channel_id} failed: {e}")

    def log(self, message: str, level: str = "INFO"):
        """
        Prints at once and forwards to Discord. Callable from worker threads: the send is
        scheduled onto the bot's running loop, or held until flush_init_log_queue().
        """

        print(f"[{level.upper()}|{_utc_stamp()}] {message}")
        if not self.mirrors_to_discord:
            return

        loop = getattr(self.bot, "loop", None)
        if loop is not None and loop.is_running():
            asyncio.run_coroutine_threadsafe(self.log_to_discord(message, level=level), loop)
        else:
            self._hold(message, level)

    def init_log(self, message: str, level: str = "INFO"):
        """Startup logging (data loading, cog setup); same path as log()."""
        self.log(message, level)

    async def flush_init_log_queue(self):
        with self._pending_lock:
            pending, self._pending = self._pending, []

        if pending:
            print(f"[DEBUG|{_utc_stamp()}] Sending {len(pending)} held log message(s).")
        for message, level in pending:
            await self.log_to_discord(message, level)
