"""
CourtBot - Discord Client
=========================

Thin discord.py adapter around the transport-neutral runtime.

DESIGN:
    The client only translates: a discord.Message becomes an
    InboundMessage plus a ReplyChannel, and MessageHandler does the rest.
    Guild messages map to group scopes keyed by guild id; DMs map to
    direct scopes keyed by channel id.

    SERVICE INITIALIZATION ORDER:
    1. __init__: runtime is built (store, pipeline, commands)
    2. on_ready: permission cache sweeper and housekeeping start
    3. close: background loops stop, then the database closes
"""

from datetime import datetime

import discord

from courtbot.core.config import Config
from courtbot.core.database import get_db
from courtbot.core.logger import logger
from courtbot.core.models import InboundMessage, Scope
from courtbot.runtime import CourtRuntime, runtime_from_config


# =============================================================================
# Reply Channel
# =============================================================================

class DiscordReplyChannel:
    """ReplyChannel over one discord.Message."""

    def __init__(self, message: discord.Message) -> None:
        self._message = message

    async def send(self, text: str) -> None:
        await self._message.channel.send(text)

    async def delete_message(self) -> None:
        try:
            await self._message.delete()
        except discord.NotFound:
            pass


def to_inbound(message: discord.Message, own_id: int) -> InboundMessage:
    """Translate a discord message into the pipeline's view of it."""
    if message.guild is not None:
        scope = Scope.group(str(message.guild.id))
    else:
        scope = Scope.direct(str(message.channel.id))
    return InboundMessage(
        actor_id=str(message.author.id),
        scope=scope,
        text=message.content or "",
        from_self=message.author.id == own_id,
    )


# =============================================================================
# CourtBot Client
# =============================================================================

class CourtBot(discord.Client):
    """
    Discord client for CourtBot.

    Attributes:
        runtime: The wired admission pipeline.
    """

    def __init__(self, config: Config) -> None:
        self.config = config

        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True

        super().__init__(intents=intents)

        self.db = get_db()
        self.runtime: CourtRuntime = runtime_from_config(config, self.db)
        self.start_time: datetime = datetime.now()
        self._ready_initialized: bool = False

        logger.info("Bot Instance Created")

    # =========================================================================
    # Events
    # =========================================================================

    async def on_ready(self) -> None:
        """Start background services once."""
        if self._ready_initialized:
            logger.info("Bot Reconnected (skipping re-initialization)")
            return

        self._ready_initialized = True

        if not self.user:
            return

        logger.tree("BOT ONLINE", [
            ("Name", self.user.name),
            ("ID", str(self.user.id)),
            ("Guilds", str(len(self.guilds))),
        ], emoji="🚀")

        await self.runtime.start()

    async def on_message(self, message: discord.Message) -> None:
        """Route every message through the handler."""
        if self.user is None or (message.author.bot and message.author.id != self.user.id):
            return

        inbound = to_inbound(message, self.user.id)
        try:
            await self.runtime.handler.handle(inbound, DiscordReplyChannel(message))
        except discord.HTTPException as e:
            logger.warning("Discord Request Failed", [
                ("Actor", inbound.actor_id),
                ("Scope", inbound.scope.id),
                ("Error", str(e)[:100]),
            ])

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> None:
        """Graceful shutdown with proper cleanup."""
        logger.info("Initiating Graceful Shutdown")

        await self.runtime.stop()
        self.db.close()
        await super().close()

        logger.tree("SHUTDOWN COMPLETE", [
            ("Uptime", str(datetime.now() - self.start_time)),
        ], emoji="🛑")

    async def close(self) -> None:
        """Override close to ensure proper shutdown."""
        await self.shutdown()


# =============================================================================
# Module Export
# =============================================================================

__all__ = ["CourtBot", "DiscordReplyChannel", "to_inbound"]
