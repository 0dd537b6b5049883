#!/usr/bin/env python3
"""
CourtBot - Entry Point
======================

Loads the environment, validates configuration and runs the bot.

Features:
- Command admission pipeline (rate limit, scopes, authorization, cooldowns)
- Group moderation (admins, silences, special permissions)
- Audit trail of every dispatch decision
- Graceful error handling
"""

import asyncio
import sys

from dotenv import load_dotenv

load_dotenv()

from courtbot.core.config import ConfigValidationError, validate_and_log_config  # noqa: E402
from courtbot.core.logger import logger  # noqa: E402


async def main() -> None:
    """
    Main entry point for CourtBot.

    Handles the bot lifecycle:
    1. Validates configuration
    2. Builds the runtime and connects to Discord
    3. Shuts down cleanly on exit

    Raises:
        SystemExit: If configuration is invalid
    """
    try:
        config = validate_and_log_config()
    except ConfigValidationError as e:
        logger.error("Invalid Configuration", [("Error", str(e))])
        sys.exit(1)

    logger.set_webhook(config.error_webhook_url)

    logger.tree("COURTBOT STARTING", [
        ("Prefix", config.command_prefix),
        ("Master", config.master_actor_id),
    ], emoji="⚖️")

    from courtbot.bot import CourtBot

    bot = CourtBot(config)
    async with bot:
        await bot.start(config.discord_token)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("🛑 Bot stopped by user (Ctrl+C)")
    except Exception as e:
        logger.critical(f"Fatal error: {type(e).__name__}: {e}")
        sys.exit(1)
