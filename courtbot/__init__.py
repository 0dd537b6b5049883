"""
CourtBot - Source Package
=========================

Chat-bot authorization and request admission.

Package Structure:
- bot.py: discord.py client adapter
- runtime.py: Builds and wires every pipeline component
- core/: Configuration, logging, domain models and the SQLite store
- pipeline/: Rate limiting, permission cache, authorization, dispatch
- services/: Audit sink, moderation and housekeeping
- commands/: Built-in command bodies
- handlers/: Inbound message handling
- utils/: Async helpers and metrics

Version: v1.0.0
"""

__version__ = "1.0.0"
