"""
CourtBot - Handlers Package
===========================

Inbound message handling.
"""

from courtbot.handlers.messages import MessageHandler

__all__ = ["MessageHandler"]
