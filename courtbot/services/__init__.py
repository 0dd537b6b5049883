"""
CourtBot - Services Package
===========================

Audit sink, moderation mutations and background housekeeping.
"""
