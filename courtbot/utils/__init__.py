"""
CourtBot - Utilities Package
============================

Async helpers and the in-process metrics collector.
"""
