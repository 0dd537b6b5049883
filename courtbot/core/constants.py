"""
CourtBot - Centralized Constants
================================

All magic numbers and constants are defined here for maintainability.
Import from this module instead of hardcoding values.
"""

# =============================================================================
# Time Constants (in seconds)
# =============================================================================

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400

MS_PER_SECOND = 1000

# =============================================================================
# Rate Limiting
# =============================================================================

DEFAULT_RATE_LIMIT_MAX = 5            # Commands per window
DEFAULT_RATE_LIMIT_WINDOW = 10        # Window length

# =============================================================================
# Permission Cache
# =============================================================================

DEFAULT_ADMIN_CACHE_TTL = 300         # 5 minutes - admin structure changes rarely
DEFAULT_SILENCE_CACHE_TTL = 120       # 2 minutes - moderation must show up fast
DEFAULT_CACHE_SWEEP_INTERVAL = 30
DEFAULT_CACHE_MAX_ENTRIES = 2000      # Per table, least recently used evicted first
DEFAULT_STORE_TIMEOUT = 2.0

# =============================================================================
# Cooldowns
# =============================================================================

DEFAULT_COMMAND_COOLDOWN = 3          # Applied when a command declares none
COOLDOWN_FORGET_FACTOR = 2            # Entries vanish after 2x their cooldown

# =============================================================================
# Intervals
# =============================================================================

DEFAULT_SILENCE_CHECK_INTERVAL = 30   # Expired silence cleanup

# =============================================================================
# Moderation Limits
# =============================================================================

MAX_SILENCE_MINUTES = 99999999999     # Larger values are clamped
SILENCE_PERMANENT = None

# =============================================================================
# Audit
# =============================================================================

DEFAULT_AUDIT_RETENTION_DAYS = 90
AUDIT_ARGUMENT_MAX_LENGTH = 200       # Longer arguments are truncated
SUSPICIOUS_FAILURE_THRESHOLD = 5      # Failed attempts before an actor is flagged

# =============================================================================
# Commands
# =============================================================================

DEFAULT_COMMAND_PREFIX = "!"
