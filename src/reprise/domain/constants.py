"""Centralized constants for Reprise.

Model coefficients, thresholds and defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Weight Model ----------
NEVER_REVISITED_URGENCY_BOOST = 1.5
REVISIT_DECAY_RATE = 0.3
NEWNESS_WINDOW_DAYS = 2.0
NEWNESS_MIN_FACTOR = 0.3
MIN_WEIGHT = 1.0

# ---------- Priority Tiers ----------
HIGH_PRIORITY_WEIGHT = 10.0
MEDIUM_PRIORITY_WEIGHT = 4.0

# ---------- Profile Defaults ----------
DEFAULT_PROBLEMS_PER_DAY = 3
DEFAULT_MIN_REVISIT_DAYS = 2

# ---------- Dispatch ----------
DEFAULT_TICK_SECONDS = 60.0
DEFAULT_DISPATCH_TIMEOUT = 30.0  # seconds

# ---------- Email ----------
RESEND_API_URL = "https://api.resend.com/emails"
DEFAULT_EMAIL_FROM = "onboarding@resend.dev"
EMAIL_SUBJECT = "Reprise: what to revisit today"

SECONDS_PER_DAY = 86400.0
