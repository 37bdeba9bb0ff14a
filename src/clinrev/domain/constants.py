"""Centralized constants for clinrev.

All magic numbers and tuning defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Spaced repetition ----------
INITIAL_EASE = 2.3
MIN_EASE = 1.3
AGAIN_EASE_PENALTY = 0.2
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15
HARD_MULTIPLIER = 1.2
EASY_MULTIPLIER = 1.5
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6

# ---------- Topic canonicalization ----------
# Substring matches, compared case-insensitively.
IGNORED_TAG_TERMS = (
    "step 1",
    "step 2",
    "step 3",
    "board",
    "style",
    "nbme",
    "free 120",
    "high yield",
    "review",
    "test",
    "usmle",
    "plab",
    "comlex",
)

BROAD_SYSTEM_TERMS = (
    "surgery",
    "medicine",
    "pediatrics",
    "obgyn",
    "psychiatry",
    "cardiology",
    "gi",
    "renal",
    "respiratory",
    "neurology",
    "gastroenterology",
    "pulmonology",
    "endocrinology",
    "hematology",
    "oncology",
    "infectious disease",
    "rheumatology",
    "dermatology",
    "ophthalmology",
    "ent",
    "orthopedics",
    "urology",
    "gynecology",
    "obstetrics",
    "family medicine",
    "emergency medicine",
    "internal medicine",
)

RECENCY_WINDOW = 5

# ---------- Analytics ----------
LOW_SAMPLE_THRESHOLD = 3
MOMENTUM_DELTA = 10
DEFAULT_TOPIC_LIMIT = 20
HEATMAP_MONTHS = 3

# ---------- Time ----------
MS_PER_SECOND = 1000
MS_PER_HOUR = 3_600_000
MS_PER_DAY = 86_400_000
MS_PER_WEEK = 7 * MS_PER_DAY
# An inactive gap longer than this is treated as clock drift and dropped.
MAX_ACTIVE_GAP_MS = MS_PER_DAY
