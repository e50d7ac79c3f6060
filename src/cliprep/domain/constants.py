"""Centralized constants for the cliprep application.

All scheduling magic numbers and defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Review schedule ----------
# Days until the next review after the first play and after each review.
REVIEW_INTERVALS = (1, 4, 7, 15, 30, 90)

# Review counts at which the 15/30/90-day milestones prefer video over audio.
VIDEO_RECOMMENDED_REVIEW_COUNTS = frozenset({3, 4, 5})

# ---------- Daily pacing ----------
MAX_NEW_PER_DAY = 4
EXTRA_NEW_BONUS = 2

# ---------- Resume offsets ----------
RESUME_LEAD_IN_SECONDS = 10.0
RESUME_TAIL_SECONDS = 10.0
PROGRESS_SAVE_INTERVAL = 5.0  # seconds

# ---------- Media ----------
AUDIO_EXTENSIONS = {".mp3", ".wav", ".m4a", ".aac", ".ogg", ".oga", ".flac"}

COLLECTION_COLORS = [
    "#3B82F6",
    "#8B5CF6",
    "#10B981",
    "#F59E0B",
    "#EF4444",
    "#06B6D4",
    "#84CC16",
    "#F97316",
]
