"""
Shared provider limits for transcription and completion calls.
"""

from __future__ import annotations

WHISPER_MAX_UPLOAD_SIZE_BYTES = 25 * 1024 * 1024  # 25 MiB
# Files at or under this size are sent as-is; larger ones are split first.
AUDIO_SPLIT_THRESHOLD_BYTES = 24 * 1024 * 1024  # 24 MiB
AUDIO_CHUNK_TARGET_SECONDS = 10 * 60
AUDIO_SILENCE_SEARCH_WINDOW_SECONDS = 2 * 60
AUDIO_SILENCE_MIN_DURATION_SECONDS = 0.4
# Trimmed from the probed duration so rounding never yields an empty last chunk.
AUDIO_TRAILING_TRIM_SECONDS = 1.0

TRANSCRIPTION_MAX_ATTEMPTS = 3
TRANSCRIPTION_RETRY_DELAY_SECONDS = 5.0

COMPLETION_TOKEN_BUDGET = 1600
COMPLETION_CONTEXT_TOKENS = 16384
LANGUAGE_DETECTION_SAMPLE_CHARS = 1000
