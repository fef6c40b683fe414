from dotenv import load_dotenv
import os
import tempfile

from .transcription_limits import (
    AUDIO_CHUNK_TARGET_SECONDS,
    AUDIO_SILENCE_MIN_DURATION_SECONDS,
    AUDIO_SILENCE_SEARCH_WINDOW_SECONDS,
    AUDIO_SPLIT_THRESHOLD_BYTES,
    AUDIO_TRAILING_TRIM_SECONDS,
    COMPLETION_CONTEXT_TOKENS,
    COMPLETION_TOKEN_BUDGET,
    TRANSCRIPTION_MAX_ATTEMPTS,
    TRANSCRIPTION_RETRY_DELAY_SECONDS,
    WHISPER_MAX_UPLOAD_SIZE_BYTES,
)

load_dotenv()


class Config:
    def __init__(self):
        def env_float(name: str, default: float) -> float:
            raw = (os.getenv(name) or "").strip()
            return float(raw) if raw else float(default)

        def env_int(name: str, default: int) -> int:
            raw = (os.getenv(name) or "").strip()
            return int(raw) if raw else int(default)

        def env_optional_float(name: str, default: float) -> float | None:
            # "0" or "none" disables the timeout entirely
            raw = (os.getenv(name) or "").strip().lower()
            if not raw:
                return float(default)
            if raw in {"0", "none", "off"}:
                return None
            return float(raw)

        self.openai_api_key = os.getenv("OPENAI_API_KEY")
        self.anthropic_api_key = os.getenv("ANTHROPIC_API_KEY")
        self.google_api_key = os.getenv("GOOGLE_API_KEY")
        self.transcription_model = os.getenv("TRANSCRIPTION_MODEL", "whisper-1")
        self.llm = os.getenv("LLM") or os.getenv("LLM_MODEL") or "openai:gpt-4o"
        self.language_detection_llm = os.getenv("LANGUAGE_DETECTION_LLM", "openai:gpt-4o-mini")

        self.temp_dir = os.getenv("TEMP_DIR") or tempfile.gettempdir()
        self.log_level = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()
        self.cors_allow_origins = [
            origin.strip()
            for origin in (os.getenv("CORS_ALLOW_ORIGINS", "*") or "*").split(",")
            if origin.strip()
        ]

        # Audio segmentation
        self.audio_split_threshold_bytes = env_int("AUDIO_SPLIT_THRESHOLD_BYTES", AUDIO_SPLIT_THRESHOLD_BYTES)
        self.audio_max_chunk_bytes = env_int("AUDIO_MAX_CHUNK_BYTES", WHISPER_MAX_UPLOAD_SIZE_BYTES)
        self.audio_chunk_target_seconds = env_float("AUDIO_CHUNK_TARGET_SECONDS", AUDIO_CHUNK_TARGET_SECONDS)
        self.audio_silence_search_window_seconds = env_float(
            "AUDIO_SILENCE_SEARCH_WINDOW_SECONDS", AUDIO_SILENCE_SEARCH_WINDOW_SECONDS
        )
        self.audio_silence_min_duration_seconds = env_float(
            "AUDIO_SILENCE_MIN_DURATION_SECONDS", AUDIO_SILENCE_MIN_DURATION_SECONDS
        )
        self.audio_trailing_trim_seconds = env_float("AUDIO_TRAILING_TRIM_SECONDS", AUDIO_TRAILING_TRIM_SECONDS)

        # Chunk transcription
        self.transcription_max_attempts = env_int("TRANSCRIPTION_MAX_ATTEMPTS", TRANSCRIPTION_MAX_ATTEMPTS)
        self.transcription_retry_delay_seconds = env_float(
            "TRANSCRIPTION_RETRY_DELAY_SECONDS", TRANSCRIPTION_RETRY_DELAY_SECONDS
        )
        self.transcription_max_concurrency = env_int("TRANSCRIPTION_MAX_CONCURRENCY", 4)
        self.transcription_timeout_seconds = env_optional_float("TRANSCRIPTION_TIMEOUT_SECONDS", 600)

        # Parallel text processing
        self.completion_token_budget = env_int("COMPLETION_TOKEN_BUDGET", COMPLETION_TOKEN_BUDGET)
        self.completion_context_tokens = env_int("COMPLETION_CONTEXT_TOKENS", COMPLETION_CONTEXT_TOKENS)
        self.completion_max_concurrency = env_int("COMPLETION_MAX_CONCURRENCY", 8)
        self.completion_timeout_seconds = env_optional_float("COMPLETION_TIMEOUT_SECONDS", 300)

    def segmentation_settings(self):
        from .audio_utils import SegmentationSettings

        return SegmentationSettings(
            split_threshold_bytes=self.audio_split_threshold_bytes,
            max_chunk_bytes=self.audio_max_chunk_bytes,
            chunk_target_seconds=self.audio_chunk_target_seconds,
            search_window_seconds=self.audio_silence_search_window_seconds,
            silence_min_duration_seconds=self.audio_silence_min_duration_seconds,
            trailing_trim_seconds=self.audio_trailing_trim_seconds,
            temp_dir=self.temp_dir,
        )

    def transcription_settings(self):
        from .services.transcription_service import TranscriptionSettings

        return TranscriptionSettings(
            max_attempts=self.transcription_max_attempts,
            retry_delay_seconds=self.transcription_retry_delay_seconds,
            max_concurrency=self.transcription_max_concurrency,
            call_timeout_seconds=self.transcription_timeout_seconds,
        )
