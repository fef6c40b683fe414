"""
Transcription service - concurrent per-chunk transcription with retries.
"""
from __future__ import annotations

from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence
import asyncio
import logging

import aiofiles
from openai import AsyncOpenAI
from pydantic import BaseModel, Field

from ..audio_utils import AudioChunk
from ..config import Config
from ..transcription_limits import TRANSCRIPTION_MAX_ATTEMPTS, TRANSCRIPTION_RETRY_DELAY_SECONDS
from ..utils.async_helpers import with_timeout

logger = logging.getLogger(__name__)
config = Config()


class TranscriptionError(Exception):
    """Raised when no chunk of a recording could be transcribed."""

    def __init__(self, message: str, failed_indexes: Optional[List[int]] = None):
        super().__init__(message)
        self.failed_indexes = failed_indexes or []


class Transcriber(Protocol):
    async def transcribe(self, audio_path: Path) -> str: ...


class TranscriptionSettings(BaseModel):
    max_attempts: int = Field(default=TRANSCRIPTION_MAX_ATTEMPTS, ge=1)
    retry_delay_seconds: float = Field(default=TRANSCRIPTION_RETRY_DELAY_SECONDS, ge=0)
    max_concurrency: int = Field(default=4, ge=1)
    call_timeout_seconds: Optional[float] = Field(default=None, gt=0)


class ChunkOutcome(BaseModel):
    index: int
    path: Path
    text: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.text is not None


class TranscriptionReport(BaseModel):
    """Per-chunk outcomes in original chunk order."""
    outcomes: List[ChunkOutcome]

    @property
    def texts(self) -> List[str]:
        return [outcome.text for outcome in self.outcomes if outcome.text is not None]

    @property
    def failed_indexes(self) -> List[int]:
        return [outcome.index for outcome in self.outcomes if not outcome.succeeded]

    @property
    def is_complete(self) -> bool:
        return not self.failed_indexes

    @property
    def transcript(self) -> str:
        return " ".join(self.texts).strip()


class WhisperTranscriber:
    """Transcribe an audio file through the OpenAI audio transcription endpoint."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        if client is None:
            api_key = str(config.openai_api_key or "").strip()
            if not api_key:
                raise ValueError("OpenAI transcription selected but no API key is configured")
            client = AsyncOpenAI(api_key=api_key)
        self.client = client
        self.model = model or config.transcription_model

    async def transcribe(self, audio_path: Path) -> str:
        async with aiofiles.open(audio_path, "rb") as f:
            audio_bytes = await f.read()
        response = await self.client.audio.transcriptions.create(
            model=self.model,
            file=(Path(audio_path).name, audio_bytes),
        )
        return response.text


class ChunkTranscriptionOrchestrator:
    """Fan chunks out to a transcriber and collect results in chunk order.

    A chunk file is removed once its transcription succeeds, unless the chunk
    is the source recording itself. When every attempt fails the outcome records
    the error and the file stays on disk.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        settings: Optional[TranscriptionSettings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.transcriber = transcriber
        self.settings = settings or TranscriptionSettings()
        self._sleep = sleep

    async def transcribe_chunks(self, chunks: Sequence[AudioChunk]) -> TranscriptionReport:
        outcomes: List[Optional[ChunkOutcome]] = [None] * len(chunks)
        semaphore = asyncio.Semaphore(self.settings.max_concurrency)

        async def run_chunk(position: int, chunk: AudioChunk) -> None:
            async with semaphore:
                logger.info(
                    f"Processing chunk {position + 1}/{len(chunks)}",
                    extra={"event": "processing_chunk", "chunk_number": position + 1},
                )
                outcomes[position] = await self._transcribe_chunk(position, chunk)

        await asyncio.gather(*(run_chunk(position, chunk) for position, chunk in enumerate(chunks)))

        report = TranscriptionReport(outcomes=[outcome for outcome in outcomes if outcome is not None])
        if report.failed_indexes:
            logger.warning(
                "Transcription finished with %s/%s failed chunks: %s",
                len(report.failed_indexes),
                len(chunks),
                report.failed_indexes,
            )
        return report

    async def _transcribe_chunk(self, position: int, chunk: AudioChunk) -> ChunkOutcome:
        max_attempts = self.settings.max_attempts
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            logger.info(
                f"Transcribing chunk {position + 1}: {chunk.path}",
                extra={"event": "transcribing_chunk", "chunk_path": str(chunk.path), "attempt": attempt},
            )
            try:
                text = await with_timeout(
                    self.transcriber.transcribe(chunk.path),
                    self.settings.call_timeout_seconds,
                )
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "Transcription of chunk %s failed (attempt %s/%s): %s",
                    position + 1,
                    attempt,
                    max_attempts,
                    exc,
                    extra={
                        "event": "transcription_failed",
                        "chunk_index": position,
                        "attempt": attempt,
                        "max_attempts": max_attempts,
                        "error": str(exc),
                    },
                )
                if attempt < max_attempts:
                    await self._sleep(self.settings.retry_delay_seconds)
                continue

            if not chunk.is_source:
                chunk.path.unlink(missing_ok=True)
            return ChunkOutcome(index=position, path=chunk.path, text=text, attempts=attempt)

        logger.error(
            f"Giving up on chunk {position + 1} after {max_attempts} attempts; leaving {chunk.path} in place",
            extra={"event": "transcription_exhausted", "chunk_index": position, "max_attempts": max_attempts},
        )
        return ChunkOutcome(
            index=position,
            path=chunk.path,
            error=f"{type(last_error).__name__}: {last_error}" if last_error else "unknown error",
            attempts=max_attempts,
        )
