"""
Media service - end-to-end audio handling: persist upload, split, transcribe
chunks, and run the correction pass over the joined transcript.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import aiofiles

from ..ai import CompletionClient, correct_transcription
from ..audio_utils import AudioChunk, AudioSegmenter, generate_temp_audio_path
from ..config import Config
from ..services.text_processing_service import ParallelTextProcessor, TextProcessingError
from ..services.transcription_service import (
    ChunkTranscriptionOrchestrator,
    TranscriptionError,
    Transcriber,
    TranscriptionReport,
    WhisperTranscriber,
)
from ..utils.async_helpers import run_in_thread

logger = logging.getLogger(__name__)
config = Config()
UPLOAD_CHUNK_SIZE = 1024 * 1024  # 1MB


async def save_upload_to_temp(upload: Any, filename: Optional[str] = None, temp_dir: Optional[str] = None) -> Path:
    """
    Stream an uploaded file (anything with an async ``read(size)``) into the temp directory.

    Raises:
        ValueError: if the upload is empty
    """
    suffix = Path(filename).suffix if filename else ""
    upload_path = generate_temp_audio_path(temp_dir or config.temp_dir, suffix=suffix or ".mp3")

    bytes_written = 0
    try:
        async with aiofiles.open(upload_path, "wb") as f:
            while True:
                chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                bytes_written += len(chunk)
                await f.write(chunk)
    except Exception:
        upload_path.unlink(missing_ok=True)
        raise

    if bytes_written == 0:
        upload_path.unlink(missing_ok=True)
        raise ValueError("Uploaded audio file is empty")

    logger.info(f"Saved upload ({bytes_written} bytes) to {upload_path}")
    return upload_path


class MediaService:
    """Service for the audio -> transcript -> corrected transcript flow."""

    def __init__(
        self,
        segmenter: Optional[AudioSegmenter] = None,
        transcriber: Optional[Transcriber] = None,
        completion: Optional[CompletionClient] = None,
        orchestrator: Optional[ChunkTranscriptionOrchestrator] = None,
        text_processor: Optional[ParallelTextProcessor] = None,
        token_budget: Optional[int] = None,
    ):
        self.segmenter = segmenter or AudioSegmenter(config.segmentation_settings())
        self._transcriber = transcriber
        self._completion = completion
        self._orchestrator = orchestrator
        self.text_processor = text_processor or ParallelTextProcessor(
            max_concurrency=config.completion_max_concurrency,
            call_timeout_seconds=config.completion_timeout_seconds,
        )
        self.token_budget = token_budget or config.completion_token_budget

    @property
    def orchestrator(self) -> ChunkTranscriptionOrchestrator:
        if self._orchestrator is None:
            transcriber = self._transcriber or WhisperTranscriber()
            self._orchestrator = ChunkTranscriptionOrchestrator(transcriber, config.transcription_settings())
        return self._orchestrator

    @property
    def completion(self) -> CompletionClient:
        if self._completion is None:
            self._completion = CompletionClient.from_llm()
        return self._completion

    async def split_audio(self, audio_path: Path) -> List[AudioChunk]:
        return await run_in_thread(self.segmenter.split, audio_path)

    async def transcribe_chunks(self, chunks: List[AudioChunk]) -> TranscriptionReport:
        """Transcribe chunks and remove any chunk files left behind by failed transcriptions."""
        try:
            report = await self.orchestrator.transcribe_chunks(chunks)
        finally:
            for chunk in chunks:
                if not chunk.is_source and chunk.path.exists():
                    logger.info(f"Removing leftover chunk file {chunk.path}")
                    chunk.path.unlink(missing_ok=True)

        if chunks and not report.texts:
            raise TranscriptionError(
                f"Transcription failed for all {len(chunks)} chunks",
                failed_indexes=report.failed_indexes,
            )
        return report

    async def transcribe_file(
        self,
        audio_path: Path,
        correct: bool = True,
        remove_source: bool = False,
    ) -> Dict[str, Any]:
        """
        Split, transcribe and (optionally) correct an audio file.

        Returns a dict with the raw and corrected transcript, per-chunk texts,
        the chunk count and the indexes of chunks that could not be transcribed.
        """
        audio_path = Path(audio_path)
        logger.info(f"Transcribing audio file: {audio_path}")

        try:
            try:
                chunks = await self.split_audio(audio_path)
            except Exception:
                logger.error(f"Error splitting audio {audio_path}", extra={"event": "error_splitting_audio"})
                raise
            report = await self.transcribe_chunks(chunks)
        finally:
            if remove_source:
                audio_path.unlink(missing_ok=True)

        transcription = report.transcript

        corrected = transcription
        correction_error: Optional[str] = None
        if correct and transcription:
            try:
                corrected = await correct_transcription(
                    self.completion,
                    transcription,
                    self.token_budget,
                    processor=self.text_processor,
                )
            except TextProcessingError as exc:
                logger.warning(f"Correction pass failed, returning raw transcript: {exc}")
                correction_error = str(exc)

        result: Dict[str, Any] = {
            "original_transcription": transcription,
            "transcription": corrected,
            "transcriptions": [outcome.text for outcome in report.outcomes],
            "num_chunks": len(chunks),
            "failed_chunks": report.failed_indexes,
        }
        if correction_error:
            result["correction_error"] = correction_error

        logger.info(
            f"Transcription completed: {len(chunks)} chunks, {len(report.failed_indexes)} failed",
            extra={
                "event": "transcription_completed",
                "num_chunks": len(chunks),
                "failed_chunks": report.failed_indexes,
            },
        )
        return result
