"""
Audio segmentation helpers built on ffmpeg and moviepy.

Long recordings are cut into chunks that fit the transcription upload limit.
Cuts prefer silence onsets close to the target chunk length and fall back to
the exact target when no silence is found nearby.
"""
from pathlib import Path
from typing import Callable, List, Optional, Union
import logging
import os
import subprocess
import tempfile
import time

from moviepy import AudioFileClip
from pydantic import BaseModel, Field

from .transcription_limits import (
    AUDIO_CHUNK_TARGET_SECONDS,
    AUDIO_SILENCE_MIN_DURATION_SECONDS,
    AUDIO_SILENCE_SEARCH_WINDOW_SECONDS,
    AUDIO_SPLIT_THRESHOLD_BYTES,
    AUDIO_TRAILING_TRIM_SECONDS,
    WHISPER_MAX_UPLOAD_SIZE_BYTES,
)

logger = logging.getLogger(__name__)

SILENCE_START_MARKER = "silence_start:"
DEFAULT_AUDIO_SUFFIX = ".mp3"


class SegmentationError(Exception):
    """Raised when probing, silence detection or chunk extraction fails."""


class SegmentationSettings(BaseModel):
    split_threshold_bytes: int = Field(default=AUDIO_SPLIT_THRESHOLD_BYTES, ge=0)
    max_chunk_bytes: int = Field(default=WHISPER_MAX_UPLOAD_SIZE_BYTES, ge=1)
    chunk_target_seconds: float = Field(default=AUDIO_CHUNK_TARGET_SECONDS, gt=0)
    search_window_seconds: float = Field(default=AUDIO_SILENCE_SEARCH_WINDOW_SECONDS, ge=0)
    silence_min_duration_seconds: float = Field(default=AUDIO_SILENCE_MIN_DURATION_SECONDS, gt=0)
    trailing_trim_seconds: float = Field(default=AUDIO_TRAILING_TRIM_SECONDS, ge=0)
    temp_dir: Optional[str] = None


class AudioChunk(BaseModel):
    """A contiguous slice of a source recording, materialized as its own file.

    ``end_seconds`` is ``None`` when the source was small enough to be used
    unchanged, in which case ``path`` is the source itself.
    """
    index: int
    source_path: Path
    path: Path
    start_seconds: float = 0.0
    end_seconds: Optional[float] = None

    @property
    def is_source(self) -> bool:
        return self.path == self.source_path


def generate_temp_audio_path(
    temp_dir: Optional[Union[str, Path]] = None,
    suffix: str = DEFAULT_AUDIO_SUFFIX,
    prefix: str = "uploaded_audio",
) -> Path:
    directory = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{prefix}_{time.time_ns()}{suffix or DEFAULT_AUDIO_SUFFIX}"


def needs_splitting(file_path: Union[str, Path], threshold_bytes: int = AUDIO_SPLIT_THRESHOLD_BYTES) -> bool:
    try:
        size = os.path.getsize(file_path)
    except OSError as exc:
        raise SegmentationError(f"Cannot stat audio file {file_path}: {exc}") from exc
    # A file exactly at the threshold is sent whole.
    return size > threshold_bytes


def probe_audio_duration(file_path: Union[str, Path]) -> float:
    try:
        with AudioFileClip(str(file_path)) as clip:
            duration = float(clip.duration or 0.0)
    except Exception as exc:
        raise SegmentationError(f"Failed to probe audio duration for {file_path}: {exc}") from exc
    logger.info(f"Probed audio duration for {Path(file_path).name}: {duration:.3f}s")
    return duration


def parse_silence_timestamps(silence_output: str) -> List[float]:
    """Extract silence onset offsets (seconds) from ffmpeg silencedetect output."""
    timestamps: List[float] = []
    for line in silence_output.splitlines():
        if SILENCE_START_MARKER not in line:
            continue
        tokens = line.strip().split()
        for position, token in enumerate(tokens):
            if token != SILENCE_START_MARKER:
                continue
            if position + 1 < len(tokens):
                try:
                    timestamps.append(float(tokens[position + 1]))
                except ValueError:
                    logger.debug(f"Skipping malformed silence timestamp: {tokens[position + 1]!r}")
            break
    return timestamps


def detect_silence(
    file_path: Union[str, Path],
    min_silence_seconds: float = AUDIO_SILENCE_MIN_DURATION_SECONDS,
) -> List[float]:
    cmd = [
        "ffmpeg",
        "-hide_banner",
        "-nostdin",
        "-i",
        str(file_path),
        "-af",
        f"silencedetect=d={min_silence_seconds}",
        "-f",
        "null",
        "-",
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as exc:
        raise SegmentationError(f"Failed to run ffmpeg silence detection: {exc}") from exc

    if result.returncode != 0:
        logger.error(f"ffmpeg silence detection failed for {file_path}:\n{result.stderr}")
        raise SegmentationError(
            f"ffmpeg silence detection exited with status {result.returncode} for {file_path}"
        )

    timestamps = parse_silence_timestamps(result.stderr)
    logger.info(f"Detected {len(timestamps)} silence onsets in {Path(file_path).name}")
    return timestamps


def extract_audio_range(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    start_seconds: float,
    end_seconds: float,
) -> None:
    """Copy ``[start_seconds, end_seconds)`` of the input into a new file without re-encoding."""
    cmd = [
        "ffmpeg",
        "-hide_banner",
        "-loglevel",
        "error",
        "-nostdin",
        "-y",
        "-i",
        str(input_path),
        "-ss",
        f"{start_seconds:.3f}",
        "-to",
        f"{end_seconds:.3f}",
        "-vn",
        "-c:a",
        "copy",
        str(output_path),
    ]
    try:
        subprocess.run(cmd, check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as exc:
        raise SegmentationError(
            f"ffmpeg failed to extract {start_seconds:.3f}s-{end_seconds:.3f}s from {input_path}: "
            f"{(exc.stderr or '').strip()}"
        ) from exc
    except OSError as exc:
        raise SegmentationError(f"Failed to run ffmpeg range extraction: {exc}") from exc


def find_split_time(
    start_seconds: float,
    target_seconds: float,
    search_window_seconds: float,
    total_duration_seconds: float,
    silence_timestamps: List[float],
) -> float:
    """Pick the next cut after ``start_seconds``.

    The first silence onset inside ``target +/- window`` wins; without one the
    cut lands exactly on the target. The result never passes the total duration.
    """
    target = start_seconds + target_seconds
    split_time = target
    for silence_time in silence_timestamps:
        if silence_time <= start_seconds:
            continue
        if target - search_window_seconds <= silence_time <= target + search_window_seconds:
            logger.info(f"Found silence at {silence_time:.3f}s")
            split_time = silence_time
            break

    return min(split_time, total_duration_seconds)


class AudioSegmenter:
    """Cut a recording into upload-sized chunks, preferring silence boundaries."""

    def __init__(
        self,
        settings: Optional[SegmentationSettings] = None,
        duration_probe: Callable[[Path], float] = probe_audio_duration,
        silence_detector: Callable[[Path, float], List[float]] = detect_silence,
        range_extractor: Callable[[Path, Path, float, float], None] = extract_audio_range,
    ):
        self.settings = settings or SegmentationSettings()
        self.duration_probe = duration_probe
        self.silence_detector = silence_detector
        self.range_extractor = range_extractor

    def split(self, file_path: Union[str, Path]) -> List[AudioChunk]:
        source_path = Path(file_path)
        if not needs_splitting(source_path, self.settings.split_threshold_bytes):
            logger.info(f"{source_path.name} is under the split threshold; using it unchanged")
            return [AudioChunk(index=0, source_path=source_path, path=source_path)]

        return self._split_by_silence(source_path)

    def _split_by_silence(self, source_path: Path) -> List[AudioChunk]:
        settings = self.settings
        total_duration = self.duration_probe(source_path) - settings.trailing_trim_seconds

        if total_duration <= 0:
            logger.warning(f"{source_path.name} has no usable audio after trimming; no chunks produced")
            return []

        silence_timestamps = sorted(self.silence_detector(source_path, settings.silence_min_duration_seconds))

        chunks: List[AudioChunk] = []
        start_time = 0.0
        try:
            while start_time < total_duration:
                split_time = find_split_time(
                    start_time,
                    settings.chunk_target_seconds,
                    settings.search_window_seconds,
                    total_duration,
                    silence_timestamps,
                )
                chunk = self._create_chunk(source_path, len(chunks), start_time, split_time)
                chunks.append(chunk)
                start_time = split_time
        except Exception:
            for chunk in chunks:
                chunk.path.unlink(missing_ok=True)
            raise

        logger.info(
            "Split %s into %s chunks (duration=%.1fs, target=%.0fs, window=%.0fs)",
            source_path.name,
            len(chunks),
            total_duration,
            settings.chunk_target_seconds,
            settings.search_window_seconds,
        )
        return chunks

    def _create_chunk(self, source_path: Path, index: int, start_time: float, split_time: float) -> AudioChunk:
        chunk_path = generate_temp_audio_path(
            self.settings.temp_dir,
            suffix=source_path.suffix,
            prefix=f"chunk-{int(start_time * 1000)}-{int(split_time * 1000)}",
        )
        self.range_extractor(source_path, chunk_path, start_time, split_time)

        try:
            size = os.path.getsize(chunk_path)
        except OSError:
            size = None
        if size is not None and size > self.settings.max_chunk_bytes:
            logger.warning(
                f"Chunk {index + 1} ({start_time:.1f}s-{split_time:.1f}s) is {size} bytes, "
                f"above the {self.settings.max_chunk_bytes} byte upload ceiling"
            )

        return AudioChunk(
            index=index,
            source_path=source_path,
            path=chunk_path,
            start_seconds=start_time,
            end_seconds=split_time,
        )
