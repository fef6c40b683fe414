#!/usr/bin/env python3
"""Transcribe a local audio file end to end and print the result as JSON."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path


SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Split, transcribe and correct a local audio file.",
    )
    parser.add_argument("audio_path", type=Path, help="Audio file to transcribe.")
    parser.add_argument(
        "--no-correct",
        action="store_true",
        help="Skip the completion-based correction pass.",
    )
    parser.add_argument(
        "--split-only",
        action="store_true",
        help="Only compute and materialize chunks; print their ranges and paths.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> int:
    from chunkscribe.audio_utils import SegmentationError
    from chunkscribe.services.media_service import MediaService
    from chunkscribe.services.transcription_service import TranscriptionError

    if not args.audio_path.is_file():
        print(f"Audio file not found: {args.audio_path}", file=sys.stderr)
        return 2

    service = MediaService()
    try:
        if args.split_only:
            chunks = await service.split_audio(args.audio_path)
            payload = [
                {
                    "index": chunk.index,
                    "start_seconds": chunk.start_seconds,
                    "end_seconds": chunk.end_seconds,
                    "path": str(chunk.path),
                }
                for chunk in chunks
            ]
        else:
            payload = await service.transcribe_file(args.audio_path, correct=not args.no_correct)
    except SegmentationError as exc:
        print(f"Error splitting audio: {exc}", file=sys.stderr)
        return 1
    except TranscriptionError as exc:
        print(f"Error transcribing audio: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


def main() -> int:
    args = _parse_args()
    from chunkscribe.utils.log_format import configure_logging

    configure_logging("DEBUG" if args.verbose else "INFO")
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
