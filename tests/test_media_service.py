import tempfile
import unittest
from pathlib import Path
import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from chunkscribe.audio_utils import AudioSegmenter, SegmentationError, SegmentationSettings
from chunkscribe.services.media_service import MediaService, save_upload_to_temp
from chunkscribe.services.text_processing_service import ParallelTextProcessor
from chunkscribe.services.transcription_service import (
    ChunkTranscriptionOrchestrator,
    TranscriptionError,
    TranscriptionSettings,
)
from chunkscribe.text_splitter import HierarchicalTextSplitter


def word_count(text: str) -> int:
    return len(text.split())


class FakeMediaTool:
    def __init__(self, duration: float, silences=None):
        self.duration = duration
        self.silences = silences or []

    def probe(self, path):
        return self.duration

    def detect(self, path, min_silence_seconds):
        return list(self.silences)

    def extract(self, source, destination, start, end):
        Path(destination).write_bytes(b"chunk")


class FakeTranscriber:
    def __init__(self, failing_ranks=()):
        self.failing_ranks = set(failing_ranks)
        self.seen = []

    async def transcribe(self, audio_path: Path) -> str:
        name = Path(audio_path).name
        if name not in self.seen:
            self.seen.append(name)
        rank = self.seen.index(name)
        if rank in self.failing_ranks:
            raise ConnectionError("rate limited")
        return f"words from chunk {rank}"


class FakeCompletion:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def complete(self, prompt: str, max_tokens=None) -> str:
        self.calls.append((prompt, max_tokens))
        if self.fail:
            raise RuntimeError("completion unavailable")
        return "Corrected transcript."


class FakeUpload:
    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    async def read(self, size: int) -> bytes:
        chunk = self.data[self.offset:self.offset + size]
        self.offset += len(chunk)
        return chunk


class TestMediaService(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_dir = Path(self._tmp.name)
        self.source = self.tmp_dir / "upload.mp3"
        self.source.write_bytes(b"a" * 32)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _service(self, transcriber: FakeTranscriber, completion: FakeCompletion, duration: float = 1801) -> MediaService:
        tool = FakeMediaTool(duration=duration)
        segmenter = AudioSegmenter(
            SegmentationSettings(split_threshold_bytes=16, temp_dir=str(self.tmp_dir)),
            duration_probe=tool.probe,
            silence_detector=tool.detect,
            range_extractor=tool.extract,
        )
        orchestrator = ChunkTranscriptionOrchestrator(
            transcriber,
            TranscriptionSettings(max_attempts=2, retry_delay_seconds=0),
        )
        return MediaService(
            segmenter=segmenter,
            completion=completion,
            orchestrator=orchestrator,
            text_processor=ParallelTextProcessor(HierarchicalTextSplitter(token_counter=word_count)),
            token_budget=100,
        )

    async def test_full_flow_transcribes_and_corrects(self) -> None:
        completion = FakeCompletion()
        service = self._service(FakeTranscriber(), completion)

        result = await service.transcribe_file(self.source, remove_source=True)

        self.assertEqual(result["num_chunks"], 3)
        self.assertEqual(result["failed_chunks"], [])
        self.assertEqual(
            result["original_transcription"],
            "words from chunk 0 words from chunk 1 words from chunk 2",
        )
        self.assertEqual(result["transcription"], "Corrected transcript.")
        self.assertNotIn("correction_error", result)
        self.assertEqual(len(completion.calls), 1)
        prompt, max_tokens = completion.calls[0]
        self.assertIn("words from chunk 2", prompt)
        self.assertIsNotNone(max_tokens)
        self.assertEqual(list(self.tmp_dir.iterdir()), [])

    async def test_partial_failure_is_reported_and_leftovers_removed(self) -> None:
        service = self._service(FakeTranscriber(failing_ranks={1}), FakeCompletion())

        result = await service.transcribe_file(self.source, correct=False)

        self.assertEqual(result["failed_chunks"], [1])
        self.assertIsNone(result["transcriptions"][1])
        self.assertEqual(len(result["transcriptions"]), 3)
        self.assertEqual(result["transcription"], result["original_transcription"])
        self.assertEqual(list(self.tmp_dir.iterdir()), [self.source])

    async def test_all_chunks_failing_raises(self) -> None:
        service = self._service(FakeTranscriber(failing_ranks={0}), FakeCompletion(), duration=300)

        with self.assertRaises(TranscriptionError) as ctx:
            await service.transcribe_file(self.source)

        self.assertEqual(ctx.exception.failed_indexes, [0])

    async def test_correction_failure_falls_back_to_raw_transcript(self) -> None:
        service = self._service(FakeTranscriber(), FakeCompletion(fail=True), duration=300)

        result = await service.transcribe_file(self.source)

        self.assertEqual(result["transcription"], "words from chunk 0")
        self.assertIn("completion unavailable", result["correction_error"])

    async def test_segmentation_failure_propagates_and_removes_upload(self) -> None:
        service = self._service(FakeTranscriber(), FakeCompletion())

        def broken_probe(path):
            raise SegmentationError("cannot read audio")

        service.segmenter.duration_probe = broken_probe

        with self.assertRaises(SegmentationError):
            await service.transcribe_file(self.source, remove_source=True)
        self.assertFalse(self.source.exists())

    async def test_small_source_is_kept_without_remove_source(self) -> None:
        service = self._service(FakeTranscriber(), FakeCompletion())
        service.segmenter.settings.split_threshold_bytes = 1000

        result = await service.transcribe_file(self.source, correct=False, remove_source=False)

        self.assertEqual(result["num_chunks"], 1)
        self.assertEqual(result["transcription"], "words from chunk 0")
        self.assertTrue(self.source.exists())
        self.assertEqual(self.source.read_bytes(), b"a" * 32)

    async def test_small_source_is_removed_with_remove_source(self) -> None:
        service = self._service(FakeTranscriber(), FakeCompletion())
        service.segmenter.settings.split_threshold_bytes = 1000

        await service.transcribe_file(self.source, correct=False, remove_source=True)

        self.assertFalse(self.source.exists())

    async def test_save_upload_to_temp(self) -> None:
        path = await save_upload_to_temp(FakeUpload(b"x" * 2500), "talk.m4a", temp_dir=str(self.tmp_dir))

        self.assertEqual(path.parent, self.tmp_dir)
        self.assertEqual(path.suffix, ".m4a")
        self.assertTrue(path.name.startswith("uploaded_audio_"))
        self.assertEqual(path.read_bytes(), b"x" * 2500)

    async def test_empty_upload_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            await save_upload_to_temp(FakeUpload(b""), "empty.mp3", temp_dir=str(self.tmp_dir))
        self.assertEqual(list(self.tmp_dir.iterdir()), [self.source])


if __name__ == "__main__":
    unittest.main()
