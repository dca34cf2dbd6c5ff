import json

import pytest
from rich.console import Console
from typer.testing import CliRunner

import main
from composer.generator import GenerationResult
from config import CaptureConfig, Config
from errors import FrameDecodeError
from pipeline.orchestrator import PipelineOrchestrator
from recorder.frame_extractor import ExtractedFrame
from recorder.transcriber import TranscriptionResult

runner = CliRunner()


@pytest.mark.parametrize("width", [80, 160])
def test_platforms_lists_every_platform(monkeypatch, width):
    monkeypatch.setattr(main, "console", Console(width=width))

    result = runner.invoke(main.app, ["platforms"])

    assert result.exit_code == 0
    for platform_id in ("wechat", "weibo", "xiaohongshu"):
        assert platform_id in result.output


def test_process_rejects_missing_video(tmp_path):
    result = runner.invoke(main.app, ["process", str(tmp_path / "missing.mp4")])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_process_requires_api_key(tmp_path, monkeypatch):
    video = tmp_path / "clip.mp4"
    video.write_bytes(b"fake")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setattr(main, "load_config", lambda: main.Config(logs_dir=tmp_path / "logs"))

    result = runner.invoke(main.app, ["process", str(video)])

    assert result.exit_code == 1


FRAME = ExtractedFrame(
    data_url="data:image/jpeg;base64,/9j/4AAQSkZJRg==",
    offset_seconds=5.0,
    width=1280,
    height=720,
)


class StubExtractor:
    def __init__(self, error=None):
        self.error = error

    def extract(self, recording, target_offset=None):
        if self.error is not None:
            raise self.error
        return FRAME


class StubTranscriber:
    async def transcribe(self, recording):
        return TranscriptionResult(text="hello world")


class StubGenerator:
    async def generate(self, transcript, platform="wechat"):
        return GenerationResult(text="Sunny day at the beach")


@pytest.fixture
def offline_process(monkeypatch, tmp_path):
    """Run `process` against local stand-ins for ffmpeg and the AI service."""
    config = Config(
        capture=CaptureConfig(recordings_dir=tmp_path / "recordings"),
        logs_dir=tmp_path / "logs",
        cards_dir=tmp_path / "cards",
    )
    monkeypatch.setattr(main, "load_config", lambda: config)

    def use_extractor(extractor):
        def build(config, platform, card, cost_tracker, logger):
            return PipelineOrchestrator(
                extractor, StubTranscriber(), StubGenerator(),
                platform=platform, on_complete=card.apply,
            )
        monkeypatch.setattr(main, "_build_orchestrator", build)

    video = tmp_path / "clip.mp4"
    video.write_bytes(b"\x00\x00\x00\x18ftypmp42")
    return config, video, use_extractor


def test_process_saves_card_and_drops_recording(offline_process):
    config, video, use_extractor = offline_process
    use_extractor(StubExtractor())

    result = runner.invoke(main.app, ["process", str(video), "--yes"])

    assert result.exit_code == 0, result.output
    cards = list(config.cards_dir.glob("card_*.json"))
    assert len(cards) == 1
    saved = json.loads(cards[0].read_text(encoding="utf-8"))
    assert saved["text"] == "Sunny day at the beach"
    assert saved["transcribed_text"] == "hello world"
    assert list(config.capture.recordings_dir.glob("recording_*")) == []
    assert video.exists()


def test_failed_process_drops_recording(offline_process):
    config, video, use_extractor = offline_process
    use_extractor(StubExtractor(error=FrameDecodeError("Could not decode video frame")))

    result = runner.invoke(main.app, ["process", str(video), "--yes"])

    assert result.exit_code == 1
    assert list(config.capture.recordings_dir.glob("recording_*")) == []
    assert not config.cards_dir.exists() or list(config.cards_dir.glob("card_*.json")) == []
