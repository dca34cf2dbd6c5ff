import asyncio
import json

import httpx
import pytest

from composer.generator import CopyGenerator, GenerationResult
from composer.platforms import SocialPlatform
from errors import FrameDecodeError, GenerationError, InvalidTransitionError, TranscriptionError
from pipeline.models import CardData, Stage, describe_stage
from pipeline.orchestrator import PLACEHOLDER_TRANSCRIPT, PipelineOrchestrator
from recorder.frame_extractor import ExtractedFrame, FrameExtractor
from recorder.transcriber import Transcriber, TranscriptionResult, build_openai_client

FRAME = ExtractedFrame(
    data_url="data:image/jpeg;base64,/9j/4AAQSkZJRg==",
    offset_seconds=5.0,
    width=1280,
    height=720,
)


class FakeExtractor:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def extract(self, recording, target_offset=None):
        self.calls.append((recording, target_offset))
        if self.error is not None:
            raise self.error
        return FRAME


class FakeTranscriber:
    def __init__(self, text="hello world", error=None, gate=None):
        self.text = text
        self.error = error
        self.gate = gate
        self.calls = 0

    async def transcribe(self, recording):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return TranscriptionResult(text=self.text)


class FakeGenerator:
    def __init__(self, text="Sunny day at the beach", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate(self, transcript, platform="wechat"):
        self.calls.append((transcript, platform))
        if self.error is not None:
            raise self.error
        return GenerationResult(text=self.text)


def make_orchestrator(extractor=None, transcriber=None, generator=None, **kwargs):
    card = CardData()
    stages = []
    orchestrator = PipelineOrchestrator(
        extractor or FakeExtractor(),
        transcriber or FakeTranscriber(),
        generator or FakeGenerator(),
        on_complete=card.apply,
        on_stage_change=lambda stage, info: stages.append(stage),
        **kwargs,
    )
    return orchestrator, card, stages


def test_happy_path_walks_every_stage(recording):
    generator = FakeGenerator()
    extractor = FakeExtractor()
    orchestrator, card, stages = make_orchestrator(extractor=extractor, generator=generator)

    async def scenario():
        await orchestrator.handle_recording(recording)
        assert orchestrator.stage is Stage.READY
        return await orchestrator.generate()

    result = asyncio.run(scenario())

    assert stages == [
        Stage.EXTRACTING,
        Stage.TRANSCRIBING,
        Stage.READY,
        Stage.GENERATING,
        Stage.COMPLETED,
    ]
    assert extractor.calls == [(recording, 5.0)]
    assert generator.calls == [("hello world", "wechat")]
    assert result.text == "Sunny day at the beach"
    assert card.text == "Sunny day at the beach"
    assert card.ai_generated_text == "Sunny day at the beach"
    assert card.transcribed_text == "hello world"
    assert card.image == FRAME.data_url
    assert card.extracted_frame_url == FRAME.data_url


def test_transcription_failure_uses_placeholder(recording):
    transcriber = FakeTranscriber(error=TranscriptionError("Transcription failed: 500 - boom", status_code=500))
    orchestrator, card, stages = make_orchestrator(transcriber=transcriber)

    asyncio.run(orchestrator.handle_recording(recording))

    assert orchestrator.stage is Stage.READY
    assert Stage.ERROR not in stages
    text = orchestrator.session.transcript.text
    assert text == PLACEHOLDER_TRANSCRIPT
    assert "audio transcription failed" in text.lower()
    assert orchestrator.session.error is None


def test_extraction_failure_ends_in_error(recording):
    transcriber = FakeTranscriber()
    orchestrator, card, stages = make_orchestrator(
        extractor=FakeExtractor(error=FrameDecodeError("Could not decode video frame")),
        transcriber=transcriber,
    )

    asyncio.run(orchestrator.handle_recording(recording))

    assert orchestrator.stage is Stage.ERROR
    assert orchestrator.session.error == "Could not decode video frame"
    assert transcriber.calls == 0
    assert stages[-1] is Stage.ERROR


def test_generation_failure_leaves_card_untouched(recording):
    orchestrator, card, stages = make_orchestrator(
        generator=FakeGenerator(error=GenerationError("Content generation failed (429), please try again"))
    )

    async def scenario():
        await orchestrator.handle_recording(recording)
        return await orchestrator.generate()

    result = asyncio.run(scenario())

    assert result is None
    assert orchestrator.stage is Stage.ERROR
    assert orchestrator.session.error == "Content generation failed (429), please try again"
    assert orchestrator.session.generation is None
    assert card == CardData()


def test_generate_requires_ready_stage(recording):
    orchestrator, _, _ = make_orchestrator()

    with pytest.raises(InvalidTransitionError):
        asyncio.run(orchestrator.generate())


def test_recording_only_accepted_once(recording):
    orchestrator, _, _ = make_orchestrator()

    async def scenario():
        await orchestrator.handle_recording(recording)
        await orchestrator.handle_recording(recording)

    with pytest.raises(InvalidTransitionError):
        asyncio.run(scenario())


def test_on_complete_fires_once_per_session(recording):
    completed = []
    orchestrator = PipelineOrchestrator(
        FakeExtractor(), FakeTranscriber(), FakeGenerator(), on_complete=completed.append
    )

    async def scenario():
        await orchestrator.handle_recording(recording)
        await orchestrator.generate()
        with pytest.raises(InvalidTransitionError):
            await orchestrator.generate()

    asyncio.run(scenario())

    assert len(completed) == 1


def test_generate_with_platform_override(recording):
    generator = FakeGenerator()
    orchestrator, card, _ = make_orchestrator(generator=generator)

    async def scenario():
        await orchestrator.handle_recording(recording)
        return await orchestrator.generate("WEIBO")

    result = asyncio.run(scenario())

    assert generator.calls == [("hello world", "weibo")]
    assert result.platform is SocialPlatform.WEIBO
    assert card.platform is SocialPlatform.WEIBO
    assert card.to_dict()["platform"] == "weibo"


@pytest.mark.parametrize("target", ["recording", "ready", "completed", "error"])
def test_reset_clears_session_from_any_stage(recording, target):
    generator = FakeGenerator(error=GenerationError("nope")) if target == "error" else FakeGenerator()
    orchestrator, _, _ = make_orchestrator(generator=generator)

    async def scenario():
        if target == "recording":
            return
        await orchestrator.handle_recording(recording)
        if target in ("completed", "error"):
            await orchestrator.generate()

    asyncio.run(scenario())
    assert orchestrator.stage.value == target

    orchestrator.reset()

    session = orchestrator.session
    assert session.stage is Stage.RECORDING
    assert session.recording is None
    assert session.frame is None
    assert session.transcript is None
    assert session.generation is None
    assert session.error is None
    if target != "recording":
        assert not recording.path.exists()


def test_result_after_reset_is_discarded(recording):
    async def scenario():
        gate = asyncio.Event()
        orchestrator, _, stages = make_orchestrator(transcriber=FakeTranscriber(gate=gate))
        task = asyncio.create_task(orchestrator.handle_recording(recording))
        while orchestrator.stage is not Stage.TRANSCRIBING:
            await asyncio.sleep(0)

        orchestrator.reset()
        gate.set()
        await task
        return orchestrator, stages

    orchestrator, stages = asyncio.run(scenario())

    assert orchestrator.stage is Stage.RECORDING
    assert orchestrator.session.transcript is None
    assert Stage.READY not in stages


def test_every_stage_has_display_info():
    for stage in Stage:
        info = describe_stage(stage)
        assert info.text
        assert info.icon in ("image", "type", "brain")
    busy = {stage for stage in Stage if describe_stage(stage).busy}
    assert busy == {Stage.EXTRACTING, Stage.TRANSCRIBING, Stage.GENERATING}


def test_card_data_saves_unicode_json(tmp_path):
    card = CardData(text="今天天气真好 ☀️", platform="weibo")
    path = card.save(tmp_path / "cards" / "card.json")

    raw = path.read_text(encoding="utf-8")
    assert "今天天气真好" in raw
    assert json.loads(raw)["platform"] == "weibo"


def api_orchestrator(service, transcription_response, completion_response=None):
    """Orchestrator with real API clients over a mocked transport."""
    prompts = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/audio/transcriptions"):
            return transcription_response
        body = json.loads(request.content)
        prompts.append(body["messages"][0]["content"])
        if completion_response is not None:
            return completion_response
        return httpx.Response(200, json={
            "id": "chatcmpl-1",
            "object": "chat.completion",
            "created": 0,
            "model": "gpt-3.5-turbo",
            "choices": [
                {"index": 0, "finish_reason": "stop",
                 "message": {"role": "assistant", "content": "Beach day! 🌊"}}
            ],
        })

    client = build_openai_client(
        service, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    orchestrator, card, _ = make_orchestrator(
        transcriber=Transcriber(service, client=client),
        generator=CopyGenerator(service, client=client),
    )
    return orchestrator, card, prompts


def test_failed_transcription_still_produces_copy(service, recording):
    orchestrator, card, prompts = api_orchestrator(
        service, httpx.Response(500, text="upstream exploded")
    )

    async def scenario():
        await orchestrator.handle_recording(recording)
        await orchestrator.generate()

    asyncio.run(scenario())

    assert orchestrator.stage is Stage.COMPLETED
    assert card.text == "Beach day! 🌊"
    assert card.transcribed_text == PLACEHOLDER_TRANSCRIPT
    assert PLACEHOLDER_TRANSCRIPT in prompts[0]


def test_transcript_reaches_prompt_verbatim(service, recording):
    orchestrator, card, prompts = api_orchestrator(
        service, httpx.Response(200, json={"text": "hello world"})
    )

    async def scenario():
        await orchestrator.handle_recording(recording)
        await orchestrator.generate()

    asyncio.run(scenario())

    assert len(prompts) == 1
    assert "hello world" in prompts[0]
    assert card.transcribed_text == "hello world"


def gateway_page() -> httpx.Response:
    return httpx.Response(
        200, content=b"<html>gateway</html>", headers={"content-type": "application/json"}
    )


def test_unreadable_transcription_body_recovers_with_placeholder(service, recording):
    orchestrator, _, _ = api_orchestrator(service, gateway_page())

    asyncio.run(orchestrator.handle_recording(recording))

    assert orchestrator.stage is Stage.READY
    assert orchestrator.session.transcript.text == PLACEHOLDER_TRANSCRIPT


def test_unreadable_completion_body_ends_in_error(service, recording):
    orchestrator, card, _ = api_orchestrator(
        service, httpx.Response(200, json={"text": "hello world"}), gateway_page()
    )

    async def scenario():
        await orchestrator.handle_recording(recording)
        return await orchestrator.generate()

    result = asyncio.run(scenario())

    assert result is None
    assert orchestrator.stage is Stage.ERROR
    assert orchestrator.session.error == "Content generation failed, please try again"
    assert card.text == ""


def test_missing_ffmpeg_tools_end_in_error(recording, tmp_path):
    extractor = FrameExtractor(
        ffmpeg_binary=str(tmp_path / "no-such-ffmpeg"),
        ffprobe_binary=str(tmp_path / "no-such-ffprobe"),
    )
    orchestrator, _, _ = make_orchestrator(extractor=extractor)

    asyncio.run(orchestrator.handle_recording(recording))

    assert orchestrator.stage is Stage.ERROR
    assert "install ffmpeg" in orchestrator.session.error
