#!/usr/bin/env python3
"""
Clip Card CLI

Record a 10-second clip, pull a still frame, transcribe the audio and
generate social-media copy for the card.
"""

import asyncio
import signal
from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from composer.generator import CopyGenerator
from composer.platforms import PLATFORM_SPECS, PLATFORM_TEXT_LIMITS, SocialPlatform, fit_to_platform
from config import AIServiceConfig, Config, load_config
from errors import CaptureError, ConfigurationError
from pipeline.models import CardData, Stage
from pipeline.orchestrator import PipelineOrchestrator
from recorder.devices import check_recording_support, supported_formats
from recorder.frame_extractor import FrameExtractor
from recorder.recording import Recording
from recorder.session import NativeCaptureController, StreamCaptureController
from recorder.transcriber import Transcriber, build_openai_client
from utils.logger import CardLogger
from utils.tracking import CostTracker, Timer

load_dotenv()

# Create Typer app
app = typer.Typer(
    name="clipcard",
    help="Turn a short video clip into a social-media card with AI-written copy",
    rich_markup_mode="rich",
)

console = Console()


def _build_orchestrator(
    config: Config,
    platform: SocialPlatform,
    card: CardData,
    cost_tracker: CostTracker,
    logger: CardLogger,
) -> PipelineOrchestrator:
    """Wire the extractor and both AI clients into an orchestrator."""
    service = AIServiceConfig.from_env()
    client = build_openai_client(service)

    def on_stage_change(stage: Stage, info) -> None:
        if info.busy:
            logger.step(info.text)

    return PipelineOrchestrator(
        extractor=FrameExtractor(
            config.frame,
            ffmpeg_binary=config.capture.ffmpeg_binary,
            logger=logger,
        ),
        transcriber=Transcriber(service, config.models, client=client, logger=logger),
        generator=CopyGenerator(
            service,
            config.models,
            client=client,
            cost_tracker=cost_tracker,
            logger=logger,
        ),
        platform=platform,
        on_complete=card.apply,
        on_stage_change=on_stage_change,
        frame_offset=config.frame.target_offset,
        logger=logger,
    )


async def _finish_session(
    orchestrator: PipelineOrchestrator,
    card: CardData,
    config: Config,
    logger: CardLogger,
    yes: bool,
) -> bool:
    """Show the ready session, ask before generating, then generate.

    Returns True when the card was completed.
    """
    session = orchestrator.session
    if session.stage is Stage.ERROR:
        logger.error(f"Processing failed: {session.error}")
        return False

    stem = datetime.now().strftime("%Y%m%d_%H%M%S")
    if session.frame is not None:
        frame_path = session.frame.save(config.cards_dir / f"frame_{stem}.jpg")
        logger.info(f"Frame saved: [cyan]{frame_path}[/cyan]")
    if session.transcript is not None:
        logger.text_block("Audio transcript", session.transcript.text)

    if not yes and not typer.confirm(
        f"Generate {orchestrator.platform} copy now?", default=True
    ):
        logger.warning("Generation skipped")
        orchestrator.reset()
        return False

    await orchestrator.generate()
    if orchestrator.stage is not Stage.COMPLETED:
        logger.error(f"Generation failed: {orchestrator.session.error}")
        return False

    fitted = fit_to_platform(card.text, card.platform)
    if fitted != card.text:
        logger.warning(f"Copy trimmed to the {PLATFORM_TEXT_LIMITS[card.platform]}-character limit")
        card.text = fitted

    logger.text_block("Generated copy", card.text, style="green")
    return True


def _report(
    card: CardData,
    output: Path | None,
    config: Config,
    timer: Timer,
    cost_tracker: CostTracker,
    logger: CardLogger,
) -> None:
    output = output or config.cards_dir / f"card_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
    card_path = card.save(output)
    logger.success(f"Card saved: [cyan]{card_path}[/cyan]")

    summary_data = {
        "Status": "[green]Completed[/green]",
        "Platform": str(card.platform),
        "Duration": timer.elapsed_str,
        **cost_tracker.get_summary(),
        "Log File": str(logger.log_file),
    }
    logger.summary("Card Ready", summary_data)


@app.command()
def record(
    platform: Annotated[
        SocialPlatform,
        typer.Option("-p", "--platform", help="Target social platform"),
    ] = SocialPlatform.WECHAT,
    output: Annotated[
        Optional[Path],
        typer.Option("-o", "--output", help="Output path for the card JSON"),
    ] = None,
    video_device: Annotated[
        Optional[str],
        typer.Option("--video-device", help="Camera device (ffmpeg input name)"),
    ] = None,
    audio_device: Annotated[
        Optional[str],
        typer.Option("--audio-device", help="Microphone device (ffmpeg input name)"),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("-y", "--yes", help="Generate without asking for confirmation"),
    ] = False,
) -> None:
    """Record a 10-second clip from the camera and build a card from it."""
    config = load_config()
    if video_device:
        config.capture.video_device = video_device
    if audio_device:
        config.capture.audio_device = audio_device

    cost_tracker = CostTracker()
    card = CardData(platform=platform)
    timer = Timer("Record")

    with CardLogger("record", config.logs_dir) as logger:
        try:
            orchestrator = _build_orchestrator(config, platform, card, cost_tracker, logger)
        except ConfigurationError as e:
            logger.error(str(e))
            raise typer.Exit(1)

        try:
            with timer:
                completed = asyncio.run(_record_and_process(orchestrator, card, config, logger, yes))
            if not completed:
                raise typer.Exit(1)
            _report(card, output, config, timer, cost_tracker, logger)
        finally:
            # Drops the session's recording file
            orchestrator.reset()


async def _record_and_process(
    orchestrator: PipelineOrchestrator,
    card: CardData,
    config: Config,
    logger: CardLogger,
    yes: bool,
) -> bool:
    loop = asyncio.get_running_loop()
    delivered: asyncio.Future[Recording] = loop.create_future()

    def on_recording(recording: Recording) -> None:
        if not delivered.done():
            delivered.set_result(recording)

    def on_capture_failed(error: Exception) -> None:
        if not delivered.done():
            delivered.set_exception(error)

    def forward_failure(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            on_capture_failed(task.exception())

    try:
        controller = StreamCaptureController(
            on_recording,
            config.capture,
            on_tick=logger.countdown,
            on_error=on_capture_failed,
            logger=logger,
        )
    except RuntimeError as e:
        logger.error(str(e))
        return False

    stoppers: list[asyncio.Task] = []
    logger.header("Recording")
    try:
        await controller.begin()
        await asyncio.to_thread(
            logger.console.input, "Press [bold]Enter[/bold] to start the 10-second recording..."
        )
        await controller.start_timed_recording()

        def stop_early() -> None:
            stopper = asyncio.ensure_future(controller.stop_recording())
            stopper.add_done_callback(forward_failure)
            stoppers.append(stopper)

        try:
            loop.add_signal_handler(signal.SIGINT, stop_early)
            logger.info("Press [bold]Ctrl+C[/bold] to stop early.")
        except NotImplementedError:
            # No signal handlers on Windows event loops
            pass

        try:
            recording = await delivered
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except NotImplementedError:
                pass
            if stoppers:
                await asyncio.gather(*stoppers, return_exceptions=True)
    except (CaptureError, OSError) as e:
        logger.error(f"Recording failed: {e}")
        return False
    finally:
        await controller.reset()

    card.video_url = recording.access_url
    logger.header("Processing")
    await orchestrator.handle_recording(recording)
    return await _finish_session(orchestrator, card, config, logger, yes)


@app.command()
def process(
    video: Annotated[
        Path,
        typer.Argument(help="Video recorded by the device camera (.mp4, .mov, .webm, ...)"),
    ],
    platform: Annotated[
        SocialPlatform,
        typer.Option("-p", "--platform", help="Target social platform"),
    ] = SocialPlatform.WECHAT,
    output: Annotated[
        Optional[Path],
        typer.Option("-o", "--output", help="Output path for the card JSON"),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("-y", "--yes", help="Generate without asking for confirmation"),
    ] = False,
) -> None:
    """Build a card from a clip captured by a phone's own camera app."""
    if not video.exists():
        console.print(f"[red]✗[/red] Video file not found: {video}")
        raise typer.Exit(1)

    config = load_config()
    cost_tracker = CostTracker()
    card = CardData(platform=platform)
    timer = Timer("Process")

    with CardLogger("process", config.logs_dir) as logger:
        try:
            orchestrator = _build_orchestrator(config, platform, card, cost_tracker, logger)
        except ConfigurationError as e:
            logger.error(str(e))
            raise typer.Exit(1)

        async def on_recording(recording: Recording) -> None:
            card.video_url = recording.access_url
            await orchestrator.handle_recording(recording)

        async def run() -> bool:
            controller = NativeCaptureController(
                on_recording,
                config.capture,
                logger=logger,
            )
            logger.header("Processing")
            await controller.begin()
            await controller.supply_recorded_file(video)
            return await _finish_session(orchestrator, card, config, logger, yes)

        try:
            with timer:
                completed = asyncio.run(run())
            if not completed:
                raise typer.Exit(1)
            _report(card, output, config, timer, cost_tracker, logger)
        finally:
            orchestrator.reset()


@app.command()
def platforms() -> None:
    """List the supported platforms and their copy rules."""
    table = Table(title="Platforms")
    table.add_column("ID", no_wrap=True)
    for column in ("Name", "Length", "Features", "Max chars"):
        table.add_column(column)
    for platform_id, spec in PLATFORM_SPECS.items():
        table.add_row(
            str(platform_id),
            spec.name,
            spec.length,
            spec.features,
            str(spec.max_text_length),
        )
    console.print(table)


@app.command()
def formats() -> None:
    """Check live-recording support and the formats ffmpeg can encode."""
    config = load_config()
    if not check_recording_support(config.capture.ffmpeg_binary):
        console.print("[red]✗[/red] ffmpeg not found; live recording is unavailable.")
        console.print("Phone recordings can still be processed with [bold]process[/bold].")
        raise typer.Exit(1)

    console.print("[green]✓[/green] Live recording supported")
    available = supported_formats(config.capture.ffmpeg_binary)
    if not available:
        console.print("[yellow]⚠[/yellow] No known recording format can be encoded")
    for fmt in available:
        console.print(f"  [cyan]{fmt}[/cyan]")


def main() -> None:
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
