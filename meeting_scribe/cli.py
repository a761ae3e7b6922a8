"""
Command-line interface for meeting-scribe.

Commands:
- preprocess: condition one audio file and write the canonical WAV
- transcribe: pre-process and transcribe a batch of files, merge the results
- minutes: generate HTML meeting minutes from a transcript
- speakers: re-label an existing transcript with speaker turns
- config: show the effective configuration and where each value comes from
- inspect: print duration, format and levels of an audio file
"""

import logging
import signal
from pathlib import Path
from typing import Optional

import click

from .audio import (
    AudioFile,
    AudioPreprocessingPipeline,
    ProcessingOptions,
    WaveformCodec,
    format_timestamp,
    get_audio_level,
    get_peak_level,
)
from .batch import BatchProcessor, FileSplitter, ItemStatus, merge_transcriptions
from .config import ConfigManager, mask_secret
from .errors import MeetingScribeError
from .llm import MeetingAssistant, MeetingDetails, StatusSnapshot

logger = logging.getLogger("meeting_scribe")


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once, at LOG_LEVEL unless overridden."""
    level_name = str(ConfigManager.get("LOG_LEVEL", level)).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def log_status(snapshot: StatusSnapshot) -> None:
    suffix = " (fallback)" if snapshot.is_fallback else ""
    logger.info(
        f"Using credential {snapshot.credential_index + 1}/{snapshot.pool_size} "
        f"with model {snapshot.effective_model}{suffix}"
    )


def dsp_options(func):
    """Shared signal-conditioning flags."""
    func = click.option("--trim-silence/--no-trim-silence", default=False, help="Remove long silences")(func)
    func = click.option("--normalize/--no-normalize", default=False, help="Normalize quiet recordings")(func)
    func = click.option("--denoise/--no-denoise", default=False, help="Apply the noise gate")(func)
    func = click.option(
        "--mono16k/--no-mono16k", default=False, help="Resample to 16 kHz and downmix to mono"
    )(func)
    return func


@click.group()
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def cli(log_level: Optional[str]):
    """Meeting transcription assistant."""
    setup_logging(log_level)


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Output WAV path")
@dsp_options
def preprocess(
    input_file: Path, output: Optional[Path], mono16k: bool, denoise: bool, normalize: bool, trim_silence: bool
):
    """Condition INPUT_FILE and write the result."""
    options = ProcessingOptions(
        convert_to_mono_16khz=mono16k,
        noise_reduction=denoise,
        normalize_volume=normalize,
        remove_silence=trim_silence,
    )
    source = AudioFile.from_path(input_file)
    try:
        result = AudioPreprocessingPipeline().process_with_status(source, options)
    except MeetingScribeError as e:
        raise click.ClickException(str(e))

    if result.file is source and output is None:
        reason = "processing failed" if result.degraded else "no processing applied"
        click.echo(f"{input_file} left unchanged ({reason})")
        return

    target = output or input_file.with_name(result.file.name)
    result.file.write(target)
    note = " (degraded: original audio kept)" if result.degraded else ""
    click.echo(f"Wrote {target} ({result.file.size} bytes){note}")


@cli.command()
@click.argument("inputs", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Merged transcript path")
@click.option("--model", help="Model to request (default: LLM_MODEL)")
@click.option("--diarize/--no-diarize", default=False, help="Label speaker turns")
@click.option("--speakers", type=click.IntRange(min=1), help="Estimated number of speakers")
@dsp_options
def transcribe(
    inputs,
    output: Optional[Path],
    model: Optional[str],
    diarize: bool,
    speakers: Optional[int],
    mono16k: bool,
    denoise: bool,
    normalize: bool,
    trim_silence: bool,
):
    """Transcribe INPUTS one after another and merge the transcripts."""
    options = ProcessingOptions(
        convert_to_mono_16khz=mono16k,
        noise_reduction=denoise,
        normalize_volume=normalize,
        remove_silence=trim_silence,
        identify_speakers=diarize,
        speaker_count=speakers,
    )
    try:
        assistant = MeetingAssistant.from_config()
        splitter = FileSplitter()
    except MeetingScribeError as e:
        raise click.ClickException(str(e))

    items = []
    for path in inputs:
        parts = splitter.split(AudioFile.from_path(path))
        if len(parts) > 1:
            click.echo(f"Split {path.name} into {len(parts)} parts", err=True)
        items.extend(parts)

    unsubscribe = assistant.executor.subscribe(log_status)
    processor = BatchProcessor(AudioPreprocessingPipeline(), assistant, options=options, model=model)

    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: processor.cancel())
    try:
        processor.run(items)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        unsubscribe()

    for item in items:
        if item.status is ItemStatus.FAILED:
            click.echo(f"FAILED  {item.file.name}: {item.error}", err=True)
        elif item.status is ItemStatus.PENDING:
            click.echo(f"PENDING {item.file.name}", err=True)
        elif item.skipped:
            click.echo(f"SKIPPED {item.file.name}: unsupported file type {item.file.mime_type}", err=True)

    merged = merge_transcriptions(items)
    if output:
        output.write_text(merged, encoding="utf-8")
        click.echo(f"Wrote {output}")
    elif merged:
        click.echo(merged)

    if not any(item.transcribed for item in items):
        click.get_current_context().exit(1)


@cli.command()
@click.argument("transcript", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="HTML output path")
@click.option("--model", help="Model to request (default: LLM_MODEL)")
@click.option("--when", "time_and_place", default="", help="Time and place of the meeting")
@click.option("--attendees", default="", help="Attendees")
@click.option("--chair", default="", help="Meeting chair")
@click.option("--topic", default="", help="Meeting topic")
@click.option("--edit", "edit_request", help="Revise the existing OUTPUT file with this request")
def minutes(
    transcript: Path,
    output: Optional[Path],
    model: Optional[str],
    time_and_place: str,
    attendees: str,
    chair: str,
    topic: str,
    edit_request: Optional[str],
):
    """Generate HTML meeting minutes from TRANSCRIPT."""
    output = output or transcript.with_suffix(".html")
    details = MeetingDetails(time_and_place=time_and_place, attendees=attendees, chair=chair, topic=topic)
    text = transcript.read_text(encoding="utf-8")

    try:
        assistant = MeetingAssistant.from_config()
        assistant.executor.subscribe(log_status)
        if edit_request:
            if not output.exists():
                raise click.ClickException(f"{output} does not exist; generate the minutes before editing them")
            html = assistant.regenerate_minutes(
                text, details, output.read_text(encoding="utf-8"), edit_request, model=model
            )
        else:
            html = assistant.generate_minutes(text, details, model=model)
    except MeetingScribeError as e:
        raise click.ClickException(str(e))

    output.write_text(html, encoding="utf-8")
    click.echo(f"Wrote {output}")


@cli.command()
@click.argument("transcript", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Labelled transcript path")
@click.option("--model", help="Model to request (default: LLM_MODEL)")
def speakers(transcript: Path, output: Optional[Path], model: Optional[str]):
    """Re-label TRANSCRIPT with [SPEAKER n]: turns."""
    try:
        assistant = MeetingAssistant.from_config()
        assistant.executor.subscribe(log_status)
        labelled = assistant.identify_speakers(transcript.read_text(encoding="utf-8"), model=model)
    except MeetingScribeError as e:
        raise click.ClickException(str(e))

    if output:
        output.write_text(labelled, encoding="utf-8")
        click.echo(f"Wrote {output}")
    else:
        click.echo(labelled)


@cli.command("config")
def show_config():
    """Show every setting and its source."""
    for key in ConfigManager.DEFAULTS:
        value, source = ConfigManager.get_display_value(key)
        if key in ConfigManager.SECRET_KEYS:
            value = ", ".join(mask_secret(v.strip()) for v in str(value).split(",") if v.strip())
        click.echo(f"{key:<26} {source:<8} {value}")


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def inspect(input_file: Path):
    """Print duration, format and levels of INPUT_FILE."""
    try:
        buffer = WaveformCodec().decode(input_file.read_bytes())
    except MeetingScribeError as e:
        raise click.ClickException(str(e))
    click.echo(
        f"{input_file.name}: {format_timestamp(buffer.duration)} ({buffer.duration:.2f}s), "
        f"{buffer.num_channels}ch @ {buffer.sample_rate} Hz, "
        f"peak {get_peak_level(buffer.samples):.3f}, rms {get_audio_level(buffer.samples):.3f}"
    )


def main():
    cli()


if __name__ == "__main__":
    main()
