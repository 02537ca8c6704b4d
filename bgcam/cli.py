"""Command line interface for bgcam."""

from pathlib import Path
from typing import Optional

import click

from bgcam import __version__
from bgcam.config import EFFECT_NAMES, Config
from bgcam.log import get_logger
from bgcam.utils import BgcamError, list_models


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """bgcam - Live webcam background removal, replacement and blur.

    Segments the person in front of the camera and composites the
    background away. Press Tab to cycle remove/replace/blur, Esc to quit.

    Examples:

        bgcam run

        bgcam run 1 beach.jpg

        bgcam run 0 beach.jpg deeplabv3.xml --device cpu

        bgcam process talk.mp4 -e blur
    """
    pass


# ============================================================================
# RUN Command
# ============================================================================
@cli.command()
@click.argument("camera_index", type=int, required=False)
@click.argument("background", type=click.Path(), required=False)
@click.argument("model", required=False)
@click.option("--person-label", "-p", type=int, help="Label of the person class in the model (default: 15)")
@click.option("--mode", "-e", type=click.Choice(EFFECT_NAMES), help="Initial effect")
@click.option("--device", "-d", type=click.Choice(["cuda", "cpu"]), help="Device for inference")
@click.option("--blur-kernel", type=int, help="Box blur kernel size (default: 21)")
@click.option("--width", type=int, help="Requested camera width")
@click.option("--height", type=int, help="Requested camera height")
@click.option("--max-frames", type=int, help="Stop after this many frames")
@click.option("--no-metrics", is_flag=True, help="Hide the FPS overlay")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False), help="Log level")
def run(
    camera_index: Optional[int],
    background: Optional[str],
    model: Optional[str],
    person_label: Optional[int],
    mode: Optional[str],
    device: Optional[str],
    blur_kernel: Optional[int],
    width: Optional[int],
    height: Optional[int],
    max_frames: Optional[int],
    no_metrics: bool,
    log_level: Optional[str],
) -> None:
    """Run live background replacement on a webcam.

    CAMERA_INDEX, BACKGROUND and MODEL default to BGCAM_CAMERA_INDEX,
    BGCAM_BACKGROUND and BGCAM_MODEL. MODEL is a built-in model name
    (see `bgcam models`) or a .onnx/.xml/.pb file.

    Examples:

        bgcam run 0 beach.jpg

        bgcam run 0 beach.jpg model.onnx --person-label 1
    """
    try:
        config = Config.from_env()
        if camera_index is not None:
            config.camera_index = camera_index
        if background:
            config.background_path = Path(background)
        if model:
            config.model = model
        if person_label is not None:
            config.person_label = person_label
        if mode:
            config.initial_mode = mode
        if device:
            config.device = device
        if blur_kernel is not None:
            config.blur_kernel = blur_kernel
        if width:
            config.frame_width = width
        if height:
            config.frame_height = height
        if max_frames:
            config.max_frames = max_frames
        if no_metrics:
            config.show_metrics = False
        if log_level:
            config.log_level = log_level

        get_logger("bgcam", config.log_level)
        _show_warnings(config)

        click.echo(f"\nbgcam - Live")
        click.echo("=" * 40)
        click.echo(f"Camera: {config.camera_index} ({config.frame_width}x{config.frame_height})")
        click.echo(f"Model: {config.model} (person label {config.person_label})")
        click.echo(f"Background: {config.background_path or '-'}")
        click.echo("Keys: Tab = next effect, Esc = quit")
        click.echo("")

        from bgcam.loop import BackgroundReplacementLoop
        from bgcam.segmentation import create_segmenter

        segmenter = create_segmenter(config)
        status = BackgroundReplacementLoop(config, segmenter).run()

    except BgcamError as e:
        click.secho(f"Error: {e}", fg="red")
        raise SystemExit(1)

    if status != 0:
        click.secho("bgcam could not start - see the log above", fg="red")
        raise SystemExit(status)


# ============================================================================
# PROCESS Command
# ============================================================================
@cli.command()
@click.argument("video_path", type=click.Path(exists=True))
@click.option("--effect", "-e", type=click.Choice(EFFECT_NAMES), default="blur", help="Effect to apply")
@click.option("--background", "-b", type=click.Path(exists=True), help="Background image (replace effect)")
@click.option("--model", "-m", help="Built-in model name or model file")
@click.option("--person-label", "-p", type=int, help="Label of the person class in the model (default: 15)")
@click.option("--output-dir", "-o", type=click.Path(), help="Output directory")
@click.option("--device", "-d", type=click.Choice(["cuda", "cpu"]), help="Device for inference")
@click.option("--max-frames", type=int, help="Only process the first N frames")
def process(
    video_path: str,
    effect: str,
    background: Optional[str],
    model: Optional[str],
    person_label: Optional[int],
    output_dir: Optional[str],
    device: Optional[str],
    max_frames: Optional[int],
) -> None:
    """Apply a background effect to a video file.

    Examples:

        bgcam process talk.mp4

        bgcam process talk.mp4 -e replace -b beach.jpg -o ./out
    """
    from bgcam.compositing import EffectMode

    try:
        config = Config.from_env()
        if background:
            config.background_path = Path(background)
        if model:
            config.model = model
        if person_label is not None:
            config.person_label = person_label
        if device:
            config.device = device
        if output_dir:
            config.output_dir = Path(output_dir)
        if max_frames:
            config.max_frames = max_frames

        get_logger("bgcam", config.log_level)
        config.ensure_dirs()
        _show_warnings(config)

        click.echo(f"\nbgcam - Process")
        click.echo("=" * 40)
        click.echo(f"Effect: {effect}")
        click.echo(f"Model: {config.model}")
        click.echo(f"Input: {video_path}")
        click.echo("")

        from bgcam.video_io import VideoEffectProcessor

        processor = VideoEffectProcessor(config)
        result = processor.process(video_path, EffectMode.from_name(effect))

        click.echo("")
        click.secho("Processing complete!", fg="green")
        click.echo(f"Created {result.output_path} ({result.frame_count} frames)")
        if result.skipped_frames:
            click.secho(f"{len(result.skipped_frames)} frames written unchanged", fg="yellow")

    except (BgcamError, FileNotFoundError) as e:
        click.secho(f"Error: {e}", fg="red")
        raise SystemExit(1)


# ============================================================================
# INFO Command
# ============================================================================
@cli.command()
def info() -> None:
    """Show system, OpenCV and GPU information."""
    try:
        import cv2
        import torch

        click.echo("\nbgcam - System Info")
        click.echo("=" * 40)
        click.echo(f"Version: {__version__}")
        click.echo(f"OpenCV: {cv2.__version__}")
        click.echo(f"PyTorch: {torch.__version__}")
        click.echo(f"CUDA available: {torch.cuda.is_available()}")

        if torch.cuda.is_available():
            click.echo(f"CUDA version: {torch.version.cuda}")
            click.echo(f"GPU: {torch.cuda.get_device_name(0)}")
            props = torch.cuda.get_device_properties(0)
            click.echo(f"GPU memory: {props.total_memory / 1e9:.1f} GB")

        config = Config.from_env()
        click.echo(f"\nModel: {config.model}")
        from bgcam.segmentation import create_segmenter
        for key, value in create_segmenter(config).get_info().items():
            click.echo(f"  {key}: {value}")
        click.echo(f"Model cache: {config.cache_dir}")
        click.echo(f"Output dir: {config.output_dir}")

    except Exception as e:
        click.secho(f"Error: {e}", fg="red")
        raise SystemExit(1)


# ============================================================================
# MODELS Command
# ============================================================================
@cli.command()
def models() -> None:
    """List available segmentation models."""
    click.echo("\n" + list_models())


# ============================================================================
# Helper Functions
# ============================================================================
def _show_warnings(config: Config) -> None:
    """Show configuration warnings."""
    warnings = config.validate()
    for warning in warnings:
        click.secho(f"Warning: {warning}", fg="yellow")


if __name__ == "__main__":
    cli()
