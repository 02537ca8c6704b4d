#!/usr/bin/env python3
"""Example: Blur the background of a recorded video."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from bgcam import Config
from bgcam.compositing import EffectMode
from bgcam.video_io import VideoEffectProcessor


def main():
    if len(sys.argv) < 2:
        print("Usage: python blur_video.py <video>")
        print("Example: python blur_video.py talk.mp4")
        sys.exit(1)

    video_path = sys.argv[1]

    config = Config.from_env()
    for warning in config.validate():
        print(f"Warning: {warning}")

    processor = VideoEffectProcessor(config)

    print(f"Blurring background: {video_path}")

    result = processor.process(video_path, EffectMode.BLUR)

    print(f"\nCreated: {result.output_path}")
    if result.skipped_frames:
        print(f"  {len(result.skipped_frames)} frames left unchanged")


if __name__ == "__main__":
    main()
