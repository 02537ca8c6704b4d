#!/usr/bin/env python3
"""Example: Live webcam background replacement."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from bgcam import Config
from bgcam.log import get_logger
from bgcam.loop import BackgroundReplacementLoop
from bgcam.segmentation import create_segmenter


def main():
    if len(sys.argv) > 3:
        print("Usage: python live_background.py [camera_index] [background_image]")
        print("Example: python live_background.py 0 beach.jpg")
        sys.exit(1)

    config = Config.from_env()
    if len(sys.argv) > 1:
        config.camera_index = int(sys.argv[1])
    if len(sys.argv) > 2:
        config.background_path = Path(sys.argv[2])

    get_logger("bgcam", "INFO")
    for warning in config.validate():
        print(f"Warning: {warning}")
    segmenter = create_segmenter(config)

    print("Tab: next effect (remove -> replace -> blur), Esc: quit")
    sys.exit(BackgroundReplacementLoop(config, segmenter).run())


if __name__ == "__main__":
    main()
