"""bgcam - Live webcam background removal, replacement and blur."""

__version__ = "0.1.0"

from bgcam.config import Config
from bgcam.utils import BgcamError

__all__ = ["Config", "BgcamError", "__version__"]
