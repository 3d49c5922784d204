"""whatport: look up TCP/UDP port assignments from the public port list."""

from .config import settings

__version__ = settings.APP_VERSION
