"""X-Code - an AI coding assistant for the terminal."""

__version__ = "0.1.0"

from x_code.config import Config
from x_code.main import main

__all__ = ["Config", "main", "__version__"]
