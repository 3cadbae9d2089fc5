"""Shared configuration, exceptions and logging for txisolate."""

from pathlib import Path

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"
