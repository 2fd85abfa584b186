"""Centralized config loading — read once at import time.

Values come from ``screenflow/config.yaml`` unless ``SCREENFLOW_CONFIG`` points
at another YAML file. Secrets (GOOGLE_API_KEY, ANTHROPIC_API_KEY) are read from
the environment, optionally via a ``.env`` file at the project root.
"""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

# Load .env from project root (parent of screenflow/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

CONFIG_PATH = Path(
    os.environ.get("SCREENFLOW_CONFIG", Path(__file__).resolve().parent / "config.yaml")
)

_config = yaml.safe_load(CONFIG_PATH.read_text())


def get_config() -> dict:
    """Return the loaded config dictionary."""
    return _config


def stage_setting(stage: str, key: str, default=None):
    """Look up ``<stage>_<key>`` (e.g. ``architect_model``), falling back to *default*."""
    return get_config().get(f"{stage}_{key}", default)
