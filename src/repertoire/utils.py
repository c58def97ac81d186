"""Utilities for the repertoire summarisation package."""

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator

import yaml


def load_config(config_path: str) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


@contextmanager
def timer(description: str) -> Generator[None, None, None]:
    """Context manager for timing operations."""
    start = time.time()
    logging.info(f"Starting: {description}")
    try:
        yield
    finally:
        elapsed = time.time() - start
        logging.info(f"Finished: {description} ({elapsed:.2f}s)")


def setup_logging(level: str = "INFO") -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def ensure_dir(path: Path) -> None:
    """Ensure directory exists."""
    path.mkdir(parents=True, exist_ok=True)
