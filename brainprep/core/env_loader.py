"""
Centralized environment variable loading for brainprep.

Ensures .env is loaded once before settings are read.

Usage:
    from brainprep.core.env_loader import ensure_env_loaded
    ensure_env_loaded()
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_env_loaded = False


def get_project_root() -> Path:
    """Get the project root directory (where .env is located)."""
    # This file is at brainprep/core/env_loader.py
    return Path(__file__).parent.parent.parent


def ensure_env_loaded(env_path: Optional[Path] = None, override: bool = False) -> bool:
    """
    Ensure environment variables from .env are loaded.

    Args:
        env_path: Explicit .env path; defaults to the project root
        override: If True, .env values replace variables already set

    Returns:
        True if .env was loaded, False if already loaded or file not found
    """
    global _env_loaded

    if _env_loaded:
        return False

    env_path = env_path or get_project_root() / ".env"

    if not env_path.exists():
        return False

    load_dotenv(env_path, override=override)
    _env_loaded = True
    return True
