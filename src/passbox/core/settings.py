"""Runtime settings for PassBox.

Settings come from an optional JSON file and are then overridden by
environment variables, so developers can opt in without editing files.
"""

from __future__ import annotations

import json
import os
import string
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from .exceptions import ConfigError


DEFAULT_STORE_DIR = Path.home() / ".passbox"
DEFAULT_ALPHABET = string.ascii_letters + string.digits + string.punctuation


@dataclass
class Settings:
    """Configuration for the store engine and its gateways."""

    store_dir: str = str(DEFAULT_STORE_DIR)

    # Password generation
    default_length: int = 20
    default_alphabet: str = DEFAULT_ALPHABET

    # External programs
    gpg_binary: str = "gpg"
    git_binary: str = "git"
    command_timeout: Optional[float] = None  # seconds, None = wait forever

    # Background fetch, seconds between checks
    fetch_interval: int = 300

    log_level: str = "INFO"

    @classmethod
    def load(cls, path: str | Path | None = None) -> "Settings":
        """
        Load settings from a JSON file, then apply environment overrides.

        A missing file yields the defaults; unknown keys are ignored.
        """
        settings = cls()
        if path is not None:
            p = Path(path).expanduser()
            if p.exists():
                try:
                    with open(p, "r", encoding="utf-8") as f:
                        data = json.load(f)
                except (OSError, json.JSONDecodeError) as e:
                    raise ConfigError(f"Unable to read settings file {p}: {e}") from e
                if not isinstance(data, dict):
                    raise ConfigError(f"Settings file {p} must hold a JSON object")
                known = {f.name for f in fields(cls)}
                for key, value in data.items():
                    if key in known:
                        setattr(settings, key, value)
        settings.apply_env()
        return settings

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Load configuration from environment variables only.

        Environment variables:
            PASSBOX_STORE_DIR: Store root (default: ~/.passbox)
            PASSBOX_DEFAULT_LENGTH: Generated password length (default: 20)
            PASSBOX_DEFAULT_ALPHABET: Generated password alphabet
            PASSBOX_GPG: gpg executable (default: gpg)
            PASSBOX_GIT: git executable (default: git)
            PASSBOX_LOG_LEVEL: Logging level name (default: INFO)
        """
        settings = cls()
        settings.apply_env()
        return settings

    def apply_env(self) -> None:
        if store_dir := os.getenv("PASSBOX_STORE_DIR"):
            self.store_dir = store_dir

        if length := os.getenv("PASSBOX_DEFAULT_LENGTH"):
            try:
                self.default_length = int(length)
            except ValueError as e:
                raise ConfigError(f"PASSBOX_DEFAULT_LENGTH must be an integer, got {length!r}") from e

        if alphabet := os.getenv("PASSBOX_DEFAULT_ALPHABET"):
            self.default_alphabet = alphabet

        if gpg := os.getenv("PASSBOX_GPG"):
            self.gpg_binary = gpg

        if git := os.getenv("PASSBOX_GIT"):
            self.git_binary = git

        if level := os.getenv("PASSBOX_LOG_LEVEL"):
            self.log_level = level.upper()

    def save(self, path: str | Path) -> None:
        p = Path(path).expanduser()
        p.parent.mkdir(parents=True, exist_ok=True)
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        with open(p, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
