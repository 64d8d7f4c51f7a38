"""Load :class:`Settings` from an alternate YAML file.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
#   1. config/config.yaml  - static tuning defaults checked into the repo
#   2. .env file           - local developer overrides (not committed)
#   3. Environment vars    - set at deploy time
#
# ``Settings()`` always reads config/config.yaml relative to the working
# directory.  ``load_settings(path)`` points the YAML layer at another file
# (per-deployment tuning, experiment configs) while keeping env vars on top.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic_settings import SettingsConfigDict

from synchat.config.settings import Settings
from synchat.utils.errors import ConfigurationError


def load_settings(path: str | Path | None = None, **overrides: Any) -> Settings:
    """Build :class:`Settings`, reading YAML defaults from *path*.

    Args:
        path: YAML file to use instead of ``config/config.yaml``.  A missing
              file is a configuration error (the default path may be absent).
        **overrides: Explicit field values; these win over every other source.

    Returns:
        Fully resolved settings.
    """
    if path is None:
        return Settings(**overrides)

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(message=f"Config file not found: {config_path}")

    class _FileSettings(Settings):
        model_config = SettingsConfigDict(
            **{**Settings.model_config, "yaml_file": str(config_path)}
        )

    loaded = _FileSettings(**overrides)
    # Hand back the plain Settings type so callers never see the subclass.
    return Settings.model_construct(**loaded.model_dump())
