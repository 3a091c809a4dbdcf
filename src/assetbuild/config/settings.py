"""
Environment-driven defaults for the command line.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


def _load_dotenv() -> None:
    cwd_env = Path.cwd() / ".env"
    if cwd_env.exists():
        load_dotenv(dotenv_path=cwd_env, override=True)


_load_dotenv()


class BuildEnvironment(BaseModel):
    """
    Defaults read from environment variables (or a project ``.env``).

    Attributes:
        mode: Build mode used when ``--mode`` is not given.
        log_level: Logging level overriding ``--log-level``.
        config: Build file used when ``--config`` is not given.
    """
    mode: Optional[str] = Field(default=None, alias="ASSETBUILD_MODE")
    log_level: Optional[str] = Field(default=None, alias="ASSETBUILD_LOG_LEVEL")
    config: Optional[str] = Field(default=None, alias="ASSETBUILD_CONFIG")

    model_config = {
        "populate_by_name": True,
    }


@lru_cache(maxsize=1)
def get_environment() -> BuildEnvironment:
    """
    Load environment defaults exactly once.
    """
    values = {field.alias: os.getenv(field.alias) for field in BuildEnvironment.model_fields.values()}
    return BuildEnvironment(**values)
