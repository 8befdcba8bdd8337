from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv

_env_path = Path(__file__).resolve().parents[1] / ".env"
if _env_path.is_file():
    load_dotenv(_env_path, override=False)


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


@dataclass
class MolstructSettings:
    """Configuration loaded from MOLSTRUCT_* environment variables.

      MOLSTRUCT_LOG_LEVEL=INFO
      MOLSTRUCT_DEFAULT_FORMAT=pdb
      MOLSTRUCT_WRITE_HEADER=true
      MOLSTRUCT_WRITE_CONECT=true
    """

    log_level: str = "INFO"
    default_format: Literal["pdb", "mmcif"] = "pdb"

    # Writer sections
    write_header: bool = True
    write_conect: bool = True


def load_settings() -> MolstructSettings:
    """Load settings from environment variables."""
    fmt = os.environ.get("MOLSTRUCT_DEFAULT_FORMAT", "pdb").lower()
    if fmt not in ("pdb", "mmcif"):
        raise ValueError(f"MOLSTRUCT_DEFAULT_FORMAT must be 'pdb' or 'mmcif', got '{fmt}'")

    return MolstructSettings(
        log_level=os.environ.get("MOLSTRUCT_LOG_LEVEL", "INFO").upper(),
        default_format=fmt,
        write_header=_env_flag("MOLSTRUCT_WRITE_HEADER", "true"),
        write_conect=_env_flag("MOLSTRUCT_WRITE_CONECT", "true"),
    )
