"""
Decoder configuration and its on-disk persistence.
"""

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional


# Nesting of read_record() calls. Each level costs about five Python frames,
# so this stays well under the interpreter's default recursion limit.
DEFAULT_MAX_DEPTH = 64
# Class and array levels walked by the projector (reference hops are free)
DEFAULT_MAX_PROJECTION_DEPTH = 200
# Largest member/element count accepted before any allocation
DEFAULT_MAX_ELEMENTS = 1 << 24


@dataclass
class DecoderConfig:
    """Limits and output settings for one decode.

    ``max_bytes`` of ``None`` means the whole buffer may be consumed.
    """
    max_depth: int = DEFAULT_MAX_DEPTH
    max_projection_depth: int = DEFAULT_MAX_PROJECTION_DEPTH
    max_bytes: Optional[int] = None
    max_elements: int = DEFAULT_MAX_ELEMENTS
    json_indent: int = 2
    ir_filename: str = "ir.json"
    simple_filename: str = "simple.json"

    def __post_init__(self):
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")
        if self.max_projection_depth < 1:
            raise ValueError(
                f"max_projection_depth must be positive, got {self.max_projection_depth}")
        if self.max_bytes is not None and self.max_bytes < 0:
            raise ValueError(f"max_bytes must be non-negative, got {self.max_bytes}")
        if self.max_elements < 0:
            raise ValueError(f"max_elements must be non-negative, got {self.max_elements}")


# ---------------------------------------------------------------------------
# Config persistence
# ---------------------------------------------------------------------------

CONFIG_DIR = Path.home() / ".nrbf_dump"
CONFIG_FILE = CONFIG_DIR / "config.json"


def save_config(config: DecoderConfig, path: Optional[Path] = None):
    """Save config to disk."""
    path = Path(path) if path is not None else CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(config), indent=2))


def load_config(path: Optional[Path] = None) -> DecoderConfig:
    """Load config from disk, or create defaults.

    Unknown keys are ignored; an unreadable or invalid file falls back to
    the defaults.
    """
    path = Path(path) if path is not None else CONFIG_FILE
    if path.exists():
        try:
            data = json.loads(path.read_text())
            if not isinstance(data, dict):
                return DecoderConfig()
            return DecoderConfig(**{k: v for k, v in data.items()
                                    if k in DecoderConfig.__dataclass_fields__})
        except (OSError, ValueError, TypeError):
            pass
    return DecoderConfig()
