"""Interpreter settings, optionally loaded from a YAML file.

Example ``treelox.yaml``::

    max_errors: 10
    max_call_depth: 500
    show_source: true
    prompt: "lox> "
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Union


@dataclass
class LoxConfig:
    max_errors: int = 20          # Static errors reported before giving up
    max_call_depth: int = 200     # Deeper call nesting is 'Stack overflow.'
    show_source: bool = False     # Add source excerpts to static diagnostics
    prompt: str = "> "            # REPL prompt

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoxConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"unknown configuration key(s): {', '.join(unknown)}")
        config = cls(**data)
        config.validate()
        return config

    def validate(self) -> None:
        if not isinstance(self.max_errors, int) or self.max_errors < 1:
            raise ValueError("max_errors must be a positive integer")
        if not isinstance(self.max_call_depth, int) or self.max_call_depth < 1:
            raise ValueError("max_call_depth must be a positive integer")
        if not isinstance(self.show_source, bool):
            raise ValueError("show_source must be true or false")
        if not isinstance(self.prompt, str):
            raise ValueError("prompt must be a string")


def load_config(path: Union[str, Path]) -> LoxConfig:
    """Read a YAML mapping of settings; missing keys keep their defaults."""
    import yaml  # local import keeps plain library use free of the YAML parser

    config_path = Path(path)
    with config_path.open("r", encoding="utf-8") as fp:
        try:
            data = yaml.safe_load(fp) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"{config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{config_path}: expected a mapping of settings")
    return LoxConfig.from_dict(data)
