from __future__ import annotations

import json
import os
import re
import tomllib
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml

from blockeval.blockeval_datatypes import ConfigurationError


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str, *, encoding: Optional[str] = None) -> str:
    if isinstance(data, (bytes, bytearray)):
        return data.decode(encoding or 'utf-8', errors='replace')
    return str(data)


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        # A single path or flag given as a scalar
        return [value] if value else []
    return [str(v) for v in value]


def _lookup(cfg: Dict[str, Any], key: str, default: Any = None) -> Any:
    # Accept kebab-case and snake_case spellings of the same option
    if key in cfg:
        return cfg[key]
    kebab = key.replace('_', '-')
    if kebab in cfg:
        return cfg[kebab]
    return default


def detect_format(path: str) -> Optional[str]:
    """Returns 'json', 'yaml' or 'toml' from a file extension."""
    ext = os.path.splitext(path)[1].lower()
    if ext == ".json":
        return 'json'
    if ext in (".yaml", ".yml"):
        return 'yaml'
    if ext == ".toml":
        return 'toml'
    return None


def deserialize(data: bytes | bytearray | str, *, fmt: Optional[str] = None) -> Any:
    """
    Convert config file contents to native Python structures.
    Supported fmt: 'json', 'yaml', 'toml'. Without fmt, text starting with
    '{' is read as JSON and everything else as YAML.
    """
    text = _norm_text(data)
    f = fmt
    if f is None:
        f = 'json' if text.lstrip().startswith('{') else 'yaml'
    if f == 'json':
        return json.loads(text)
    if f == 'yaml':
        return yaml.safe_load(text)
    if f == 'toml':
        return tomllib.loads(text)
    raise ValueError(f"Unsupported config format: {fmt!r}")


# --------------------------
# Engine configuration
# --------------------------

@dataclass(frozen=True)
class EngineConfig:
    """Everything needed to start the foreign runtime.

    Options mirror the configuration boundary of the engine:
      - binary_path: direct runtime executable (e.g. /usr/bin/java)
      - bootstrap_archive_path: launcher archive put first on the classpath
      - runtime_search_paths: extra classpath entries, in order
      - library_paths: native library search paths, in order
      - extra_runtime_flags: raw flags passed before the classpath
    """
    binary_path: Optional[str] = None
    bootstrap_archive_path: Optional[str] = None
    runtime_search_paths: tuple = ()
    library_paths: tuple = ()
    extra_runtime_flags: tuple = ()
    java_command: str = "java"
    entry_point: str = "clojure.main"
    settle_interval: float = 10.0

    @classmethod
    def from_mapping(cls, cfg: Optional[Dict[str, Any]] = None) -> 'EngineConfig':
        cfg = dict(cfg or {})
        try:
            settle = float(_lookup(cfg, 'settle_interval', 10.0))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"settle-interval must be a number: {e}") from e
        return cls(
            binary_path=_lookup(cfg, 'binary_path') or None,
            bootstrap_archive_path=_lookup(cfg, 'bootstrap_archive_path') or None,
            runtime_search_paths=tuple(_as_list(_lookup(cfg, 'runtime_search_paths'))),
            library_paths=tuple(_as_list(_lookup(cfg, 'library_paths'))),
            extra_runtime_flags=tuple(_as_list(_lookup(cfg, 'extra_runtime_flags'))),
            java_command=str(_lookup(cfg, 'java_command', 'java')),
            entry_point=str(_lookup(cfg, 'entry_point', 'clojure.main')),
            settle_interval=settle,
        )

    def to_mapping(self) -> Dict[str, Any]:
        return {
            'binary-path': self.binary_path,
            'bootstrap-archive-path': self.bootstrap_archive_path,
            'runtime-search-paths': list(self.runtime_search_paths),
            'library-paths': list(self.library_paths),
            'extra-runtime-flags': list(self.extra_runtime_flags),
            'java-command': self.java_command,
            'entry-point': self.entry_point,
            'settle-interval': self.settle_interval,
        }


def load_config(path: str, *, base_dir: Optional[str] = None) -> EngineConfig:
    """Read an EngineConfig from a .yaml/.yml/.json/.toml file."""
    full = os.path.expanduser(path)
    if not os.path.isabs(full):
        full = os.path.normpath(os.path.join(base_dir or os.getcwd(), full))
    fmt = detect_format(full)
    if fmt is None:
        raise ConfigurationError(f"Unsupported config file type: {path}")
    try:
        with open(full, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    try:
        parsed = deserialize(data, fmt=fmt)
    except (ValueError, yaml.YAMLError) as e:
        # json.JSONDecodeError and tomllib.TOMLDecodeError are ValueErrors
        raise ConfigurationError(f"Cannot parse config file {path}: {e}") from e
    if parsed is None:
        parsed = {}
    if not isinstance(parsed, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    # Allow the options to be nested under a 'blockeval' table
    if isinstance(parsed.get('blockeval'), dict):
        parsed = parsed['blockeval']
    return EngineConfig.from_mapping(parsed)


def parse_binding_value(text: str) -> Any:
    """Read a command-line binding value (`--var x=[1, 2]`) as a YAML scalar or list."""
    if re.fullmatch(r"\s*", text or ""):
        return ""
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        return text


__all__ = [
    "EngineConfig",
    "load_config",
    "deserialize",
    "detect_format",
    "parse_binding_value",
]
