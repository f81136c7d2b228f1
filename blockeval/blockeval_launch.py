"""
Builds the argv used to start the foreign runtime.
"""
from __future__ import annotations

import os

from blockeval.blockeval_config import EngineConfig
from blockeval.blockeval_datatypes import ConfigurationError, LaunchSpec

CLASSPATH_FLAG = "-cp"
LIBRARY_PATH_FLAG = "-Djava.library.path="


def runtime_executable(config: EngineConfig) -> str:
    return config.binary_path or config.java_command


def classpath_entries(config: EngineConfig) -> list[str]:
    entries = []
    if config.bootstrap_archive_path:
        entries.append(config.bootstrap_archive_path)
    entries.extend(config.runtime_search_paths)
    return entries


def build_launch_spec(config: EngineConfig) -> LaunchSpec:
    """Return `[exe, flags..., libflag?, -cp, classpath, entry]` for a config snapshot.

    Raises ConfigurationError before anything is spawned when neither a
    runtime binary nor a bootstrap archive is configured.
    """
    if not config.binary_path and not config.bootstrap_archive_path:
        raise ConfigurationError(
            "No runtime configured: set binary-path or bootstrap-archive-path"
        )
    argv = [runtime_executable(config)]
    argv.extend(config.extra_runtime_flags)
    if config.library_paths:
        argv.append(LIBRARY_PATH_FLAG + os.pathsep.join(config.library_paths))
    argv.append(CLASSPATH_FLAG)
    argv.append(os.pathsep.join(classpath_entries(config)))
    argv.append(config.entry_point)
    return tuple(argv)
