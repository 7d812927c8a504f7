"""Parse YAML command files into CommandSpec objects.

    command: ["pg_dump", "--format=custom", "app"]
    env:
      PGHOST: db.internal
    dir: /var/backups
    timeout: 600
"""

import shlex
from dataclasses import dataclass

import yaml


@dataclass
class CommandSpec:
    command: list[str]
    env: dict[str, str] | None = None
    dir: str | None = None
    timeout: float | None = None
    stdin: str | None = None


def _parse_command(value) -> list[str]:
    if isinstance(value, str):
        argv = shlex.split(value)
    elif isinstance(value, list):
        argv = [str(v) for v in value]
    else:
        raise ValueError("command: expected a string or a list")
    if not argv:
        raise ValueError("command: must not be empty")
    return argv


def _parse_env(value) -> dict[str, str] | None:
    if value is None:
        return None
    if isinstance(value, list):
        # Convert list format ["KEY=value", ...] to dict
        parsed = {}
        for item in value:
            k, sep, v = str(item).partition("=")
            if not sep:
                raise ValueError(f"env: entry {item!r} is not KEY=value")
            parsed[k] = v
        return parsed
    if isinstance(value, dict):
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
    raise ValueError("env: expected a mapping or a KEY=value list")


def _parse_timeout(value) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("timeout: expected a number of seconds")
    if value <= 0:
        raise ValueError("timeout: must be positive")
    return float(value)


def parse_spec(data: dict) -> CommandSpec:
    """Build a CommandSpec from a parsed YAML document."""
    if not isinstance(data, dict):
        raise ValueError("command file: expected a mapping at the top level")
    if "command" not in data:
        raise ValueError("command: required")

    dir_ = data.get("dir")
    stdin = data.get("stdin")
    return CommandSpec(
        command=_parse_command(data["command"]),
        env=_parse_env(data.get("env")),
        dir=str(dir_) if dir_ is not None else None,
        timeout=_parse_timeout(data.get("timeout")),
        stdin=str(stdin) if stdin is not None else None,
    )


def load_spec(path: str) -> CommandSpec:
    """Read and parse a YAML command file."""
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"command file: invalid YAML: {e}") from e
    return parse_spec(data)
