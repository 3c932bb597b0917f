"""Layered TOML configuration for migrun.

`config/default.toml` is the base layer and `config/{MIGRUN_ENV}.toml`
is laid over it. The merged `[[migrations]]` tables are checked here,
before any settings object exists, so a broken task graph stops the
service at startup instead of surfacing later as a run that can never
start.
"""

import os
import tomllib
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

CONFIG_DIR_ENV = "MIGRUN_CONFIG_DIR"
ENVIRONMENT_ENV = "MIGRUN_ENV"
DEFAULT_ENVIRONMENT = "development"
BASE_LAYER = "default.toml"

# How many parent directories are searched for config/
_SEARCH_DEPTH = 5


class MigrationConfigError(ValueError):
    """Raised when the [[migrations]] tables do not form a valid task graph."""

    def __init__(self, problems: list[str]) -> None:
        super().__init__("Invalid [[migrations]] configuration: " + "; ".join(problems))
        self.problems = problems


def _candidate_dirs() -> Iterator[Path]:
    here = Path.cwd()
    yield here / "config"
    yield from (parent / "config" for parent in list(here.parents)[: _SEARCH_DEPTH - 1])


def get_config_dir() -> Path:
    """Locate the configuration directory.

    MIGRUN_CONFIG_DIR wins when set and must exist. Otherwise the first
    `config/` found from the working directory upwards is used.
    """
    explicit = os.environ.get(CONFIG_DIR_ENV)
    if explicit:
        path = Path(explicit)
        if not path.is_dir():
            raise FileNotFoundError(f"{CONFIG_DIR_ENV} points to a missing directory: {explicit}")
        return path

    return next((path for path in _candidate_dirs() if path.is_dir()), Path("config"))


def get_environment() -> str:
    """Name of the environment layer, from MIGRUN_ENV."""
    return os.environ.get(ENVIRONMENT_ENV, DEFAULT_ENVIRONMENT)


def load_toml(file_path: Path) -> dict[str, Any]:
    """Parse one TOML layer.

    Raises:
        FileNotFoundError: If the file is missing
        tomllib.TOMLDecodeError: If the file is not valid TOML
    """
    try:
        with file_path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {file_path}") from None


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Lay `override` over `base`.

    Tables merge key by key; any other value, arrays of tables included,
    replaces the base value. An environment that declares [[migrations]]
    therefore declares the whole task list.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _find_cycle(graph: Mapping[str, list[str]]) -> list[str] | None:
    """Return one dependency cycle as a path of task IDs, or None."""
    visiting: list[str] = []
    done: set[str] = set()

    def visit(task_id: str) -> list[str] | None:
        if task_id in visiting:
            return visiting[visiting.index(task_id):] + [task_id]
        if task_id in done:
            return None
        visiting.append(task_id)
        for dependency in graph.get(task_id, []):
            cycle = visit(dependency)
            if cycle:
                return cycle
        visiting.pop()
        done.add(task_id)
        return None

    for task_id in graph:
        cycle = visit(task_id)
        if cycle:
            return cycle
    return None


def validate_migrations(tables: list[Mapping[str, Any]]) -> None:
    """Check the [[migrations]] tables as a task graph.

    Field types are left to the MigrationTask model; this only checks how
    the tasks relate: IDs are unique, dependencies name configured tasks,
    and no task depends on itself through a chain of dependencies.

    Raises:
        MigrationConfigError: Listing every problem found
    """
    problems: list[str] = []
    graph: dict[str, list[str]] = {}

    for table in tables:
        task_id = table.get("id")
        if not isinstance(task_id, str):
            continue
        if task_id in graph:
            problems.append(f"duplicate migration id '{task_id}'")
            continue
        dependencies = table.get("dependencies") or []
        graph[task_id] = (
            [d for d in dependencies if isinstance(d, str)] if isinstance(dependencies, list) else []
        )

    for task_id, dependencies in graph.items():
        for dependency in dependencies:
            if dependency not in graph:
                problems.append(f"'{task_id}' depends on unknown migration '{dependency}'")

    if not problems:
        cycle = _find_cycle(graph)
        if cycle:
            problems.append("dependency cycle " + " -> ".join(cycle))

    if problems:
        raise MigrationConfigError(problems)


def load_config() -> dict[str, Any]:
    """Read and merge the configuration layers.

    Raises:
        FileNotFoundError: If config/default.toml is missing
        MigrationConfigError: If the merged [[migrations]] tables are inconsistent
    """
    config_dir = get_config_dir()

    base_path = config_dir / BASE_LAYER
    if not base_path.is_file():
        raise FileNotFoundError(
            f"Base configuration {base_path} not found; "
            f"create it or set {CONFIG_DIR_ENV}."
        )
    config = load_toml(base_path)

    env_path = config_dir / f"{get_environment()}.toml"
    if env_path.is_file():
        config = deep_merge(config, load_toml(env_path))

    validate_migrations(config.get("migrations", []))
    return config
