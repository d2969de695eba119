"""mosaic configuration loader.

Priority (high → low):
  1. CLI flags              (passed to load_config() as ``overrides``)
  2. Environment variables  (MOSAIC_SOURCE, MOSAIC_OUTPUT, MOSAIC_CACHE_DIR, MOSAIC_FAIL_ON)
  3. Per-project mosaic.yaml
  4. Hardcoded defaults

The result is an immutable ``BuildConfig`` that is passed explicitly through
the whole pipeline; nothing in mosaic reads configuration from module state.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import warnings
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from mosaic.errors import ConfigError, UsageError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PROJECT_CONFIG_NAME: str = "mosaic.yaml"

_FAIL_ON_VALUES: frozenset[str] = frozenset(["warning", "error"])

_ENV_OVERRIDES: dict[str, str] = {
    "MOSAIC_SOURCE": "source",
    "MOSAIC_OUTPUT": "output",
    "MOSAIC_CACHE_DIR": "cache_dir",
    "MOSAIC_FAIL_ON": "fail_on",
}

_PATH_KEYS: frozenset[str] = frozenset(["source", "output", "cache_dir"])
_LIST_KEYS: frozenset[str] = frozenset(["always_copy", "copy", "ignore"])
_BOOL_KEYS: frozenset[str] = frozenset(["pretty_urls", "minify", "cache", "sitemap", "clean"])
_INT_KEYS: frozenset[str] = frozenset(["max_depth", "workers"])


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BuildConfig:
    """Root configuration object, built by load_config() from merged layers.

    Attributes:
        source: Source root directory.
        output: Output directory.
        components_dir: Conventional component directory (relative to source).
        layouts_dir: Directory explicit layout names are resolved against.
        default_layout: Layout used when no override or folder layout applies.
        max_depth: Maximum include nesting before MaxDepthExceeded.
        pretty_urls: Emit ``about.html`` as ``about/index.html``.
        minify: Collapse whitespace and strip comments in emitted HTML.
        cache: Skip pages whose inputs are unchanged since the last build.
        cache_dir: Directory holding the persisted build cache.
        fail_on: None, ``"warning"`` (recoverable issues fail the build
            immediately) or ``"error"`` (first page error fails the build).
        always_copy: Paths (relative to source) copied whether referenced or not.
        copy: Glob patterns for files always copied.
        ignore: Glob patterns for files never read or emitted.
        sitemap: Write ``sitemap.xml`` after a full build.
        base_url: Absolute site URL used in the sitemap.
        workers: Size of the composition thread pool (1 = in-line).
        clean: Remove the output directory before a full build.
    """

    source: Path = Path("src")
    output: Path = Path("dist")
    components_dir: str = ".components"
    layouts_dir: str = "_includes"
    default_layout: str = "_includes/_layout.html"
    max_depth: int = 10
    pretty_urls: bool = False
    minify: bool = False
    cache: bool = True
    cache_dir: Path = Path(".mosaic-cache")
    fail_on: str | None = None
    always_copy: tuple[str, ...] = ()
    copy: tuple[str, ...] = ()
    ignore: tuple[str, ...] = ()
    sitemap: bool = False
    base_url: str = "https://example.com"
    workers: int = 1
    clean: bool = False

    @property
    def source_root(self) -> Path:
        """Absolute, resolved source root."""
        return self.source.resolve()

    @property
    def output_root(self) -> Path:
        """Absolute, resolved output root."""
        return self.output.resolve()

    @property
    def cache_file(self) -> Path:
        return self.cache_dir.resolve() / "build-cache.json"

    @property
    def fail_fast(self) -> bool:
        """True if the first page error must stop the whole build."""
        return self.fail_on is not None

    @property
    def warnings_are_errors(self) -> bool:
        return self.fail_on == "warning"


_KNOWN_KEYS: frozenset[str] = frozenset(f.name for f in fields(BuildConfig))


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_KEYS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}'; ignored.",
                UserWarning,
                stacklevel=4,
            )


def _coerce(key: str, value: Any, base: Path) -> Any:
    """Convert a raw YAML/env/CLI value to the type BuildConfig expects."""
    if key in _PATH_KEYS:
        path = Path(str(value)).expanduser()
        return path if path.is_absolute() else base / path
    if key in _LIST_KEYS:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ConfigError(f"'{key}' must be a list of strings, got {type(value).__name__}")
        return tuple(str(v) for v in value)
    if key in _BOOL_KEYS:
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if key in _INT_KEYS:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"'{key}' must be an integer, got {value!r}") from exc
    if key == "fail_on":
        if value in (None, "", "none", False):
            return None
        return str(value).lower()
    return str(value)


def validate_config(cfg: BuildConfig) -> BuildConfig:
    """Raise ConfigError / UsageError if *cfg* cannot drive a build.

    Returns:
        *cfg* unchanged, for call chaining.
    """
    if cfg.fail_on is not None and cfg.fail_on not in _FAIL_ON_VALUES:
        raise ConfigError(
            f"fail_on must be one of {', '.join(sorted(_FAIL_ON_VALUES))}, got '{cfg.fail_on}'"
        )
    if cfg.max_depth < 1:
        raise ConfigError("max_depth must be >= 1")
    if cfg.workers < 1:
        raise ConfigError("workers must be >= 1")
    if not cfg.source_root.is_dir():
        raise UsageError(
            f"Source directory not found: {cfg.source}",
            suggestions=["Pass --source pointing at your site sources", "Run mosaic from the project root"],
        )
    source, output = cfg.source_root, cfg.output_root
    if output == source or source in output.parents:
        raise UsageError(
            f"Output directory '{cfg.output}' must not be inside the source directory",
            suggestions=["Choose an output directory outside the source tree, e.g. dist/"],
        )
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    overrides: dict[str, Any] | None = None,
    *,
    env: dict[str, str] | None = None,
) -> BuildConfig:
    """Load and return a merged, validated *BuildConfig*.

    Applies layers in order: defaults → mosaic.yaml → env vars → overrides.
    Relative paths are resolved against *project_dir*.

    Args:
        project_dir: Directory to search for *mosaic.yaml*. Defaults to CWD.
        overrides: CLI flag values; ``None`` entries are ignored.
        env: Environment mapping (defaults to ``os.environ``; for testing).

    Returns:
        Fully merged *BuildConfig*.

    Raises:
        ConfigError: If a value has the wrong type or an invalid choice.
        UsageError: If the source directory is missing or output is nested in it.
    """
    base = (project_dir if project_dir is not None else Path.cwd()).resolve()
    environ = env if env is not None else os.environ
    merged: dict[str, Any] = {}

    # Layer 1: per-project config
    project_cfg_path = base / PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        try:
            raw = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in '{project_cfg_path}': {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"'{project_cfg_path}' must contain a mapping at the top level")
        _warn_unknown_keys(raw, project_cfg_path)
        merged.update({k: v for k, v in raw.items() if k in _KNOWN_KEYS})

    # Layer 2: env var overrides
    for env_name, key in _ENV_OVERRIDES.items():
        if value := environ.get(env_name):
            merged[key] = value

    # Layer 3: CLI overrides
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key not in _KNOWN_KEYS:
            raise ConfigError(f"Unknown option '{key}'")
        merged[key] = value

    values = {key: _coerce(key, value, base) for key, value in merged.items()}
    cfg = BuildConfig(**values)
    for key in _PATH_KEYS:
        if key not in values:
            cfg = replace(cfg, **{key: base / getattr(cfg, key)})
    return validate_config(cfg)
