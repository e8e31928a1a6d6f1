"""Configuration model and loaders for chunkwright.

Responsibilities:
- Define run configuration as a typed dataclass.
- Provide deterministic precedence resolution for backend runtime settings.
- Provide loader entry points for YAML- and environment-based configuration.

Key types:
- `ChunkwrightConfig`: normalized settings for chunking and rewrite runs.
- `BackendRuntimeConfig`: resolved endpoint/model/credential values.
- `RuntimeConfigSources`: optional value sources for precedence resolution.
- `ConfigLoader`: static construction helpers for `ChunkwrightConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Callable, Mapping, TypeVar

import yaml

from .models import ModelVariant
from .parsing import (
    normalize_optional_string,
    parse_number,
    parse_positive_int,
    parse_required_boolean,
)
from .text.chunking import ChunkingPolicy

DEFAULT_ENDPOINT_URL = "http://localhost:5000/api/rewrite-chunk"
DEFAULT_MODEL = ModelVariant.CLAUDE.value
DEFAULT_INTER_CHUNK_DELAY_SECONDS = 15.0
DEFAULT_TIMEOUT_SECONDS = 120.0

_ENV_PREFIX = "CHUNKWRIGHT_"
_Parsed = TypeVar("_Parsed")


@dataclass(frozen=True, slots=True)
class RuntimeConfigSources:
    """Source mappings used for deterministic runtime value precedence.

    Attributes:
        cli: Values explicitly provided by CLI arguments.
        secure: Values loaded from secure local credential storage.
        env: Values loaded from environment variables.
    """

    cli: Mapping[str, str] = field(default_factory=dict)
    secure: Mapping[str, str] = field(default_factory=dict)
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BackendRuntimeConfig:
    """Resolved backend settings for one run."""

    endpoint_url: str
    model: ModelVariant
    api_key: str | None = None
    dry_run: bool = False

    def as_report_metadata(self) -> dict[str, str]:
        """Return non-secret runtime metadata safe to persist in run reports."""

        return {
            "endpoint_url": self.endpoint_url,
            "model": self.model.value,
            "dry_run": "true" if self.dry_run else "false",
        }


@dataclass(slots=True)
class ChunkwrightConfig:
    """Configuration for chunking and rewrite runs.

    Attributes:
        output_dir: Directory receiving `rewritten.txt` and `run_report.json`.
        endpoint_url: Rewrite endpoint of the completion backend.
        model: Backend model variant tag.
        instructions: Default rewrite instructions.
        target_words: Preferred chunk size in words.
        min_words: Minimum chunk size in words.
        max_words: Maximum chunk size in words.
        min_ratio: Minimum rewrite/original word ratio.
        stream: Whether rewrites use the streaming protocol.
        inter_chunk_delay_seconds: Pause between successive backend dispatches.
        timeout_seconds: Per-request backend timeout.
        api_key: Optional backend API key.
        chunk_selection: Optional 1-based chunk selection expression.
        dry_run: Use the pass-through client instead of the HTTP backend.
        runtime_sources: Optional runtime source overrides injected by CLI.
        extra: Additional string metadata copied into run reports.
    """

    output_dir: Path = Path("out")
    endpoint_url: str = DEFAULT_ENDPOINT_URL
    model: str = DEFAULT_MODEL
    instructions: str | None = None
    target_words: int = 800
    min_words: int = 400
    max_words: int = 1200
    min_ratio: float = 1.1
    stream: bool = True
    inter_chunk_delay_seconds: float = DEFAULT_INTER_CHUNK_DELAY_SECONDS
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    api_key: str | None = None
    chunk_selection: str | None = None
    dry_run: bool = False
    runtime_sources: RuntimeConfigSources = field(default_factory=RuntimeConfigSources)
    extra: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Validate configuration values before a run."""

        self._require_non_empty(self.endpoint_url, "endpoint_url")
        ModelVariant.parse(self.model)
        self.chunking_policy().validate()
        if self.min_ratio <= 0:
            raise ValueError("`min_ratio` must be greater than zero.")
        if self.inter_chunk_delay_seconds < 0:
            raise ValueError("`inter_chunk_delay_seconds` must be non-negative.")
        if self.timeout_seconds <= 0:
            raise ValueError("`timeout_seconds` must be greater than zero.")

    def chunking_policy(self) -> ChunkingPolicy:
        """Return the chunking policy described by this config."""

        return ChunkingPolicy(
            target_words=self.target_words,
            min_words=self.min_words,
            max_words=self.max_words,
        )

    def resolved_backend_runtime(
        self, sources: RuntimeConfigSources | None = None
    ) -> BackendRuntimeConfig:
        """Resolve backend settings with deterministic source precedence.

        Precedence for each key is:
        `cli` > `secure` > `env` > config field default.
        """

        resolved_sources = sources if sources is not None else self.runtime_sources

        endpoint_url = self._resolve_runtime_value(
            key="endpoint_url",
            env_key=f"{_ENV_PREFIX}ENDPOINT_URL",
            default_value=self.endpoint_url,
            sources=resolved_sources,
        )
        model = self._resolve_runtime_value(
            key="model",
            env_key=f"{_ENV_PREFIX}MODEL",
            default_value=self.model,
            sources=resolved_sources,
        )
        api_key = self._resolve_runtime_value(
            key="api_key",
            env_key=f"{_ENV_PREFIX}API_KEY",
            default_value=self.api_key,
            sources=resolved_sources,
        )
        dry_run = self._resolve_runtime_value(
            key="dry_run",
            env_key=f"{_ENV_PREFIX}DRY_RUN",
            default_value="true" if self.dry_run else "false",
            sources=resolved_sources,
        )

        if endpoint_url is None:
            raise ValueError("`endpoint_url` could not be resolved from CLI, env, or defaults.")
        return BackendRuntimeConfig(
            endpoint_url=endpoint_url,
            model=ModelVariant.parse(model or DEFAULT_MODEL),
            api_key=api_key,
            dry_run=parse_required_boolean(dry_run or "false", "dry_run"),
        )

    def _resolve_runtime_value(
        self,
        key: str,
        env_key: str,
        default_value: str | None,
        sources: RuntimeConfigSources,
    ) -> str | None:
        """Resolve a runtime value from sources in deterministic precedence order."""

        for mapping, lookup_key in (
            (sources.cli, key),
            (sources.secure, key),
            (sources.env, env_key),
        ):
            value = normalize_optional_string(mapping.get(lookup_key))
            if value is not None:
                return value
        return normalize_optional_string(default_value)

    @staticmethod
    def _require_non_empty(value: str, field_name: str) -> None:
        """Validate that string fields are not empty."""

        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


class ConfigLoader:
    """Factory methods for creating `ChunkwrightConfig` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset(
        {
            "output_dir",
            "endpoint_url",
            "model",
            "instructions",
            "target_words",
            "min_words",
            "max_words",
            "min_ratio",
            "stream",
            "inter_chunk_delay_seconds",
            "timeout_seconds",
            "api_key",
            "chunk_selection",
            "dry_run",
            "extra",
        }
    )
    _RUNTIME_ENV_KEYS = frozenset(
        {
            f"{_ENV_PREFIX}ENDPOINT_URL",
            f"{_ENV_PREFIX}MODEL",
            f"{_ENV_PREFIX}API_KEY",
            f"{_ENV_PREFIX}DRY_RUN",
        }
    )

    @staticmethod
    def from_yaml(path: Path) -> ChunkwrightConfig:
        """Create a validated config from a YAML file."""

        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML config `{path}` could not be parsed: {exc}") from exc

        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return ConfigLoader.from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_mapping(payload: Mapping[str, Any], source_label: str = "config") -> ChunkwrightConfig:
        """Build a validated config from a key/value mapping."""

        unknown = sorted(str(key) for key in set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS))
        if unknown:
            raise ValueError(f"{source_label} includes unsupported key(s): {', '.join(unknown)}.")

        defaults = ChunkwrightConfig()

        def read(key: str, parser: Callable[[object, str], _Parsed], default: _Parsed) -> _Parsed:
            if key not in payload or payload[key] is None:
                return default
            try:
                return parser(payload[key], key)
            except ValueError as exc:
                raise ValueError(f"{source_label} field {exc}") from exc

        def as_string(value: object, _key: str) -> str | None:
            return normalize_optional_string(value)

        output_dir = read("output_dir", as_string, None)
        config = ChunkwrightConfig(
            output_dir=Path(output_dir) if output_dir else defaults.output_dir,
            endpoint_url=read("endpoint_url", as_string, None) or defaults.endpoint_url,
            model=read("model", as_string, None) or defaults.model,
            instructions=read("instructions", as_string, None),
            target_words=read("target_words", parse_positive_int, defaults.target_words),
            min_words=read("min_words", parse_positive_int, defaults.min_words),
            max_words=read("max_words", parse_positive_int, defaults.max_words),
            min_ratio=read("min_ratio", parse_number, defaults.min_ratio),
            stream=read("stream", parse_required_boolean, defaults.stream),
            inter_chunk_delay_seconds=read(
                "inter_chunk_delay_seconds",
                lambda value, key: parse_number(value, key, allow_zero=True),
                defaults.inter_chunk_delay_seconds,
            ),
            timeout_seconds=read("timeout_seconds", parse_number, defaults.timeout_seconds),
            api_key=read("api_key", as_string, None),
            chunk_selection=read("chunk_selection", as_string, None),
            dry_run=read("dry_run", parse_required_boolean, defaults.dry_run),
            extra=ConfigLoader._optional_string_map(payload, "extra", source_label),
        )
        config.validate()
        return config

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> ChunkwrightConfig:
        """Create a validated config from `CHUNKWRIGHT_*` environment variables."""

        env_map: Mapping[str, str] = os.environ if env is None else env
        payload: dict[str, Any] = {}
        for key in ConfigLoader._SUPPORTED_YAML_KEYS - {"extra"}:
            value = normalize_optional_string(env_map.get(f"{_ENV_PREFIX}{key.upper()}"))
            if value is not None:
                payload[key] = value

        config = ConfigLoader.from_mapping(payload, source_label="Environment variable")
        config.runtime_sources = RuntimeConfigSources(
            env={
                key: value
                for key, value in env_map.items()
                if key in ConfigLoader._RUNTIME_ENV_KEYS
                and normalize_optional_string(value) is not None
            }
        )
        return config

    @staticmethod
    def _optional_string_map(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> dict[str, str]:
        """Read an optional mapping with non-empty string keys and values."""

        raw = payload.get(key)
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"{source_label} field `{key}` must be a mapping/object.")

        normalized: dict[str, str] = {}
        for raw_key, raw_value in raw.items():
            key_value = normalize_optional_string(raw_key)
            value_value = normalize_optional_string(raw_value)
            if key_value is None:
                raise ValueError(f"{source_label} field `{key}` contains a blank key.")
            if value_value is None:
                raise ValueError(
                    f"{source_label} field `{key}` contains blank value for `{key_value}`."
                )
            normalized[key_value] = value_value
        return normalized
