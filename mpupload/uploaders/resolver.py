"""Per-file upload configuration.

A ``ConfigResolver`` maps a file to its upload configuration. It may return an
``UploadConfig``, a mapping of field overrides (fields it leaves out fall back
to the engine defaults, and override values may themselves be functions of
the file), ``None`` to signal failure, or an awaitable producing any of those.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any, Union

from mpupload.core.exceptions import ConfigResolutionError, ConfigurationError
from mpupload.models.upload import UploadFile
from mpupload.uploaders.constants import DEFAULT_MAX_PARTS, DEFAULT_METHOD, DEFAULT_PART_SIZE

ResolverResult = Union["UploadConfig", Mapping[str, Any], None]
ConfigResolver = Callable[[UploadFile], Union[ResolverResult, Awaitable[ResolverResult]]]


def normalize_headers(headers: Any) -> dict[str, str]:
    """Accept a dict, ``[{"name": ..., "value": ...}]`` or ``[(name, value)]``.

    Raises:
        ConfigurationError: For any other shape.
    """
    if not headers:
        return {}
    if isinstance(headers, Mapping):
        return {str(k): str(v) for k, v in headers.items()}
    if isinstance(headers, Iterable) and not isinstance(headers, (str, bytes)):
        result: dict[str, str] = {}
        for item in headers:
            if isinstance(item, Mapping) and "name" in item:
                result[str(item["name"])] = str(item.get("value", ""))
            elif isinstance(item, (tuple, list)) and len(item) == 2:
                result[str(item[0])] = str(item[1])
            else:
                raise ConfigurationError("Malformed header entry", field="headers", value=item)
        return result
    raise ConfigurationError("Headers must be a mapping or a list", field="headers", value=headers)


@dataclass(frozen=True)
class UploadConfig:
    """Resolved configuration for one file's upload."""

    url: str | None = None
    method: str = DEFAULT_METHOD
    headers: Mapping[str, str] = field(default_factory=dict)
    batch: bool = False
    part_size: int = DEFAULT_PART_SIZE
    max_parts: int = DEFAULT_MAX_PARTS

    def merged(self, overrides: Mapping[str, Any], file: UploadFile | None = None) -> UploadConfig:
        """Return a copy with ``overrides`` applied.

        Callable override values are called with ``file``.

        Raises:
            ConfigurationError: If an override names an unknown field.
        """
        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}
        for name, value in overrides.items():
            key = "part_size" if name == "partSize" else "max_parts" if name == "maxParts" else name
            if key not in known:
                raise ConfigurationError(f"Unknown upload option: {name}", field=name)
            if callable(value):
                value = value(file)
            if key == "headers":
                value = normalize_headers(value)
            elif key == "method" and value:
                value = str(value).upper()
            changes[key] = value
        return replace(self, **changes)


def as_resolver(source: Any = None) -> ConfigResolver:
    """Lift a constant, plain function or coroutine function into a resolver.

    ``None`` yields a resolver that always uses the engine defaults.
    """
    if source is None:
        return lambda file: {}
    if isinstance(source, (UploadConfig, Mapping)):
        return lambda file: source
    if callable(source):
        return source
    raise ConfigurationError("Resolver must be a config, mapping or callable", value=source)


def coerce_config(
    result: ResolverResult,
    defaults: UploadConfig,
    file: UploadFile,
) -> UploadConfig:
    """Turn a resolver's (already awaited) result into an UploadConfig.

    Raises:
        ConfigResolutionError: If the resolver produced nothing usable.
        ConfigurationError: If the overrides are malformed.
    """
    if isinstance(result, UploadConfig):
        return result
    if isinstance(result, Mapping):
        return defaults.merged(result, file)
    raise ConfigResolutionError(
        "Config resolver did not return a configuration",
        str(file.path),
        details={"returned": type(result).__name__},
    )
