"""Configuration loading.

Reads a TOML file with one table per service kind and one sub-table per
instance, applies HOMERS_* environment overrides and validates the result.
A kind table holding an ``address`` key directly is a single instance named
"default".
"""

import logging
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    PositiveFloat,
    PositiveInt,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from homers.core.errors import ConfigurationError
from homers.core.models import (
    InstanceDescriptor,
    InstanceIdentity,
    InstanceOptions,
    ServiceKind,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "HOMERS_"
ENV_SEPARATOR = "__"
DEFAULT_INSTANCE = "default"

# Plex authenticates with a token, every other kind with an API key.
_CREDENTIAL_FIELD = {ServiceKind.PLEX: "token"}

_HTTP_URL = TypeAdapter(AnyHttpUrl)


class InstanceConfig(BaseModel):
    """Settings of one instance as written in the file."""

    model_config = ConfigDict(extra="forbid", coerce_numbers_to_str=True)

    address: str
    apikey: str | None = None
    token: str | None = None
    requests: PositiveInt = 20
    missing_days: PositiveInt = 7
    history_hours: PositiveInt = 24
    history_length: PositiveInt = 1000
    geolocate: bool = False

    @field_validator("address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        value = value.strip()
        try:
            _HTTP_URL.validate_python(value)
        except ValidationError:
            raise ValueError("must be an http(s) URL with a host") from None
        return value


class HttpConfig(BaseModel):
    """Listener settings of the exporter."""

    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)

    address: str = "localhost"
    port: int = Field(default=8000, ge=1, le=65535)
    deadline: PositiveFloat = 10.0


class HomersConfig(BaseModel):
    """Validated exporter configuration."""

    http: HttpConfig = HttpConfig()
    instances: dict[ServiceKind, dict[str, InstanceConfig]] = {}

    @property
    def instance_count(self) -> int:
        return sum(len(instances) for instances in self.instances.values())


def _parse_env_value(raw: str) -> Any:
    """Interpret an environment value as a TOML scalar, else as a string."""
    try:
        value = tomllib.loads(f"value = {raw}")["value"]
    except tomllib.TOMLDecodeError:
        return raw
    if isinstance(value, bool | int | float | str):
        return value
    return raw


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Merge HOMERS_<SECTION>__<KEY> variables into raw configuration data.

    Args:
        data: Raw TOML data; modified in place.
        environ: Environment mapping, usually os.environ.

    Returns:
        The updated data.
    """
    for key, raw in sorted(environ.items()):
        if not key.startswith(ENV_PREFIX):
            continue
        path = key[len(ENV_PREFIX) :].lower().split(ENV_SEPARATOR)
        if len(path) < 2 or not all(path):
            logger.debug("Ignoring %s: not a configuration override", key)
            continue
        table = data
        for part in path[:-1]:
            child = table.setdefault(part, {})
            if not isinstance(child, dict):
                raise ConfigurationError(f"{key} overrides a value, not a table")
            table = child
        table[path[-1]] = _parse_env_value(raw)
    return data


def _instance_tables(kind: ServiceKind, table: Any) -> dict[str, Any]:
    if not isinstance(table, dict):
        raise ConfigurationError(f"[{kind.value}] must be a table")
    if "address" in table:
        return {DEFAULT_INSTANCE: table}
    for name in table:
        if not name.strip():
            raise ConfigurationError(f"[{kind.value}] instance names must not be empty")
    return table


def _check_credentials(config: HomersConfig) -> None:
    for kind, instances in config.instances.items():
        field_name = _CREDENTIAL_FIELD.get(kind, "apikey")
        for name, instance in instances.items():
            if not getattr(instance, field_name):
                raise ConfigurationError(f"{kind.value}.{name}: missing '{field_name}'")


def parse_config(data: Mapping[str, Any]) -> HomersConfig:
    """Validate raw configuration data.

    Raises:
        ConfigurationError: On unknown sections, invalid values, missing
            credentials or when no instance is declared.
    """
    http: Any = {}
    instances: dict[ServiceKind, dict[str, Any]] = {}
    for section, table in data.items():
        if section == "http":
            http = table
            continue
        try:
            kind = ServiceKind(section)
        except ValueError:
            raise ConfigurationError(f"unknown section [{section}]") from None
        instances[kind] = _instance_tables(kind, table)

    try:
        config = HomersConfig.model_validate({"http": http, "instances": instances})
    except ValidationError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc

    _check_credentials(config)
    if config.instance_count == 0:
        raise ConfigurationError("no instances configured")
    return config


def load_config(path: str | Path, environ: Mapping[str, str] | None = None) -> HomersConfig:
    """Load, override and validate the configuration file.

    Args:
        path: TOML file to read.
        environ: Environment used for overrides. Defaults to os.environ.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: If the file cannot be read or is invalid.
    """
    path = Path(path)
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as exc:
        raise ConfigurationError(f"cannot read {path}: {exc.strerror or exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"{path} is not valid TOML: {exc}") from exc

    apply_env_overrides(data, os.environ if environ is None else environ)
    config = parse_config(data)
    logger.info("Loaded %d instance(s) from %s", config.instance_count, path)
    return config


def resolve_descriptors(config: HomersConfig) -> list[InstanceDescriptor]:
    """Turn a validated configuration into instance descriptors.

    Descriptors are sorted by kind and name; addresses lose trailing slashes.
    """
    descriptors = []
    for kind, instances in config.instances.items():
        field_name = _CREDENTIAL_FIELD.get(kind, "apikey")
        for name, instance in instances.items():
            descriptors.append(
                InstanceDescriptor(
                    identity=InstanceIdentity(kind=kind, name=name),
                    address=instance.address.rstrip("/"),
                    credential=getattr(instance, field_name),
                    options=InstanceOptions(
                        requests=instance.requests,
                        missing_days=instance.missing_days,
                        history_hours=instance.history_hours,
                        history_length=instance.history_length,
                        geolocate=instance.geolocate,
                    ),
                )
            )
    return sorted(descriptors, key=lambda descriptor: descriptor.identity)
