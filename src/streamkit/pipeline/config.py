"""
Stage configuration models.

Each configurable stage validates its options through a pydantic model at
construction time, so a misconfigured pipeline fails before any byte is
read.
"""

from __future__ import annotations

import os
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from streamkit.errors import ConfigError

ConfigT = TypeVar("ConfigT", bound=BaseModel)


def build_config(model: type[ConfigT], **options: Any) -> ConfigT:
    """Validate ``options`` against ``model``.

    Raises:
        ConfigError: If any option is invalid
    """
    try:
        return model(**options)
    except ValidationError as e:
        first = e.errors()[0]
        option = ".".join(str(p) for p in first.get("loc", ())) or None
        raise ConfigError(
            f"Invalid {model.__name__}: {first.get('msg', e)}", option=option
        ) from e


def resolve_config(
    model: type[ConfigT], config: ConfigT | None, options: dict[str, Any]
) -> ConfigT:
    """Return ``config`` if given, otherwise build one from keyword options.

    Raises:
        ConfigError: If both are given, or the options are invalid
    """
    if config is not None:
        if options:
            raise ConfigError(
                f"Pass either a {model.__name__} or keyword options, not both",
                option=next(iter(options)),
            )
        return config
    return build_config(model, **options)


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}", option=name) from e


class LineSplitterConfig(BaseModel):
    """Options for splitting chunks into lines."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_line_length: int | None = Field(
        default=None, gt=0, description="Upper bound on a single line, in characters"
    )
    errors: Literal["strict", "replace"] = Field(
        default="strict", description="UTF-8 decode error handling"
    )

    @classmethod
    def from_env(cls) -> LineSplitterConfig:
        """Create configuration from environment variables."""
        return build_config(cls, max_line_length=_env_int("STREAMKIT_MAX_LINE_LENGTH"))


class DelimitedParserConfig(BaseModel):
    """Options for delimited-text parsing."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    delimiter: str = Field(
        default=",", min_length=1, max_length=1, description="Field separator"
    )
    quote: str = Field(
        default='"', min_length=1, max_length=1, description="Quote character"
    )
    strict: bool = Field(
        default=False, description="Raise on header/record field-count mismatch"
    )
    skip_blank_lines: bool = Field(
        default=False, description="Drop empty data lines instead of emitting them"
    )

    @model_validator(mode="after")
    def _check_distinct(self) -> DelimitedParserConfig:
        if self.delimiter == self.quote:
            raise ValueError("delimiter and quote must differ")
        if self.delimiter in "\r\n" or self.quote in "\r\n":
            raise ValueError("delimiter and quote cannot be line terminators")
        return self


class BatcherConfig(BaseModel):
    """Options for grouping values into batches."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    batch_size: int = Field(default=100, gt=0, description="Values per batch")

    @classmethod
    def from_env(cls) -> BatcherConfig:
        """Create configuration from environment variables."""
        batch_size = _env_int("STREAMKIT_BATCH_SIZE")
        if batch_size is None:
            return cls()
        return build_config(cls, batch_size=batch_size)


class JsonEncoderConfig(BaseModel):
    """Options for JSON line encoding."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    omit_absent: bool = Field(
        default=True,
        description="Drop None values from records instead of writing null",
    )
