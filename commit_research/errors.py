"""Error types shared by the ingestion and search pipeline.

Every collaborator failure surfaces as a PipelineError tagged with the stage
it came from, so callers can tell a transient transport failure from a
payload that no longer matches the expected shape without string matching.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorOrigin(str, Enum):
    DISCOVERY = "discovery"
    COMMITS = "commits"
    README = "readme"
    ENRICHMENT = "enrichment"
    STORE = "store"
    DECODE = "decode"


@dataclass(eq=False)
class PipelineError(Exception):
    """A failed collaborator call. Fatal to an ingestion run."""

    origin: ErrorOrigin
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "origin": self.origin.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.origin.value}] {self.message}"


@dataclass(eq=False)
class ConfigError(Exception):
    """Invalid or missing configuration, raised at startup."""

    field: str
    message: str

    @classmethod
    def missing_required(cls, field: str) -> "ConfigError":
        return cls(field=field, message=f"{field} environment variable is not set")

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(field=field, message=f"Invalid value {value!r} for {field}: {reason}")

    def __str__(self) -> str:
        return self.message


@contextmanager
def wrap_errors(origin: ErrorOrigin, message: str, **details: Any) -> Iterator[None]:
    """Re-raise anything that is not already a PipelineError as one."""
    try:
        yield
    except PipelineError:
        raise
    except Exception as e:
        raise PipelineError(
            origin=origin,
            message=f"{message}: {e}",
            details=details,
        ) from e
