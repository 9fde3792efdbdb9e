"""
Domain models: Project, ViewportSize, execution faults and outcomes.

Project and ViewportSize are frozen pydantic models; every mutation goes through
model_copy(update=...) so callers never share a mutable reference. Field aliases
follow the exchange document (code, createdAt, updatedAt).
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)

EXCHANGE_FORMAT_VERSION = "1.0"


def utc_timestamp() -> str:
    """ISO-8601 UTC instant with millisecond precision, e.g. 2025-01-31T08:15:00.123Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_number(value: float) -> str:
    """Render a coordinate without a trailing .0 (6.0 -> "6", 8.5 -> "8.5")."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value) if isinstance(value, float) else str(value)


class ValidationFault(ValueError):
    """Malformed Project, exchange document or viewport; the current state is left untouched."""

    pass


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------


class ViewportSize(BaseModel):
    """Real-world canvas dimensions in inches plus a display label."""

    model_config = ConfigDict(frozen=True)

    width: float = Field(gt=0, allow_inf_nan=False)
    height: float = Field(gt=0, allow_inf_nan=False)
    label: str

    @field_validator("width", "height", mode="before")
    @classmethod
    def _require_number(cls, v: Any) -> Any:
        # bool is an int subclass; numeric strings are not repaired
        if isinstance(v, bool) or not isinstance(v, int | float):
            raise ValueError("must be a number")
        return v

    @field_validator("label", mode="before")
    @classmethod
    def _require_label(cls, v: Any) -> Any:
        if not isinstance(v, str):
            raise ValueError("must be a string")
        return v

    @field_serializer("width", "height")
    def _whole_inches_as_int(self, v: float) -> int | float:
        # documents keep 6 as 6, not 6.0
        if isinstance(v, float) and v.is_integer() and abs(v) < 2**53:
            return int(v)
        return v

    @property
    def view_box(self) -> str:
        return f"0 0 {format_number(self.width)} {format_number(self.height)}"

    def pixel_size(self, dpi: int = 96) -> tuple[float, float]:
        return self.width * dpi, self.height * dpi

    def describe(self) -> str:
        return f'{format_number(self.width)}" × {format_number(self.height)}"'


VIEWPORT_PRESETS: tuple[ViewportSize, ...] = (
    ViewportSize(width=8.5, height=11, label="8.5x11"),
    ViewportSize(width=11, height=8.5, label="11x8.5"),
    ViewportSize(width=6, height=6, label="6x6"),
    ViewportSize(width=4, height=5, label="4x5"),
)

DEFAULT_VIEWPORT = VIEWPORT_PRESETS[0]


class Project(BaseModel):
    """The durable unit of work: name, script, viewport and timestamps."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(min_length=1)
    script: str = Field(alias="code")
    viewport: ViewportSize = Field(
        validation_alias=AliasChoices("viewport", "viewportSize")
    )
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    @field_validator("name", "script", "created_at", "updated_at", mode="before")
    @classmethod
    def _require_str(cls, v: Any) -> Any:
        if not isinstance(v, str):
            raise ValueError("must be a string")
        return v

    def to_document(self) -> dict[str, Any]:
        """Exchange document (version first, then the aliased fields)."""
        return {"version": EXCHANGE_FORMAT_VERSION, **self.model_dump(by_alias=True)}


# ---------------------------------------------------------------------------
# Execution faults and outcomes
# ---------------------------------------------------------------------------


class FaultKind(str, Enum):
    """Where a script failed: compiling, running, or exceeding the time bound."""

    COMPILE = "compile"
    EXECUTION = "execution"
    TIMEOUT = "timeout"


_FAULT_LABELS = {
    FaultKind.COMPILE: "Syntax Error",
    FaultKind.EXECUTION: "Runtime Error",
    FaultKind.TIMEOUT: "Timeout",
}


@dataclass(frozen=True)
class ExecutionFault:
    kind: FaultKind
    message: str
    line: int | None = None
    column: int | None = None

    def describe(self) -> str:
        """e.g. 'Syntax Error: invalid syntax (line 3, column 7)'."""
        text = f"{_FAULT_LABELS[self.kind]}: {self.message}"
        if self.line is not None:
            text += f" (line {self.line}"
            if self.column is not None:
                text += f", column {self.column}"
            text += ")"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "line": self.line,
            "column": self.column,
        }


@dataclass(frozen=True)
class Success:
    markup: str


@dataclass(frozen=True)
class Failure:
    fault: ExecutionFault


ExecutionOutcome = Success | Failure
