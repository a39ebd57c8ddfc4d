from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .pattern import DEFAULT_SEPARATORS


class RouterConfig(BaseModel):
    """Router construction options.

    Attributes:
        separators: Default segment separators for routes that declare none
        debug: Log registrations and recovered handler failures
        event_trace: Print a summary line for every dispatch
        trace_verbosity: 0=minimal, 1=normal, 2=verbose (adds a param table)
        trace_use_rich: Use Rich formatting for traces instead of logging
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    separators: str = DEFAULT_SEPARATORS
    debug: bool = False
    event_trace: bool = False
    trace_verbosity: int = Field(default=1, ge=0, le=2)
    trace_use_rich: bool = True

    @field_validator("separators")
    @classmethod
    def _separators_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("separators must contain at least one character")
        return value


__all__ = ["RouterConfig"]
