"""Run pipeline data types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from . import constants

LinkageTarget = Union[str, list[str]]


class Variable(BaseModel):
    """An externally visible variable declared by the environment author."""

    model_config = ConfigDict(populate_by_name=True)

    role: Literal["constant", "input", "computed"] = "input"
    default: Any = None
    value: Any = None
    member_of: Optional[str] = Field(default=None, alias="memberOf")
    name: Optional[str] = None
    precision: Optional[int] = None


class Environment(BaseModel):
    """Author configuration: the manual function plus its variables."""

    model_config = ConfigDict(populate_by_name=True)

    manual: Optional[str] = None
    variables: dict[str, Variable] = {}
    variable_linkage: dict[str, LinkageTarget] = Field(
        default_factory=dict, alias="variableLinkage"
    )
    formula: Optional[str] = None

    def current_values(self) -> dict[str, Any]:
        """Current value of every variable, falling back to its default."""
        values = {}
        for name, variable in self.variables.items():
            value = variable.value if variable.value is not None else variable.default
            if value is not None:
                values[name] = value
        return values


class SessionState(Enum):
    """Execution controller lifecycle."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"


@dataclass(frozen=True)
class SessionConfig:
    """Groups execution session configuration."""

    defer_visual_cues: bool = True
    breakpoint_functions: tuple[str, ...] = constants.BREAKPOINT_FUNCTIONS
    auto_play_interval: float = constants.DEFAULT_AUTO_PLAY_INTERVAL
