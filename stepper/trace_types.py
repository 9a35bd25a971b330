"""Trace data types for step-by-step execution replay."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class Highlight:
    """Character range of the node executing at one history entry."""

    start: int = 0
    end: int = 0


# ── Breakpoint payloads ──────────────────────────────────────────


class ViewEntry(BaseModel):
    expression: str
    description: str
    value: Any = None
    index_variable: Optional[str] = None
    index_value: Any = None


class ViewPairsPayload(BaseModel):
    """``view([["expr", "description", "indexVar"?], ...])``"""

    kind: Literal["view_pairs"] = "view_pairs"
    entries: list[ViewEntry] = []


class ViewOptionsPayload(BaseModel):
    """``view("description", {value: local, expression: "..."})``"""

    kind: Literal["view_options"] = "view_options"
    description: str
    variable: Optional[str] = None
    value: Any = None
    expression: Optional[str] = None


class StepGroup(BaseModel):
    description: str = ""
    values: list[tuple[str, Any]] = []
    expression: Optional[str] = None


class StepPayload(BaseModel):
    """``step({description, values, expression}, id?)`` or ``step({formulaId: {...}}, id?)``"""

    kind: Literal["step"] = "step"
    step_id: Optional[str] = None
    formulas: dict[str, StepGroup] = {}


BreakpointPayload = Annotated[
    Union[ViewPairsPayload, ViewOptionsPayload, StepPayload],
    Field(discriminator="kind"),
]


# ── History ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Step:
    """One immutable snapshot in the execution history."""

    index: int
    highlight: Highlight
    variables: dict[str, Any]
    stack_trace: tuple[str, ...]
    timestamp: float
    node_type: str = ""
    payload: BreakpointPayload | None = None
    debug: dict[str, Any] = field(default_factory=dict)


@dataclass
class ExecutionHistory:
    """All steps of one run plus the derived navigation points.

    ``breakpoint_points`` are the indices where an authored breakpoint's
    effect landed; ``block_points`` are block-entry indices.
    """

    steps: list[Step] = field(default_factory=list)
    breakpoint_points: list[int] = field(default_factory=list)
    block_points: list[int] = field(default_factory=list)
    error: str | None = None

    def __len__(self) -> int:
        return len(self.steps)

    def next_point(self, points: list[int], current: int) -> int | None:
        return next((p for p in points if p > current), None)

    def prev_point(self, points: list[int], current: int) -> int | None:
        return next((p for p in reversed(points) if p < current), None)
