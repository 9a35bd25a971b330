"""Execution controller — builds the full history once, then navigates it.

``refresh`` drives the interpreter to completion, recording one ``Step``
per ``step()`` call (plus the initial state). All navigation afterwards is
index arithmetic over that history plus notifications to the host.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Any, Callable

from . import constants
from .extract import ExtractResult, extract_manual
from .host import LoopScheduler, Scheduler, StepHost, TimerHandle
from .interpreter import StepInterpreter, initialize_interpreter, is_at_block
from .linkage import extract_linkages, merge_linkages
from .position import PositionMapper
from .run_types import Environment, LinkageTarget, SessionConfig, SessionState
from .step import build_state
from .trace_types import (
    ExecutionHistory,
    Highlight,
    Step,
    StepPayload,
    ViewOptionsPayload,
    ViewPairsPayload,
)
from .view import build_payload
from .vm import JSRuntimeError
from .vm_types import BreakpointCall

logger = logging.getLogger(__name__)

_LANDING_TYPES = frozenset({constants.BLOCK_STATEMENT, constants.PROGRAM})


def _mentions(name: str, text: str) -> bool:
    return re.search(rf"(?<![\w$]){re.escape(name)}(?![\w$])", text) is not None


class ExecutionSession:
    """One debugging session over one manual function.

    Owns the history, current index, linkage map, active variables, pending
    deferred visual cues and the auto-play timer. Independent sessions share
    no state.
    """

    def __init__(
        self,
        host: StepHost,
        config: SessionConfig = SessionConfig(),
        scheduler: Scheduler | None = None,
    ):
        self._host = host
        self._config = config
        self._scheduler = scheduler or LoopScheduler()
        self._timer: TimerHandle | None = None
        self._auto_playing = False
        self._auto_play_generation = 0
        self._clear()

    def _clear(self) -> None:
        self._state = SessionState.IDLE
        self._program_text = ""
        self._mapper: PositionMapper | None = None
        self._environment: Environment | None = None
        self._values_name = constants.DEFAULT_VALUES_OBJECT
        self._history = ExecutionHistory()
        self._index = 0
        self._linkage: dict[str, LinkageTarget] = {}
        self._array_aliases: dict[str, str] = {}
        self._active_variables: frozenset[str] = frozenset()
        self._active_indices: dict[str, int] = {}
        self._pending_cues: list[Callable[[], None]] = []
        self._pending_breakpoint: BreakpointCall | None = None

    # ── Read-only queries ────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def index(self) -> int:
        return self._index

    @property
    def history(self) -> ExecutionHistory:
        return self._history

    @property
    def history_length(self) -> int:
        return len(self._history)

    @property
    def breakpoint_points(self) -> tuple[int, ...]:
        return tuple(self._history.breakpoint_points)

    @property
    def block_points(self) -> tuple[int, ...]:
        return tuple(self._history.block_points)

    @property
    def current_step(self) -> Step | None:
        if not self._history.steps:
            return None
        return self._history.steps[self._index]

    @property
    def program_text(self) -> str:
        return self._program_text

    @property
    def linkage(self) -> dict[str, LinkageTarget]:
        return dict(self._linkage)

    @property
    def active_variables(self) -> frozenset[str]:
        return self._active_variables

    @property
    def active_indices(self) -> dict[str, int]:
        return dict(self._active_indices)

    @property
    def error(self) -> str | None:
        return self._history.error

    @property
    def is_auto_playing(self) -> bool:
        return self._auto_playing

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    # ── Lifecycle ────────────────────────────────────────────────

    def load(self, environment: Environment | None) -> ExtractResult:
        """Transform *environment*'s manual function and refresh with it."""
        extracted = extract_manual(environment)
        if extracted.code is None:
            self.stop_auto_play()
            self._clear()
            self._host.highlight_range(0, 0)
            if extracted.error:
                self._host.report_error(extracted.error)
            return extracted
        self.refresh(
            extracted.code,
            environment,
            display_text=extracted.display_code,
            values_name=extracted.values_object_name,
        )
        return extracted

    def refresh(
        self,
        program_text: str,
        environment: Environment | None = None,
        display_text: str | None = None,
        values_name: str = constants.DEFAULT_VALUES_OBJECT,
    ) -> None:
        """Discard all state and rebuild the history for *program_text*."""
        self.stop_auto_play()
        self._clear()
        self._program_text = program_text
        self._host.highlight_range(0, 0)
        self._environment = environment
        self._values_name = values_name
        if display_text is not None and display_text != program_text:
            self._mapper = PositionMapper(program_text, display_text)
        self._restore_defaults(environment)

        if not program_text.strip():
            self._fail(constants.NO_CODE)
            return

        self._state = SessionState.INITIALIZING
        values = {
            name: value
            for name, value in self._host.get_external_values().items()
            if value is not None
        }
        interpreter = initialize_interpreter(
            program_text, values, self._fail, self._record_breakpoint
        )
        if interpreter is None:
            self._state = SessionState.IDLE
            return

        detected = extract_linkages(
            program_text,
            values,
            environment.variables if environment else None,
            values_name,
        )
        declared = environment.variable_linkage if environment else None
        self._linkage = merge_linkages(detected.variable_linkage, declared)
        self._array_aliases = detected.array_aliases

        self._execute_all_steps(interpreter)
        self._index = 0
        self._active_variables = frozenset()
        self._state = SessionState.READY
        self._defer(self._host.clear_all_cues)
        logger.info(
            "History built: %d steps, %d breakpoints, %d blocks",
            len(self._history),
            len(self._history.breakpoint_points),
            len(self._history.block_points),
        )

    def _restore_defaults(self, environment: Environment | None) -> None:
        if environment is None:
            return
        for name, variable in environment.variables.items():
            if variable.role == "computed":
                continue
            if variable.default is not None:
                self._host.set_external_value(name, variable.default)
            elif variable.member_of:
                self._host.set_external_value(name, None)

    def _fail(self, message: str) -> None:
        self._history.error = message
        self._host.report_error(message)

    def _record_breakpoint(self, call: BreakpointCall) -> None:
        self._pending_breakpoint = call

    # ── History building ─────────────────────────────────────────

    def _execute_all_steps(self, interpreter: StepInterpreter) -> None:
        text = self._program_text
        steps = [build_state(interpreter, 0, text)]
        breakpoint_points: list[int] = []
        index = 0
        more = True
        while more:
            try:
                more = interpreter.step()
            except JSRuntimeError as exc:
                logger.warning("Execution stopped at step %d: %s", index, exc)
                self._fail(f"{constants.EXECUTION_ERROR}: {exc}")
                break
            index += 1
            steps.append(build_state(interpreter, index, text))
            if self._breakpoint_landed(steps, index):
                breakpoint_points.append(index)
                steps[index] = self._attach_payload(steps[index])

        self._history.steps = steps
        self._history.breakpoint_points = breakpoint_points
        self._history.block_points = [
            i for i in range(len(steps)) if is_at_block(steps, i)
        ]

    def _breakpoint_landed(self, steps: list[Step], index: int) -> bool:
        """True when a breakpoint statement just finished and control is back in its block."""
        if steps[index].node_type not in _LANDING_TYPES:
            return False
        previous = steps[index - 1]
        if previous.node_type == steps[index].node_type:
            return False
        code = self._program_text[previous.highlight.start : previous.highlight.end].strip()
        return any(
            code.startswith(f"{name}(") for name in self._config.breakpoint_functions
        )

    def _attach_payload(self, step: Step) -> Step:
        call, self._pending_breakpoint = self._pending_breakpoint, None
        if call is None:
            return step
        payload, debug = build_payload(call, step.variables)
        return dataclasses.replace(step, payload=payload, debug={**step.debug, **debug})

    # ── Navigation ───────────────────────────────────────────────

    def _ready(self) -> bool:
        return self._state is SessionState.READY and bool(self._history.steps)

    def step_forward(self) -> None:
        if self._ready() and self._index < len(self._history) - 1:
            self._go(self._index + 1)

    def step_backward(self) -> None:
        if self._ready() and self._index > 0:
            self._go(self._index - 1)

    def step_to_index(self, index: int) -> None:
        if self._ready() and 0 <= index < len(self._history):
            self._go(index)

    def step_to_next_breakpoint(self) -> None:
        self._jump(self._history.next_point(self._history.breakpoint_points, self._index))

    def step_to_prev_breakpoint(self) -> None:
        self._jump(self._history.prev_point(self._history.breakpoint_points, self._index))

    def step_to_next_block(self) -> None:
        self._jump(self._history.next_point(self._history.block_points, self._index))

    def step_to_prev_block(self) -> None:
        self._jump(self._history.prev_point(self._history.block_points, self._index))

    def _jump(self, target: int | None) -> None:
        if self._ready() and target is not None:
            self._go(target)

    def _go(self, index: int) -> None:
        self._index = index
        step = self._history.steps[index]
        self._show_highlight(step.highlight)
        self._update_variables(step, index)

    def _show_highlight(self, highlight: Highlight) -> None:
        start, end = highlight.start, highlight.end
        if self._mapper is not None:
            start, end = self._mapper.map_range(start, end)
        self._host.highlight_range(start, end)

    def _update_variables(self, step: Step, index: int) -> None:
        self._defer(self._host.clear_all_cues)
        highlight = step.highlight
        if is_at_block(self._history.steps, index):
            highlight = self._history.steps[index - 1].highlight
        line = self._program_text[highlight.start : highlight.end]

        active: set[str] = set()
        for local, target in self._linkage.items():
            if not _mentions(local, line):
                continue
            targets = target if isinstance(target, list) else [target]
            active.update(targets)
            if local in step.variables and len(targets) == 1:
                self._push_value(targets[0], step.variables[local])
        active.update(self._payload_variables(step))
        self._active_indices = self._payload_indices(step)

        self._active_variables = frozenset(active)
        if active:
            names = self._active_variables
            self._defer(lambda: self._host.apply_variable_cue(names))

    def _push_value(self, name: str, value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float, list)):
            return
        self._host.set_external_value(name, value)

    def _known_variables(self) -> set[str]:
        names = set(self._host.get_external_values())
        if self._environment is not None:
            names.update(self._environment.variables)
        return names

    def _payload_variables(self, step: Step) -> set[str]:
        payload = step.payload
        expressions: list[str] = []
        if isinstance(payload, ViewOptionsPayload) and payload.expression:
            expressions.append(payload.expression)
        elif isinstance(payload, StepPayload):
            expressions.extend(g.expression for g in payload.formulas.values() if g.expression)
        if not expressions:
            return set()
        return {
            name
            for name in self._known_variables()
            if any(_mentions(name, expression) for expression in expressions)
        }

    def _payload_indices(self, step: Step) -> dict[str, int]:
        if not isinstance(step.payload, ViewPairsPayload):
            return {}
        indices = {}
        for entry in step.payload.entries:
            if entry.index_variable is None or not isinstance(entry.index_value, int):
                continue
            target = self._linkage.get(entry.expression, entry.expression)
            if isinstance(target, str):
                indices[target] = entry.index_value
        return indices

    # ── Deferred visual cues ─────────────────────────────────────

    def _defer(self, callback: Callable[[], None]) -> None:
        if self._config.defer_visual_cues:
            self._pending_cues.append(callback)
        else:
            callback()

    def flush_visual_cues(self) -> None:
        """Run cue callbacks queued since the last flush (the host's frame hook)."""
        pending, self._pending_cues = self._pending_cues, []
        for callback in pending:
            callback()

    # ── Auto-play ────────────────────────────────────────────────

    def start_auto_play(self) -> None:
        if not self._ready() or self._auto_playing:
            return
        if self._index >= len(self._history) - 1:
            return
        self._auto_playing = True
        self._schedule_tick()

    def stop_auto_play(self) -> None:
        self._auto_play_generation += 1
        self._auto_playing = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_tick(self) -> None:
        generation = self._auto_play_generation
        self._timer = self._scheduler.call_later(
            self._config.auto_play_interval, lambda: self._auto_play_tick(generation)
        )

    def _auto_play_tick(self, generation: int) -> None:
        # ticks dispatched before a stop or refresh are stale
        if generation != self._auto_play_generation:
            return
        self._timer = None
        self.step_forward()
        if generation != self._auto_play_generation:
            return
        if self._index >= len(self._history) - 1:
            self._auto_playing = False
            return
        self._schedule_tick()
