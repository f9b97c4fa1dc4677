"""Folds a run's raw events into the frames the visualizer plays back.

The fold is a single pure function, ``step(state, event) -> state``; nothing is
mutated in place, and every emitted ``Frame`` holds its own deep copy of the
call stack so later steps can never change an earlier frame.
"""
import copy
import json
from functools import reduce
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

SIGNIFICANT_KINDS = ("call", "return", "throw", "stdout")
STATE_KINDS = ("call", "return", "throw", "stdout", "declare", "assign")


class CallFrame(BaseModel):
    """One open function invocation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    function: str
    line: int = -1
    args: dict = Field(default_factory=dict)
    locals: dict = Field(default_factory=dict)
    return_value: Any = Field(default=None, alias="returnValue")
    returned: bool = False


class Frame(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    action: str
    line: int = -1
    context: Optional[str] = None
    stack: Tuple[CallFrame, ...] = ()
    globals: dict = Field(default_factory=dict)
    locals: dict = Field(default_factory=dict)
    stdout: Tuple[str, ...] = ()
    output: Optional[str] = None
    return_value: Any = Field(default=None, alias="returnValue")
    completed: Optional[CallFrame] = None
    error: Optional[str] = None

    def to_dict(self):
        data = self.model_dump(by_alias=True, mode="json")
        for key in ("context", "output", "completed", "error"):
            if data[key] is None:
                del data[key]
        if not self.action.startswith("return"):
            del data["returnValue"]
        return data


class ReducerState(BaseModel):
    model_config = ConfigDict(frozen=True)

    stack: Tuple[CallFrame, ...] = ()
    globals: dict = Field(default_factory=dict)
    stdout: Tuple[str, ...] = ()
    fingerprint: Optional[str] = None
    pending_context: Optional[str] = None
    frames: Tuple[Frame, ...] = ()
    finished: bool = False


def js_display(value):
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True)


def fingerprint(globals_, stack):
    return json.dumps(
        {"globals": globals_, "stack": [[f.function, f.args, f.locals] for f in stack]},
        sort_keys=True,
        default=str,
    )


EMPTY_FINGERPRINT = fingerprint({}, ())


def visible_locals(globals_, stack, completed=None):
    """Flattened variable view: globals, then each call outer to inner."""
    view = dict(globals_)
    frames = list(stack) + ([completed] if completed is not None else [])
    for frame in frames:
        view.update(frame.args)
        view.update(frame.locals)
    return view


def error_frame(message, line=-1):
    return Frame(action="error", line=line, error=message or "Unknown error")


def step(state: ReducerState, event) -> ReducerState:
    """Apply one event to the reducer state."""
    if state.finished:
        return state
    kind = event.kind

    if kind == "error":
        return state.model_copy(update={
            "stack": (),
            "globals": {},
            "frames": state.frames + (error_frame(event.message, event.line),),
            "pending_context": None,
            "finished": True,
        })
    if kind == "test":
        context = f'Tested "{event.expression}": {js_display(event.result)}'
        return state.model_copy(update={"pending_context": context})
    if kind not in STATE_KINDS:
        # loop, class, init: informational only
        return state

    stack = state.stack
    globals_ = state.globals
    stdout = state.stdout
    completed = None
    output = None
    return_value = None

    if kind == "call":
        stack = stack + (CallFrame(
            function=event.name or "anonymous",
            line=event.line,
            args=copy.deepcopy(event.args),
        ),)
    elif kind in ("declare", "assign"):
        written = copy.deepcopy(event.locals)
        if stack:
            top = stack[-1]
            stack = stack[:-1] + (top.model_copy(update={"locals": {**top.locals, **written}}),)
        else:
            globals_ = {**globals_, **written}
    elif kind == "return":
        return_value = copy.deepcopy(event.value)
        if stack:
            completed = stack[-1].model_copy(update={"return_value": return_value, "returned": True})
            stack = stack[:-1]
    elif kind == "throw":
        # an exception left the innermost call
        if stack:
            completed = stack[-1]
            stack = stack[:-1]
    elif kind == "stdout":
        output = event.output or ""
        stdout = stdout + (output,)

    current = fingerprint(globals_, stack)
    previous = state.fingerprint if state.fingerprint is not None else EMPTY_FINGERPRINT
    waiting_context = state.pending_context is not None and kind in ("declare", "assign")
    update = {"stack": stack, "globals": globals_, "stdout": stdout}
    if kind not in SIGNIFICANT_KINDS and current == previous and not waiting_context:
        return state.model_copy(update=update)

    action = kind
    context = None
    if state.pending_context is not None:
        action = f"{kind} (after test)"
        context = state.pending_context
    frame = Frame(
        action=action,
        line=event.line,
        context=context,
        stack=copy.deepcopy(stack),
        globals=copy.deepcopy(globals_),
        locals=copy.deepcopy(visible_locals(globals_, stack, completed)),
        stdout=stdout,
        output=output,
        return_value=return_value,
        completed=copy.deepcopy(completed),
    )
    update.update({
        "fingerprint": current,
        "pending_context": None,
        "frames": state.frames + (frame,),
    })
    return state.model_copy(update=update)


def reduce_events(events):
    """Fold a selected run into its list of frames."""
    return list(reduce(step, events, ReducerState()).frames)
