from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

# Marker the probe runtime uses for `undefined` (a bare return, `let x;`).
UNDEFINED = {"$type": "undefined"}


class Event(BaseModel):
    """One raw probe record, in emission order."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: str
    line: int = -1
    name: Optional[str] = None
    args: dict = Field(default_factory=dict)
    locals: dict = Field(default_factory=dict)
    value: Any = None
    expression: Optional[str] = None
    result: Any = None
    loop_type: Optional[str] = Field(default=None, alias="loopType")
    output: Optional[str] = None
    class_name: Optional[str] = Field(default=None, alias="className")
    message: Optional[str] = None


def parse_event(payload: dict) -> Event:
    return Event.model_validate(payload)


def error_event(message: str, line: int = -1) -> Event:
    return Event(kind="error", line=line, message=message)
