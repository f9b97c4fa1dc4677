from events import UNDEFINED
from trace_reducer import ReducerState, reduce_events, step


def test_call_and_return(event):
    frames = reduce_events([
        event("call", name="add", args={"a": 2, "b": 3}),
        event("return", value=5),
    ])
    assert [f.action for f in frames] == ["call", "return"]
    assert frames[0].stack[0].function == "add"
    assert frames[0].stack[0].args == {"a": 2, "b": 3}
    assert frames[1].stack == ()
    assert frames[1].return_value == 5
    assert frames[1].completed.return_value == 5
    assert frames[1].locals == {"a": 2, "b": 3}


def test_module_level_writes_go_to_globals(event):
    frames = reduce_events([event("declare", locals={"x": 1}), event("assign", locals={"x": 2})])
    assert [f.globals for f in frames] == [{"x": 1}, {"x": 2}]
    assert all(f.stack == () for f in frames)


def test_writes_inside_a_call_go_to_innermost_frame(event):
    frames = reduce_events([
        event("declare", locals={"g": 0}),
        event("call", name="f", args={}),
        event("declare", locals={"y": 1}),
    ])
    assert frames[-1].globals == {"g": 0}
    assert frames[-1].stack[-1].locals == {"y": 1}


def test_no_op_assignment_produces_no_frame(event):
    frames = reduce_events([
        event("declare", locals={"x": 1}),
        event("assign", locals={"x": 1}),
        event("declare", locals={"y": 2}),
    ])
    assert [f.action for f in frames] == ["declare", "declare"]


def test_significant_events_always_emit(event):
    frames = reduce_events([
        event("stdout", output="hi"),
        event("stdout", output="hi"),
    ])
    assert [f.stdout for f in frames] == [("hi",), ("hi", "hi")]
    assert frames[1].output == "hi"


def test_test_context_attaches_to_next_frame(event):
    frames = reduce_events([
        event("declare", locals={"x": 1}),
        event("test", expression="x > 0", result=True),
        event("assign", locals={"x": 1}),
        event("assign", locals={"x": 2}),
    ])
    assert frames[1].action == "assign (after test)"
    assert frames[1].context == 'Tested "x > 0": true'
    assert frames[2].action == "assign"
    assert frames[2].context is None


def test_informational_events_do_not_emit(event):
    frames = reduce_events([
        event("loop", loop_type="while"),
        event("class", class_name="A"),
        event("init", expression="i = 0"),
    ])
    assert frames == []


def test_error_is_terminal(event):
    frames = reduce_events([
        event("declare", locals={"x": 1}),
        event("error", message="ReferenceError: y is not defined"),
        event("declare", locals={"z": 1}),
    ])
    assert len(frames) == 2
    assert frames[-1].error == "ReferenceError: y is not defined"
    assert frames[-1].to_dict()["locals"] == {}


def test_emitted_frames_are_independent_copies(event):
    payload = {"arr": [1, 2]}
    first = step(ReducerState(), event("declare", locals=payload))
    payload["arr"].append(3)
    first.frames[0].globals["arr"].append(99)
    second = step(first, event("assign", locals={"arr": [1, 2, 3]}))
    assert second.frames[1].globals == {"arr": [1, 2, 3]}
    assert first.frames[0].locals == {"arr": [1, 2]}


def test_step_returns_new_state(event):
    state = ReducerState()
    after = step(state, event("declare", locals={"x": 1}))
    assert state.frames == ()
    assert state.globals == {}
    assert after is not state


def test_frame_serialization(event):
    frames = reduce_events([
        event("call", name="f", args={}),
        event("return", value=UNDEFINED),
    ])
    call_frame, return_frame = [f.to_dict() for f in frames]
    assert "returnValue" not in call_frame
    assert return_frame["returnValue"] == UNDEFINED
    assert return_frame["completed"]["function"] == "f"
    assert call_frame["stack"][0]["function"] == "f"


def test_throw_closes_only_the_innermost_call(event):
    frames = reduce_events([
        event("call", name="f", args={}),
        event("call", name="g", args={}),
        event("throw", name="g"),
        event("return", value=2),
    ])
    assert [f.action for f in frames] == ["call", "call", "throw", "return"]
    assert [c.function for c in frames[2].stack] == ["f"]
    assert frames[2].completed.function == "g"
    assert frames[3].stack == ()
    assert frames[3].completed.function == "f"
    assert frames[3].completed.return_value == 2
    assert "returnValue" not in frames[2].to_dict()
