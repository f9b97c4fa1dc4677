from js_instrumenter import instrument_source
from sandbox import SandboxExecutor


def run(code, **limits):
    return SandboxExecutor(**limits).execute(instrument_source(code))


def test_print_call_becomes_stdout_event():
    events = run('console.log("a", "b");')
    assert [(e.kind, e.output) for e in events] == [("stdout", "a b")]


def test_print_formats_objects_as_json():
    events = run("console.log([1, 2], {a: 1}, undefined);")
    assert events[0].output == '[1,2] {"a":1} undefined'


def test_snapshots_do_not_follow_later_mutation():
    events = run("let a = [1];\nlet b = a;\na[0] = 5;")
    assert events[1].locals == {"b": [1]}
    assert events[2].locals == {"a": [5]}


def test_special_values_are_marked():
    events = run("let u;\nlet o = {};\no.self = o;\nlet f = function g() {};")
    assert events[0].locals == {"u": {"$type": "undefined"}}
    assert events[2].locals == {"o": {"self": {"$type": "circular"}}}
    assert events[3].locals == {"f": {"$type": "function", "name": "g"}}


def test_thrown_error_discards_partial_events():
    events = run('console.log(1);\nthrow new Error("boom");')
    assert len(events) == 1
    assert events[0].kind == "error"
    assert "boom" in events[0].message


def test_infinite_loop_times_out():
    events = run("while (true) {}", time_limit=0.2)
    assert len(events) == 1
    assert events[0].kind == "error"
    assert events[0].message.startswith("Execution timed out")


def test_step_budget_times_out():
    events = run("let n = 0;\nwhile (true) { n++; }", time_limit=5.0, max_events=50)
    assert events[0].kind == "error"
    assert "50 steps" in events[0].message


def test_host_state_is_not_visible():
    events = run("console.log(typeof require, typeof process, typeof module);")
    assert events[0].output == "undefined undefined undefined"


def test_user_error_mentioning_interrupted_is_not_a_timeout():
    events = run('throw new Error("interrupted by user");')
    assert events[0].kind == "error"
    assert "interrupted by user" in events[0].message
    assert not events[0].message.startswith("Execution timed out")


def test_caught_step_budget_still_times_out():
    code = "let n = 0;\ntry {\n  while (true) { n++; }\n} catch (e) {}\nconsole.log(n);"
    events = run(code, time_limit=5.0, max_events=50)
    assert len(events) == 1
    assert "50 steps" in events[0].message


def test_events_are_read_back_in_order():
    events = run("let a = 1;\nconsole.log(a);\na = 2;")
    assert [e.kind for e in events] == ["declare", "stdout", "assign"]
    assert events[2].locals == {"a": 2}
