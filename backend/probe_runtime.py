"""The probe runtime injected into every sandbox.

``prelude(max_events)`` returns the JavaScript instrumented code calls:
``__record`` and ``__snapshot``, plus ``__return``, ``__test`` and ``__print``
which are built on them, and a minimal ``console``. Records
are buffered inside the sandbox in ``__probe.events``; the host reads the
whole buffer back once, after the snippet has finished, with
``EVENTS_EXPRESSION`` and turns it into ``Event`` models with
``load_events``.

The step budget is enforced in the sandbox: once the buffer holds
``max_events`` records, every further ``__record`` sets ``__probe.exceeded``
and throws.
"""
import json

from events import parse_event

EVENTS_EXPRESSION = "JSON.stringify(__probe.events)"
BUDGET_EXPRESSION = "__probe.exceeded"
BUDGET_MESSAGE = "__probe step budget exhausted"

PRELUDE = r"""
var __probe, __record, __snapshot, __return, __test, __print, console;
(function (maxEvents, budgetMessage) {
  var MAX_DEPTH = 32;
  __probe = {"events": [], "exceeded": false};

  function copy(value, seen, depth) {
    if (value === undefined) return {"$type": "undefined"};
    if (value === null) return null;
    var kind = typeof value;
    if (kind === "number") {
      if (value !== value) return {"$type": "number", "value": "NaN"};
      if (value === Infinity) return {"$type": "number", "value": "Infinity"};
      if (value === -Infinity) return {"$type": "number", "value": "-Infinity"};
      return value;
    }
    if (kind === "string" || kind === "boolean") return value;
    if (kind === "bigint" || kind === "symbol") return {"$type": kind, "value": String(value)};
    if (kind === "function") return {"$type": "function", "name": value.name || "anonymous"};
    if (seen.indexOf(value) !== -1) return {"$type": "circular"};
    if (depth >= MAX_DEPTH) return {"$type": "truncated"};
    if (value instanceof Date) return isNaN(value.getTime()) ? "Invalid Date" : value.toISOString();
    seen.push(value);
    var out, i, keys;
    if (Array.isArray(value)) {
      out = [];
      for (i = 0; i < value.length; i++) out.push(copy(value[i], seen, depth + 1));
    } else if (value instanceof Map) {
      out = {"$type": "map", "entries": []};
      value.forEach(function (v, k) {
        out.entries.push([copy(k, seen, depth + 1), copy(v, seen, depth + 1)]);
      });
    } else if (value instanceof Set) {
      out = {"$type": "set", "entries": []};
      value.forEach(function (v) { out.entries.push(copy(v, seen, depth + 1)); });
    } else {
      out = {};
      keys = Object.keys(value);
      for (i = 0; i < keys.length; i++) {
        try {
          out[keys[i]] = copy(value[keys[i]], seen, depth + 1);
        } catch (e) {
          out[keys[i]] = {"$type": "error", "value": String(e)};
        }
      }
    }
    seen.pop();
    return out;
  }

  function display(value) {
    var kind = typeof value;
    if (kind === "string") return value;
    if (kind === "function") return "[Function: " + (value.name || "anonymous") + "]";
    if (value === null || kind !== "object") return String(value);
    try {
      return JSON.stringify(copy(value, [], 0));
    } catch (e) {
      return String(value);
    }
  }

  __snapshot = function (value) {
    return copy(value, [], 0);
  };

  __record = function (event) {
    if (__probe.events.length >= maxEvents) {
      __probe.exceeded = true;
      throw new RangeError(budgetMessage);
    }
    __probe.events.push(event);
  };

  __return = function (line, value) {
    __record({"kind": "return", "line": line, "value": copy(value, [], 0)});
    return value;
  };

  __test = function (expression, line, value) {
    __record({"kind": "test", "line": line, "expression": expression, "result": !!value});
    return value;
  };

  __print = function (line, args) {
    var parts = [];
    for (var i = 0; i < args.length; i++) parts.push(display(args[i]));
    __record({"kind": "stdout", "line": line, "output": parts.join(" ")});
  };

  function printer() {
    return function () { __print(-1, Array.prototype.slice.call(arguments)); };
  }

  console = {log: printer(), info: printer(), warn: printer(), error: printer(), debug: printer()};
})(%(max_events)d, %(budget_message)s);
"""


def prelude(max_events=10000):
    """The runtime source for a sandbox allowed ``max_events`` records."""
    return PRELUDE % {"max_events": int(max_events), "budget_message": json.dumps(BUDGET_MESSAGE)}


def load_events(payload):
    """Parse the JSON buffer read back from ``__probe.events``."""
    return [parse_event(raw) for raw in json.loads(payload or "[]")]
