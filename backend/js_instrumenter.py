"""Rewrites an esprima tree so that running it emits trace events.

The rewrite is done in place on the ESTree dictionaries. Every probe is a call
into the probe runtime (see ``probe_runtime.PRELUDE``):

* functions get a ``call`` record as their first statement and a trailing
  ``return`` record when they can fall off the end; their body is wrapped in
  a ``try`` that records ``throw`` when an exception leaves the function;
* ``return x`` becomes ``return __return(line, x)``;
* declarations and assignments are followed by ``declare``/``assign`` records
  that snapshot the bound names after the statement ran;
* ``if`` tests are wrapped in ``__test(...)``; loops record one ``loop`` (or
  ``test`` for counted ``for``) event per iteration;
* ``console.log(...)`` is replaced by ``__print(line, [...])``.

Nodes already handled are remembered by identity in a side table, so running
the same ``Instrumenter`` over a tree twice changes nothing.
"""
import logging

from errors import InstrumentationError
from js_codegen import generate, literal_source
from js_syntax import binding_identifiers, is_node, node_line, parse_program, source_of

logger = logging.getLogger(__name__)

RECORD = "__record"
SNAPSHOT = "__snapshot"
RETURN = "__return"
TEST = "__test"
PRINT = "__print"
CAUGHT = "__probe_error"

PRINT_METHODS = ("log", "info", "warn", "error", "debug")
LOOP_TAGS = {
    "WhileStatement": "while",
    "DoWhileStatement": "do-while",
    "ForOfStatement": "for-of",
    "ForInStatement": "for-in",
}
# Statements after which control always reaches the next statement.
PROBE_SAFE_STATEMENTS = ("ExpressionStatement", "VariableDeclaration")


# --- Node builders ---
def identifier(name):
    return {"type": "Identifier", "name": name}


def literal(value):
    return {"type": "Literal", "value": value, "raw": literal_source(value)}


def void0():
    return {"type": "UnaryExpression", "operator": "void", "argument": literal(0), "prefix": True}


def call(name, arguments):
    return {"type": "CallExpression", "callee": identifier(name), "arguments": list(arguments)}


def object_of(pairs):
    return {
        "type": "ObjectExpression",
        "properties": [
            {"type": "Property", "key": literal(key), "computed": False, "value": value,
             "kind": "init", "method": False, "shorthand": False}
            for key, value in pairs
        ],
    }


def block(body):
    return {"type": "BlockStatement", "body": list(body)}


def expression_statement(expression):
    return {"type": "ExpressionStatement", "expression": expression}


def end_line(node):
    loc = node.get("loc") if is_node(node) else None
    if not loc or not loc.get("end"):
        return node_line(node)
    return loc["end"].get("line", -1)


class StatementContext:
    """Probes queued around the statement currently being rewritten."""

    def __init__(self, statement):
        self.statement = statement
        self.before = []
        self.after = []
        self.allows_after = statement is not None and statement["type"] in PROBE_SAFE_STATEMENTS


class Instrumenter:
    def __init__(self, code=None):
        self.code = code
        self._seen = {}
        self._contexts = [StatementContext(None)]
        self._classes = []
        self._counter = 0

    # --- Entry points ---
    def instrument(self, tree):
        """Rewrite ``tree`` in place and return it."""
        if not is_node(tree) or tree["type"] != "Program":
            raise InstrumentationError("Expected an ESTree Program node")
        try:
            self.visit(tree, None)
        except (KeyError, TypeError, AttributeError) as e:
            raise InstrumentationError(f"Malformed syntax tree: {e!r}") from e
        return tree

    # --- Traversal ---
    def mark(self, node):
        self._seen[id(node)] = node
        return node

    def visit(self, node, parent):
        if not is_node(node) or id(node) in self._seen:
            return
        self.mark(node)
        method = getattr(self, "visit_" + node["type"], None)
        if method is None:
            self.generic_visit(node)
        else:
            method(node, parent)

    def generic_visit(self, node):
        for key, value in list(node.items()):
            if key in ("loc", "range"):
                continue
            if is_node(value):
                self.visit(value, node)
            elif isinstance(value, list):
                for item in list(value):
                    self.visit(item, node)

    @property
    def context(self):
        return self._contexts[-1]

    def visit_statements(self, statements):
        rewritten = []
        for statement in statements:
            if not is_node(statement) or id(statement) in self._seen:
                rewritten.append(statement)
                continue
            ctx = StatementContext(statement)
            self._contexts.append(ctx)
            try:
                self.visit(statement, None)
            finally:
                self._contexts.pop()
            rewritten.extend(ctx.before)
            rewritten.append(statement)
            rewritten.extend(ctx.after)
        return rewritten

    def visit_header(self, node, parent):
        """Visit an expression whose assignments must not get statement probes."""
        self._contexts.append(StatementContext(None))
        try:
            self.visit(node, parent)
        finally:
            self._contexts.pop()

    def as_block(self, node, key):
        body = node.get(key)
        if is_node(body) and body["type"] != "BlockStatement":
            node[key] = block([body])
        return node[key]

    # --- Probe builders ---
    def probe(self, kind, line, fields=()):
        pairs = [("kind", literal(kind)), ("line", literal(line))] + list(fields)
        return self.mark_tree(call(RECORD, [object_of(pairs)]))

    def probe_statement(self, kind, line, fields=()):
        return self.mark(expression_statement(self.probe(kind, line, fields)))

    def mark_tree(self, node):
        self.mark(node)
        for value in node.values():
            if is_node(value):
                self.mark_tree(value)
            elif isinstance(value, list):
                for item in value:
                    if is_node(item):
                        self.mark_tree(item)
        return node

    def snapshot_pairs(self, names):
        return [(name, call(SNAPSHOT, [identifier(name)])) for name in names]

    def locals_probe(self, kind, line, targets):
        pairs = [(key, call(SNAPSHOT, [value])) for key, value in targets]
        return self.probe(kind, line, [("locals", object_of(pairs))])

    def condition_text(self, test):
        text = source_of(test, self.code)
        if text is None:
            text = generate(test)
        return " ".join(text.split())

    # --- Target resolution ---
    def targets_of(self, target):
        """(key, expression) pairs to snapshot after ``target`` was written.

        A member write logs its root container: ``a.b[i] = v`` logs ``a`` and
        ``this.x = v`` logs ``this``. Roots that are not plain names are skipped.
        """
        if not is_node(target):
            return []
        kind = target["type"]
        if kind == "Identifier":
            return [(target["name"], identifier(target["name"]))]
        if kind == "MemberExpression":
            root = target
            while root["type"] == "MemberExpression":
                root = root["object"]
            if root["type"] == "ThisExpression":
                return [("this", {"type": "ThisExpression"})]
            if root["type"] == "Identifier":
                return [(root["name"], identifier(root["name"]))]
            return []
        if kind in ("ObjectPattern", "ArrayPattern", "AssignmentPattern", "RestElement"):
            return [(name, identifier(name)) for name in binding_identifiers(target)]
        return []

    def written_targets(self, expression):
        if not is_node(expression):
            return []
        kind = expression["type"]
        if kind == "AssignmentExpression":
            return self.targets_of(expression["left"])
        if kind == "UpdateExpression":
            return self.targets_of(expression["argument"])
        if kind == "SequenceExpression":
            targets = []
            for item in expression["expressions"]:
                targets.extend(self.written_targets(item))
            return targets
        return []

    def queue_assign(self, node, target):
        targets = self.targets_of(target)
        if targets and self.context.allows_after:
            self.context.after.append(
                self.mark(expression_statement(self.locals_probe("assign", node_line(node), targets)))
            )

    # --- Program and blocks ---
    def visit_Program(self, node, parent):
        node["body"][:] = self.visit_statements(node["body"])

    def visit_BlockStatement(self, node, parent):
        node["body"][:] = self.visit_statements(node["body"])

    def visit_SwitchCase(self, node, parent):
        if node.get("test") is not None:
            self.visit(node["test"], node)
        node["consequent"][:] = self.visit_statements(node["consequent"])

    # --- Functions ---
    def function_name(self, node, parent):
        if node.get("id"):
            return node["id"]["name"]
        if parent is None:
            return "anonymous"
        kind = parent["type"]
        if kind == "VariableDeclarator" and parent["id"]["type"] == "Identifier":
            return parent["id"]["name"]
        if kind == "AssignmentExpression":
            left = parent["left"]
            if left["type"] == "Identifier":
                return left["name"]
            if left["type"] == "MemberExpression" and not left.get("computed"):
                return left["property"]["name"]
        if kind == "MethodDefinition" and parent.get("kind") == "constructor" and self._classes:
            return self._classes[-1]
        if kind in ("Property", "MethodDefinition") and not parent.get("computed"):
            key = parent["key"]
            if key["type"] == "Identifier":
                return key["name"]
            if key["type"] == "Literal":
                return str(key["value"])
        return "anonymous"

    def instrument_function(self, node, parent):
        body = node["body"]
        if body["type"] != "BlockStatement":
            returned = {"type": "ReturnStatement", "argument": body, "loc": body.get("loc")}
            body = node["body"] = block([returned])
            node["expression"] = False
        if id(body) in self._seen:
            return
        self.mark(body)
        name = self.function_name(node, parent)

        for param in node.get("params") or []:
            self.visit_header(param, node)
        statements = self.visit_statements(body["body"])

        names = []
        for param in node.get("params") or []:
            names.extend(binding_identifiers(param))
        entry = self.probe_statement("call", node_line(node), [
            ("name", literal(name)),
            ("args", object_of(self.snapshot_pairs(names))),
        ])
        position = 0
        while position < len(statements) and statements[position].get("directive"):
            position += 1
        rest = statements[position:]
        if not rest or rest[-1]["type"] != "ReturnStatement":
            rest.append(self.probe_statement("return", end_line(node), [
                ("value", call(SNAPSHOT, [void0()])),
            ]))
        body["body"][:] = statements[:position] + [entry, self.unwind_guard(rest, name, end_line(node))]

    def unwind_guard(self, statements, name, line):
        """``try { statements } catch (e) { record throw; throw e; }``

        Balances the ``call`` record of a function that is left by an
        exception, so the open calls stay in step with the real stack.
        """
        handler = {
            "type": "CatchClause",
            "param": identifier(CAUGHT),
            "body": block([
                self.probe_statement("throw", line, [("name", literal(name))]),
                {"type": "ThrowStatement", "argument": identifier(CAUGHT)},
            ]),
        }
        guard = {"type": "TryStatement", "block": self.mark(block(statements)), "handler": handler, "finalizer": None}
        self.mark_tree(handler)
        return self.mark(guard)

    def visit_FunctionDeclaration(self, node, parent):
        self.instrument_function(node, parent)

    def visit_FunctionExpression(self, node, parent):
        self.instrument_function(node, parent)

    def visit_ArrowFunctionExpression(self, node, parent):
        self.instrument_function(node, parent)

    def visit_MethodDefinition(self, node, parent):
        if node.get("computed"):
            self.visit(node["key"], node)
        self.visit(node["value"], node)

    def visit_Property(self, node, parent):
        if node.get("computed"):
            self.visit(node["key"], node)
        self.visit(node["value"], node)

    def visit_ReturnStatement(self, node, parent):
        argument = node.get("argument")
        if argument is not None:
            self.visit(argument, node)
        node["argument"] = self.mark_tree(call(RETURN, [literal(node_line(node))]))
        node["argument"]["arguments"].append(argument if argument is not None else self.mark_tree(void0()))

    # --- Classes ---
    def visit_class(self, node, name):
        if node.get("superClass") is not None:
            self.visit(node["superClass"], node)
        self._classes.append(name)
        try:
            for member in node["body"].get("body") or []:
                self.visit(member, node["body"])
        finally:
            self._classes.pop()
        return name

    def visit_ClassDeclaration(self, node, parent):
        name = self.visit_class(node, node["id"]["name"] if node.get("id") else "AnonymousClass")
        self.context.before.append(
            self.probe_statement("class", node_line(node), [("className", literal(name))])
        )

    def visit_ClassExpression(self, node, parent):
        self.visit_class(node, self.function_name(node, parent))

    # --- Declarations and assignments ---
    def visit_VariableDeclaration(self, node, parent):
        for decl in node["declarations"]:
            if decl.get("init") is not None:
                self.visit(decl["init"], decl)
            if not self.context.allows_after:
                continue
            for name in binding_identifiers(decl["id"]):
                self.context.after.append(self.mark(expression_statement(
                    self.locals_probe("declare", node_line(decl), [(name, identifier(name))])
                )))

    def visit_AssignmentExpression(self, node, parent):
        self.visit(node["left"], node)
        self.visit(node["right"], node)
        self.queue_assign(node, node["left"])

    def visit_UpdateExpression(self, node, parent):
        self.visit(node["argument"], node)
        self.queue_assign(node, node["argument"])

    # --- Output ---
    def visit_CallExpression(self, node, parent):
        self.generic_visit(node)
        callee = node["callee"]
        if (callee["type"] == "MemberExpression" and not callee.get("computed")
                and callee["object"].get("type") == "Identifier" and callee["object"]["name"] == "console"
                and callee["property"].get("name") in PRINT_METHODS):
            arguments = {"type": "ArrayExpression", "elements": node["arguments"]}
            node["callee"] = self.mark(identifier(PRINT))
            node["arguments"] = [self.mark(literal(node_line(node))), self.mark(arguments)]

    # --- Branches and loops ---
    def visit_IfStatement(self, node, parent):
        test = node["test"]
        self.visit(test, node)
        wrapped = self.mark_tree(call(TEST, [literal(self.condition_text(test)), literal(node_line(node))]))
        wrapped["arguments"].append(test)
        node["test"] = wrapped
        self.as_block(node, "consequent")
        if node.get("alternate") is not None:
            self.as_block(node, "alternate")
        self.visit(node["consequent"], node)
        if node.get("alternate") is not None:
            self.visit(node["alternate"], node)

    def loop_entry(self, node):
        """Probes that open each iteration of a while/do/for-of/for-in body."""
        line = node_line(node)
        probes = [self.probe_statement("loop", line, [("loopType", literal(LOOP_TAGS[node["type"]]))])]
        left = node.get("left")
        if is_node(left):
            if left["type"] == "VariableDeclaration":
                for decl in left["declarations"]:
                    for name in binding_identifiers(decl["id"]):
                        probes.append(self.mark(expression_statement(
                            self.locals_probe("declare", line, [(name, identifier(name))])
                        )))
            else:
                targets = self.targets_of(left)
                if targets:
                    probes.append(self.mark(expression_statement(self.locals_probe("assign", line, targets))))
        return probes

    def instrument_loop(self, node, parent):
        for key in ("left", "right", "test"):
            if is_node(node.get(key)):
                self.visit_header(node[key], node)
        body = self.as_block(node, "body")
        self.visit(body, node)
        body["body"][0:0] = self.loop_entry(node)

    visit_WhileStatement = instrument_loop
    visit_DoWhileStatement = instrument_loop
    visit_ForOfStatement = instrument_loop
    visit_ForInStatement = instrument_loop

    def visit_ForStatement(self, node, parent):
        """Counted loops: init, test and update each get their own probe.

        ``for (let i = 0; i < n; i++) body`` becomes::

            for (let i = 0, __probe_init_1 = __record(declare i); i < n;
                 i++, __record(assign i)) { __record(test "i < n"); body }

        The init probe runs once, the test probe once per executed iteration,
        and the update probe after every iteration, including ones left early
        through ``continue``.
        """
        line = node_line(node)
        init = node.get("init")
        test = node.get("test")
        update = node.get("update")
        for part in (init, test, update):
            if is_node(part):
                self.visit_header(part, node)
        if is_node(init):
            if init["type"] == "VariableDeclaration":
                names = []
                for decl in init["declarations"]:
                    names.extend(binding_identifiers(decl["id"]))
                if names:
                    self._counter += 1
                    probes = [self.locals_probe("declare", line, [(n, identifier(n))]) for n in names]
                    init["declarations"].append(self.mark_tree({
                        "type": "VariableDeclarator",
                        "id": identifier(f"__probe_init_{self._counter}"),
                        "init": probes[0] if len(probes) == 1 else {"type": "SequenceExpression", "expressions": probes},
                    }))
            else:
                targets = self.written_targets(init)
                if targets:
                    probe = self.locals_probe("assign", line, targets)
                else:
                    probe = self.probe("init", line, [("expression", literal(self.condition_text(init)))])
                node["init"] = self.mark({"type": "SequenceExpression", "expressions": [init, probe]})
        if is_node(update):
            targets = self.written_targets(update)
            if targets:
                probe = self.locals_probe("assign", line, targets)
                node["update"] = self.mark({"type": "SequenceExpression", "expressions": [update, probe]})

        body = self.as_block(node, "body")
        self.visit(body, node)
        if is_node(test):
            body["body"].insert(0, self.probe_statement("test", line, [
                ("expression", literal(self.condition_text(test))),
                ("result", literal(True)),
            ]))

    def visit_LabeledStatement(self, node, parent):
        self.visit(node["body"], node)


def instrument_tree(tree, code=None):
    return Instrumenter(code).instrument(tree)


def instrument_source(code: str) -> str:
    """Parse, instrument and regenerate a snippet."""
    tree = parse_program(code)
    instrument_tree(tree, code)
    try:
        instrumented = generate(tree)
    except (KeyError, TypeError, ValueError) as e:
        raise InstrumentationError(f"Cannot generate instrumented code: {e}") from e
    logger.debug("Instrumented %d source characters into %d", len(code), len(instrumented))
    return instrumented
