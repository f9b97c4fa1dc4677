"""ESTree dictionary -> JavaScript source.

A small printer covering every node esprima produces for scripts. Output is
meant to be executed, not read, so it only tries to be correct: parentheses
are inserted from the operator precedence table and statement-start
ambiguities are resolved by wrapping.
"""
import json

# Expression precedence, loosest to tightest.
SEQUENCE = 0
ASSIGN = 1
CONDITIONAL = 2
UNARY = 14
POSTFIX = 15
CALL = 16
MEMBER = 17
PRIMARY = 18

BINARY_PRECEDENCE = {
    "||": 3, "??": 3,
    "&&": 4,
    "|": 5,
    "^": 6,
    "&": 7,
    "==": 8, "!=": 8, "===": 8, "!==": 8,
    "<": 9, ">": 9, "<=": 9, ">=": 9, "in": 9, "instanceof": 9,
    "<<": 10, ">>": 10, ">>>": 10,
    "+": 11, "-": 11,
    "*": 12, "/": 12, "%": 12,
    "**": 13,
}

INDENT = "  "


def generate(node) -> str:
    """Print a Program, statement or expression node as JavaScript source."""
    return CodeGenerator().generate(node)


def literal_source(value) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value)


def _starts_ambiguously(text):
    for prefix in ("{", "function", "class", "let ["):
        if text.startswith(prefix):
            return True
    return text.startswith("async function")


def _contains_call(node):
    # new a.b().c must keep the call out of the constructor reference
    while node and node["type"] in ("MemberExpression", "CallExpression", "TaggedTemplateExpression"):
        if node["type"] == "CallExpression":
            return True
        node = node.get("object") or node.get("tag")
    return False


class CodeGenerator:
    def __init__(self):
        self.level = 0
        # inside a `for` header, where a bare `in` would end the initializer
        self.no_in = False

    def generate(self, node):
        kind = node["type"]
        if kind == "Program":
            return "\n".join(self.statement(s) for s in node.get("body") or [])
        if kind.endswith("Statement") or kind.endswith("Declaration"):
            return self.statement(node)
        return self.expression(node)

    # --- Statements ---
    def pad(self):
        return INDENT * self.level

    def statement(self, node):
        method = getattr(self, "stmt_" + node["type"], None)
        if method is None:
            raise ValueError(f"Cannot generate statement {node['type']}")
        return method(node)

    def body_of(self, node):
        """A nested statement that follows a header: blocks inline, others indented."""
        if node["type"] == "BlockStatement":
            return " " + self.stmt_BlockStatement(node)
        self.level += 1
        text = "\n" + self.pad() + self.statement(node)
        self.level -= 1
        return text

    def stmt_BlockStatement(self, node):
        if not node.get("body"):
            return "{}"
        self.level += 1
        lines = [self.pad() + self.statement(s) for s in node["body"]]
        self.level -= 1
        return "{\n" + "\n".join(lines) + "\n" + self.pad() + "}"

    def stmt_EmptyStatement(self, node):
        return ";"

    def stmt_DebuggerStatement(self, node):
        return "debugger;"

    def stmt_ExpressionStatement(self, node):
        if node.get("directive"):
            return (node["expression"].get("raw") or literal_source(node["directive"])) + ";"
        text = self.expression(node["expression"], SEQUENCE)
        if _starts_ambiguously(text):
            text = "(" + text + ")"
        return text + ";"

    def declaration(self, node):
        parts = []
        for decl in node["declarations"]:
            text = self.expression(decl["id"], ASSIGN)
            if decl.get("init") is not None:
                text += " = " + self.expression(decl["init"], ASSIGN)
            parts.append(text)
        return node["kind"] + " " + ", ".join(parts)

    def stmt_VariableDeclaration(self, node):
        return self.declaration(node) + ";"

    def stmt_FunctionDeclaration(self, node):
        return self.function(node)

    def stmt_ClassDeclaration(self, node):
        return self.klass(node)

    def stmt_ReturnStatement(self, node):
        if node.get("argument") is None:
            return "return;"
        return "return " + self.expression(node["argument"], SEQUENCE) + ";"

    def stmt_ThrowStatement(self, node):
        return "throw " + self.expression(node["argument"], SEQUENCE) + ";"

    def stmt_BreakStatement(self, node):
        label = node.get("label")
        return "break " + label["name"] + ";" if label else "break;"

    def stmt_ContinueStatement(self, node):
        label = node.get("label")
        return "continue " + label["name"] + ";" if label else "continue;"

    def stmt_LabeledStatement(self, node):
        return node["label"]["name"] + ": " + self.statement(node["body"])

    def stmt_IfStatement(self, node):
        consequent = node["consequent"]
        alternate = node.get("alternate")
        if alternate is not None and consequent["type"] == "IfStatement":
            consequent = {"type": "BlockStatement", "body": [consequent]}
        text = "if (" + self.expression(node["test"], SEQUENCE) + ")" + self.body_of(consequent)
        if alternate is not None:
            if consequent["type"] == "BlockStatement":
                text += " else"
            else:
                text += "\n" + self.pad() + "else"
            if alternate["type"] == "IfStatement":
                text += " " + self.stmt_IfStatement(alternate)
            else:
                text += self.body_of(alternate)
        return text

    def for_left(self, node):
        if node["type"] == "VariableDeclaration":
            return self.declaration(node)
        return self.expression(node, CALL)

    def stmt_ForStatement(self, node):
        init = node.get("init")
        outer_no_in, self.no_in = self.no_in, True
        try:
            if init is None:
                head = ""
            elif init["type"] == "VariableDeclaration":
                head = self.declaration(init)
            else:
                head = self.expression(init, SEQUENCE)
        finally:
            self.no_in = outer_no_in
        test = self.expression(node["test"], SEQUENCE) if node.get("test") is not None else ""
        update = self.expression(node["update"], SEQUENCE) if node.get("update") is not None else ""
        return "for (" + head + "; " + test + "; " + update + ")" + self.body_of(node["body"])

    def stmt_ForInStatement(self, node):
        return ("for (" + self.for_left(node["left"]) + " in " + self.expression(node["right"], SEQUENCE)
                + ")" + self.body_of(node["body"]))

    def stmt_ForOfStatement(self, node):
        return ("for (" + self.for_left(node["left"]) + " of " + self.expression(node["right"], ASSIGN)
                + ")" + self.body_of(node["body"]))

    def stmt_WhileStatement(self, node):
        return "while (" + self.expression(node["test"], SEQUENCE) + ")" + self.body_of(node["body"])

    def stmt_DoWhileStatement(self, node):
        body = self.body_of(node["body"])
        joiner = " " if node["body"]["type"] == "BlockStatement" else "\n" + self.pad()
        return "do" + body + joiner + "while (" + self.expression(node["test"], SEQUENCE) + ");"

    def stmt_TryStatement(self, node):
        text = "try " + self.stmt_BlockStatement(node["block"])
        handler = node.get("handler")
        if handler is not None:
            text += " catch"
            if handler.get("param") is not None:
                text += " (" + self.expression(handler["param"], ASSIGN) + ")"
            text += " " + self.stmt_BlockStatement(handler["body"])
        if node.get("finalizer") is not None:
            text += " finally " + self.stmt_BlockStatement(node["finalizer"])
        return text

    def stmt_SwitchStatement(self, node):
        text = "switch (" + self.expression(node["discriminant"], SEQUENCE) + ") {"
        self.level += 1
        for case in node.get("cases") or []:
            if case.get("test") is None:
                text += "\n" + self.pad() + "default:"
            else:
                text += "\n" + self.pad() + "case " + self.expression(case["test"], SEQUENCE) + ":"
            self.level += 1
            for stmt in case.get("consequent") or []:
                text += "\n" + self.pad() + self.statement(stmt)
            self.level -= 1
        self.level -= 1
        return text + "\n" + self.pad() + "}"

    # --- Functions and classes ---
    def params(self, node):
        return "(" + ", ".join(self.expression(p, ASSIGN) for p in node.get("params") or []) + ")"

    def function(self, node, name=None):
        text = "async " if node.get("async") else ""
        text += "function"
        if node.get("generator"):
            text += "*"
        ident = node.get("id")
        if ident is not None:
            text += " " + ident["name"]
        elif name:
            text += " " + name
        return text + self.params(node) + " " + self.stmt_BlockStatement(node["body"])

    def property_key(self, node):
        if node.get("computed"):
            return "[" + self.expression(node["key"], ASSIGN) + "]"
        return self.expression(node["key"], PRIMARY)

    def method(self, node, key):
        value = node["value"]
        prefix = ""
        if node.get("kind") in ("get", "set"):
            prefix = node["kind"] + " "
        else:
            if value.get("async"):
                prefix += "async "
            if value.get("generator"):
                prefix += "*"
        return prefix + key + self.params(value) + " " + self.stmt_BlockStatement(value["body"])

    def klass(self, node):
        text = "class"
        if node.get("id") is not None:
            text += " " + node["id"]["name"]
        if node.get("superClass") is not None:
            text += " extends " + self.expression(node["superClass"], CALL)
        members = node["body"].get("body") or []
        if not members:
            return text + " {}"
        self.level += 1
        lines = []
        for member in members:
            prefix = "static " if member.get("static") else ""
            lines.append(self.pad() + prefix + self.method(member, self.property_key(member)))
        self.level -= 1
        return text + " {\n" + "\n".join(lines) + "\n" + self.pad() + "}"

    # --- Expressions ---
    def expression(self, node, required=SEQUENCE):
        method = getattr(self, "expr_" + node["type"], None)
        if method is None:
            raise ValueError(f"Cannot generate expression {node['type']}")
        text, precedence = method(node)
        if precedence < required:
            return "(" + text + ")"
        return text

    def expr_Identifier(self, node):
        return node["name"], PRIMARY

    def expr_ThisExpression(self, node):
        return "this", PRIMARY

    def expr_Super(self, node):
        return "super", PRIMARY

    def expr_MetaProperty(self, node):
        return node["meta"]["name"] + "." + node["property"]["name"], PRIMARY

    def expr_Literal(self, node):
        raw = node.get("raw")
        if raw is not None:
            return raw, PRIMARY
        return literal_source(node.get("value")), PRIMARY

    def expr_TemplateLiteral(self, node):
        quasis = node.get("quasis") or []
        expressions = node.get("expressions") or []
        text = "`"
        for i, quasi in enumerate(quasis):
            text += quasi["value"]["raw"]
            if i < len(expressions):
                text += "${" + self.expression(expressions[i], SEQUENCE) + "}"
        return text + "`", PRIMARY

    def expr_TaggedTemplateExpression(self, node):
        return self.expression(node["tag"], MEMBER) + self.expr_TemplateLiteral(node["quasi"])[0], MEMBER

    def expr_ArrayExpression(self, node):
        items = []
        for element in node.get("elements") or []:
            items.append("" if element is None else self.expression(element, ASSIGN))
        text = ", ".join(items)
        if items and items[-1] == "":
            text += ","
        return "[" + text + "]", PRIMARY

    expr_ArrayPattern = expr_ArrayExpression

    def expr_ObjectExpression(self, node):
        props = node.get("properties") or []
        if not props:
            return "{}", PRIMARY
        parts = [self.object_member(p) for p in props]
        return "{" + ", ".join(parts) + "}", PRIMARY

    expr_ObjectPattern = expr_ObjectExpression

    def object_member(self, prop):
        if prop["type"] in ("SpreadElement", "RestElement"):
            return self.expression(prop, ASSIGN)
        key = self.property_key(prop)
        if prop.get("kind") in ("get", "set") or prop.get("method"):
            return self.method(prop, key)
        if prop.get("shorthand"):
            return self.expression(prop["value"], ASSIGN)
        return key + ": " + self.expression(prop["value"], ASSIGN)

    def expr_FunctionExpression(self, node):
        return self.function(node), PRIMARY

    def expr_ClassExpression(self, node):
        return self.klass(node), PRIMARY

    def expr_ArrowFunctionExpression(self, node):
        text = "async " if node.get("async") else ""
        text += self.params(node) + " => "
        body = node["body"]
        if body["type"] == "BlockStatement":
            text += self.stmt_BlockStatement(body)
        else:
            body_text = self.expression(body, ASSIGN)
            if body_text.startswith("{"):
                body_text = "(" + body_text + ")"
            text += body_text
        return text, ASSIGN

    def expr_SpreadElement(self, node):
        return "..." + self.expression(node["argument"], ASSIGN), ASSIGN

    expr_RestElement = expr_SpreadElement

    def expr_AssignmentPattern(self, node):
        return self.expression(node["left"], CALL) + " = " + self.expression(node["right"], ASSIGN), ASSIGN

    def expr_AssignmentExpression(self, node):
        left = node["left"]
        if left["type"] in ("ObjectPattern", "ArrayPattern"):
            target = self.expression(left, PRIMARY)
        else:
            target = self.expression(left, CALL)
        return target + " " + node["operator"] + " " + self.expression(node["right"], ASSIGN), ASSIGN

    def expr_SequenceExpression(self, node):
        return ", ".join(self.expression(e, ASSIGN) for e in node["expressions"]), SEQUENCE

    def expr_ConditionalExpression(self, node):
        text = (self.expression(node["test"], CONDITIONAL + 1) + " ? "
                + self.expression(node["consequent"], ASSIGN) + " : "
                + self.expression(node["alternate"], ASSIGN))
        return text, CONDITIONAL

    def expr_BinaryExpression(self, node):
        operator = node["operator"]
        precedence = BINARY_PRECEDENCE[operator]
        if operator == "**":
            left = self.expression(node["left"], POSTFIX)
            right = self.expression(node["right"], precedence)
        else:
            left = self.expression(node["left"], precedence)
            right = self.expression(node["right"], precedence + 1)
        text = left + " " + operator + " " + right
        if operator == "in" and self.no_in:
            return "(" + text + ")", PRIMARY
        return text, precedence

    expr_LogicalExpression = expr_BinaryExpression

    def expr_UnaryExpression(self, node):
        operator = node["operator"]
        argument = self.expression(node["argument"], UNARY)
        if operator.isalpha() or argument[:1] == operator:
            return operator + " " + argument, UNARY
        return operator + argument, UNARY

    def expr_AwaitExpression(self, node):
        return "await " + self.expression(node["argument"], UNARY), UNARY

    def expr_YieldExpression(self, node):
        text = "yield*" if node.get("delegate") else "yield"
        if node.get("argument") is not None:
            text += " " + self.expression(node["argument"], ASSIGN)
        return text, ASSIGN

    def expr_UpdateExpression(self, node):
        argument = self.expression(node["argument"], POSTFIX)
        if node.get("prefix"):
            return node["operator"] + argument, UNARY
        return argument + node["operator"], POSTFIX

    def arguments(self, node):
        return "(" + ", ".join(self.expression(a, ASSIGN) for a in node.get("arguments") or []) + ")"

    def expr_CallExpression(self, node):
        return self.expression(node["callee"], CALL) + self.arguments(node), CALL

    def expr_NewExpression(self, node):
        callee = node["callee"]
        if _contains_call(callee):
            callee_text = "(" + self.expression(callee, SEQUENCE) + ")"
        else:
            callee_text = self.expression(callee, MEMBER)
        return "new " + callee_text + self.arguments(node), CALL

    def expr_MemberExpression(self, node):
        obj = node["object"]
        obj_text = self.expression(obj, CALL)
        if obj["type"] == "Literal" and isinstance(obj.get("value"), (int, float)) \
                and not isinstance(obj.get("value"), bool) and obj_text[:1].isdigit():
            obj_text = "(" + obj_text + ")"
        if node.get("computed"):
            return obj_text + "[" + self.expression(node["property"], SEQUENCE) + "]", MEMBER
        return obj_text + "." + node["property"]["name"], MEMBER
