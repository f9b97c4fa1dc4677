import pytest

from js_codegen import generate
from js_syntax import parse_program


def roundtrip(code):
    return generate(parse_program(code))


@pytest.mark.parametrize("code, expected", [
    ("let x = 1;", "let x = 1;"),
    ("a + b * c;", "a + b * c;"),
    ("(a + b) * c;", "(a + b) * c;"),
    ("a - (b - c);", "a - (b - c);"),
    ("x = a ? b : c;", "x = a ? b : c;"),
    ("new Foo(1).bar;", "new Foo(1).bar;"),
    ("-(-x);", "- -x;"),
    ('typeof x === "string";', 'typeof x === "string";'),
    ("`a${b}c`;", "`a${b}c`;"),
    ("(function () {})();", "(function() {}());"),
    ("const f = x => ({a: x});", "const f = (x) => ({a: x});"),
    ("for (let i = 0; i < 3; i++) {}", "for (let i = 0; i < 3; i++) {}"),
])
def test_expressions_and_statements(code, expected):
    assert roundtrip(code) == expected


def test_if_else_without_blocks():
    assert roundtrip("if (a) b(); else c();") == "if (a)\n  b();\nelse\n  c();"


def test_class_with_members():
    code = "class A extends B { constructor(x) { super(x); } static m() {} }"
    assert roundtrip(code) == (
        "class A extends B {\n"
        "  constructor(x) {\n"
        "    super(x);\n"
        "  }\n"
        "  static m() {}\n"
        "}"
    )


def test_generated_code_parses_back_to_same_shape():
    code = """
    function sum(arr) {
      let total = 0;
      for (const v of arr) { total += v; }
      while (total > 10 && !done) total--;
      return [total, {total}, arr.length ** 2];
    }
    """
    first = roundtrip(code)
    assert roundtrip(first) == first


def test_unknown_node_type_is_rejected():
    with pytest.raises(ValueError):
        generate({"type": "Program", "body": [{"type": "WithStatement"}]})


def test_in_operator_is_parenthesized_in_for_initializer():
    assert roundtrip('for (var x = ("a" in o); ;) {}') == 'for (var x = ("a" in o); ; ) {}'
    assert roundtrip('x = "a" in o;') == 'x = "a" in o;'
