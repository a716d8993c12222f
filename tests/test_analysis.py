import pytest

from fencelight.core.analysis import ERROR, TYPE, Annotation, analyze


def _messages(anns):
    return [a.message for a in anns if a.kind == TYPE]


def test_python_literal_types():
    code = "x = 1\ny = 'a'\nz = [1, 2]\nw = {'a': 1.0}\nt = (1, 'b')\nok = x > 0\n"
    assert _messages(analyze("python", code)) == [
        "x: int",
        "y: str",
        "z: list[int]",
        "w: dict[str, float]",
        "t: tuple[int, str]",
        "ok: bool",
    ]


def test_python_names_resolve_within_scope():
    code = "def f():\n    a = 1\n    b = a\n    return b\n"
    anns = analyze("python", code)
    assert _messages(anns) == ["a: int", "b: int"]
    assert anns[0].line == 2 and anns[0].column == 4


def test_python_annotated_assignment_uses_declared_type():
    assert _messages(analyze("python", "n: Optional[int] = None\n")) == ["n: Optional[int]"]


def test_python_strict_reports_unknown_as_any():
    assert _messages(analyze("python", "v = foo()\n", strict=True)) == ["v: Any"]
    assert analyze("python", "v = foo()\n", strict=False) == []


def test_python_syntax_error_is_annotation():
    anns = analyze("python", "def f(:\n    pass\n")
    assert len(anns) == 1
    assert anns[0].kind == ERROR
    assert anns[0].line == 1
    assert anns[0].message.startswith("SyntaxError")


def test_json_errors():
    assert analyze("json", '{"a": 1}') == []
    anns = analyze("json", '{\n  "a": \n}')
    assert anns[0].kind == ERROR
    assert anns[0].message.startswith("JSONDecodeError")


def test_typescript_declarations():
    assert analyze("typescript", "const x: number = 1;") == [Annotation(1, 6, TYPE, "x: number")]
    assert _messages(analyze("typescript", "let y = 2;\nconst s = 'hi';")) == ["y: number", "s: 'hi'"]


def test_typescript_implicit_any():
    anns = analyze("typescript", "let z;", strict=True)
    assert [a.kind for a in anns] == [ERROR]
    assert "implicitly has an 'any' type" in anns[0].message
    assert analyze("typescript", "let z;", strict=False) == []


def test_unknown_language_has_no_analysis():
    assert analyze("brainfuck", "+++") == []


def test_python_null_byte_is_annotation():
    anns = analyze("python", "x = 1\x00\n")
    assert [a.kind for a in anns] == [ERROR]


@pytest.mark.parametrize(
    "language, code",
    [
        ("python", "x = " + "+".join(["1"] * 5000)),
        ("python", "[" * 100000),
        ("json", "[" * 100000),
    ],
)
def test_deep_nesting_is_annotation(language, code):
    anns = analyze(language, code)
    assert [a.kind for a in anns] == [ERROR]


def test_typescript_arrow_function_type():
    assert _messages(analyze("typescript", "const f: (a: number) => void = g;")) == ["f: (a: number) => void"]
    assert _messages(analyze("typescript", "let h: () => string;")) == ["h: () => string"]
