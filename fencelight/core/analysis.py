"""Per-language semantic analysis overlaid on highlighted code.

Analyzers take source text and return Annotations: inferred ``type`` hints
shown as hover spans, and ``error`` markers rendered under the offending
line. Analyzers never raise for bad input; a parse failure is itself an
annotation.
"""
from __future__ import annotations

import ast
import json
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

TYPE = "type"
ERROR = "error"


@dataclass(frozen=True)
class Annotation:
    line: int  # 1-based
    column: int  # 0-based
    kind: str
    message: str


# ---------------------------------------------------------------------------
# Python

_BUILTIN_RETURNS = {
    "int": "int", "float": "float", "str": "str", "bool": "bool", "bytes": "bytes",
    "list": "list", "dict": "dict", "set": "set", "tuple": "tuple", "frozenset": "frozenset",
    "len": "int", "repr": "str", "abs": "int", "sorted": "list", "range": "range",
    "open": "TextIOWrapper", "object": "object",
}


def _union(types: List[str]) -> str:
    seen: List[str] = []
    for t in types:
        if t not in seen:
            seen.append(t)
    return " | ".join(seen)


class _PythonTypeVisitor(ast.NodeVisitor):
    def __init__(self, strict: bool):
        self.strict = strict
        self.scopes: List[Dict[str, str]] = [{}]
        self.annotations: List[Annotation] = []

    def infer(self, node: ast.AST) -> Optional[str]:
        if isinstance(node, ast.Constant):
            return "None" if node.value is None else type(node.value).__name__
        if isinstance(node, ast.JoinedStr):
            return "str"
        if isinstance(node, (ast.List, ast.Set)):
            kind = "list" if isinstance(node, ast.List) else "set"
            inner = [self.infer(e) for e in node.elts]
            if not inner or None in inner:
                return kind
            return f"{kind}[{_union(inner)}]"
        if isinstance(node, ast.Tuple):
            inner = [self.infer(e) for e in node.elts]
            if not inner or None in inner:
                return "tuple"
            return f"tuple[{', '.join(inner)}]"
        if isinstance(node, ast.Dict):
            keys = [self.infer(k) for k in node.keys if k is not None]
            values = [self.infer(v) for v in node.values]
            if not keys or None in keys or None in values or len(keys) != len(values):
                return "dict"
            return f"dict[{_union(keys)}, {_union(values)}]"
        if isinstance(node, ast.ListComp):
            return "list"
        if isinstance(node, ast.SetComp):
            return "set"
        if isinstance(node, ast.DictComp):
            return "dict"
        if isinstance(node, ast.GeneratorExp):
            return "Generator"
        if isinstance(node, ast.Lambda):
            return "Callable"
        if isinstance(node, ast.Compare) or (isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.Not)):
            return "bool"
        if isinstance(node, ast.UnaryOp):
            return self.infer(node.operand)
        if isinstance(node, ast.BinOp):
            left, right = self.infer(node.left), self.infer(node.right)
            if left is None or right is None:
                return None
            if isinstance(node.op, ast.Div) and {left, right} <= {"int", "float"}:
                return "float"
            if left == right:
                return left
            if {left, right} == {"int", "float"}:
                return "float"
            return None
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name):
            return _BUILTIN_RETURNS.get(node.func.id)
        if isinstance(node, ast.Name):
            for scope in reversed(self.scopes):
                if node.id in scope:
                    return scope[node.id]
        return None

    def _record(self, target: ast.Name, type_name: Optional[str]):
        if type_name is None:
            if not self.strict:
                return
            type_name = "Any"
        self.scopes[-1][target.id] = type_name
        self.annotations.append(
            Annotation(target.lineno, target.col_offset, TYPE, f"{target.id}: {type_name}")
        )

    def _visit_scope(self, node):
        self.scopes.append({})
        self.generic_visit(node)
        self.scopes.pop()

    visit_FunctionDef = _visit_scope
    visit_AsyncFunctionDef = _visit_scope
    visit_ClassDef = _visit_scope

    def visit_Assign(self, node: ast.Assign):
        self.generic_visit(node)
        type_name = self.infer(node.value)
        for target in node.targets:
            if isinstance(target, ast.Name):
                self._record(target, type_name)

    def visit_AnnAssign(self, node: ast.AnnAssign):
        self.generic_visit(node)
        if isinstance(node.target, ast.Name):
            self._record(node.target, ast.unparse(node.annotation))


def _failure(e: Exception) -> Annotation:
    # ValueError (NUL bytes before 3.12) and RecursionError carry no position
    line = getattr(e, "lineno", None) or 1
    offset = getattr(e, "offset", None) or 1
    msg = getattr(e, "msg", None) or str(e)
    return Annotation(line, max(offset - 1, 0), ERROR, f"{type(e).__name__}: {msg}")


def analyze_python(code: str, strict: bool) -> List[Annotation]:
    visitor = _PythonTypeVisitor(strict)
    try:
        visitor.visit(ast.parse(code))
    except (SyntaxError, ValueError, RecursionError) as e:
        return [_failure(e)]
    return sorted(visitor.annotations, key=lambda a: (a.line, a.column))


# ---------------------------------------------------------------------------
# JSON

def analyze_json(code: str, strict: bool) -> List[Annotation]:
    try:
        json.loads(code)
    except json.JSONDecodeError as e:
        return [Annotation(e.lineno, max(e.colno - 1, 0), ERROR, f"JSONDecodeError: {e.msg}")]
    except RecursionError as e:
        return [_failure(e)]
    return []


# ---------------------------------------------------------------------------
# TypeScript / JavaScript declarations

_TS_DECL_RE = re.compile(
    r"\b(?:const|let|var)\s+(?P<name>[A-Za-z_$][\w$]*)\s*"
    r"(?::\s*(?P<type>(?:=>|[^=;])+?))?\s*(?:=(?!>)\s*(?P<init>[^;\n]+))?\s*(?:;|$)",
    re.MULTILINE,
)
_TS_NUMBER_RE = re.compile(r"^-?(?:\d[\d_]*(?:\.\d+)?(?:[eE][+-]?\d+)?|0[xX][0-9a-fA-F]+)$")


def _infer_ts_literal(init: str, const: bool) -> Optional[str]:
    init = init.strip()
    if _TS_NUMBER_RE.match(init):
        return init if const else "number"
    if len(init) >= 2 and init[0] == init[-1] and init[0] in "'\"":
        return init if const else "string"
    if init.startswith("`"):
        return "string"
    if init in ("true", "false"):
        return init if const else "boolean"
    if init == "null":
        return "null"
    if init.startswith("["):
        return "any[]"
    return None


def analyze_typescript(code: str, strict: bool) -> List[Annotation]:
    out: List[Annotation] = []
    for m in _TS_DECL_RE.finditer(code):
        line = code.count("\n", 0, m.start("name")) + 1
        col = m.start("name") - (code.rfind("\n", 0, m.start("name")) + 1)
        declared = m.group("type")
        if declared:
            type_name: Optional[str] = declared.strip()
        elif m.group("init"):
            type_name = _infer_ts_literal(m.group("init"), m.group(0).lstrip().startswith("const"))
        else:
            type_name = None
            if strict:
                out.append(Annotation(line, col, ERROR, f"Variable '{m.group('name')}' implicitly has an 'any' type."))
                continue
        if type_name is None:
            if not strict:
                continue
            type_name = "any"
        out.append(Annotation(line, col, TYPE, f"{m.group('name')}: {type_name}"))
    return out


Analyzer = Callable[[str, bool], List[Annotation]]

# keyed by the canonical (first) pygments alias of the resolved lexer
ANALYZERS: Dict[str, Analyzer] = {
    "python": analyze_python,
    "json": analyze_json,
    "typescript": analyze_typescript,
    "javascript": analyze_typescript,
}


def analyze(language: str, code: str, strict: bool = True) -> List[Annotation]:
    analyzer = ANALYZERS.get(language)
    if analyzer is None:
        return []
    return analyzer(code, strict)

__all__ = ["Annotation", "ANALYZERS", "analyze", "TYPE", "ERROR"]
