"""Per-language structural analyzers and the registry that selects them.

Two analyzers produce full structural records:

- Python, using the built-in ``ast`` module
- TypeScript/TSX, using Tree-sitter

Every other recognized language gets a shallow analyzer that reports only a
length metric. These are extension points, not finished analyzers.
"""

from __future__ import annotations

import ast
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Type, Union

import tree_sitter_typescript
from tree_sitter import Language, Parser as TSParser

from .models import (
    ClassDescriptor,
    ExportDescriptor,
    FunctionDescriptor,
    ImportDescriptor,
    InterfaceDescriptor,
    ParameterDescriptor,
    ParsedStructure,
    ShallowStructure,
    StructuralRecord,
)

logger = logging.getLogger(__name__)


# ===================================================================
# Abstract Analyzer Interface + registry
# ===================================================================

class Analyzer(ABC):
    """Turns the content of one file into a :class:`StructuralRecord`."""

    def __init__(self, language: str) -> None:
        self.language = language

    @abstractmethod
    def parse(self, content: str, file_path: str = "") -> StructuralRecord:
        """Analyze *content*; raise on unrecoverable input."""
        ...


_ANALYZERS: Dict[str, Type[Analyzer]] = {}
_INSTANCES: Dict[str, Analyzer] = {}


def register_analyzer(*languages: str) -> Callable[[Type[Analyzer]], Type[Analyzer]]:
    """Decorator to register an analyzer class for one or more languages."""

    def decorator(cls: Type[Analyzer]) -> Type[Analyzer]:
        for language in languages:
            _ANALYZERS[language] = cls
        return cls

    return decorator


def get_analyzer(language: str) -> Analyzer:
    """Return the analyzer for *language*, or the universal fallback."""
    if language not in _INSTANCES:
        cls = _ANALYZERS.get(language, UniversalAnalyzer)
        _INSTANCES[language] = cls(language)
        logger.debug("Using %s for language '%s'", cls.__name__, language)
    return _INSTANCES[language]


def registered_languages() -> List[str]:
    return sorted(_ANALYZERS)


# ===================================================================
# Python (stdlib ast)
# ===================================================================

_PY_BRANCHES = (ast.If, ast.For, ast.AsyncFor, ast.While, ast.IfExp, ast.Match)
_INTERFACE_BASES = {"Protocol", "ABC", "typing.Protocol", "abc.ABC"}


def _py_complexity(node: ast.AST) -> int:
    return 1 + sum(isinstance(child, _PY_BRANCHES) for child in ast.walk(node))


def _py_parameters(args: ast.arguments, skip_bound: bool) -> List[ParameterDescriptor]:
    positional = list(args.posonlyargs) + list(args.args)
    n_defaults = len(args.defaults)
    params: List[ParameterDescriptor] = []
    for index, arg in enumerate(positional):
        if skip_bound and index == 0 and arg.arg in ("self", "cls"):
            continue
        has_default = index >= len(positional) - n_defaults
        params.append(ParameterDescriptor(
            name=arg.arg,
            annotation=ast.unparse(arg.annotation) if arg.annotation else "",
            optional=has_default,
        ))
    if args.vararg:
        params.append(ParameterDescriptor(name=f"*{args.vararg.arg}", optional=True))
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        params.append(ParameterDescriptor(
            name=arg.arg,
            annotation=ast.unparse(arg.annotation) if arg.annotation else "",
            optional=default is not None,
        ))
    if args.kwarg:
        params.append(ParameterDescriptor(name=f"**{args.kwarg.arg}", optional=True))
    return params


def _py_function(
    node: Union[ast.FunctionDef, ast.AsyncFunctionDef], is_method: bool = False
) -> FunctionDescriptor:
    return FunctionDescriptor(
        name=node.name,
        parameters=_py_parameters(node.args, skip_bound=is_method),
        return_type=ast.unparse(node.returns) if node.returns else "",
        is_async=isinstance(node, ast.AsyncFunctionDef),
        complexity=_py_complexity(node),
        line=node.lineno,
    )


class _ModuleVisitor(ast.NodeVisitor):
    """Collects top-level definitions and every import of a module."""

    def __init__(self) -> None:
        self.functions: List[FunctionDescriptor] = []
        self.classes: List[ClassDescriptor] = []
        self.interfaces: List[InterfaceDescriptor] = []
        self.imports: List[ImportDescriptor] = []
        self.dunder_all: Optional[List[str]] = None

    def visit_Module(self, node: ast.Module) -> None:
        for stmt in node.body:
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self.functions.append(_py_function(stmt))
            elif isinstance(stmt, ast.ClassDef):
                self._visit_class(stmt)
            elif isinstance(stmt, ast.Assign):
                self._maybe_dunder_all(stmt)
        self.generic_visit(node)

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            self.imports.append(ImportDescriptor(
                module=alias.name,
                names=[alias.asname or alias.name],
                is_external=True,
                line=node.lineno,
            ))

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        module = "." * node.level + (node.module or "")
        self.imports.append(ImportDescriptor(
            module=module,
            names=[alias.name for alias in node.names],
            is_external=node.level == 0,
            line=node.lineno,
        ))

    def _visit_class(self, node: ast.ClassDef) -> None:
        bases = [ast.unparse(b) for b in node.bases]
        methods = [
            _py_function(stmt, is_method=True)
            for stmt in node.body
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef))
        ]
        if _INTERFACE_BASES.intersection(bases):
            members = [m.name for m in methods]
            members += [
                ast.unparse(stmt.target)
                for stmt in node.body
                if isinstance(stmt, ast.AnnAssign)
            ]
            self.interfaces.append(InterfaceDescriptor(name=node.name, members=members, line=node.lineno))
            return
        self.classes.append(ClassDescriptor(name=node.name, bases=bases, methods=methods, line=node.lineno))

    def _maybe_dunder_all(self, node: ast.Assign) -> None:
        if not any(isinstance(t, ast.Name) and t.id == "__all__" for t in node.targets):
            return
        if isinstance(node.value, (ast.List, ast.Tuple)):
            self.dunder_all = [
                elt.value for elt in node.value.elts
                if isinstance(elt, ast.Constant) and isinstance(elt.value, str)
            ]


@register_analyzer("python")
class PythonAnalyzer(Analyzer):
    """Structured analyzer backed by Python's own compiler front end."""

    def parse(self, content: str, file_path: str = "") -> StructuralRecord:
        tree = ast.parse(content, filename=file_path or "<unknown>")
        visitor = _ModuleVisitor()
        visitor.visit(tree)

        if visitor.dunder_all is not None:
            exported: Set[str] = set(visitor.dunder_all)
        else:
            exported = {
                d.name
                for d in (*visitor.functions, *visitor.classes, *visitor.interfaces)
                if not d.name.startswith("_")
            }

        exports: List[ExportDescriptor] = []
        for kind, items in (
            ("function", visitor.functions),
            ("class", visitor.classes),
            ("interface", visitor.interfaces),
        ):
            for item in items:
                item.is_exported = item.name in exported
                if item.is_exported:
                    exports.append(ExportDescriptor(name=item.name, kind=kind))
        known = {e.name for e in exports}
        exports.extend(ExportDescriptor(name=n) for n in sorted(exported - known))

        return ParsedStructure(
            file_path=file_path,
            language=self.language,
            functions=visitor.functions,
            classes=visitor.classes,
            interfaces=visitor.interfaces,
            imports=visitor.imports,
            exports=exports,
            complexity=_py_complexity(tree),
        )


# ===================================================================
# TypeScript / TSX (Tree-sitter)
# ===================================================================

_TS_BRANCHES = {
    "if_statement", "for_statement", "for_in_statement", "while_statement",
    "do_statement", "switch_statement", "ternary_expression",
}
_TS_FUNCTION_VALUES = {"arrow_function", "function", "function_expression"}


def _text(node: Any) -> str:
    return node.text.decode("utf-8", errors="replace") if node is not None else ""


def _first_child(node: Any, *types: str) -> Any:
    for child in node.children:
        if child.type in types:
            return child
    return None


def _iter_nodes(node: Any) -> Iterable[Any]:
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def _ts_complexity(node: Any) -> int:
    return 1 + sum(1 for n in _iter_nodes(node) if n.type in _TS_BRANCHES)


def _is_relative_specifier(spec: str) -> bool:
    return spec.startswith(".") or spec.startswith("/")


@register_analyzer("typescript", "tsx")
class TypeScriptAnalyzer(Analyzer):
    """Structured analyzer for TypeScript sources built on tree-sitter-typescript."""

    def __init__(self, language: str) -> None:
        super().__init__(language)
        if language == "tsx":
            ts_lang = Language(tree_sitter_typescript.language_tsx())
        else:
            ts_lang = Language(tree_sitter_typescript.language_typescript())
        self._parser = TSParser(ts_lang)

    def parse(self, content: str, file_path: str = "") -> StructuralRecord:
        tree = self._parser.parse(content.encode("utf-8"))
        root = tree.root_node
        if root.has_error:
            logger.debug("Tree-sitter recovered from syntax errors in %s", file_path)

        record = ParsedStructure(file_path=file_path, language=self.language)
        for child in root.children:
            self._visit_top_level(child, record, exported=False)
        record.complexity = _ts_complexity(root)
        return record

    # ------------------------------------------------------------------
    # Top-level statements
    # ------------------------------------------------------------------

    def _visit_top_level(self, node: Any, record: ParsedStructure, exported: bool) -> None:
        kind = node.type
        if kind == "import_statement":
            record.imports.append(self._import(node))
        elif kind == "export_statement":
            self._visit_export(node, record)
        elif kind in ("function_declaration", "generator_function_declaration"):
            record.functions.append(self._function(node, exported))
        elif kind in ("class_declaration", "abstract_class_declaration"):
            record.classes.append(self._class(node, exported))
        elif kind == "interface_declaration":
            record.interfaces.append(self._interface(node, exported))
        elif kind in ("lexical_declaration", "variable_declaration"):
            record.functions.extend(self._variable_functions(node, exported))

    def _visit_export(self, node: Any, record: ParsedStructure) -> None:
        is_default = any(c.type == "default" for c in node.children)
        source = node.child_by_field_name("source")
        declaration = node.child_by_field_name("declaration")

        if source is not None:
            spec = _text(source).strip("'\"`")
            clause = _first_child(node, "export_clause")
            specifiers = [s for s in clause.children if s.type == "export_specifier"] if clause is not None else []
            names = [_text(s.child_by_field_name("name")) for s in specifiers] or ["*"]
            record.imports.append(ImportDescriptor(
                module=spec, names=names,
                is_external=not _is_relative_specifier(spec),
                line=node.start_point[0] + 1,
            ))
            public = [_text(s.child_by_field_name("alias") or s.child_by_field_name("name")) for s in specifiers]
            record.exports.extend(ExportDescriptor(name=n, kind="reexport") for n in public or names)
            return

        if declaration is not None:
            before = (len(record.functions), len(record.classes), len(record.interfaces))
            self._visit_top_level(declaration, record, exported=True)
            for kind, items, start in (
                ("function", record.functions, before[0]),
                ("class", record.classes, before[1]),
                ("interface", record.interfaces, before[2]),
            ):
                for item in items[start:]:
                    record.exports.append(ExportDescriptor(name=item.name, kind=kind, is_default=is_default))
            if declaration.type in ("type_alias_declaration", "enum_declaration"):
                name = _text(declaration.child_by_field_name("name"))
                record.exports.append(ExportDescriptor(name=name, kind="type"))
            elif declaration.type in ("lexical_declaration", "variable_declaration"):
                functions = {f.name for f in record.functions[before[0]:]}
                for declarator in declaration.children:
                    if declarator.type != "variable_declarator":
                        continue
                    name = _text(declarator.child_by_field_name("name"))
                    if name not in functions:
                        record.exports.append(ExportDescriptor(name=name, kind="variable"))
            return

        clause = _first_child(node, "export_clause")
        if clause is not None:
            for spec in clause.children:
                if spec.type == "export_specifier":
                    alias = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
                    record.exports.append(ExportDescriptor(name=_text(alias)))
        elif is_default:
            value = node.child_by_field_name("value")
            name = _text(value) if value is not None and value.type == "identifier" else "default"
            record.exports.append(ExportDescriptor(name=name, kind="default", is_default=True))

    # ------------------------------------------------------------------
    # Descriptors
    # ------------------------------------------------------------------

    def _import(self, node: Any) -> ImportDescriptor:
        source = node.child_by_field_name("source") or _first_child(node, "string")
        spec = _text(source).strip("'\"`")
        names: List[str] = []
        clause = _first_child(node, "import_clause")
        if clause is not None:
            for child in clause.children:
                if child.type == "identifier":
                    names.append(_text(child))
                elif child.type == "namespace_import":
                    names.append("*")
                elif child.type == "named_imports":
                    for item in child.children:
                        if item.type == "import_specifier":
                            names.append(_text(item.child_by_field_name("name")))
        return ImportDescriptor(
            module=spec,
            names=names,
            is_external=not _is_relative_specifier(spec),
            line=node.start_point[0] + 1,
        )

    def _parameters(self, params_node: Any) -> List[ParameterDescriptor]:
        params: List[ParameterDescriptor] = []
        if params_node is None:
            return params
        for child in params_node.children:
            if child.type in ("required_parameter", "optional_parameter", "rest_parameter"):
                pattern = child.child_by_field_name("pattern") or _first_child(
                    child, "identifier", "object_pattern", "array_pattern"
                )
                annotation = _first_child(child, "type_annotation")
                params.append(ParameterDescriptor(
                    name=_text(pattern),
                    annotation=_text(annotation).lstrip(":").strip(),
                    optional=child.type != "required_parameter"
                    or child.child_by_field_name("value") is not None,
                ))
            elif child.type == "identifier":
                params.append(ParameterDescriptor(name=_text(child)))
        return params

    def _function(self, node: Any, exported: bool, name: str = "") -> FunctionDescriptor:
        return_type = node.child_by_field_name("return_type")
        single = node.child_by_field_name("parameter")
        if single is not None:
            parameters = [ParameterDescriptor(name=_text(single))]
        else:
            parameters = self._parameters(node.child_by_field_name("parameters"))
        return FunctionDescriptor(
            name=name or _text(node.child_by_field_name("name")),
            parameters=parameters,
            return_type=_text(return_type).lstrip(":").strip(),
            is_exported=exported,
            is_async=any(c.type == "async" for c in node.children),
            complexity=_ts_complexity(node),
            line=node.start_point[0] + 1,
        )

    def _variable_functions(self, node: Any, exported: bool) -> List[FunctionDescriptor]:
        found: List[FunctionDescriptor] = []
        for declarator in node.children:
            if declarator.type != "variable_declarator":
                continue
            value = declarator.child_by_field_name("value")
            if value is not None and value.type in _TS_FUNCTION_VALUES:
                name = _text(declarator.child_by_field_name("name"))
                found.append(self._function(value, exported, name=name))
        return found

    def _class(self, node: Any, exported: bool) -> ClassDescriptor:
        bases: List[str] = []
        heritage = _first_child(node, "class_heritage")
        if heritage is not None:
            for clause in heritage.children:
                if clause.type in ("extends_clause", "implements_clause"):
                    bases.extend(
                        _text(c) for c in clause.named_children
                        if c.type not in ("type_arguments",)
                    )
        methods: List[FunctionDescriptor] = []
        body = node.child_by_field_name("body")
        if body is not None:
            for member in body.children:
                if member.type == "method_definition":
                    methods.append(self._function(member, exported=False))
        return ClassDescriptor(
            name=_text(node.child_by_field_name("name")),
            bases=bases,
            methods=methods,
            is_exported=exported,
            line=node.start_point[0] + 1,
        )

    def _interface(self, node: Any, exported: bool) -> InterfaceDescriptor:
        members: List[str] = []
        body = node.child_by_field_name("body")
        if body is not None:
            for member in body.named_children:
                name = member.child_by_field_name("name")
                if name is not None:
                    members.append(_text(name))
        return InterfaceDescriptor(
            name=_text(node.child_by_field_name("name")),
            members=members,
            is_exported=exported,
            line=node.start_point[0] + 1,
        )


# ===================================================================
# Shallow analyzers
# ===================================================================

@register_analyzer("javascript", "java", "csharp", "go", "rust")
class ShallowAnalyzer(Analyzer):
    """Reports the content length only; no structure is extracted yet."""

    def parse(self, content: str, file_path: str = "") -> StructuralRecord:
        return ShallowStructure(file_path=file_path, language=self.language, length=len(content))


class UniversalAnalyzer(ShallowAnalyzer):
    """Fallback for extensions without a language bucket."""
