"""Python parser using tree-sitter.

Class attributes become fields: annotated attributes use their annotation
as type, plain ``name = Call(...)`` assignments (Django/SQLAlchemy columns)
use the called name. Decorators are recorded as annotations and method
visibility follows the leading-underscore convention.
"""

from typing import Optional

from ..models.source import SourceClass, SourceField, SourceMethod
from .base import BaseParser


class PythonParser(BaseParser):
    """Parser for Python source files using tree-sitter."""

    @property
    def language(self) -> str:
        return "python"

    @property
    def file_extensions(self) -> list[str]:
        return [".py"]

    def _build_parser(self):
        try:
            import tree_sitter_python as tspython
            from tree_sitter import Language, Parser
        except ImportError as e:
            raise ImportError(
                "tree-sitter-python is required. Install with: pip install tree-sitter-python"
            ) from e

        return Parser(Language(tspython.language()))

    def parse_source(self, source_code: str, file_path: str) -> list[SourceClass]:
        tree = self._get_parser().parse(bytes(source_code, "utf-8"))
        lines = source_code.split("\n")
        classes: list[SourceClass] = []
        self._collect_classes(tree.root_node, lines, file_path, classes, decorators=[])
        return classes

    def _collect_classes(self, node, lines, file_path, classes, decorators: list[str]):
        if node.type == "decorated_definition":
            definition = node.child_by_field_name("definition")
            names = [self._decorator_name(d) for d in node.children if d.type == "decorator"]
            if definition is not None:
                self._collect_classes(definition, lines, file_path, classes, names)
            return

        if node.type == "class_definition":
            classes.append(self._build_class(node, lines, file_path, decorators))

        for child in node.children:
            self._collect_classes(child, lines, file_path, classes, decorators=[])

    def _decorator_name(self, decorator) -> str:
        expression = decorator.named_children[0] if decorator.named_children else None
        if expression is not None and expression.type == "call":
            expression = expression.child_by_field_name("function")
        return self._text(expression).split(".")[-1]

    def _build_class(self, node, lines: list[str], file_path: str, decorators: list[str]) -> SourceClass:
        bases = []
        superclasses = node.child_by_field_name("superclasses")
        if superclasses is not None:
            bases = [
                self._text(arg)
                for arg in superclasses.named_children
                if arg.type in ("identifier", "attribute", "subscript")
            ]

        start_line = node.start_point[0] + 1
        end_line = node.end_point[0] + 1
        source_class = SourceClass(
            name=self._text(node.child_by_field_name("name")),
            kind="class",
            file_path=file_path,
            language=self.language,
            start_line=start_line,
            end_line=end_line,
            annotations=decorators,
            superclass=bases[0] if bases else None,
            interfaces=bases[1:],
            content="\n".join(lines[start_line - 1 : end_line]),
        )

        body = node.child_by_field_name("body")
        if body is None:
            return source_class

        source_class.docstring = self._docstring(body)

        for statement in body.named_children:
            method_decorators: list[str] = []
            definition = statement
            if statement.type == "decorated_definition":
                method_decorators = [self._decorator_name(d) for d in statement.children if d.type == "decorator"]
                definition = statement.child_by_field_name("definition")

            if definition is None:
                continue
            if definition.type == "function_definition":
                source_class.methods.append(self._build_method(definition, lines, method_decorators))
            elif definition.type == "expression_statement":
                field = self._build_field(definition)
                if field:
                    source_class.fields.append(field)

        return source_class

    def _build_field(self, statement) -> Optional[SourceField]:
        assignment = statement.named_children[0] if statement.named_children else None
        if assignment is None or assignment.type != "assignment":
            return None

        left = assignment.child_by_field_name("left")
        if left is None or left.type != "identifier":
            return None

        annotation = assignment.child_by_field_name("type")
        right = assignment.child_by_field_name("right")

        if annotation is not None:
            field_type = self._text(annotation)
        elif right is not None and right.type == "call":
            field_type = self._text(right.child_by_field_name("function"))
        else:
            return None

        return SourceField(
            name=self._text(left),
            type=field_type,
            value=self._text(right) if right is not None else None,
            line=statement.start_point[0] + 1,
        )

    def _build_method(self, node, lines: list[str], decorators: list[str]) -> SourceMethod:
        name = self._text(node.child_by_field_name("name"))
        parameters = []
        params_node = node.child_by_field_name("parameters")
        if params_node is not None:
            parameters = [
                self._text(p) for p in params_node.named_children
                if self._text(p) not in ("self", "cls")
            ]

        return_type = node.child_by_field_name("return_type")
        start_line = node.start_point[0] + 1
        end_line = node.end_point[0] + 1

        return SourceMethod(
            name=name,
            return_type=self._text(return_type) if return_type is not None else None,
            parameters=parameters,
            modifiers=["private"] if name.startswith("_") else ["public"],
            annotations=decorators,
            is_constructor=name == "__init__",
            line=start_line,
            end_line=end_line,
            content="\n".join(lines[start_line - 1 : end_line]),
        )

    def _docstring(self, body) -> Optional[str]:
        first = body.named_children[0] if body.named_children else None
        if first is None or first.type != "expression_statement" or not first.named_children:
            return None
        literal = first.named_children[0]
        if literal.type != "string":
            return None
        return self._text(literal).strip("\"'").strip() or None
