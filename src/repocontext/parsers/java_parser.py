"""Java parser using tree-sitter."""

from typing import Optional

from ..models.source import SourceClass, SourceField, SourceMethod
from .base import BaseParser


_TYPE_DECLARATIONS = {
    "class_declaration": "class",
    "interface_declaration": "interface",
    "enum_declaration": "enum",
    "record_declaration": "record",
}

_ANNOTATION_NODES = ("marker_annotation", "annotation")


class JavaParser(BaseParser):
    """Parser for Java source files using tree-sitter."""

    @property
    def language(self) -> str:
        return "java"

    @property
    def file_extensions(self) -> list[str]:
        return [".java"]

    def _build_parser(self):
        try:
            import tree_sitter_java as tsjava
            from tree_sitter import Language, Parser
        except ImportError as e:
            raise ImportError(
                "tree-sitter-java is required. Install with: pip install tree-sitter-java"
            ) from e

        return Parser(Language(tsjava.language()))

    def parse_source(self, source_code: str, file_path: str) -> list[SourceClass]:
        """Extract class, interface, enum and record declarations."""
        tree = self._get_parser().parse(bytes(source_code, "utf-8"))
        lines = source_code.split("\n")
        classes: list[SourceClass] = []
        self._collect_types(tree.root_node, lines, file_path, classes)
        return classes

    def _collect_types(self, node, lines: list[str], file_path: str, classes: list[SourceClass]):
        """Recursively collect type declarations, nested ones included."""
        kind = _TYPE_DECLARATIONS.get(node.type)
        if kind:
            source_class = self._build_class(node, kind, lines, file_path)
            if source_class:
                classes.append(source_class)

        for child in node.children:
            self._collect_types(child, lines, file_path, classes)

    def _build_class(self, node, kind: str, lines: list[str], file_path: str) -> Optional[SourceClass]:
        name = self._text(node.child_by_field_name("name"))
        if not name:
            return None

        annotations, annotation_args, _ = self._read_modifiers(node)
        start_line = node.start_point[0] + 1
        end_line = node.end_point[0] + 1

        source_class = SourceClass(
            name=name,
            kind=kind,
            file_path=file_path,
            language=self.language,
            start_line=start_line,
            end_line=end_line,
            annotations=annotations,
            annotation_args=annotation_args,
            superclass=self._superclass(node),
            interfaces=self._interfaces(node),
            docstring=self._extract_javadoc(node, lines),
            content="\n".join(lines[start_line - 1 : end_line]),
        )

        body = node.child_by_field_name("body")
        if body is not None:
            for member in self._body_members(body):
                if member.type in ("field_declaration", "constant_declaration"):
                    source_class.fields.extend(self._build_fields(member))
                elif member.type in ("method_declaration", "constructor_declaration"):
                    source_class.methods.append(self._build_method(member, lines, kind == "interface"))

        return source_class

    @staticmethod
    def _body_members(body) -> list:
        members = []
        for child in body.children:
            if child.type == "enum_body_declarations":
                members.extend(child.children)
            else:
                members.append(child)
        return members

    def _read_modifiers(self, node) -> tuple[list[str], dict[str, str], list[str]]:
        """Return (annotation names, annotation argument text, keyword modifiers)."""
        annotations: list[str] = []
        annotation_args: dict[str, str] = {}
        keywords: list[str] = []

        for child in node.children:
            if child.type != "modifiers":
                continue
            for modifier in child.children:
                if modifier.type in _ANNOTATION_NODES:
                    name = self._text(modifier.child_by_field_name("name")).split(".")[-1]
                    annotations.append(name)
                    arguments = modifier.child_by_field_name("arguments")
                    if arguments is not None:
                        annotation_args[name] = self._text(arguments)
                else:
                    keywords.append(self._text(modifier))

        return annotations, annotation_args, keywords

    def _superclass(self, node) -> Optional[str]:
        superclass = node.child_by_field_name("superclass")
        if superclass is None or not superclass.named_children:
            return None
        return self._text(superclass.named_children[-1])

    def _interfaces(self, node) -> list[str]:
        interfaces = []
        for child in node.children:
            if child.type in ("super_interfaces", "extends_interfaces"):
                for type_list in child.named_children:
                    interfaces.extend(self._text(t) for t in type_list.named_children)
        return interfaces

    def _build_fields(self, node) -> list[SourceField]:
        annotations, annotation_args, keywords = self._read_modifiers(node)
        field_type = self._text(node.child_by_field_name("type"))

        fields = []
        for declarator in node.children_by_field_name("declarator"):
            value = declarator.child_by_field_name("value")
            fields.append(
                SourceField(
                    name=self._text(declarator.child_by_field_name("name")),
                    type=field_type,
                    annotations=annotations,
                    annotation_args=annotation_args,
                    modifiers=keywords,
                    value=self._text(value) if value is not None else None,
                    line=node.start_point[0] + 1,
                )
            )
        return fields

    def _build_method(self, node, lines: list[str], in_interface: bool) -> SourceMethod:
        annotations, _, keywords = self._read_modifiers(node)
        if in_interface and not {"public", "private", "protected"} & set(keywords):
            keywords = ["public", *keywords]

        parameters = []
        params_node = node.child_by_field_name("parameters")
        if params_node is not None:
            for param in params_node.named_children:
                if param.type in ("formal_parameter", "spread_parameter"):
                    param_type = self._text(param.child_by_field_name("type")) or self._text(param.named_children[0])
                    param_name = self._text(param.child_by_field_name("name")) or self._text(param.named_children[-1])
                    parameters.append(f"{param_type} {param_name}".strip())

        start_line = node.start_point[0] + 1
        end_line = node.end_point[0] + 1
        return_type = node.child_by_field_name("type")

        return SourceMethod(
            name=self._text(node.child_by_field_name("name")),
            return_type=self._text(return_type) if return_type is not None else None,
            parameters=parameters,
            modifiers=keywords,
            annotations=annotations,
            is_constructor=node.type == "constructor_declaration",
            line=start_line,
            end_line=end_line,
            content="\n".join(lines[start_line - 1 : end_line]),
        )

    def _extract_javadoc(self, node, lines: list[str]) -> Optional[str]:
        """Extract Javadoc comment preceding a node."""
        start_line = node.start_point[0]
        if start_line == 0:
            return None

        doc_lines = []
        in_javadoc = False

        for i in range(start_line - 1, max(start_line - 30, -1), -1):
            line = lines[i].strip()

            if line.endswith("*/"):
                in_javadoc = True
                doc_lines.insert(0, line)
            elif in_javadoc:
                doc_lines.insert(0, line)
                if line.startswith("/**"):
                    break
            elif line and not line.startswith("@"):
                break

        cleaned = []
        for line in doc_lines:
            line = line.removeprefix("/**").removesuffix("*/").strip().removeprefix("*").strip()
            if line:
                cleaned.append(line)
        return "\n".join(cleaned) if cleaned else None
