"""
Parsed source structures.

Parsers reduce a source file to the class-level facts the extractors
need: annotations/decorators, fields with their annotations, and method
signatures. Line numbers are 1-indexed.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SourceField:
    """A field (Java) or class attribute (Python).

    ``value`` holds the initializer source, e.g. ``Column(Integer, primary_key=True)``.
    """

    name: str
    type: str
    annotations: list[str] = field(default_factory=list)
    annotation_args: dict[str, str] = field(default_factory=dict)
    modifiers: list[str] = field(default_factory=list)
    value: Optional[str] = None
    line: int = 0

    def has_annotation(self, *names: str) -> bool:
        return any(a in names for a in self.annotations)


@dataclass
class SourceMethod:
    """A method or function defined on a class."""

    name: str
    return_type: Optional[str] = None
    parameters: list[str] = field(default_factory=list)
    modifiers: list[str] = field(default_factory=list)
    annotations: list[str] = field(default_factory=list)
    is_constructor: bool = False
    line: int = 0
    end_line: int = 0
    content: str = ""

    @property
    def is_public(self) -> bool:
        return "public" in self.modifiers


@dataclass
class SourceClass:
    """
    A class, interface or enum declaration.

    Attributes:
        name: Simple class name
        kind: "class", "interface", "enum" or "record"
        file_path: Path of the declaring file
        annotations: Annotation names without '@' (decorators for Python)
        annotation_args: Raw argument text per annotation, e.g. {"Table": '(name = "orders")'}
        superclass: Extended class, if any
        interfaces: Implemented interfaces (base classes for Python)
    """

    name: str
    kind: str
    file_path: str
    language: str
    start_line: int = 0
    end_line: int = 0
    annotations: list[str] = field(default_factory=list)
    annotation_args: dict[str, str] = field(default_factory=dict)
    superclass: Optional[str] = None
    interfaces: list[str] = field(default_factory=list)
    fields: list[SourceField] = field(default_factory=list)
    methods: list[SourceMethod] = field(default_factory=list)
    docstring: Optional[str] = None
    content: str = ""

    def has_annotation(self, *names: str) -> bool:
        return any(a in names for a in self.annotations)

    @property
    def bases(self) -> list[str]:
        """Superclass followed by interfaces."""
        return ([self.superclass] if self.superclass else []) + self.interfaces
