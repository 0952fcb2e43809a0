"""Source, manifest and API specification parsers."""

from .base import BaseParser
from .java_parser import JavaParser
from .manifest_parser import ManifestParser
from .openapi_parser import OpenAPIParser
from .python_parser import PythonParser

__all__ = [
    "BaseParser",
    "JavaParser",
    "ManifestParser",
    "OpenAPIParser",
    "PythonParser",
]
