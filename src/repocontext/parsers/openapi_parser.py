"""OpenAPI/Swagger Specification Parser.

This module turns OpenAPI (3.x) and Swagger (2.x) documents found in a
repository into APISpecification records.

Features:
- Supports OpenAPI 3.0, 3.1, and Swagger 2.0
- Extracts paths and methods with their JSON request/response schemas
- Maps declared security schemes to an authentication description
"""

import json
from pathlib import Path
from typing import Any, Optional

import yaml

from ..logging import get_logger
from ..models.knowledge import APIEndpoint, APISpecification


logger = get_logger(__name__)


# Spec files looked for anywhere in a repository
OPENAPI_FILE_PATTERNS = [
    "openapi*.yaml",
    "openapi*.yml",
    "openapi*.json",
    "swagger*.yaml",
    "swagger*.yml",
    "swagger*.json",
    "api-docs.yaml",
    "api-docs.json",
]

HTTP_METHODS = ["get", "post", "put", "delete", "patch"]

# securitySchemes key -> authentication description, first match wins
SECURITY_SCHEME_NAMES = [
    (("bearerAuth", "Bearer", "bearer"), "OAuth2 Bearer"),
    (("apiKey", "ApiKeyAuth", "api_key"), "API Key"),
    (("basicAuth", "basic"), "Basic Auth"),
]


class OpenAPIParser:
    """Parser for OpenAPI and Swagger specifications.

    Example:
        >>> parser = OpenAPIParser()
        >>> spec = parser.parse_spec(Path("docs/openapi.yaml"), "docs/openapi.yaml")
        >>> print(spec.api_name, len(spec.endpoints))
    """

    def parse_spec(self, spec_path: Path, source: str) -> Optional[APISpecification]:
        """Parse an OpenAPI/Swagger specification file.

        Args:
            spec_path: Path to the spec file
            source: Path recorded on the specification, relative to the repository

        Returns:
            The specification, or None when the file is not a valid spec
        """
        spec = self._load_spec(spec_path)
        if not spec:
            return None
        return self.parse_document(spec, source)

    def parse_document(self, spec: dict, source: str) -> Optional[APISpecification]:
        """Build a specification from an already-loaded document."""
        version = self._detect_version(spec)
        if not version:
            return None

        info = spec.get("info") or {}
        endpoints = []
        for path, path_item in (spec.get("paths") or {}).items():
            if not isinstance(path_item, dict):
                continue
            for method in HTTP_METHODS:
                operation = path_item.get(method)
                if isinstance(operation, dict):
                    endpoints.append(self._create_endpoint(method.upper(), str(path), operation))

        return APISpecification(
            api_name=info.get("title") or "Unknown API",
            base_url=self._base_url(spec, version),
            version=str(info["version"]) if info.get("version") is not None else None,
            description=info.get("description") or "",
            authentication=self._authentication(spec),
            endpoints=endpoints,
            source=source,
        )

    def _load_spec(self, spec_path: Path) -> Optional[dict]:
        """Load a spec file (YAML or JSON).

        Returns:
            Parsed spec dict or None on error
        """
        try:
            content = spec_path.read_text(encoding="utf-8")
            if spec_path.suffix in [".yaml", ".yml"]:
                loaded = yaml.safe_load(content)
            else:
                loaded = json.loads(content)
        except (OSError, UnicodeDecodeError, yaml.YAMLError, json.JSONDecodeError) as error:
            logger.debug("Skipping unreadable API spec", extra={"file_path": str(spec_path), "error": str(error)})
            return None
        return loaded if isinstance(loaded, dict) else None

    def _detect_version(self, spec: dict) -> Optional[str]:
        """Detect the OpenAPI/Swagger version."""
        # OpenAPI 3.x
        if "openapi" in spec:
            return str(spec["openapi"])

        # Swagger 2.x
        if "swagger" in spec:
            return str(spec["swagger"])

        return None

    def _base_url(self, spec: dict, version: str) -> Optional[str]:
        if version.startswith("2."):
            host = spec.get("host")
            if not host:
                return spec.get("basePath")
            scheme = (spec.get("schemes") or ["https"])[0]
            return f"{scheme}://{host}{spec.get('basePath', '')}"

        servers = spec.get("servers") or []
        if servers and isinstance(servers[0], dict):
            return servers[0].get("url")
        return None

    def _create_endpoint(self, method: str, path: str, operation: dict) -> APIEndpoint:
        return APIEndpoint(
            method=method,
            path=path,
            summary=operation.get("summary") or operation.get("description"),
            request_schema=self._json_schema(operation.get("requestBody")),
            response_schema=self._json_schema((operation.get("responses") or {}).get("200")),
        )

    @staticmethod
    def _json_schema(holder: Any) -> Optional[dict]:
        """The application/json schema of a request body or response."""
        if not isinstance(holder, dict):
            return None
        if isinstance(holder.get("schema"), dict):
            return holder["schema"]
        schema = ((holder.get("content") or {}).get("application/json") or {}).get("schema")
        return schema if isinstance(schema, dict) else None

    def _authentication(self, spec: dict) -> str:
        schemes = (spec.get("components") or {}).get("securitySchemes") or spec.get("securityDefinitions") or {}
        for names, description in SECURITY_SCHEME_NAMES:
            if any(name in schemes for name in names):
                return description

        # Fall back to the declared scheme types
        for scheme in schemes.values():
            if not isinstance(scheme, dict):
                continue
            if scheme.get("scheme") == "bearer" or scheme.get("type") == "oauth2":
                return "OAuth2 Bearer"
            if scheme.get("type") == "apiKey":
                return "API Key"
            if scheme.get("scheme") == "basic" or scheme.get("type") == "basic":
                return "Basic Auth"
        return "None"
