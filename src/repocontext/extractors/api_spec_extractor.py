"""
API Spec Extractor - APIs the Repository Provides or Consumes.

OpenAPI/Swagger documents are authoritative. When a repository has none,
outbound HTTP calls with literal URLs (RestTemplate, WebClient) are
grouped by host into inferred specifications, optionally named and
described by the LLM.

Author: RepoContext Team
"""

import re
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

from ..constants import ExtractionStage
from ..logging import get_logger, log_operation_end, log_operation_start
from ..models.knowledge import APIEndpoint, APISpecification
from ..parsers import OpenAPIParser
from ..parsers.openapi_parser import OPENAPI_FILE_PATTERNS
from ..services.source_tree import SourceTree
from .base import BaseExtractor


logger = get_logger(__name__)


INFERRED_SOURCE = "inferred from code"
MAX_PROMPT_CALLS = 10

# Client method fragment -> HTTP method
HTTP_CALL_METHODS = [
    ("postForEntity", "POST"),
    ("postForObject", "POST"),
    ("getForEntity", "GET"),
    ("getForObject", "GET"),
    (".exchange", "UNKNOWN"),
    (".uri(", "UNKNOWN"),
]

_STRING_LITERAL = re.compile(r"""["']([^"']+)["']""")
_BASE_URL = re.compile(r"""(https?://[^/\s"']+)""")
_EXCHANGE_METHOD = re.compile(r"HttpMethod\.(GET|POST|PUT|DELETE|PATCH)")

SYSTEM_PROMPT = "You are an API expert analyzing HTTP client code. Return valid JSON only."

USER_PROMPT = """Analyze these HTTP client usages to infer API behavior:

Base URL: {base_url}

Calls found:
{calls}

Infer:
1. API name (what service is this?)
2. API version (v1, v2 in paths?)
3. Authentication method (from headers in code)
4. A one-sentence description of the API

Output JSON:
{{
  "api_name": "string",
  "version": "string or null",
  "authentication": "string",
  "description": "string"
}}"""


class APISpecExtractor(BaseExtractor):
    """Extract API specifications from OpenAPI documents or client code."""

    def __init__(self, config=None, llm=None):
        super().__init__(config, llm)
        self.openapi_parser = OpenAPIParser()

    @property
    def stage(self) -> str:
        return ExtractionStage.API.value

    def extract(self, repo_path: Union[Path, SourceTree]) -> list[APISpecification]:
        tree = self._tree(repo_path)
        start_time = log_operation_start(logger, "API specification extraction", repo_path=str(tree.root))

        specs = self.extract_from_openapi(tree)
        if not specs:
            specs = self.extract_from_code(tree)

        log_operation_end(logger, "API specification extraction", start_time, apis=len(specs))
        return specs

    def extract_from_openapi(self, tree: SourceTree) -> list[APISpecification]:
        spec_files = tree.matching(OPENAPI_FILE_PATTERNS)
        logger.info("Found OpenAPI specification files", extra={"count": len(spec_files)})

        specs = []
        for file_path in spec_files:
            spec = self.openapi_parser.parse_spec(file_path, tree.relative(file_path))
            if spec:
                specs.append(spec)
        return specs

    # ------------------------------------------------------------------
    # Code inference
    # ------------------------------------------------------------------

    def extract_from_code(self, tree: SourceTree) -> list[APISpecification]:
        calls = self.find_http_calls(tree)
        logger.info("Found HTTP calls in code", extra={"count": len(calls)})

        grouped: dict[str, list[dict]] = {}
        for call in calls:
            base_url = call["base_url"]
            if base_url:
                grouped.setdefault(base_url, []).append(call)

        return [self.infer_spec(base_url, group) for base_url, group in grouped.items()]

    def find_http_calls(self, tree: SourceTree) -> list[dict]:
        """Client calls with a literal URL argument."""
        calls = []
        for file_path, content in tree.texts(tree.with_suffix(".java")):
            if "RestTemplate" not in content and "WebClient" not in content:
                continue

            lines = content.split("\n")
            for index, line in enumerate(lines):
                method = self._http_method(line)
                if method is None:
                    continue
                url_match = _STRING_LITERAL.search(line)
                if not url_match:
                    continue

                url = url_match.group(1)
                context = "\n".join(lines[max(0, index - 10) : index + 10])
                calls.append(
                    {
                        "file": tree.relative(file_path),
                        "line": index + 1,
                        "method": method,
                        "url": url,
                        "base_url": self._base_url(url, context),
                    }
                )
        return calls

    @staticmethod
    def _http_method(line: str) -> Optional[str]:
        for fragment, method in HTTP_CALL_METHODS:
            if fragment in line:
                if method == "UNKNOWN":
                    declared = _EXCHANGE_METHOD.search(line)
                    return declared.group(1) if declared else method
                return method
        return None

    @staticmethod
    def _base_url(url: str, context: str) -> Optional[str]:
        parsed = urlparse(url)
        if parsed.scheme in ("http", "https") and parsed.netloc:
            return f"{parsed.scheme}://{parsed.netloc}"
        # Relative path: look for a base URL constant nearby
        found = _BASE_URL.search(context)
        return found.group(1) if found else None

    def infer_spec(self, base_url: str, calls: list[dict]) -> APISpecification:
        endpoints = []
        seen = set()
        for call in calls:
            parsed = urlparse(call["url"])
            path = parsed.path if parsed.netloc else call["url"]
            if (call["method"], path) in seen:
                continue
            seen.add((call["method"], path))
            endpoints.append(APIEndpoint(method=call["method"], path=path or "/"))

        spec = APISpecification(
            api_name=urlparse(base_url).netloc or "Unknown API",
            base_url=base_url,
            endpoints=endpoints,
            source=INFERRED_SOURCE,
        )

        if not self.llm.is_available:
            return spec

        calls_text = "\n".join(f"Method: {c['method']}\nURL: {c['url']}\n" for c in calls[:MAX_PROMPT_CALLS])
        result = self.llm.complete_json(SYSTEM_PROMPT, USER_PROMPT.format(base_url=base_url, calls=calls_text))
        if result:
            spec.api_name = str(result.get("api_name") or spec.api_name)
            spec.version = str(result["version"]) if result.get("version") else None
            spec.authentication = str(result["authentication"]) if result.get("authentication") else None
            spec.description = str(result.get("description") or "")
        return spec
