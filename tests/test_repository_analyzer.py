"""
Tests for the repository analyzer and the source tree it scans.

Tests cover:
- Language detection and ignored directories
- Framework fingerprinting from manifests
- Custom component discovery and reference counting
- Configuration namespace detection

Author: RepoContext Team
"""

from repocontext.extractors.repository_analyzer import (
    RepositoryAnalyzer,
    identify_framework,
    infer_usage,
)
from repocontext.models.knowledge import FrameworkFingerprint
from repocontext.services.source_tree import SourceTree


POM = """<project xmlns="http://maven.apache.org/POM/4.0.0">
  <dependencies>
    <dependency>
      <groupId>org.springframework.boot</groupId>
      <artifactId>spring-boot-starter-web</artifactId>
      <version>3.2.1</version>
    </dependency>
    <dependency>
      <groupId>com.company.platform</groupId>
      <artifactId>r1-core</artifactId>
      <version>2.3.0</version>
    </dependency>
  </dependencies>
</project>
"""

PAYMENT_CLIENT = """package com.company.payments;

public class PaymentClient {
    public PaymentResponse charge(PaymentRequest request) {
        return null;
    }
}
"""

CHECKOUT_SERVICE = """package com.company.payments;

public class CheckoutService {
    private final PaymentClient paymentClient;

    public CheckoutService(PaymentClient paymentClient) {
        this.paymentClient = paymentClient;
    }
}
"""

APPLICATION_YML = """company_payments:
  gateway-url: https://pay.example.com
server:
  port: 8080
---
ginger:
  enabled: true
"""


class TestSourceTree:
    """Tests for SourceTree."""

    def test_ignored_directories(self, config, make_repo):
        root = make_repo({
            "src/App.java": "class App {}",
            "node_modules/lib/index.js": "",
            "target/classes/App.class": "",
        })

        tree = SourceTree(root)

        assert [tree.relative(f) for f in tree.files] == ["src/App.java"]

    def test_matching_is_case_insensitive(self, config, make_repo):
        root = make_repo({"docs/Design.MD": "x", "README.md": "y", "src/App.java": ""})

        tree = SourceTree(root)

        assert [tree.relative(f) for f in tree.matching(["docs/*.md"])] == ["docs/Design.MD"]
        assert [tree.relative(f) for f in tree.matching(["readme.md"])] == ["README.md"]

    def test_unreadable_files_are_skipped(self, config, make_repo):
        root = make_repo({"notes.txt": "hello"})
        (root / "blob.bin").write_bytes(b"\xff\xfe\xfa")

        tree = SourceTree(root)

        assert [tree.relative(path) for path, _ in tree.texts(tree.files)] == ["notes.txt"]


class TestFrameworkDetection:
    """Tests for fingerprinting."""

    def test_identify_framework(self):
        assert identify_framework("spring-boot-starter-web") == "Spring Boot"
        assert identify_framework("fastapi") == "FastAPI"
        assert identify_framework("left-pad") == "Unknown"

    def test_custom_framework_wins(self, config, make_repo):
        root = make_repo({"pom.xml": POM})

        fingerprint = RepositoryAnalyzer().analyze(root)

        assert fingerprint.is_custom is True
        assert fingerprint.framework_type == "r1-core"
        assert fingerprint.framework_version == "2.3.0"
        assert fingerprint.package_name == "com.company.platform:r1-core"
        assert fingerprint.dependency_file == "pom.xml"
        assert fingerprint.metadata["custom_dependencies"] == ["com.company.platform:r1-core"]
        assert len(fingerprint.dependencies) == 2

    def test_known_framework(self, config, make_repo):
        root = make_repo({"package.json": '{"dependencies": {"left-pad": "1.0.0", "react": "^18.2.0"}}'})

        fingerprint = RepositoryAnalyzer().analyze(root)

        assert fingerprint.is_custom is False
        assert fingerprint.framework_type == "React"
        assert fingerprint.framework_version == "^18.2.0"

    def test_no_manifest(self, config, make_repo):
        root = make_repo({"main.go": "package main"})

        fingerprint = RepositoryAnalyzer().analyze(root)

        assert fingerprint.framework_type == "Unknown"
        assert fingerprint.package_name is None
        assert fingerprint.detected_languages == {"go": 1}

    def test_languages(self, config, make_repo):
        root = make_repo({
            "a/One.java": "class One {}",
            "a/Two.java": "class Two {}",
            "scripts/tool.py": "",
            "node_modules/x/index.js": "",
        })

        fingerprint = RepositoryAnalyzer().analyze(root)

        assert fingerprint.detected_languages == {"java": 2, "python": 1}
        assert fingerprint.primary_language == "java"
        assert RepositoryAnalyzer.primary_language(FrameworkFingerprint(framework_type="Unknown")) == "java"


class TestCustomComponents:
    """Tests for component discovery."""

    def test_components_counted_and_sorted(self, config, make_repo):
        root = make_repo({
            "src/main/java/com/company/payments/PaymentClient.java": PAYMENT_CLIENT,
            "src/main/java/com/company/payments/CheckoutService.java": CHECKOUT_SERVICE,
        })

        components = RepositoryAnalyzer().analyze(root).custom_components

        assert [(c.name, c.occurrence_count) for c in components] == [
            ("PaymentClient", 3),
            ("CheckoutService", 2),
        ]
        assert components[0].usage == "HTTP client wrapper"
        assert components[0].file_path == "src/main/java/com/company/payments/PaymentClient.java"
        assert components[1].usage == "Service layer"

    def test_python_components(self, config, make_repo):
        root = make_repo({
            "app/repositories.py": "class OrderRepository:\n    pass\n",
            "app/views.py": "from app.repositories import OrderRepository\n\nrepo = OrderRepository()\n",
        })

        components = RepositoryAnalyzer().analyze(root).custom_components

        assert components[0].name == "OrderRepository"
        assert components[0].usage == "Data access layer"
        assert components[0].occurrence_count == 3

    def test_infer_usage(self):
        assert infer_usage("BillingController") == "REST controller"
        assert infer_usage("Money") == "Unknown"


class TestConfigNamespaces:
    """Tests for application*.yml namespace detection."""

    def test_in_house_keys(self, config, make_repo):
        root = make_repo({"src/main/resources/application-prod.yml": APPLICATION_YML})

        fingerprint = RepositoryAnalyzer().analyze(root)

        assert fingerprint.config_namespaces == ["company_payments.*", "ginger.*"]

    def test_malformed_yaml(self, config, make_repo):
        root = make_repo({"application.yml": "company_x: [unclosed\n"})

        assert RepositoryAnalyzer().analyze(root).config_namespaces == []
