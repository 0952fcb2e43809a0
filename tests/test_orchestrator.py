"""
Tests for the extraction orchestrator.

Tests cover:
- End-to-end extraction of a cloned repository
- Clone failures and unknown repositories
- Settled extractors: one failure yields a partial extraction
- Local extraction and optional code indexing
- Clone cleanup and cache invalidation

Git is mocked; "cloning" writes a small Spring project into the target.

Author: RepoContext Team
"""

from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from conftest import write_files
from repocontext.constants import ExtractionStatus
from repocontext.models.knowledge import Repository
from repocontext.services.extraction_orchestrator import (
    ExtractionError,
    ExtractionOrchestrator,
    StageResult,
    overall_status,
)
from repocontext.services.git_service import GitError


PROJECT = {
    "pom.xml": """<project>
  <dependencies>
    <dependency>
      <groupId>org.springframework.boot</groupId>
      <artifactId>spring-boot-starter-data-jpa</artifactId>
      <version>3.2.1</version>
    </dependency>
  </dependencies>
</project>
""",
    "src/main/java/com/acme/payments/Payment.java": """package com.acme.payments;

@Entity
public class Payment {
    @Id
    private Long id;

    @NotNull
    private BigDecimal amount;
}
""",
    "src/main/java/com/acme/payments/PaymentService.java": """package com.acme.payments;

@Service
public class PaymentService {
    private final PaymentRepository paymentRepository;

    public Payment charge(Payment payment) {
        return paymentRepository.save(payment);
    }
}
""",
    "src/main/java/com/acme/payments/PaymentRepository.java": """package com.acme.payments;

@Repository
public interface PaymentRepository extends JpaRepository<Payment, Long> {
}
""",
}


def fake_clone(url, target_dir, **kwargs):
    write_files(target_dir, PROJECT)
    return target_dir


@pytest.fixture
def git():
    service = MagicMock()
    service.clone.side_effect = fake_clone
    return service


@pytest.fixture
def orchestrator(config, store, git, no_llm):
    return ExtractionOrchestrator(store=store, config=config, git=git, llm=no_llm)


class TestOverallStatus:
    """Tests for overall_status."""

    def test_statuses(self):
        ok = StageResult(status="completed")
        failed = StageResult(status="failed")

        assert overall_status({"a": ok, "b": ok}) == ExtractionStatus.COMPLETED
        assert overall_status({"a": ok, "b": failed}) == ExtractionStatus.PARTIAL
        assert overall_status({"a": failed, "b": failed}) == ExtractionStatus.FAILED


class TestExtract:
    """Tests for ExtractionOrchestrator.extract."""

    def test_successful_extraction(self, orchestrator, store, repository, git, config):
        result = orchestrator.extract(repository.id)

        assert result.status == ExtractionStatus.COMPLETED
        assert set(result.stages) == {"repository_analysis", "architecture", "domain", "patterns", "api"}
        assert all(stage.status == "completed" for stage in result.stages.values())
        assert result.primary_language == "java"
        assert result.file_count == 3

        git.clone.assert_called_once()
        assert git.clone.call_args[0][1] == config.storage.clone_dir / repository.id
        git.cleanup.assert_called_once_with(config.storage.clone_dir / repository.id)

        stored = store.get_repository(repository.id)
        assert stored.extraction_status == ExtractionStatus.COMPLETED
        assert stored.primary_language == "java"
        assert store.get_fingerprint(repository.id).framework_type == "Spring Boot"
        assert [m.domain_name for m in store.get_domain_models(repository.id)] == ["Payment"]

    def test_logs_every_stage(self, orchestrator, store, repository):
        orchestrator.extract(repository.id)

        stages = {log.stage for log in store.get_extraction_logs(repository.id)}

        assert {"clone", "repository_analysis", "architecture", "domain", "patterns", "api"} <= stages

    def test_invalidates_cached_contexts(self, orchestrator, store, repository):
        store.put_cached_context(
            "stale", repository.id, {"enhanced_prompt": "old"},
            tokens_used=1, quality_score=0.5, expires_at=datetime.now() + timedelta(hours=1),
        )

        orchestrator.extract(repository.id)

        assert store.get_cached_context("stale") is None

    def test_clone_failure(self, orchestrator, store, repository, git):
        git.clone.side_effect = GitError("git clone failed: repository not found")

        result = orchestrator.extract(repository.id)

        assert result.status == ExtractionStatus.FAILED
        assert result.error == "git clone failed: repository not found"
        assert store.get_repository(repository.id).extraction_status == ExtractionStatus.FAILED
        git.cleanup.assert_called_once()

    def test_keep_clone(self, orchestrator, repository, git):
        orchestrator.extract(repository.id, keep_clone=True)

        git.cleanup.assert_not_called()

    def test_failing_extractor_is_partial(self, orchestrator, store, repository):
        orchestrator.domain = MagicMock()
        orchestrator.domain.extract.side_effect = RuntimeError("parser exploded")

        result = orchestrator.extract(repository.id)

        assert result.status == ExtractionStatus.PARTIAL
        assert result.stages["domain"].status == "failed"
        assert result.stages["domain"].error == "parser exploded"
        assert result.stages["architecture"].status == "completed"
        assert store.get_repository(repository.id).extraction_status == ExtractionStatus.PARTIAL

    def test_failing_analyzer_stops_pipeline(self, orchestrator, store, repository):
        orchestrator.analyzer = MagicMock()
        orchestrator.analyzer.analyze.side_effect = RuntimeError("no disk")

        result = orchestrator.extract(repository.id)

        assert result.status == ExtractionStatus.FAILED
        assert list(result.stages) == ["repository_analysis"]
        assert result.error == "no disk"

    def test_unexpected_error_marks_failed_and_cleans_up(self, orchestrator, store, repository, git):
        with patch.object(store, "clear_context_cache", side_effect=RuntimeError("database is locked")):
            with pytest.raises(RuntimeError):
                orchestrator.extract(repository.id)

        assert store.get_repository(repository.id).extraction_status == ExtractionStatus.FAILED
        git.cleanup.assert_called_once()

    def test_unknown_repository(self, orchestrator):
        with pytest.raises(ExtractionError, match="Repository not found"):
            orchestrator.extract("missing")

    def test_result_to_dict(self, orchestrator, repository):
        data = orchestrator.extract(repository.id).to_dict()

        assert data["status"] == "completed"
        assert data["stages"]["domain"]["items_extracted"] == 1
        assert data["code_index"] is None


class TestExtractLocal:
    """Tests for extraction from an existing checkout."""

    def test_local_checkout(self, orchestrator, store, repository, make_repo, git):
        root = make_repo(PROJECT)

        result = orchestrator.extract_local(repository.id, root)

        assert result.status == ExtractionStatus.COMPLETED
        git.clone.assert_not_called()
        assert root.exists()

    def test_missing_path(self, orchestrator, repository, tmp_path):
        with pytest.raises(ExtractionError, match="does not exist"):
            orchestrator.extract_local(repository.id, tmp_path / "nope")

    def test_file_path(self, orchestrator, repository, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("x")

        with pytest.raises(ExtractionError, match="not a directory"):
            orchestrator.extract_local(repository.id, target)

    def test_unregistered_repository(self, orchestrator, make_repo):
        with pytest.raises(ExtractionError):
            orchestrator.extract_local("missing", make_repo(PROJECT))

    def test_unexpected_error_marks_failed(self, orchestrator, store, repository, make_repo):
        """A store failure mid-pipeline propagates and the repository is not left analyzing."""
        with patch.object(store, "record_extraction_completion", side_effect=RuntimeError("disk full")):
            with pytest.raises(RuntimeError, match="disk full"):
                orchestrator.extract_local(repository.id, make_repo(PROJECT))

        assert store.get_repository(repository.id).extraction_status == ExtractionStatus.FAILED


class TestCodeIndex:
    """Tests for the optional code indexing stage."""

    def test_index_code(self, config, store, repository, git, no_llm, make_repo):
        indexer = MagicMock()
        indexer.index_repository.return_value = {
            "chunks_extracted": 4,
            "chunks_stored": 4,
            "chunks_removed": 0,
        }
        orchestrator = ExtractionOrchestrator(store=store, config=config, git=git, llm=no_llm, code_indexer=indexer)

        result = orchestrator.extract_local(repository.id, make_repo(PROJECT), index_code=True)

        assert result.code_index["chunks_stored"] == 4
        assert indexer.index_repository.call_args[0][1] == repository.id

    def test_index_failure_is_reported(self, config, store, repository, git, no_llm, make_repo):
        indexer = MagicMock()
        indexer.index_repository.side_effect = RuntimeError("chroma down")
        orchestrator = ExtractionOrchestrator(store=store, config=config, git=git, llm=no_llm, code_indexer=indexer)

        result = orchestrator.extract_local(repository.id, make_repo(PROJECT), index_code=True)

        assert result.status == ExtractionStatus.COMPLETED
        assert result.code_index == {"error": "chroma down"}

    def test_pending_repository(self, orchestrator, store, config):
        store.get_or_create_workspace("ws-2", "Other")
        repo = store.create_repository(Repository(workspace_id="ws-2", name="orders", url="https://x/orders.git"))

        assert store.get_repository(repo.id).extraction_status == ExtractionStatus.PENDING
        orchestrator.extract(repo.id)
        assert store.get_repository(repo.id).extraction_status == ExtractionStatus.COMPLETED
