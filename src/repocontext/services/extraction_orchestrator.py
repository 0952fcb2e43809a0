"""
Extraction Orchestrator - run the knowledge extraction pipeline.

Pipeline for one repository:

    1. status -> analyzing, shallow clone into ``clone_dir/<id>``
    2. RepositoryAnalyzer (must succeed; later stages need its output)
    3. architecture, domain, patterns and api extractors, all settled:
       a failing extractor is logged and the others still run
    4. status completed / partial / failed, cost and duration recorded
    5. the repository's cached contexts are invalidated
    6. the clone is removed unless asked to keep it

Usage:
    from repocontext.services.extraction_orchestrator import ExtractionOrchestrator

    orchestrator = ExtractionOrchestrator()
    result = orchestrator.extract(repository_id)
    print(result.status, result.total_cost)

Author: RepoContext Team
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from ..config import Config, get_config
from ..constants import ErrorMessage, ExtractionStage, ExtractionStatus, LogLevel, SuccessMessage
from ..extractors import (
    APISpecExtractor,
    ArchitectureExtractor,
    DomainExtractor,
    PatternMiner,
    RepositoryAnalyzer,
)
from ..logging import get_logger, log_operation_end, log_operation_start
from ..models.knowledge import FrameworkFingerprint
from .code_indexer import CodeIndexer
from .git_service import GitAuth, GitError, GitService
from .knowledge_store import KnowledgeStore
from .llm import LLMService
from .source_tree import SourceTree


logger = get_logger(__name__)


class ExtractionError(Exception):
    """Raised when a repository cannot be prepared for extraction."""


@dataclass
class StageResult:
    """Outcome of one extractor."""

    status: str
    duration_ms: int = 0
    items_extracted: int = 0
    cost: float = 0.0
    error: Optional[str] = None


@dataclass
class ExtractionResult:
    """Summary of one extraction run."""

    repository_id: str
    status: ExtractionStatus
    duration_ms: int = 0
    total_cost: float = 0.0
    stages: dict[str, StageResult] = field(default_factory=dict)
    primary_language: Optional[str] = None
    file_count: int = 0
    code_index: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository_id": self.repository_id,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "total_cost": round(self.total_cost, 4),
            "primary_language": self.primary_language,
            "file_count": self.file_count,
            "stages": {name: vars(stage) for name, stage in self.stages.items()},
            "code_index": self.code_index,
            "error": self.error,
        }


def overall_status(stages: dict[str, StageResult]) -> ExtractionStatus:
    """completed if every stage succeeded, failed if none did, partial otherwise."""
    failed = sum(1 for stage in stages.values() if stage.status == "failed")
    if failed == 0:
        return ExtractionStatus.COMPLETED
    if failed == len(stages):
        return ExtractionStatus.FAILED
    return ExtractionStatus.PARTIAL


class ExtractionOrchestrator:
    """Coordinates cloning, the extractors and persistence for a repository."""

    def __init__(
        self,
        store: Optional[KnowledgeStore] = None,
        config: Optional[Config] = None,
        git: Optional[GitService] = None,
        llm: Optional[LLMService] = None,
        code_indexer: Optional[CodeIndexer] = None,
    ):
        self.config = config or get_config()
        self.store = store or KnowledgeStore()
        self.git = git or GitService()
        self.llm = llm or LLMService(self.config.llm)
        self._code_indexer = code_indexer

        extraction = self.config.extraction
        self.analyzer = RepositoryAnalyzer(extraction, self.llm)
        self.architecture = ArchitectureExtractor(extraction, self.llm)
        self.domain = DomainExtractor(extraction, self.llm)
        self.patterns = PatternMiner(extraction, self.llm)
        self.apis = APISpecExtractor(extraction, self.llm)

    @property
    def code_indexer(self) -> CodeIndexer:
        if self._code_indexer is None:
            self._code_indexer = CodeIndexer()
        return self._code_indexer

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def extract(
        self,
        repository_id: str,
        auth: Optional[GitAuth] = None,
        keep_clone: Optional[bool] = None,
        index_code: bool = False,
    ) -> ExtractionResult:
        """
        Clone a registered repository and extract its knowledge.

        Args:
            repository_id: Id of a repository registered in the store
            auth: Credentials for private repositories
            keep_clone: Keep the checkout afterwards (default from config)
            index_code: Also build the vector index for search_code

        Returns:
            ExtractionResult; a failed clone yields status FAILED

        Raises:
            ExtractionError: If the repository is not registered
        """
        repository = self.store.get_repository(repository_id)
        if repository is None:
            raise ExtractionError(ErrorMessage.REPOSITORY_NOT_FOUND.format(repository_id=repository_id))

        keep = self.config.extraction.keep_clones if keep_clone is None else keep_clone
        clone_dir = self.config.storage.clone_dir / repository_id
        started = time.time()

        self.store.update_repository_status(repository_id, ExtractionStatus.ANALYZING)
        self._log(repository_id, ExtractionStage.CLONE, "started", url=GitService.redact(repository.url))

        try:
            try:
                self.git.clone(
                    repository.url,
                    clone_dir,
                    branch=repository.branch,
                    depth=self.config.extraction.clone_depth,
                    auth=auth,
                )
            except GitError as error:
                self._log(repository_id, ExtractionStage.CLONE, "failed", LogLevel.ERROR, error=str(error))
                return self._finish_failed(repository_id, started, str(error))

            self._log(repository_id, ExtractionStage.CLONE, "completed", path=str(clone_dir))
            return self._run_guarded(repository_id, clone_dir, started, index_code)
        finally:
            if not keep:
                self.git.cleanup(clone_dir)

    def extract_local(
        self,
        repository_id: str,
        path: Path,
        index_code: bool = False,
    ) -> ExtractionResult:
        """Extract knowledge from an existing checkout without cloning."""
        path = Path(path)
        if not path.exists():
            raise ExtractionError(ErrorMessage.PATH_NOT_FOUND.format(path=path))
        if not path.is_dir():
            raise ExtractionError(ErrorMessage.NOT_A_DIRECTORY.format(path=path))
        if self.store.get_repository(repository_id) is None:
            raise ExtractionError(ErrorMessage.REPOSITORY_NOT_FOUND.format(repository_id=repository_id))

        started = time.time()
        self.store.update_repository_status(repository_id, ExtractionStatus.ANALYZING)
        return self._run_guarded(repository_id, path, started, index_code)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _run_guarded(self, repository_id: str, repo_path: Path, started: float, index_code: bool) -> ExtractionResult:
        """Run the pipeline; an unexpected error leaves the repository failed, never analyzing."""
        try:
            return self._run_pipeline(repository_id, repo_path, started, index_code)
        except Exception:
            logger.exception("Knowledge extraction aborted", extra={"repository_id": repository_id})
            self.store.update_repository_status(repository_id, ExtractionStatus.FAILED)
            raise

    def _run_pipeline(self, repository_id: str, repo_path: Path, started: float, index_code: bool) -> ExtractionResult:
        start_time = log_operation_start(logger, "Knowledge extraction", repository_id=repository_id)
        tree = SourceTree(repo_path, self.config.extraction)

        fingerprint, analyzer_stage = self._run_analyzer(repository_id, tree)
        if fingerprint is None:
            result = self._finish_failed(repository_id, started, analyzer_stage.error)
            result.stages[ExtractionStage.REPOSITORY.value] = analyzer_stage
            log_operation_end(logger, "Knowledge extraction", start_time, success=False)
            return result

        stages = {
            ExtractionStage.ARCHITECTURE.value: self._run_stage(
                repository_id, ExtractionStage.ARCHITECTURE,
                lambda: self.architecture.extract(tree),
                self.store.save_architecture_patterns,
            ),
            ExtractionStage.DOMAIN.value: self._run_stage(
                repository_id, ExtractionStage.DOMAIN,
                lambda: self.domain.extract(tree),
                self.store.save_domain_models,
            ),
            ExtractionStage.PATTERNS.value: self._run_stage(
                repository_id, ExtractionStage.PATTERNS,
                lambda: self.patterns.extract(tree, fingerprint.custom_components),
                self.store.save_code_patterns,
            ),
            ExtractionStage.API.value: self._run_stage(
                repository_id, ExtractionStage.API,
                lambda: self.apis.extract(tree),
                self.store.save_api_specifications,
            ),
        }

        status = overall_status(stages)
        total_cost = sum(stage.cost for stage in stages.values())
        duration_ms = int((time.time() - started) * 1000)

        self.store.record_extraction_completion(repository_id, status, duration_ms, total_cost)
        cleared = self.store.clear_context_cache(repository_id)
        self._log(
            repository_id,
            ExtractionStage.REPOSITORY,
            SuccessMessage.EXTRACTION_COMPLETE.format(status=status.value),
            LogLevel.INFO if status == ExtractionStatus.COMPLETED else LogLevel.WARNING,
            duration_ms=duration_ms,
            cost=round(total_cost, 4),
            cache_entries_cleared=cleared,
        )

        result = ExtractionResult(
            repository_id=repository_id,
            status=status,
            duration_ms=duration_ms,
            total_cost=total_cost,
            stages={ExtractionStage.REPOSITORY.value: analyzer_stage, **stages},
            primary_language=RepositoryAnalyzer.primary_language(fingerprint),
            file_count=sum(fingerprint.detected_languages.values()),
        )

        if index_code:
            result.code_index = self._index_code(repository_id, tree)

        log_operation_end(
            logger,
            "Knowledge extraction",
            start_time,
            status=status.value,
            cost=round(total_cost, 4),
        )
        return result

    def _run_analyzer(self, repository_id: str, tree: SourceTree) -> tuple[Optional[FrameworkFingerprint], StageResult]:
        stage = ExtractionStage.REPOSITORY
        self._log(repository_id, stage, "started")
        stage_start = time.time()
        try:
            fingerprint = self.analyzer.analyze(tree)
            self.store.save_fingerprint(repository_id, fingerprint)
            self.store.update_repository_analysis(
                repository_id,
                RepositoryAnalyzer.primary_language(fingerprint),
                sum(fingerprint.detected_languages.values()),
            )
        except Exception as error:
            logger.exception("Repository analysis failed", extra={"repository_id": repository_id})
            self._log(repository_id, stage, "failed", LogLevel.ERROR, error=str(error))
            return None, StageResult(status="failed", error=str(error))

        duration_ms = int((time.time() - stage_start) * 1000)
        self._log(
            repository_id, stage, "completed",
            duration_ms=duration_ms, framework=fingerprint.framework_type,
        )
        return fingerprint, StageResult(status="completed", duration_ms=duration_ms, items_extracted=1)

    def _run_stage(
        self,
        repository_id: str,
        stage: ExtractionStage,
        run: Callable[[], list],
        save: Callable[[str, list], int],
    ) -> StageResult:
        """Run one extractor and store its items. Failures are recorded, not raised."""
        self._log(repository_id, stage, "started")
        stage_start = time.time()
        try:
            items = run()
            save(repository_id, items)
        except Exception as error:
            logger.exception("Extractor failed", extra={"repository_id": repository_id, "stage": stage.value})
            self._log(repository_id, stage, "failed", LogLevel.ERROR, error=str(error))
            return StageResult(
                status="failed",
                duration_ms=int((time.time() - stage_start) * 1000),
                error=str(error),
            )

        duration_ms = int((time.time() - stage_start) * 1000)
        cost = len(items) * self.config.extraction.cost_per_item.get(stage.value, 0.0)
        self._log(
            repository_id, stage, "completed",
            duration_ms=duration_ms, items_extracted=len(items), cost=round(cost, 4),
        )
        return StageResult(status="completed", duration_ms=duration_ms, items_extracted=len(items), cost=cost)

    def _index_code(self, repository_id: str, tree: SourceTree) -> Optional[dict[str, Any]]:
        stage = ExtractionStage.CODE_INDEX
        self._log(repository_id, stage, "started")
        try:
            stats = self.code_indexer.index_repository(tree, repository_id)
        except Exception as error:
            logger.exception("Code indexing failed", extra={"repository_id": repository_id})
            self._log(repository_id, stage, "failed", LogLevel.ERROR, error=str(error))
            return {"error": str(error)}
        self._log(
            repository_id, stage, "completed",
            chunks_stored=stats["chunks_stored"], chunks_removed=stats["chunks_removed"],
        )
        return stats

    def _finish_failed(self, repository_id: str, started: float, error: Optional[str]) -> ExtractionResult:
        duration_ms = int((time.time() - started) * 1000)
        self.store.record_extraction_completion(repository_id, ExtractionStatus.FAILED, duration_ms, 0.0)
        return ExtractionResult(
            repository_id=repository_id,
            status=ExtractionStatus.FAILED,
            duration_ms=duration_ms,
            error=error,
        )

    def _log(
        self,
        repository_id: str,
        stage: ExtractionStage,
        message: str,
        level: LogLevel = LogLevel.INFO,
        **details: Any,
    ) -> None:
        self.store.add_extraction_log(repository_id, stage.value, message, level, details)
        log = logger.error if level == LogLevel.ERROR else logger.info
        log(f"{stage.value}: {message}", extra={"repository_id": repository_id, **details})
