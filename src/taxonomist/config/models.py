"""Configuration models describing Taxonomist settings."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TaxonomistBaseModel(BaseModel):
    """Shared configuration for Taxonomist settings models."""

    model_config = ConfigDict(extra="forbid")


class LLMSettings(TaxonomistBaseModel):
    """LLM configuration options.

    Attributes:
        provider: Identifier for the language-model provider.
        model: Model name to target when issuing requests.
        temperature: Sampling temperature for generative calls.
        max_tokens: Maximum number of tokens in responses.
        api_key: Optional credential for hosted providers.
        api_base_url: Optional base URL for OpenAI-compatible gateways.
        timeout_seconds: Upper bound for a single language-model call.
    """

    provider: str = "local"
    model: str = "llama3"
    temperature: float = 0.1
    max_tokens: int = 16_000
    api_key: Optional[str] = None
    api_base_url: Optional[str] = None
    timeout_seconds: float = 180.0


class WorkerSettings(TaxonomistBaseModel):
    """Concurrency limits applied to outbound language-model calls.

    Attributes:
        max_workers: Maximum number of calls in flight at once.
        check_interval_seconds: Polling interval used while waiting for the pool to drain.
        max_wait_iterations: Polling iterations before giving up on a drain.
        slow_task_seconds: Tasks running longer than this are logged as slow.
    """

    max_workers: int = Field(default=80, ge=1)
    check_interval_seconds: float = 0.05
    max_wait_iterations: int = 10_000
    slow_task_seconds: float = 30.0


class PlannerSettings(TaxonomistBaseModel):
    """Settings that govern a planning run.

    Attributes:
        optimizer_confidence_threshold: Placements below this confidence are re-evaluated.
        optimizer_batch_size: Number of files sent to the optimizer per request.
        enable_validation: Whether the structural validation pass runs.
        enable_optimization: Whether low-confidence placements are re-evaluated.
        validation_sample_size: Number of file cards shown to the validator.
    """

    optimizer_confidence_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    optimizer_batch_size: int = Field(default=25, ge=1)
    enable_validation: bool = True
    enable_optimization: bool = True
    validation_sample_size: int = Field(default=40, ge=0)


class ScanningOptions(TaxonomistBaseModel):
    """Options governing collection discovery.

    Attributes:
        recursive: Whether to recurse into subdirectories.
        include_hidden: Whether hidden files should be included.
        follow_symlinks: Whether to traverse symbolic links.
    """

    recursive: bool = True
    include_hidden: bool = False
    follow_symlinks: bool = False


class TreeSettings(TaxonomistBaseModel):
    """Virtual tree presentation settings.

    Attributes:
        lazy_threshold: Above this many placements only the top level is built.
    """

    lazy_threshold: int = 10_000


class LoggingSettings(TaxonomistBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    max_size_mb: int = 100
    backup_count: int = 5


class TaxonomistConfig(TaxonomistBaseModel):
    """Top-level configuration struct for Taxonomist.

    Attributes:
        llm: Language model settings.
        workers: Worker pool limits.
        planner: Planning run settings.
        scanning: Collection discovery settings.
        tree: Virtual tree settings.
        logging: Logging configuration.
    """

    llm: LLMSettings = Field(default_factory=LLMSettings)
    workers: WorkerSettings = Field(default_factory=WorkerSettings)
    planner: PlannerSettings = Field(default_factory=PlannerSettings)
    scanning: ScanningOptions = Field(default_factory=ScanningOptions)
    tree: TreeSettings = Field(default_factory=TreeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


__all__ = [
    "TaxonomistBaseModel",
    "LLMSettings",
    "WorkerSettings",
    "PlannerSettings",
    "ScanningOptions",
    "TreeSettings",
    "LoggingSettings",
    "TaxonomistConfig",
]
