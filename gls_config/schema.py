"""
Configuration schema (``gls_config.schema``).

Frozen dataclasses for every runtime setting.  Defaults here match
``defaults.yaml``; the YAML file exists so deployments can override
values without touching code.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from gls_engines.proposal_status import ProposalStatus

_ALLOWED_ALL_DEFERRED = (ProposalStatus.REJECTED, ProposalStatus.UNDER_REVIEW)


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection, pool and timeout settings."""
    url: str = "sqlite:///gls.db"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5
    pool_timeout: int = 30
    statement_timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url is required")
        if self.statement_timeout_seconds <= 0:
            raise ValueError("database.statement_timeout_seconds must be positive")
        if self.pool_size < 1:
            raise ValueError("database.pool_size must be at least 1")


@dataclass(frozen=True)
class WorkflowSettings:
    """Numbering and policy knobs for proposals and payments.

    ``all_deferred_outcome`` decides what an owner round that defers every
    item does to the proposal: ``rejected`` closes it (the bills are
    released through carry-forward), ``under_review`` leaves it open.
    """
    proposal_number_prefix: str = "PROP"
    payment_number_prefix: str = "PAY"
    all_deferred_outcome: ProposalStatus = ProposalStatus.REJECTED
    default_bank_type: str = "icici"
    due_soon_days: int = 7

    def __post_init__(self) -> None:
        if not isinstance(self.all_deferred_outcome, ProposalStatus):
            object.__setattr__(
                self, "all_deferred_outcome", ProposalStatus(self.all_deferred_outcome)
            )
        if self.all_deferred_outcome not in _ALLOWED_ALL_DEFERRED:
            raise ValueError(
                "workflow.all_deferred_outcome must be 'rejected' or 'under_review'"
            )
        if not self.proposal_number_prefix or not self.payment_number_prefix:
            raise ValueError("document number prefixes must be non-empty")
        if self.due_soon_days < 1:
            raise ValueError("workflow.due_soon_days must be at least 1")


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class GlsSettings:
    """Root configuration object returned by ``get_active_config()``."""
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    workflow: WorkflowSettings = field(default_factory=WorkflowSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
