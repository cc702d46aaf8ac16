"""SQLAlchemy models."""

from regtruth.models.agent_run import AgentRun
from regtruth.models.content_sync_event import ContentSyncEvent
from regtruth.models.evidence import Evidence
from regtruth.models.evidence_artifact import EvidenceArtifact
from regtruth.models.extraction_quarantine import ExtractionQuarantine
from regtruth.models.job_run import JobRun
from regtruth.models.parsed_document import ParsedDocument
from regtruth.models.provision_node import ProvisionNode
from regtruth.models.regulatory_conflict import RegulatoryConflict
from regtruth.models.regulatory_rule import RegulatoryRule, rule_source_pointers
from regtruth.models.rule_release import RuleRelease, release_rules
from regtruth.models.rule_table import RuleCalculation, RuleSnapshot, RuleTable, RuleVersion
from regtruth.models.source_pointer import SourcePointer

__all__ = [
    "AgentRun",
    "ContentSyncEvent",
    "Evidence",
    "EvidenceArtifact",
    "ExtractionQuarantine",
    "JobRun",
    "ParsedDocument",
    "ProvisionNode",
    "RegulatoryConflict",
    "RegulatoryRule",
    "RuleCalculation",
    "RuleRelease",
    "RuleSnapshot",
    "RuleTable",
    "RuleVersion",
    "SourcePointer",
    "release_rules",
    "rule_source_pointers",
]
