"""Models domain — facts, provenance, trust and engine result shapes."""

from __future__ import annotations

from provmem.models.facts import DecayTier
from provmem.models.facts import Fact
from provmem.models.facts import FactCategory
from provmem.models.facts import IMMUTABLE_FIELDS
from provmem.models.facts import Lifecycle
from provmem.models.facts import Provenance
from provmem.models.facts import ProvenanceKind
from provmem.models.facts import Trust
from provmem.models.schemas import ChannelScores
from provmem.models.schemas import ContradictionResult
from provmem.models.schemas import ContradictionScanResult
from provmem.models.schemas import CorroborationResult
from provmem.models.schemas import FactSnapshot
from provmem.models.schemas import RecallMeta
from provmem.models.schemas import RecallQuery
from provmem.models.schemas import RecallResponse
from provmem.models.schemas import RecallResult
from provmem.models.schemas import ReflectionReport
from provmem.models.schemas import RememberInput
from provmem.models.schemas import RememberResult
from provmem.models.schemas import SweepResult
from provmem.models.schemas import TierResult
from provmem.models.schemas import UsageResult
from provmem.models.schemas import VerificationResult

__all__ = [
    "ChannelScores",
    "ContradictionResult",
    "ContradictionScanResult",
    "CorroborationResult",
    "DecayTier",
    "Fact",
    "FactCategory",
    "FactSnapshot",
    "IMMUTABLE_FIELDS",
    "Lifecycle",
    "Provenance",
    "ProvenanceKind",
    "RecallMeta",
    "RecallQuery",
    "RecallResponse",
    "RecallResult",
    "ReflectionReport",
    "RememberInput",
    "RememberResult",
    "SweepResult",
    "TierResult",
    "Trust",
    "UsageResult",
    "VerificationResult",
]
