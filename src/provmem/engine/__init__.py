"""Engine domain — trust, decay, corroboration, recall and reflection."""

from provmem.engine.confidence import ConfidenceModel
from provmem.engine.confidence import initial_trust
from provmem.engine.corroboration import CorroborationEngine
from provmem.engine.decay import compute_relevance
from provmem.engine.decay import decay_tier
from provmem.engine.decay import DecayEngine
from provmem.engine.embeddings import build_embedder
from provmem.engine.embeddings import CachedEmbedder
from provmem.engine.embeddings import OpenAICompatibleEmbedder
from provmem.engine.embeddings import SimilarityProvider
from provmem.engine.recall import RecallEngine
from provmem.engine.reflection import ReflectionEngine
from provmem.engine.rules import check_independence
from provmem.engine.rules import Conflict
from provmem.engine.rules import Dependent
from provmem.engine.rules import detect_contradiction
from provmem.engine.rules import Independent
from provmem.engine.rules import NoConflict

__all__ = [
    "CachedEmbedder",
    "ConfidenceModel",
    "Conflict",
    "CorroborationEngine",
    "DecayEngine",
    "Dependent",
    "Independent",
    "NoConflict",
    "OpenAICompatibleEmbedder",
    "RecallEngine",
    "ReflectionEngine",
    "SimilarityProvider",
    "build_embedder",
    "check_independence",
    "compute_relevance",
    "decay_tier",
    "detect_contradiction",
    "initial_trust",
]
