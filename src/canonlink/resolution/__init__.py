"""Entity resolution: alias lookup, similarity and the resolver itself."""

from canonlink.resolution.alias_index import (
    AliasIndex,
    AliasMatch,
    PgTrigramAliasIndex,
    build_alias_index,
)
from canonlink.resolution.locks import TenantLockRegistry, default_lock_registry
from canonlink.resolution.resolver import (
    Decision,
    EntityResolver,
    ResolutionOutcome,
    choose_decision,
    infer_entity_type,
)
from canonlink.resolution.similarity import (
    levenshtein_similarity,
    normalize,
    trigram_similarity,
)

__all__ = [
    "AliasIndex",
    "AliasMatch",
    "Decision",
    "EntityResolver",
    "PgTrigramAliasIndex",
    "ResolutionOutcome",
    "TenantLockRegistry",
    "build_alias_index",
    "choose_decision",
    "default_lock_registry",
    "infer_entity_type",
    "levenshtein_similarity",
    "normalize",
    "trigram_similarity",
]
