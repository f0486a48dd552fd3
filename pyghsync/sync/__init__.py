"""Sync engine for pyghsync - clone, link, pull and commit working copies."""

from .comparator import ChangeSet, detect_local_changes, detect_remote_changes
from .conflicts import (
    ConflictResolver,
    DecisionProvider,
    PromptDecisionProvider,
    Resolution,
    ScriptedDecisionProvider,
)
from .engine import (
    PullPhase,
    RemoteCondition,
    RepositoryStatus,
    SyncEngine,
    SyncResult,
)
from .modes import ConflictChoice, ConflictKind, ConflictStrategy
from .operations import SyncOperations
from .scanner import LocalDirectory
from .state import (
    LedgerStore,
    RepositoryLinkState,
    TreeSnapshot,
    check_ledger_paths,
    find_repository_root,
    parse_state,
    parse_tree,
    serialize_state,
    serialize_tree,
)

__all__ = [
    "SyncEngine",
    "SyncResult",
    "SyncOperations",
    "RepositoryStatus",
    "RemoteCondition",
    "PullPhase",
    "ChangeSet",
    "detect_local_changes",
    "detect_remote_changes",
    "ConflictResolver",
    "ConflictStrategy",
    "ConflictKind",
    "ConflictChoice",
    "DecisionProvider",
    "PromptDecisionProvider",
    "ScriptedDecisionProvider",
    "Resolution",
    "LocalDirectory",
    "LedgerStore",
    "RepositoryLinkState",
    "TreeSnapshot",
    "check_ledger_paths",
    "find_repository_root",
    "parse_state",
    "parse_tree",
    "serialize_state",
    "serialize_tree",
]
