"""Conflict resolution for pulls.

A pull starts from "take everything remote": download every added or
modified remote file and delete every remote deletion locally. Paths that
were also changed locally fall into one of four :class:`ConflictKind`
categories, and for each of them the strategy (or, for ``ASK``, a
decision provider) picks between keeping the local side and taking the
remote one.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import click

from ..exceptions import ConfigurationError
from .comparator import ChangeSet
from .modes import ConflictChoice, ConflictKind, ConflictStrategy

logger = logging.getLogger(__name__)

DecisionProvider = Callable[[ConflictKind, str], ConflictChoice]
"""Called as ``decide(kind, path)`` for every conflict under ``ASK``"""


class ScriptedDecisionProvider:
    """Decision provider answering from a prepared table.

    Examples:
        >>> decide = ScriptedDecisionProvider({"a.txt": ConflictChoice.KEEP_LOCAL})
        >>> decide(ConflictKind.MODIFIED_BOTH, "a.txt")
        <ConflictChoice.KEEP_LOCAL: 'keep_local'>
    """

    def __init__(
        self,
        answers: Optional[dict[str, ConflictChoice]] = None,
        default: ConflictChoice = ConflictChoice.TAKE_REMOTE,
    ):
        self.answers = answers or {}
        self.default = default
        self.asked: list[tuple[ConflictKind, str]] = []

    def __call__(self, kind: ConflictKind, path: str) -> ConflictChoice:
        self.asked.append((kind, path))
        return self.answers.get(path, self.default)


# Prompt text and the (keep local, take remote) keys for each kind
_PROMPTS: dict[ConflictKind, tuple[str, str, str]] = {
    ConflictKind.MODIFIED_BOTH: (
        "Keep the [L]ocal version or overwrite it with the [R]emote version?",
        "l",
        "r",
    ),
    ConflictKind.MODIFIED_REMOTELY_DELETED_LOCALLY: (
        "Keep the file [D]eleted or download the [R]emote version?",
        "d",
        "r",
    ),
    ConflictKind.DELETED_REMOTELY_MODIFIED_LOCALLY: (
        "[D]elete the local file or [K]eep it?",
        "k",
        "d",
    ),
    ConflictKind.ADDED_BOTH: (
        "Keep the [L]ocal file or download the [R]emote version?",
        "l",
        "r",
    ),
}


class PromptDecisionProvider:
    """Decision provider asking on the console."""

    def __call__(self, kind: ConflictKind, path: str) -> ConflictChoice:
        question, keep_key, take_key = _PROMPTS[kind]
        click.echo(f"\n{path} {kind.description}.")
        answer = click.prompt(
            question,
            type=click.Choice([keep_key, take_key], case_sensitive=False),
            show_choices=False,
        )
        if answer.lower() == keep_key:
            return ConflictChoice.KEEP_LOCAL
        return ConflictChoice.TAKE_REMOTE


@dataclass
class Resolution:
    """Result of resolving a pull."""

    download: set[str] = field(default_factory=set)
    """Paths to download from the new remote tree"""

    delete: set[str] = field(default_factory=set)
    """Paths to delete locally"""

    conflicts: list[tuple[ConflictKind, str, ConflictChoice]] = field(
        default_factory=list
    )
    """Every conflict found, with the choice made"""


class ConflictResolver:
    """Turns remote and local change sets into download/delete sets."""

    def __init__(
        self,
        strategy: ConflictStrategy,
        decide: Optional[DecisionProvider] = None,
    ):
        """Initialize conflict resolver.

        Args:
            strategy: Conflict strategy
            decide: Decision provider, required for ``ASK``
        """
        self.strategy = strategy
        self.decide = decide

    @staticmethod
    def find_conflicts(
        remote: ChangeSet, local: ChangeSet
    ) -> list[tuple[ConflictKind, str]]:
        """List conflicting paths in a stable order (by kind, then path)."""
        overlaps = [
            (ConflictKind.MODIFIED_BOTH, remote.modified & local.modified),
            (
                ConflictKind.MODIFIED_REMOTELY_DELETED_LOCALLY,
                remote.modified & local.deleted,
            ),
            (
                ConflictKind.DELETED_REMOTELY_MODIFIED_LOCALLY,
                remote.deleted & local.modified,
            ),
            (ConflictKind.ADDED_BOTH, remote.added & local.added),
        ]
        return [(kind, path) for kind, paths in overlaps for path in sorted(paths)]

    def _choose(self, kind: ConflictKind, path: str) -> ConflictChoice:
        if self.strategy is ConflictStrategy.KEEP_LOCAL:
            return ConflictChoice.KEEP_LOCAL
        if self.strategy is ConflictStrategy.OVERWRITE_WITH_REMOTE:
            return ConflictChoice.TAKE_REMOTE
        if self.decide is None:
            raise ConfigurationError(
                "Conflict strategy 'ask' needs a decision provider"
            )
        return self.decide(kind, path)

    def resolve(self, remote: ChangeSet, local: ChangeSet) -> Resolution:
        """Resolve a pull.

        Args:
            remote: Changes between the last synced tree and the new remote tree
            local: Local changes against the last synced tree

        Returns:
            Resolution with final download and delete sets
        """
        resolution = Resolution(
            download=remote.added | remote.modified,
            delete=set(remote.deleted),
        )

        for kind, path in self.find_conflicts(remote, local):
            choice = self._choose(kind, path)
            logger.debug(f"Conflict {kind.value} on {path}: {choice.value}")
            if choice is ConflictChoice.KEEP_LOCAL:
                if kind.remote_side_deletes:
                    resolution.delete.discard(path)
                else:
                    resolution.download.discard(path)
            resolution.conflicts.append((kind, path, choice))

        return resolution
