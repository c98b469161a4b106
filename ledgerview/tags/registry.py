"""
Tag Registry

Decides, for a list of labels typed by the user, which ones already
exist and which must be created by the backend before they can be
attached to a transaction.

Matching is by exact, case-sensitive label equality. Surrounding
whitespace is ignored and empty labels are dropped.

CRITICAL: A tag only ever reaches a transaction payload through
`materialize`, which refuses labels that don't have a backend id yet.
"""

from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ledgerview.models.ledger import Tag


class UnresolvedTagError(Exception):
    """A label has no backend-assigned tag id."""

    def __init__(self, labels: list[str]):
        self.labels = labels
        super().__init__(f"Tags without an id: {', '.join(labels)}")


class TagResolution(BaseModel):
    """Split of candidate labels into new labels and existing tags."""
    model_config = ConfigDict(frozen=True)

    to_create: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Unknown labels, first-seen order, no duplicates"
    )
    to_attach: tuple[Tag, ...] = Field(
        default_factory=tuple,
        description="Known tags matching a candidate, first-seen order"
    )

    @property
    def needs_creation(self) -> bool:
        return bool(self.to_create)


def normalize_labels(labels: Iterable[str]) -> list[str]:
    """Strip, drop empties and de-duplicate, keeping first-seen order."""
    cleaned = (label.strip() for label in labels)
    return list(dict.fromkeys(label for label in cleaned if label))


def resolve_tags(
    candidate_labels: Iterable[str],
    known_tags: Iterable[Tag],
) -> TagResolution:
    """Pure split of `candidate_labels` against `known_tags`."""
    by_label = {tag.label: tag for tag in known_tags}

    to_create = []
    to_attach = []
    for label in normalize_labels(candidate_labels):
        tag = by_label.get(label)
        if tag is None:
            to_create.append(label)
        else:
            to_attach.append(tag)

    return TagResolution(to_create=tuple(to_create), to_attach=tuple(to_attach))


class TagRegistry:
    """
    The set of tags known to the client.

    Tags are global, so one registry is shared by every account view.
    """

    def __init__(self, known_tags: Iterable[Tag] = ()):
        self._by_label: dict[str, Tag] = {}
        self.fold(known_tags)

    @property
    def known_tags(self) -> tuple[Tag, ...]:
        return tuple(self._by_label.values())

    @property
    def labels(self) -> list[str]:
        return sorted(self._by_label)

    def lookup(self, label: str) -> Optional[Tag]:
        return self._by_label.get(label.strip())

    def resolve(self, candidate_labels: Iterable[str]) -> TagResolution:
        return resolve_tags(candidate_labels, self._by_label.values())

    def fold(self, tags: Iterable[Tag]) -> None:
        """Add backend-assigned tags. A label keeps its first id."""
        for tag in tags:
            self._by_label.setdefault(tag.label, tag)

    def materialize(self, labels: Iterable[str]) -> tuple[Tag, ...]:
        """
        Map labels to their tags, in order.

        Raises:
            UnresolvedTagError: If any label is not known yet
        """
        wanted = normalize_labels(labels)
        missing = [label for label in wanted if label not in self._by_label]
        if missing:
            raise UnresolvedTagError(missing)

        tags = []
        seen_ids = set()
        for label in wanted:
            tag = self._by_label[label]
            if tag.id not in seen_ids:
                seen_ids.add(tag.id)
                tags.append(tag)
        return tuple(tags)
