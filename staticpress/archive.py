from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Iterable

from .content import Document, slugify

FIELDS = ("categories", "tags")


@dataclass(frozen=True)
class ArchiveEntry:
    label: str
    slug: str
    documents: tuple[Document, ...]

    def __len__(self) -> int:
        return len(self.documents)


def sort_by_date(documents: Iterable[Document]) -> list[Document]:
    return sorted(documents, key=lambda doc: doc.date or dt.datetime.min, reverse=True)


def build_index(documents: Iterable[Document], field_name: str) -> dict[str, ArchiveEntry]:
    """Group documents by the values of ``field_name``.

    Labels that differ only by case share one entry, spelled the way they
    were first seen. Members are ordered newest first; equal dates keep
    discovery order.
    """
    if field_name not in FIELDS:
        raise ValueError(f"cannot index by {field_name!r}")
    labels: dict[str, str] = {}
    groups: dict[str, list[Document]] = {}
    for doc in documents:
        for label in getattr(doc, field_name):
            key = label.casefold()
            labels.setdefault(key, label)
            members = groups.setdefault(key, [])
            if doc not in members:
                members.append(doc)
    index = {}
    for key in sorted(groups, key=lambda k: (k, labels[k])):
        label = labels[key]
        index[label] = ArchiveEntry(label, slugify(label), tuple(sort_by_date(groups[key])))
    return index


@dataclass(frozen=True)
class ArchiveIndex:
    categories: dict[str, ArchiveEntry] = field(default_factory=dict)
    tags: dict[str, ArchiveEntry] = field(default_factory=dict)

    @classmethod
    def build(cls, documents: Iterable[Document]) -> "ArchiveIndex":
        documents = list(documents)
        return cls(
            categories=build_index(documents, "categories"),
            tags=build_index(documents, "tags"),
        )
