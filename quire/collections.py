from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence

from .content import Document


class DocumentCollection(Sequence[Document]):
    """Lightweight helper for working with lists of documents in templates."""

    def __init__(self, documents: Iterable[Document]):
        self._documents = list(documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return DocumentCollection(self._documents[item])
        return self._documents[item]

    def with_tag(self, tag: str) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if tag in d.tags)

    def in_category(self, category: str) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if category in d.categories)

    def drafts(self) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if d.draft)

    def published(self) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if not d.draft)

    def sorted(self, reverse: bool = True) -> DocumentCollection:
        """Sort by date, then by source path. Newest first by default."""
        return DocumentCollection(
            sorted(self._documents, key=lambda d: d.sort_key, reverse=reverse)
        )

    def latest(self, count: int = 5) -> DocumentCollection:
        return self.sorted()[:count]

    def by_year(self) -> list[tuple[int, DocumentCollection]]:
        """Group documents by year, newest year and newest document first."""
        years: dict[int, list[Document]] = {}
        for document in self.sorted():
            years.setdefault(document.date.year, []).append(document)
        return [(year, DocumentCollection(docs)) for year, docs in years.items()]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"DocumentCollection({len(self._documents)} documents)"


class TaxonomyCollection(Mapping[str, DocumentCollection]):
    """Mapping of tag or category name to its documents, newest first."""

    def __init__(self, mapping: dict[str, Iterable[Document]]):
        self._mapping = {
            k: DocumentCollection(v).sorted() for k, v in sorted(mapping.items())
        }

    def __getitem__(self, key: str) -> DocumentCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def by_size(self) -> list[tuple[str, DocumentCollection]]:
        """Return (name, documents) pairs with the most used names first."""
        return sorted(self._mapping.items(), key=lambda item: (-len(item[1]), item[0]))

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TaxonomyCollection({len(self._mapping)} names)"
