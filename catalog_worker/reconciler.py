"""Incremental edits to user-owned metadata during batch review."""

from typing import Any

from catalog_worker.parser import unique
from catalog_worker.schemas.image import AnalysisResult, ReconciledMetadata

_UNORDERED_FIELDS = ("tags", "objects", "scenes", "emotions")


def _comparable(metadata: ReconciledMetadata) -> dict[str, Any]:
    data = metadata.model_dump()
    for field in _UNORDERED_FIELDS:
        data[field] = sorted(data[field])
    data["technical_details"]["composition"] = sorted(data["technical_details"]["composition"])
    return data


class MetadataState:
    """Holds the metadata being edited and the snapshot taken when editing began.

    Each operation swaps in a new ``ReconciledMetadata`` in which only the
    targeted field differs. Analysis results are read, never modified.
    """

    def __init__(self, metadata: ReconciledMetadata | None = None):
        self.metadata = metadata or ReconciledMetadata()
        self._snapshot: ReconciledMetadata | None = None

    def _replace(self, **changes: Any) -> ReconciledMetadata:
        data = self.metadata.model_dump()
        data.update(changes)
        self.metadata = ReconciledMetadata.model_validate(data)
        return self.metadata

    def update(self, **changes: Any) -> ReconciledMetadata:
        unknown = set(changes) - set(ReconciledMetadata.model_fields)
        if unknown:
            raise ValueError(f"Unknown metadata fields: {sorted(unknown)}")
        return self._replace(**changes)

    def set_description(self, text: str) -> ReconciledMetadata:
        return self._replace(description=text)

    def append_description(self, text: str) -> ReconciledMetadata:
        current = self.metadata.description
        return self._replace(description=f"{current}\n\n{text}" if current else text)

    def add_tag(self, tag: str) -> ReconciledMetadata:
        if tag in self.metadata.tags:
            return self.metadata
        return self._replace(tags=[*self.metadata.tags, tag])

    def remove_tag(self, tag: str) -> ReconciledMetadata:
        if tag not in self.metadata.tags:
            return self.metadata
        return self._replace(tags=[t for t in self.metadata.tags if t != tag])

    def submit_tag_input(self, raw: str) -> ReconciledMetadata:
        """Add a tag typed by the user; surrounding whitespace is dropped, blanks ignored."""
        tag = raw.strip()
        if not tag:
            return self.metadata
        return self.add_tag(tag)

    def merge_analysis(self, result: AnalysisResult) -> ReconciledMetadata:
        """Fold an image's raw analysis into the metadata.

        Lists are unioned. The analysis description is appended unless it is
        already the last paragraph of the current description, so merging the
        same result twice changes nothing.
        """
        raw = result.raw_results.llm_analysis
        description = self.metadata.description
        already_merged = description == raw.description or description.endswith(
            f"\n\n{raw.description}"
        )
        if raw.description and not already_merged:
            description = f"{description}\n\n{raw.description}" if description else raw.description

        return self._replace(
            objects=unique([*self.metadata.objects, *(o.label for o in raw.objects)]),
            scenes=unique([*self.metadata.scenes, *(s.label for s in raw.scenes)]),
            tags=unique([*self.metadata.tags, *raw.tags]),
            description=description,
        )

    def take_snapshot(self) -> None:
        self._snapshot = self.metadata.model_copy(deep=True)

    def has_unsaved_changes(self) -> bool:
        """Compare against the snapshot by value; list order is ignored."""
        if self._snapshot is None:
            return _comparable(self.metadata) != _comparable(ReconciledMetadata())
        return _comparable(self.metadata) != _comparable(self._snapshot)

    def reset(self) -> None:
        self.metadata = ReconciledMetadata()
        self._snapshot = None
