"""Per-image analysis sessions for an upload batch.

Each image selected for upload gets a session keyed by a stable slot id.
Sessions move ``IDLE -> ANALYZING -> ANALYZED | FAILED``; a terminal session
may be analyzed again. Completions are applied by slot id, so results that
arrive out of order, or after their image was removed, can't land on the
wrong session.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Any, Protocol

from catalog_worker.config import ANALYSIS_CONCURRENCY
from catalog_worker.errors import SessionStateError
from catalog_worker.parser import create_error_response
from catalog_worker.reconciler import MetadataState
from catalog_worker.schemas.image import AnalysisContext, AnalysisResult

logger = logging.getLogger(__name__)


class AnalysisState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    FAILED = "failed"


class Analyzer(Protocol):
    async def analyze(
        self, image_url: str, context: AnalysisContext | None = None
    ) -> AnalysisResult: ...


class Uploader(Protocol):
    async def upload(self, image_ref: Any) -> str: ...


@dataclass
class AnalysisSession:
    """Analysis bookkeeping for one image."""

    slot_id: str
    image_ref: Any
    uploaded_url: str | None = None
    state: AnalysisState = AnalysisState.IDLE
    result: AnalysisResult | None = None
    error: str | None = None
    saved: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.state in (AnalysisState.ANALYZED, AnalysisState.FAILED)

    def start(self) -> None:
        if self.state is AnalysisState.ANALYZING:
            raise SessionStateError(f"Slot {self.slot_id} is already being analyzed")
        if not self.uploaded_url:
            raise SessionStateError(
                f"Slot {self.slot_id} has no uploaded URL; upload the image before analysis"
            )
        self.state = AnalysisState.ANALYZING
        self.error = None

    def complete(self, result: AnalysisResult) -> None:
        if self.state is not AnalysisState.ANALYZING:
            raise SessionStateError(f"Slot {self.slot_id} is not being analyzed")
        self.result = result
        if result.succeeded:
            self.state = AnalysisState.ANALYZED
        else:
            self.state = AnalysisState.FAILED
            self.error = result.error

    def fail(self, error: BaseException | str, context: AnalysisContext | None = None) -> None:
        self.result = create_error_response(error, context)
        self.state = AnalysisState.FAILED
        self.error = self.result.error


def _title_from_ref(image_ref: Any) -> str:
    name = PurePath(str(getattr(image_ref, "name", image_ref))).name
    return name.split(".")[0]


class AnalysisBatch:
    """The set of images pending upload, plus the metadata shared by the batch."""

    def __init__(
        self,
        metadata_state: MetadataState | None = None,
        concurrency: int = ANALYSIS_CONCURRENCY,
    ):
        self._sessions: dict[str, AnalysisSession] = {}
        self.metadata_state = metadata_state or MetadataState()
        self.concurrency = max(1, concurrency)

    @property
    def sessions(self) -> list[AnalysisSession]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, slot_id: str) -> bool:
        return slot_id in self._sessions

    def get(self, slot_id: str) -> AnalysisSession | None:
        return self._sessions.get(slot_id)

    def _require(self, slot_id: str) -> AnalysisSession:
        session = self._sessions.get(slot_id)
        if session is None:
            raise SessionStateError(f"Unknown slot: {slot_id}")
        return session

    def add_images(self, image_refs: list[Any]) -> list[str]:
        """Start a session per image. Returns the new slot ids in input order.

        Selecting a single image into an empty, untitled batch uses its file
        name (up to the first dot) as the title.
        """
        opening = not self._sessions
        slot_ids = []
        for ref in image_refs:
            slot_id = uuid.uuid4().hex
            self._sessions[slot_id] = AnalysisSession(slot_id=slot_id, image_ref=ref)
            slot_ids.append(slot_id)

        if opening and slot_ids:
            if len(image_refs) == 1 and not self.metadata_state.metadata.title:
                self.metadata_state.update(title=_title_from_ref(image_refs[0]))
            self.metadata_state.take_snapshot()
        return slot_ids

    def add_image(self, image_ref: Any) -> str:
        return self.add_images([image_ref])[0]

    def remove_image(self, slot_id: str) -> bool:
        """Drop a session. Removing the last image also resets the metadata."""
        removed = self._sessions.pop(slot_id, None) is not None
        if removed and not self._sessions:
            self.metadata_state.reset()
        return removed

    def mark_uploaded(self, slot_id: str, url: str) -> None:
        self._require(slot_id).uploaded_url = url

    async def analyze(self, slot_id: str, analyzer: Analyzer) -> AnalysisSession | None:
        """Analyze one image and merge a successful result into the batch metadata.

        Returns the session, or ``None`` if the image was removed while its
        analysis was in flight.
        """
        session = self._require(slot_id)
        session.start()
        context = self.metadata_state.metadata.to_context()

        try:
            result = await analyzer.analyze(session.uploaded_url, context)
        except asyncio.CancelledError:
            session.fail("Analysis cancelled", context)
            raise
        except Exception as e:
            logger.error(f"Analysis of slot {slot_id} raised: {e!r}")
            result = create_error_response(e, context)

        if self._sessions.get(slot_id) is not session:
            logger.info(f"Slot {slot_id} was removed during analysis; dropping result")
            return None

        session.complete(result)
        if result.succeeded:
            self.metadata_state.merge_analysis(result)
        else:
            logger.warning(f"Analysis failed for slot {slot_id}: {result.error}")
        return session

    async def analyze_all(self, analyzer: Analyzer) -> list[AnalysisSession]:
        """Analyze every uploaded session that isn't already in flight, concurrently."""
        slot_ids = [
            s.slot_id
            for s in self._sessions.values()
            if s.uploaded_url and s.state is not AnalysisState.ANALYZING
        ]
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(slot_id: str) -> AnalysisSession | None:
            async with semaphore:
                if slot_id not in self._sessions:
                    return None
                return await self.analyze(slot_id, analyzer)

        outcomes = await asyncio.gather(*(run(sid) for sid in slot_ids), return_exceptions=True)
        done = []
        for slot_id, outcome in zip(slot_ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Could not analyze slot {slot_id}: {outcome}")
            elif outcome is not None:
                done.append(outcome)
        return done

    async def upload_and_analyze(self, uploader: Uploader, analyzer: Analyzer) -> list[str]:
        """Upload every idle image that has no URL yet, then analyze it.

        Returns the slot ids whose upload failed; those sessions stay ``IDLE``
        with ``error`` set.
        """
        slot_ids = [
            s.slot_id for s in self._sessions.values() if s.state is AnalysisState.IDLE
        ]
        semaphore = asyncio.Semaphore(self.concurrency)
        failed: list[str] = []

        async def run(slot_id: str) -> None:
            async with semaphore:
                session = self._sessions.get(slot_id)
                if session is None:
                    return
                if not session.uploaded_url:
                    try:
                        url = await uploader.upload(session.image_ref)
                    except Exception as e:
                        logger.warning(f"Upload failed for slot {slot_id}: {e}")
                        session.error = str(e)
                        failed.append(slot_id)
                        return
                    if slot_id not in self._sessions:
                        return
                    session.uploaded_url = url
                await self.analyze(slot_id, analyzer)

        outcomes = await asyncio.gather(*(run(sid) for sid in slot_ids), return_exceptions=True)
        for slot_id, outcome in zip(slot_ids, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Could not analyze slot {slot_id}: {outcome}")
        if failed:
            logger.error(f"{len(failed)} of {len(slot_ids)} uploads failed")
        return failed

    @property
    def is_analyzing(self) -> bool:
        return any(s.state is AnalysisState.ANALYZING for s in self._sessions.values())

    @property
    def all_complete(self) -> bool:
        return bool(self._sessions) and all(s.is_terminal for s in self._sessions.values())

    @property
    def can_save(self) -> bool:
        return (
            bool(self._sessions)
            and not self.is_analyzing
            and bool(self.metadata_state.metadata.title.strip())
        )

    def _analysis_for(self, slot_id: str) -> AnalysisResult:
        session = self._require(slot_id)
        if session.result is None:
            raise SessionStateError(f"Slot {slot_id} has no analysis yet")
        return session.result

    def accept_suggestion(self, slot_id: str, label: str) -> None:
        """Add a suggested object or scene label from an image's analysis as a tag."""
        self._analysis_for(slot_id)
        self.metadata_state.add_tag(label)

    def accept_description(self, slot_id: str) -> None:
        """Append an image's analysis description to the batch description."""
        description = self._analysis_for(slot_id).raw_results.llm_analysis.description
        if description:
            self.metadata_state.append_description(description)

    def discard(self) -> None:
        self._sessions.clear()
        self.metadata_state.reset()
