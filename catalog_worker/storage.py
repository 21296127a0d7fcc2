"""Upload and persistence collaborators for analyzed batches."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import httpx

from catalog_worker.config import SUPABASE_ANON_KEY, SUPABASE_SERVICE_ROLE_KEY, SUPABASE_URL
from catalog_worker.errors import PersistenceError, SessionStateError
from catalog_worker.schemas.image import ImageRecord, RecordMetadata
from catalog_worker.session import AnalysisBatch

logger = logging.getLogger(__name__)


class ImageRepository(ABC):
    """Stores catalog image records."""

    @abstractmethod
    async def insert_image(self, record: ImageRecord) -> None:
        """Insert one record; raise PersistenceError on failure."""
        ...


class ImageUploader(ABC):
    """Commits a local image to storage and returns a fetchable URL."""

    @abstractmethod
    async def upload(self, image_ref: Any) -> str:
        ...


def _supabase_headers(api_key: str, access_token: str | None = None) -> dict[str, str]:
    return {
        "apikey": api_key,
        "Authorization": f"Bearer {access_token or api_key}",
    }


class SupabaseImageRepository(ImageRepository):
    """Inserts rows into the ``images`` table through the Supabase REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        access_token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or SUPABASE_URL).rstrip("/")
        if not self.base_url:
            raise ValueError("SUPABASE_URL is required")
        key = api_key or SUPABASE_SERVICE_ROLE_KEY or SUPABASE_ANON_KEY
        self.headers = {
            **_supabase_headers(key, access_token),
            "Content-Type": "application/json",
            "Prefer": "return=minimal",
        }
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=30.0)

    async def aclose(self) -> None:
        """Close the HTTP client if this repository created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "SupabaseImageRepository":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def insert_image(self, record: ImageRecord) -> None:
        try:
            response = await self.client.post(
                f"{self.base_url}/rest/v1/images",
                json=record.model_dump(),
                headers=self.headers,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PersistenceError(f"Failed to insert image {record.url}: {e}") from e


class PreprocessUploader(ImageUploader):
    """Sends an image file to the preprocess function, which stores it and returns its URL."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = (base_url or SUPABASE_URL).rstrip("/")
        if not self.base_url:
            raise ValueError("SUPABASE_URL is required")
        self.headers = _supabase_headers(api_key or SUPABASE_ANON_KEY)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=60.0)

    async def aclose(self) -> None:
        """Close the HTTP client if this uploader created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "PreprocessUploader":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def upload(self, image_ref: Any) -> str:
        path = Path(image_ref)
        try:
            content = await asyncio.to_thread(path.read_bytes)
            response = await self.client.post(
                f"{self.base_url}/functions/v1/preprocess-image",
                files={"image": (path.name, content)},
                headers=self.headers,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, OSError, ValueError) as e:
            raise PersistenceError(f"Failed to process image {path.name}: {e}") from e

        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            raise PersistenceError("No URL returned from image processing")
        return url


@dataclass
class SaveReport:
    """Outcome of a batch save, keyed by slot id.

    ``skipped`` lists images that were not saved because they have no
    uploaded URL yet.
    """

    saved: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.skipped


def build_records(batch: AnalysisBatch, user_id: str) -> dict[str, ImageRecord]:
    """One record per uploaded image not yet saved, all sharing the batch metadata.

    In a multi-image batch each title gets a 1-based ``(n)`` suffix. The
    number is the image's position in the batch, so it stays the same when a
    save is retried.
    """
    metadata = batch.metadata_state.metadata
    sessions = batch.sessions
    records = {}
    for index, session in enumerate(sessions, start=1):
        if not session.uploaded_url or session.saved:
            continue
        title = metadata.title if len(sessions) == 1 else f"{metadata.title} ({index})"
        records[session.slot_id] = ImageRecord(
            url=session.uploaded_url,
            title=title,
            description=metadata.description,
            tags=list(metadata.tags),
            user_id=user_id,
            metadata=RecordMetadata(
                objects=list(metadata.objects),
                scenes=list(metadata.scenes),
                emotions=list(metadata.emotions),
                technical_details=metadata.technical_details.model_copy(deep=True),
            ),
        )
    return records


async def save_batch(
    batch: AnalysisBatch,
    repository: ImageRepository,
    user_id: str,
    on_saved: Callable[[SaveReport], None] | None = None,
) -> SaveReport:
    """Insert every uploaded image of the batch.

    All inserts are attempted even if some fail; failures are collected in the
    report rather than aborting the batch. Saved images are marked, so saving
    the batch again only retries the ones that failed. ``on_saved`` runs once
    after every insert has been attempted. The batch is discarded once every
    image in it has been saved.

    Raises:
        SessionStateError: if any image is still being analyzed or the batch
            has no title.
    """
    if batch.is_analyzing:
        raise SessionStateError("Cannot save while images are still being analyzed")
    if not batch.metadata_state.metadata.title.strip():
        raise SessionStateError("A title is required to save the batch")

    records = build_records(batch, user_id)
    slot_ids = list(records)
    outcomes = await asyncio.gather(
        *(repository.insert_image(records[sid]) for sid in slot_ids),
        return_exceptions=True,
    )

    report = SaveReport(
        skipped=[s.slot_id for s in batch.sessions if not s.uploaded_url and not s.saved]
    )
    for slot_id, outcome in zip(slot_ids, outcomes):
        if isinstance(outcome, BaseException):
            logger.warning(f"Failed to save slot {slot_id}: {outcome}")
            report.failed[slot_id] = str(outcome)
        else:
            session = batch.get(slot_id)
            if session is not None:
                session.saved = True
            report.saved.append(slot_id)

    if report.skipped:
        logger.warning(f"{len(report.skipped)} images have no uploaded URL and were not saved")
    if report.failed:
        logger.error(f"Saved {len(report.saved)} of {len(slot_ids)} images; {len(report.failed)} failed")
    else:
        logger.info(f"Saved {len(report.saved)} images")
    if report.ok:
        batch.discard()

    if on_saved is not None:
        on_saved(report)
    return report
