"""Image intake for the admin listing form.

Files arrive from a drag-and-drop area or a file picker. Each accepted file is
uploaded to bucket storage; when the upload fails the file is embedded as an
inline data URI instead, so the listing still gets the image.
"""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence

from fastapi import UploadFile
from loguru import logger
from prometheus_client import Counter

from utils.error_handling import ErrorSeverity, Notice, record_failure

MAX_BATCH_FILES = 10

IMAGE_INTAKE_COUNTER = Counter(
    "image_intake_files_total",
    "Files processed by the image intake, by outcome",
    labelnames=["outcome"],
)


class IntakeState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    UPLOADING = "uploading"


@dataclass(slots=True)
class IncomingFile:
    """A file handed to the intake, with a reader that can be called more than once."""

    filename: str
    content_type: str
    reader: Callable[[], Awaitable[bytes]]

    @property
    def is_image(self) -> bool:
        return (self.content_type or "").startswith("image/")

    async def read(self) -> bytes:
        return await self.reader()

    @classmethod
    def from_bytes(cls, filename: str, content_type: str, data: bytes) -> "IncomingFile":
        async def _read() -> bytes:
            return data

        return cls(filename=filename, content_type=content_type, reader=_read)

    @classmethod
    def from_upload(cls, upload: UploadFile) -> "IncomingFile":
        async def _read() -> bytes:
            await upload.seek(0)
            return await upload.read()

        return cls(
            filename=upload.filename or "upload",
            content_type=upload.content_type or "application/octet-stream",
            reader=_read,
        )


def to_data_uri(content_type: str, data: bytes) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


Uploader = Callable[[IncomingFile], Awaitable[Optional[str]]]
ChangeCallback = Callable[[List[str]], None]


@dataclass
class IntakeResult:
    accepted: bool
    added: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)


class ImageIntake:
    """State machine behind the image drop zone of the admin form."""

    def __init__(
        self,
        uploader: Uploader,
        *,
        images: Optional[Sequence[str]] = None,
        on_change: Optional[ChangeCallback] = None,
        max_files: int = MAX_BATCH_FILES,
    ) -> None:
        self._uploader = uploader
        self._on_change = on_change
        self.max_files = max_files
        self.images: List[str] = list(images or [])
        self.state = IntakeState.IDLE
        self.notices: List[Notice] = []
        # Removed references, reported to the orphaned image policy by the caller
        self.discarded: List[str] = []

    def drag_enter(self) -> None:
        if self.state == IntakeState.IDLE:
            self.state = IntakeState.DRAGGING

    def drag_leave(self) -> None:
        if self.state == IntakeState.DRAGGING:
            self.state = IntakeState.IDLE

    async def drop(self, files: Sequence[IncomingFile]) -> IntakeResult:
        self.drag_leave()
        return await self.process(files)

    async def select(self, files: Sequence[IncomingFile]) -> IntakeResult:
        return await self.process(files)

    async def process(self, files: Sequence[IncomingFile]) -> IntakeResult:
        if self.state == IntakeState.UPLOADING:
            self._notify(Notice.warning("Upload in progress", "Please wait for the current upload to finish"))
            return IntakeResult(accepted=False, images=list(self.images))

        image_files = [file for file in files if file.is_image]
        if not image_files:
            self._notify(Notice.warning("Invalid files", "Please select only image files"))
            return IntakeResult(accepted=False, images=list(self.images))

        if len(image_files) > self.max_files:
            self._notify(
                Notice.warning(
                    "Too many files",
                    f"Please select no more than {self.max_files} images at once",
                )
            )
            return IntakeResult(accepted=False, images=list(self.images))

        skipped = len(files) - len(image_files)
        if skipped:
            logger.debug("Ignoring non-image files in batch", skipped=skipped)

        self.state = IntakeState.UPLOADING
        try:
            results = await asyncio.gather(*(self._ingest(file) for file in image_files))
        finally:
            self.state = IntakeState.IDLE

        added = [reference for reference in results if reference is not None]
        self.images = [*self.images, *added]
        self._emit()
        self._notify(Notice("Images uploaded", f"Successfully added {len(added)} image(s)"))
        return IntakeResult(accepted=True, added=added, images=list(self.images))

    async def _ingest(self, file: IncomingFile) -> Optional[str]:
        url = await self._uploader(file)
        if url:
            IMAGE_INTAKE_COUNTER.labels(outcome="uploaded").inc()
            return url

        try:
            data = await file.read()
        except Exception as exc:
            record_failure(exc, "read_image_file", ErrorSeverity.MEDIUM, filename=file.filename)
            IMAGE_INTAKE_COUNTER.labels(outcome="failed").inc()
            self._notify(Notice.warning("Upload error", f"Failed to process {file.filename}"))
            return None

        IMAGE_INTAKE_COUNTER.labels(outcome="inline").inc()
        return to_data_uri(file.content_type, data)

    def remove_image(self, index: int) -> str:
        if index < 0 or index >= len(self.images):
            raise IndexError(f"No image at position {index}")
        removed = self.images[index]
        self.images = [image for position, image in enumerate(self.images) if position != index]
        self.discarded.append(removed)
        self._emit()
        self._notify(Notice("Image removed", "Image has been removed from the listing"))
        return removed

    def clear_all_images(self) -> None:
        self.discarded.extend(self.images)
        self.images = []
        self._emit()
        self._notify(Notice("All images cleared", "All uploaded images have been removed"))

    def _emit(self) -> None:
        if self._on_change is not None:
            self._on_change(list(self.images))

    def _notify(self, notice: Notice) -> None:
        self.notices.append(notice)
