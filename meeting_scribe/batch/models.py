"""
Data models for batch transcription.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..audio.types import AudioFile


class ItemStatus(Enum):
    """Processing status of a batch item."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class BatchItem:
    """One file (or one part of a split file) queued for transcription."""

    file: AudioFile
    original_name: str = ""
    part_index: int = 0
    total_parts: int = 1
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:9])
    status: ItemStatus = ItemStatus.PENDING
    transcription: Optional[str] = None
    error: Optional[str] = None
    selected: bool = True
    skipped: bool = False

    def __post_init__(self):
        if not self.original_name:
            self.original_name = self.file.name

    @property
    def is_done(self) -> bool:
        return self.status is ItemStatus.COMPLETED

    @property
    def transcribed(self) -> bool:
        """Completed with real content rather than a skip notice."""
        return self.is_done and not self.skipped
