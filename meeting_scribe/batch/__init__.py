"""
Batch transcription of queued files.
"""

from .merger import merge_transcriptions
from .models import BatchItem, ItemStatus
from .processor import BatchCancelled, BatchProcessor
from .splitter import FileSplitter

__all__ = ["BatchItem", "ItemStatus", "BatchCancelled", "BatchProcessor", "FileSplitter", "merge_transcriptions"]
