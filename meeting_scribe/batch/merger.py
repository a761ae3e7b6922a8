"""
Merging of per-item transcriptions into one document.
"""

from typing import Iterable

from .models import BatchItem


def merge_transcriptions(items: Iterable[BatchItem]) -> str:
    """
    Join the transcriptions of completed items.

    Items are ordered by original file name, then by part index, so the parts
    of a split recording come back together in order. Each part is introduced
    by a ``--- Part: <name> ---`` header.

    Args:
        items: Batch items in any order

    Returns:
        Merged transcript, or an empty string if nothing is completed
    """
    completed = [item for item in items if item.is_done and item.transcription]
    completed.sort(key=lambda item: (item.original_name, item.part_index))
    return "\n\n".join(f"--- Part: {item.file.name} ---\n{item.transcription}" for item in completed)
