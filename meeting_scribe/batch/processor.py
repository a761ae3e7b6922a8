"""
Sequential batch transcription with cooperative cancellation.

Items are processed strictly one at a time (pre-process -> transmit -> await
result) so that only one decoded recording is in memory and the remote rate
limits are respected. A cancellation flag is checked before each item,
before and after each remote call and between the retry attempts of that
call; the item in progress then goes back to PENDING while finished items
keep their results. A failing item is marked FAILED and the batch moves on.
"""

import logging
import threading
import time
from typing import Callable, Dict, Iterable, Optional

from ..audio.preprocessing import AudioPreprocessingPipeline
from ..audio.types import AudioFile, ProcessingOptions
from ..config import ConfigManager
from ..errors import AudioProcessingError, OperationCancelled
from ..llm.client import MeetingAssistant
from .models import BatchItem, ItemStatus

logger = logging.getLogger(__name__)


class BatchCancelled(OperationCancelled):
    """Raised at a checkpoint once cancellation has been requested."""


class BatchProcessor:
    """Runs the pre-processing and transcription of a list of BatchItems."""

    def __init__(
        self,
        pipeline: AudioPreprocessingPipeline,
        assistant: MeetingAssistant,
        options: Optional[ProcessingOptions] = None,
        model: Optional[str] = None,
        inter_item_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the batch processor.

        Args:
            pipeline: Audio pre-processing pipeline
            assistant: Remote transcription operations
            options: Processing options applied to every audio item
            model: Model override for transcription
            inter_item_delay: Pause after each successful item (default: INTER_ITEM_DELAY_SECONDS)
            sleep: Blocking sleep function (injectable for tests)
        """
        self.pipeline = pipeline
        self.assistant = assistant
        self.options = options or ProcessingOptions()
        self.model = model
        self.inter_item_delay = ConfigManager.get_float("INTER_ITEM_DELAY_SECONDS", inter_item_delay)
        self._sleep = sleep
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation; honoured at the next checkpoint."""
        logger.info("Batch cancellation requested")
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _checkpoint(self) -> None:
        if self._cancel_event.is_set():
            raise BatchCancelled()

    def run(self, items: Iterable[BatchItem]) -> Dict[str, BatchItem]:
        """
        Process every selected item that is not completed yet.

        Args:
            items: Batch items (updated in place)

        Returns:
            Dictionary of item id -> item for every item that finished
            (COMPLETED or FAILED) during this run
        """
        self._cancel_event.clear()
        pending = [item for item in items if item.selected and item.status is not ItemStatus.COMPLETED]
        results: Dict[str, BatchItem] = {}

        for position, item in enumerate(pending, start=1):
            if self.cancelled:
                break

            item.status = ItemStatus.PROCESSING
            item.error = None
            item.skipped = False
            logger.info(f"Processing file {position}/{len(pending)}: {item.file.name}")

            try:
                text = self._process_item(item)
            except OperationCancelled:
                item.status = ItemStatus.PENDING
                logger.info(f"Cancelled while processing {item.file.name}; item returned to pending")
                break
            except Exception as e:
                item.status = ItemStatus.FAILED
                item.error = str(e) or type(e).__name__
                results[item.id] = item
                logger.error(f"Failed to process {item.file.name}: {item.error}")
                continue

            item.status = ItemStatus.COMPLETED
            item.transcription = text
            results[item.id] = item
            logger.info(f"Completed {item.file.name} ({len(text)} characters)")

            if position < len(pending) and self.inter_item_delay > 0:
                self._sleep(self.inter_item_delay)

        if self.cancelled:
            logger.info(f"Batch cancelled after {len(results)} of {len(pending)} item(s)")
        return results

    def _process_item(self, item: BatchItem) -> str:
        file = item.file
        if file.is_text:
            return file.data.decode("utf-8")
        if not file.is_audio:
            item.skipped = True
            logger.warning(f"Skipping {file.name}: unsupported file type {file.mime_type}")
            return f"[Skipped unsupported file type: {file.mime_type}]"

        to_send = self._preprocess(file)

        self._checkpoint()
        text = self.assistant.transcribe(
            to_send, model=self.model, options=self.options, cancel_check=self._cancel_event.is_set
        )
        self._checkpoint()
        return text

    def _preprocess(self, file: AudioFile) -> AudioFile:
        if not self.options.needs_processing:
            return file
        try:
            return self.pipeline.process(file, self.options)
        except AudioProcessingError as e:
            logger.warning(f"Audio pre-processing failed for {file.name}, sending the original file: {e}")
            return file
