"""
meeting-scribe: audio pre-processing and resilient transcription for meeting minutes.

Main components:
- audio: decode, condition (resample, trim silence, gate noise, normalize) and
  encode recordings into canonical 16-bit mono WAV
- llm: credential pool, resilient executor and the remote meeting operations
- batch: splitting of large recordings and sequential transcription of queued
  files with cooperative cancellation
"""

from .audio import AudioFile, AudioPreprocessingPipeline, ProcessingOptions
from .batch import BatchItem, BatchProcessor, FileSplitter, merge_transcriptions
from .llm import CredentialPool, ExecutorState, MeetingAssistant, MeetingDetails, ResilientExecutor, StatusSnapshot

__version__ = "0.1.0"

__all__ = [
    "AudioFile",
    "AudioPreprocessingPipeline",
    "ProcessingOptions",
    "BatchItem",
    "BatchProcessor",
    "FileSplitter",
    "merge_transcriptions",
    "CredentialPool",
    "ExecutorState",
    "MeetingAssistant",
    "MeetingDetails",
    "ResilientExecutor",
    "StatusSnapshot",
]
