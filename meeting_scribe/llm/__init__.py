"""
Remote language-model access with credential rotation and model fallback.
"""

from .client import MeetingAssistant, MeetingDetails, strip_code_fences
from .credentials import CredentialPool, parse_credentials
from .executor import ExecutorState, RemoteOperation, ResilientExecutor, StatusSnapshot

__all__ = [
    "MeetingAssistant",
    "MeetingDetails",
    "strip_code_fences",
    "CredentialPool",
    "parse_credentials",
    "ExecutorState",
    "RemoteOperation",
    "ResilientExecutor",
    "StatusSnapshot",
]
