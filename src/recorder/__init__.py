"""Balance log persistence and publishing.

This module provides the markdown observation log and best-effort git sync.
"""

from src.recorder.git_sync import GitSync, SyncOutcome
from src.recorder.markdown_log import ObservationRecorder, PersistenceError

__all__ = ["GitSync", "ObservationRecorder", "PersistenceError", "SyncOutcome"]
