from dataclasses import dataclass
from typing import Callable, Optional
import inspect
import logging
logger = logging.getLogger(__name__)

ProgressCallback = Callable[["UploadProgress"], object]


@dataclass
class UploadProgress:
    """Progress information for a single upload."""
    filename: str
    uploaded_bytes: int = 0
    total_bytes: int = 0
    status: str = "uploading"  # uploading, completed

    @property
    def percent(self) -> float:
        if self.total_bytes <= 0:
            return 100.0 if self.status == "completed" else 0.0
        return self.uploaded_bytes * 100.0 / self.total_bytes


async def notify_progress(callback: Optional[ProgressCallback], progress: UploadProgress) -> None:
    """Call a sync or async progress listener; listener errors never abort the upload."""
    if callback is None:
        return
    try:
        result = callback(progress)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(f"Error in progress listener for {progress.filename}: {e}")
