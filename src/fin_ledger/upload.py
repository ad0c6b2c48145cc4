"""Hand-off of serialized statements to an account-aggregation service."""

from typing import Protocol

from .errors import UploadError
from .logging_setup import get_logger

logger = get_logger("fin_ledger.upload")


class UploadSink(Protocol):
    """Accepts a serialized interchange document and returns a status."""

    def upload(self, document: str) -> str: ...


def upload_document(sink: UploadSink, document: str) -> str:
    """Send ``document`` to ``sink`` and return the status it reports.

    Raises:
        UploadError: If the sink raises; the original error is chained
    """
    logger.debug("Uploading statement document (%d characters)", len(document))
    try:
        status = sink.upload(document)
    except Exception as e:
        logger.error("Failed to upload statement: %s", e)
        raise UploadError(f"Failed to upload statement: {e}") from e

    logger.info("Uploaded statement with the result: %s", status)
    return status
