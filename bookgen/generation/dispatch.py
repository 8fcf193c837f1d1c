"""Route worker messages (START_GENERATION, CHECK_STATUS, STOP_GENERATION, RECOVER_CONNECTION) to the generation worker."""
import logging
from typing import Union

from bookgen.generation.worker import GeneratePendingBooksWorker
from bookgen.models.schemas import WorkerMessage

logger = logging.getLogger(__name__)


def handle_message(worker: GeneratePendingBooksWorker, message: Union[WorkerMessage, dict]) -> None:
    """Apply one message to the worker. Unknown types and unexpected failures are reported to the worker's listeners as ERROR events.
    Why available: Single entry point for the control API and scripts so every caller drives the worker through the same commands."""
    if isinstance(message, dict):
        message = WorkerMessage.model_validate(message)

    logger.info("worker_message_received", extra={"message_type": message.type, "has_token": bool(message.token)})
    try:
        if message.type == "START_GENERATION":
            worker.start(message.token)
        elif message.type == "CHECK_STATUS":
            worker.check_status()
        elif message.type == "STOP_GENERATION":
            worker.stop()
        elif message.type == "RECOVER_CONNECTION":
            worker.recover_connection(message.token)
        else:
            logger.warning("worker_message_unknown", extra={"message_type": message.type})
            worker.report_error(f"Unknown message type: {message.type}")
    except Exception as e:
        logger.exception("worker_message_failed", extra={"message_type": message.type})
        worker.report_error(f"Worker error: {e}")
