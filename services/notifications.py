import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from utils.phone import mask_phone

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Fire-and-forget delivery of outbound SMS. A delivery failure is logged
    and never reaches the operation that triggered it.
    """

    def __init__(self, sender, executor: Optional[ThreadPoolExecutor] = None):
        self.sender = sender
        self.executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="sms")

    def dispatch(self, local_phone: str, kind: str, data: dict) -> Future:
        try:
            return self.executor.submit(self._deliver, local_phone, kind, dict(data or {}))
        except RuntimeError:
            # executor shut down (process exiting)
            logger.error("Notification executor unavailable; %s to %s dropped",
                         kind, mask_phone(local_phone))
            failed = Future()
            failed.set_result(False)
            return failed

    def _deliver(self, local_phone: str, kind: str, data: dict) -> bool:
        masked = mask_phone(local_phone)
        try:
            ok = bool(self.sender.send(local_phone, kind, data))
        except Exception:
            logger.exception("Notification %s to %s failed", kind, masked)
            return False

        if ok:
            logger.info("Notification %s to %s delivered", kind, masked)
        else:
            logger.warning("Notification %s to %s not delivered", kind, masked)
        return ok

    def shutdown(self) -> None:
        self.executor.shutdown(wait=True)
