"""
Previous-shutdown check.

Asked once per process, before adapter discovery starts. The answer is
advisory: after an unexpected shutdown the lifetime counters are still the
source of truth, some session data may just be missing.
"""

import logging
from typing import Optional

from ..capture.client import BackendClient
from ..exceptions import BackendError, PayloadShapeError

log = logging.getLogger(__name__)


class ShutdownDetector:

    def __init__(self, client: BackendClient):
        self.client = client
        self._status: Optional[bool] = None

    @property
    def checked(self) -> bool:
        return self._status is not None

    @property
    def status(self) -> bool:
        return bool(self._status)

    async def check_previous_shutdown(self) -> bool:
        """Ask the backend the first time, return the cached answer afterwards."""
        if self._status is not None:
            return self._status

        try:
            self._status = await self.client.check_unexpected_shutdown()
        except (BackendError, PayloadShapeError) as e:
            log.error("Failed to check shutdown state: %s", e)
            self._status = False

        if self._status:
            log.warning("Previous session ended unexpectedly - some session data may be missing, "
                        "lifetime totals are preserved")
        return self._status
