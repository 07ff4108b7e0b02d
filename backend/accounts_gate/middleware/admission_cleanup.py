"""Background admission-window cleanup task."""

import asyncio
import logging

from accounts_gate.middleware.admission import AdmissionController, get_admission_controller

logger = logging.getLogger(__name__)


async def admission_cleanup_loop(
    controller: AdmissionController | None = None,
    interval_seconds: float = 3600,
) -> None:
    """Periodic cleanup of expired admission windows to prevent memory leaks."""
    controller = controller or get_admission_controller()
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = await controller.cleanup_expired_windows()
            if removed > 0:
                logger.debug(f"Admission cleanup: removed {removed} expired windows")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Admission cleanup error: {e}")
