from __future__ import annotations

import logging
import time
from collections import OrderedDict

_MAX_CODES = 256
_reported: OrderedDict[str, float] = OrderedDict()


def warn_once(logger: logging.Logger, code: str, message: str, *args, window: float = 60) -> None:
    """Warn about ``code`` unless it was already reported in the last ``window`` seconds.

    Only the most recently reported codes are remembered.
    """
    now = time.monotonic()
    previous = _reported.get(code)
    if previous is not None and now - previous <= window:
        return
    _reported[code] = now
    _reported.move_to_end(code)
    while len(_reported) > _MAX_CODES:
        _reported.popitem(last=False)
    logger.warning("%s: " + message, code, *args)


def reset_warnings() -> None:
    _reported.clear()
