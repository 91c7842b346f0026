from __future__ import annotations

import json
import logging
from typing import Any, Dict


def configure_logging(level: str = "INFO", log_json: bool = False) -> None:
    log_format = (
        "%(message)s"
        if log_json
        else "%(asctime)s %(levelname)s %(name)s %(message)s"
    )
    logging.basicConfig(level=level.upper(), format=log_format)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_event(logger: logging.Logger, event: str, **payload: Any) -> None:
    record: Dict[str, Any] = {"event": event, **payload}
    logger.info(json.dumps(record, default=str))
