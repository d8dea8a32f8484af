from .logger import get_logger, get_request_id, new_request_id, set_request_id, setup_logging

__all__ = [
    "get_logger",
    "get_request_id",
    "new_request_id",
    "set_request_id",
    "setup_logging",
]
