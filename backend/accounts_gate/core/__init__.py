# Accounts Gate Core Module
from .config import get_settings, settings
from .database import async_session_maker, build_engine, check_db_connection, engine
from .logging import get_logger, log_security_event, setup_logging

__all__ = [
    "settings",
    "get_settings",
    "setup_logging",
    "get_logger",
    "log_security_event",
    "build_engine",
    "engine",
    "async_session_maker",
    "check_db_connection",
]
