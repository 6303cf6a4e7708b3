"""
Common utilities and shared modules.
"""

from adcast.common.broker import MessageBroker, MqttBroker, Topics
from adcast.common.config import get_settings, settings
from adcast.common.database import Base, db, get_session, init_db
from adcast.common.exceptions import AdCastError
from adcast.common.logger import get_logger, log_context, logger

__all__ = [
    "settings",
    "get_settings",
    "logger",
    "get_logger",
    "log_context",
    "db",
    "init_db",
    "get_session",
    "Base",
    "MessageBroker",
    "MqttBroker",
    "Topics",
    "AdCastError",
]
