from litreview.core.config import Settings, get_settings
from litreview.core.database import Base, get_db, async_session_maker, engine
from litreview.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    decode_token,
)

__all__ = [
    "Settings",
    "get_settings",
    "Base",
    "get_db",
    "async_session_maker",
    "engine",
    "verify_password",
    "get_password_hash",
    "create_access_token",
    "create_refresh_token",
    "decode_token",
]
