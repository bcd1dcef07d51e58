from .log import log  # noqa
from .token_handler import Token, TokenHandler  # noqa
from .visibility_store import (  # noqa
    InMemoryVisibilityStore,
    RedisVisibilityStore,
    ViewerVisibilityStore,
)
from .notification_handler import (  # noqa
    NotificationHandler,
    NotificationLoadError,
    NotificationUpdateError,
)
