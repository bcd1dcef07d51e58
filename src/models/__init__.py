from .notification import (  # noqa
    MUTABLE_SOURCE_KIND,
    Category,
    NormalizedNotification,
    NotificationFeed,
    NotificationSummary,
    Priority,
    SourceKind,
)
from .viewer import Viewer, ViewerRole  # noqa
