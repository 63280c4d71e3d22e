"""
ORM models for marketplace entities: users and worker profiles, the service
catalog, service requests (jobs) with reviews, support tickets and chat,
notifications with device tokens, and the wallet ledger and chat security logs.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .users import (  # noqa: F401
    User,
    WorkerProfile,
)
from .catalog import (  # noqa: F401
    ServiceCategory,
)
from .jobs import (  # noqa: F401
    ServiceRequest,
    Review,
    SupportTicket,
    ChatMessage,
)
from .notifications import (  # noqa: F401
    Notification,
    DeviceToken,
)
from .billing import (  # noqa: F401
    LedgerEntry,
)
from .security import (  # noqa: F401
    SecurityLog,
)
