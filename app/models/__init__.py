# importing this package registers every table on Base.metadata
from app.models.user import User  # noqa: F401
from app.models.project import Project  # noqa: F401
from app.models.bid import Bid  # noqa: F401
from app.models.review import Review  # noqa: F401
from app.models.notification import Notification  # noqa: F401
from app.models.notification_preference import NotificationPreference  # noqa: F401
from app.models.message import Message  # noqa: F401
from app.models.idempotency_key import IdempotencyKeyRecord  # noqa: F401
