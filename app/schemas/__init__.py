from app.schemas.common import Envelope, ok, fail
from app.schemas.auth import RegisterRequest, LoginRequest, TokenResponse
from app.schemas.projects import ProjectCreateRequest, ProjectPatchRequest, ProjectCompleteRequest
from app.schemas.bids import BidSubmitRequest
from app.schemas.moderation import ModerationCheckRequest, ModerationResult, ModerationStatistics, FlaggedPosition
from app.schemas.notifications import PreferencesUpdateRequest
