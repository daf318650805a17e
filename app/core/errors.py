# app/core/errors.py
from __future__ import annotations


class MarketplaceError(Exception):
    """
    Base for every error a service may raise on purpose.

    Routes do not translate these one by one: the handlers registered in
    app.main render them into the {success: false, message} envelope with
    the class's status_code.
    """

    status_code: int = 500
    default_message: str = "Unexpected error."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(MarketplaceError):
    status_code = 401
    default_message = "Authentication required."


class Forbidden(MarketplaceError):
    status_code = 403
    default_message = "Access denied."


class NotFound(MarketplaceError):
    status_code = 404
    default_message = "Not found."


class InvalidState(MarketplaceError):
    status_code = 400
    default_message = "Operation not allowed in the current state."


class InvalidTransition(InvalidState):
    default_message = "Status transition not allowed."


class ProjectNotOpen(InvalidState):
    default_message = "Project is not open for bids."


class DuplicateBid(MarketplaceError):
    status_code = 400
    default_message = "You have already submitted a bid for this project."


class ValidationError(MarketplaceError):
    status_code = 400
    default_message = "Invalid input."


class InvalidInput(ValidationError):
    default_message = "Text must be a string."


class IdempotencyConflict(MarketplaceError):
    status_code = 409
    default_message = "Idempotency-Key reuse with different payload is not allowed."


class RateLimited(MarketplaceError):
    status_code = 429
    default_message = "Rate limit exceeded."


class UpstreamFailure(MarketplaceError):
    status_code = 500
    default_message = "Storage or upstream service failed."
