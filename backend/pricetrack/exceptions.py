"""Error taxonomy for engines, the job runner and the approval workflow.

``retryable`` tells the attempt loops whether another attempt can change the
outcome. Configuration errors never can; fetch and parse misses might.
"""


class PricingError(Exception):
    """Base class for every domain error."""

    code = "pricing_error"
    retryable = True

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


# Configuration errors, terminal

class EngineUnresolved(PricingError):
    code = "engine_unresolved"
    retryable = False


class EngineNotImplemented(PricingError):
    code = "engine_not_implemented"
    retryable = False

    def __init__(self, engine_id):
        self.engine_id = engine_id
        super().__init__(f"{self.code}:{engine_id}")


class MalformedPayload(PricingError):
    code = "malformed_payload"
    retryable = False


# Transient errors

class FetchFailed(PricingError):
    code = "fetch_failed"

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"fetch_failed_http_{status_code}")


# Data errors

class NoPricesFound(PricingError):
    code = "prices_by_presentation_not_found"


class PresentationNotFound(PricingError):
    code = "presentation_not_found"
    retryable = False

    def __init__(self, presentation, available):
        self.presentation = presentation
        self.available = list(available)
        listed = ",".join(f"{p:g}" for p in self.available) or "none"
        super().__init__(f"{self.code}:{presentation:g} (available: {listed})")


# Workflow errors raised to the HTTP layer

class JobNotFound(PricingError):
    code = "job_not_found"
    retryable = False

    def __init__(self, job_id):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class OfferNotFound(PricingError):
    code = "offer_not_found"
    retryable = False

    def __init__(self, offer_id):
        self.offer_id = offer_id
        super().__init__(f"Offer {offer_id} not found")


class OfferConflict(PricingError):
    code = "offer_conflict"
    retryable = False


class NoCandidate(PricingError):
    code = "no_candidate"
    retryable = False


class InvalidJobState(PricingError):
    code = "invalid_job_state"
    retryable = False


def is_retryable(exc: BaseException) -> bool:
    """Domain errors carry their own flag; anything else is treated as transient."""
    if isinstance(exc, PricingError):
        return exc.retryable
    return True


def truncate_error(exc: BaseException | str, limit: int = 2000) -> str:
    message = exc if isinstance(exc, str) else (str(exc) or exc.__class__.__name__)
    return message[:limit]
