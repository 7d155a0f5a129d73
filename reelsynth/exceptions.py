"""Error taxonomy for the recommendation pipeline."""

from dataclasses import dataclass


class ReelSynthError(Exception):
    """Base exception for pipeline errors."""

    pass


class UserNotFoundError(ReelSynthError):
    """No user with the given id."""

    def __init__(self, user_id: int) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class InsufficientDataError(ReelSynthError):
    """User has too few ratings for personalized recommendations."""

    def __init__(self, current: int, required: int) -> None:
        self.current = current
        self.required = required
        super().__init__(
            f"Please rate at least {required} titles to get personalized recommendations "
            f"(you have rated {current})."
        )


class NoDataError(ReelSynthError):
    """Nothing to analyze for this user."""

    pass


class LLMServiceError(ReelSynthError):
    """An upstream language-model or embedding provider call failed."""

    pass


class RecommendationServiceUnavailable(ReelSynthError):
    """Transient upstream failure; the caller may try again later."""

    pass


class RetrievalFailure(RecommendationServiceUnavailable):
    """Search-augmented retrieval call failed."""

    pass


class RefinementFailure(RecommendationServiceUnavailable):
    """Structured refinement call failed or produced nothing."""

    pass


class ParseFailure(ReelSynthError):
    """An LLM response violated the expected JSON contract."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        self.raw = raw
        super().__init__(message)


class EnrichmentFailure(ReelSynthError):
    """Metadata enrichment could not be completed."""

    pass


@dataclass
class PerCandidateStorageFailure:
    """A single candidate that could not be stored.

    Recorded in the batch result instead of being raised, so one bad
    candidate never aborts the batch.
    """

    position: int
    title: str
    error: str
