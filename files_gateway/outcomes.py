"""Outcome classification that drives the acknowledgment policy."""
import enum


class Outcome(str, enum.Enum):
    SUCCESS = "success"
    BUSINESS_ERROR = "business_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    TECHNICAL_FAILURE = "technical_failure"

    @property
    def should_ack(self) -> bool:
        """
        Whether the inbound message is acknowledged after this outcome.

        Quota exhaustion is the only outcome left unacknowledged: a tenant's
        quota changes over time, so redelivery can succeed later. Every other
        failure is acknowledged so it does not block the queue.
        """
        return self is not Outcome.QUOTA_EXCEEDED
