from payrecon.client.poller import (
    ABANDONED_MESSAGE,
    HttpStatusFetcher,
    PollOutcome,
    PollerState,
    StatusCheckError,
    StatusPoller,
    classify_status,
)

__all__ = [
    "ABANDONED_MESSAGE",
    "HttpStatusFetcher",
    "PollOutcome",
    "PollerState",
    "StatusCheckError",
    "StatusPoller",
    "classify_status",
]
