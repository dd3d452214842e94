from .policy import POLICIES, Classification, Phase, PhasePolicy, classify
from .poller import Poller, StatusSnapshot, poll

__all__ = [
    "Classification",
    "POLICIES",
    "Phase",
    "PhasePolicy",
    "Poller",
    "StatusSnapshot",
    "classify",
    "poll",
]
