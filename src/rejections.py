from collections import Counter
from typing import Callable, Dict, List

from models import RejectedTransaction, RejectionReason

RejectionSink = Callable[[RejectedTransaction], None]


class RejectionLog:
    """
    Queryable rejection sink. Pass an instance as ``rejection_sink`` to keep
    every discarded transaction instead of dropping it.
    """

    def __init__(self):
        self._rejections: List[RejectedTransaction] = []

    def __call__(self, rejection: RejectedTransaction) -> None:
        self._rejections.append(rejection)

    def __len__(self) -> int:
        return len(self._rejections)

    def __iter__(self):
        return iter(self._rejections)

    @property
    def rejections(self) -> List[RejectedTransaction]:
        return list(self._rejections)

    def by_reason(self, reason: RejectionReason) -> List[RejectedTransaction]:
        return [r for r in self._rejections if r.reason is reason]

    def counts(self) -> Dict[RejectionReason, int]:
        return dict(Counter(r.reason for r in self._rejections))
