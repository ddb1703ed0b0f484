"""
User-visible side effects: notices and navigation.

The UI layer supplies a SideEffectSink; the payment core never renders
anything itself.
"""
import enum
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from pydantic import BaseModel


class NoticeLevel(str, enum.Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notice(BaseModel):
    """A modal message shown to the shopper."""
    level: NoticeLevel
    title: str
    text: str
    confirm_label: str = "OK"


class SideEffectSink(ABC):

    @abstractmethod
    async def notify(self, notice: Notice) -> None:
        raise NotImplementedError

    @abstractmethod
    async def navigate(self, route: str) -> None:
        raise NotImplementedError


class RecordingSink(SideEffectSink):
    """Collects effects in call order instead of performing them."""

    def __init__(self):
        self.notices: List[Notice] = []
        self.routes: List[str] = []
        self.events: List[Tuple[str, object]] = []

    async def notify(self, notice: Notice) -> None:
        self.notices.append(notice)
        self.events.append(("notify", notice))

    async def navigate(self, route: str) -> None:
        self.routes.append(route)
        self.events.append(("navigate", route))

    @property
    def last_notice(self) -> Optional[Notice]:
        return self.notices[-1] if self.notices else None
