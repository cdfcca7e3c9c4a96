from typing import Optional, Protocol

from playground_core.domain.models import UnifiedConversation


class SessionStore(Protocol):
    """会话持久化能力。

    核心层只通过 load/save 读写 UnifiedConversation，
    不关心具体的存储格式。
    """

    def load(self) -> Optional[UnifiedConversation]:
        ...

    def save(self, conversation: UnifiedConversation) -> None:
        ...
