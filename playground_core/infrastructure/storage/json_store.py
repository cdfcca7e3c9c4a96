import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from playground_core.config.settings import settings
from playground_core.domain.conversation import SessionStore
from playground_core.domain.exceptions import BusinessError
from playground_core.domain.models import UnifiedConversation


class JsonSessionStore(SessionStore):
    """把单个会话保存为 <root>/sessions/<session_id>.json。

    写入时先写临时文件再 os.replace，保证文件内容始终是某次完整保存的结果。
    """

    def __init__(self, session_id: Optional[str] = None, root: str | Path | None = None):
        self.session_id = session_id or f"s-{uuid4().hex}"
        self._root = Path(root or settings.storage_root).resolve()
        self._sessions_root = self._root / "sessions"
        self._sessions_root.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._sessions_root / f"{self.session_id}.json"

    def load(self) -> Optional[UnifiedConversation]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return UnifiedConversation.from_dict(data.get("conversation") or {})
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise BusinessError(code="STORE_READ_ERROR", message=str(e), session_id=self.session_id)

    def save(self, conversation: UnifiedConversation) -> None:
        tmp_path = self._sessions_root / f"{self.session_id}.{uuid4().hex}.json.tmp"
        obj = {
            "id": self.session_id,
            "updated_at": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "conversation": conversation.to_dict(),
        }
        try:
            tmp_path.write_text(json.dumps(obj, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            tmp_path.unlink(missing_ok=True)
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e), session_id=self.session_id)

    def delete(self) -> None:
        if not self.path.exists():
            raise BusinessError(code="SESSION_NOT_FOUND", message=self.session_id)
        self.path.unlink()

    @staticmethod
    def list_sessions(root: str | Path | None = None) -> List[str]:
        sessions_root = Path(root or settings.storage_root).resolve() / "sessions"
        if not sessions_root.exists():
            return []
        return sorted(p.stem for p in sessions_root.glob("*.json"))
