"""
出價冷卻限制器

每個隊伍記錄最後一次「成功」出價的時間，COOLDOWN_MS 內的再次出價會被拒絕。

特性：
- Process-local、記憶體內，重啟就消失（最壞情況是重啟後某隊提早一點點出價成功）
- 只有成功出價會更新時間；被拒絕的出價不會重設冷卻
- 出價在 commit 前（仍持有寫入鎖時）記錄，commit 失敗再 revert
- 執行緒安全：FastAPI 的 threadpool 會同時呼叫
"""
import threading
from typing import Dict, Optional

from core.clock import SystemClock
from core.exceptions import CooldownError


class CooldownLimiter:
    """Per-team cooldown，時鐘可注入"""

    def __init__(self, cooldown_ms: int, clock=None):
        self.cooldown_ms = cooldown_ms
        self.clock = clock or SystemClock()
        self._last_accepted: Dict[str, int] = {}
        self._lock = threading.Lock()

    def check(self, team_id: str, now: int = None) -> None:
        """
        檢查隊伍是否還在冷卻中

        異常：
            CooldownError: 距離上次成功出價不足 cooldown_ms
        """
        if now is None:
            now = self.clock.now_ms()

        with self._lock:
            last = self._last_accepted.get(team_id)

        if last is None:
            return

        elapsed = now - last
        if elapsed < self.cooldown_ms:
            raise CooldownError(retry_after_ms=self.cooldown_ms - elapsed)

    def record(self, team_id: str, now: int = None) -> Optional[int]:
        """記錄一次成功出價，回傳被覆蓋的上一筆時間"""
        if now is None:
            now = self.clock.now_ms()
        with self._lock:
            previous = self._last_accepted.get(team_id)
            self._last_accepted[team_id] = now
        return previous

    def revert(self, team_id: str, recorded: int, previous: Optional[int]) -> None:
        """
        撤銷一次 record()（出價的 commit 失敗時呼叫）

        只有目前的值還是 recorded 時才還原，之後其他成功出價寫入的時間不會被蓋掉
        """
        with self._lock:
            if self._last_accepted.get(team_id) != recorded:
                return
            if previous is None:
                del self._last_accepted[team_id]
            else:
                self._last_accepted[team_id] = previous

    def forget(self, team_id: str) -> None:
        with self._lock:
            self._last_accepted.pop(team_id, None)
