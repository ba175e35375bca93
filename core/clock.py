"""
時鐘抽象

所有時間戳記都是 epoch 毫秒整數。測試可以注入任何有 now_ms() 的物件。
"""
import time


class SystemClock:
    """Wall-clock 時間（毫秒）"""

    def now_ms(self) -> int:
        return int(time.time() * 1000)
