"""
命名服務：隊名正規化、隊伍 ID 與 Session Token 生成

純計算邏輯，不涉及狀態轉換
"""
import uuid
from typing import Optional


def normalize_team_name(name: Optional[str]) -> str:
    """
    去除前後空白

    注意：
    - 不檢查唯一性（由 TeamManager 負責，比對時不分大小寫）
    - 回傳空字串代表隊名無效
    """
    if not isinstance(name, str):
        return ""
    return name.strip()


def generate_team_id() -> str:
    return str(uuid.uuid4())


def generate_session_token() -> str:
    """
    生成隨機的 session token

    token 在加入時建立，之後重新連線都沿用同一個，
    所以前端重新整理頁面不會失去座位
    """
    return str(uuid.uuid4())
