"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

每個異常帶有：
- code：穩定的機器可讀字串（WebSocket error payload 使用）
- status_code：API 層對應的 HTTP 狀態碼
"""


class AuctionException(Exception):
    """所有競標異常的基類"""
    code = "auction_error"
    status_code = 400


# ============ 狀態前置條件 ============

class ConflictError(AuctionException):
    """生命週期前置條件不成立（例如已經有進行中的回合）"""
    code = "conflict"
    status_code = 409


class InvalidStateTransition(ConflictError):
    """非法的回合狀態轉換"""
    code = "invalid_transition"


# ============ 找不到資源 ============

class NotFoundError(AuctionException):
    """引用的實體或狀態不存在"""
    code = "not_found"
    status_code = 404


class TeamNotFound(NotFoundError):
    """隊伍不存在"""
    code = "team_not_found"

    def __init__(self, team_id):
        self.team_id = team_id
        super().__init__(f"Team {team_id} not found")


class NoActiveRoundError(NotFoundError):
    """目前沒有進行中的回合"""
    code = "no_active_round"

    def __init__(self, message="Round is not active"):
        super().__init__(message)


class NoBidError(NotFoundError):
    """此隊伍在本回合沒有可以取消的出價"""
    code = "no_bid"

    def __init__(self, team_id):
        self.team_id = team_id
        super().__init__(f"No bid to cancel for team {team_id}")


# ============ Session 相關異常 ============

class UnknownSessionError(AuctionException):
    """Token 無法對應到任何隊伍（可能已被管理員移除）"""
    code = "unknown_session"
    status_code = 401

    def __init__(self, message="Unknown team session"):
        super().__init__(message)


class NameTakenError(AuctionException):
    """隊名已被使用（不分大小寫）"""
    code = "name_taken"
    status_code = 409

    def __init__(self, name):
        self.name = name
        super().__init__(f"Team name '{name}' already taken")


class InvalidTeamNameError(AuctionException):
    """隊名為空"""
    code = "invalid_name"

    def __init__(self, message="Team name is required"):
        super().__init__(message)


# ============ 出價拒絕原因 ============

class TeamLockedError(AuctionException):
    """隊伍被管理員鎖定"""
    code = "team_locked"
    status_code = 403

    def __init__(self, team_id):
        self.team_id = team_id
        super().__init__("Your team is locked")


class CooldownError(AuctionException):
    """出價太頻繁"""
    code = "cooldown"
    status_code = 429

    def __init__(self, retry_after_ms: int):
        self.retry_after_ms = retry_after_ms
        super().__init__(f"Slow down! Cooldown in effect ({retry_after_ms} ms left)")


class BidCeilingError(AuctionException):
    """下一階出價超過上限"""
    code = "max_bid"
    status_code = 422

    def __init__(self, next_bid: int, max_bid: int):
        self.next_bid = next_bid
        self.max_bid = max_bid
        super().__init__(f"Max bid reached: next bid {next_bid} exceeds {max_bid}")


class InsufficientFundsError(AuctionException):
    """錢包餘額不足以支付下一階出價"""
    code = "insufficient_funds"
    status_code = 422

    def __init__(self, next_bid: int, wallet: int):
        self.next_bid = next_bid
        self.wallet = wallet
        super().__init__(f"Insufficient wallet: next bid {next_bid}, wallet {wallet}")


# ============ 管理員操作 ============

class InvalidWalletError(AuctionException):
    """錢包金額不可為負數"""
    code = "invalid_wallet"

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Wallet must be a non-negative integer, got {amount}")


# ============ 儲存層 ============

class StorageError(AuctionException):
    """Transaction 或 I/O 失敗，狀態已 rollback"""
    code = "storage_error"
    status_code = 500

    def __init__(self, message: str = "Storage failure"):
        super().__init__(message)
