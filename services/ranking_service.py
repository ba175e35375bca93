"""
排名服務：即時排名與回合結算的得標判定

純計算邏輯，不碰資料庫也不改變狀態。
輸入是 Team / BidFact 這類帶屬性的物件，輸出是 schemas 裡的結構。
"""
from typing import Iterable, List, Optional

from schemas import BidFact, RoundResult, TeamStanding


def _standing_sort_key(team):
    # 金額高的在前；同金額時較早出價的在前；從未出價（None）排最後
    last_bid_time = team.last_bid_time if team.last_bid_time is not None else float("inf")
    return (-team.current_bid, last_bid_time, team.name.lower())


def rank_teams(teams: Iterable) -> List[TeamStanding]:
    """
    計算即時排名

    規則：
    - 依 current_bid 由高到低，同金額依 last_bid_time 由早到晚
    - 同金額共用名次，下一個不同金額的名次跳到自己的位置（1, 1, 3）
    - current_bid == 0 的隊伍沒有名次（None）

    做法：單次掃過排序後的清單，沿用 (last_rank, last_amount)

    範例：
        A=1000, B=1000, C=800, D=0
        -> A: 1, B: 1, C: 3, D: None
    """
    ordered = sorted(teams, key=_standing_sort_key)

    standings: List[TeamStanding] = []
    last_rank: Optional[int] = None
    last_amount: Optional[int] = None

    for position, team in enumerate(ordered, start=1):
        if team.current_bid == 0:
            rank = None
        elif team.current_bid == last_amount:
            rank = last_rank
        else:
            rank = position
            last_rank = rank
            last_amount = team.current_bid

        standings.append(TeamStanding(
            id=team.id,
            name=team.name,
            wallet=team.wallet,
            current_bid=team.current_bid,
            last_bid_time=team.last_bid_time,
            locked=bool(team.locked),
            rank=rank
        ))

    return standings


def highest_bid(teams: Iterable) -> int:
    """所有隊伍 current_bid 的最大值，沒有隊伍時為 0"""
    return max((team.current_bid for team in teams), default=0)


def resolve_winners(bids: Iterable[BidFact]) -> RoundResult:
    """
    回合結算：從整個回合的出價紀錄找出得標者

    規則：
    - 依金額由高到低、時間由早到晚排序
    - winner：第一筆
    - second_highest：之後第一筆金額「嚴格小於」winner 的出價（跳過同金額的並列）
    - fastest_bidder：整個回合最早的一筆出價，和金額無關
    - 沒有任何出價時三者皆為 None

    範例：
        (A, 1000, t=5), (B, 1000, t=3), (C, 800, t=1)
        -> winner=B, second_highest=C, fastest_bidder=C
    """
    ordered = sorted(bids, key=lambda b: (-b.amount, b.timestamp, b.bid_id))
    if not ordered:
        return RoundResult()

    winner = ordered[0]
    second_highest = next((b for b in ordered if b.amount < winner.amount), None)
    fastest_bidder = min(ordered, key=lambda b: (b.timestamp, b.bid_id))

    return RoundResult(
        winner=winner,
        second_highest=second_highest,
        fastest_bidder=fastest_bidder
    )
