"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- RankingService：即時排名與得標判定
- ViewService：三種視圖的組裝
- AuditService：事件紀錄與匯出
- NamingService：隊名與 token 生成
"""
