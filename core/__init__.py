"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理回合狀態轉換
- Manager：管理 Round 和 Team 的生命週期
- Bid Arbitrator：出價驗證與提交
- Session Registry / Publisher：token 對應與三種視圖的推播
- Locks：並發控制工具
"""
