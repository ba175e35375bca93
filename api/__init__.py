"""
API 層：HTTP 與 WebSocket 路由，只負責轉換 request/response，業務邏輯在 core
"""
