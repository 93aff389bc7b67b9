"""
botanic
~~~~~~~

Botanic 聊天服务后端 —— WebSocket 房间广播 + LLM 回复中继。
"""
