"""Seoul Trade Core - 순수 Python 게임 규칙 (DB/HTTP 무관)"""
__version__ = "0.1.0"
