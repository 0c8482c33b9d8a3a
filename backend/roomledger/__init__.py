"""
RoomLedger - 酒店房态分配与结算引擎
"""
__version__ = "1.0.0"
