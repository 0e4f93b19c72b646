from .device_flow import DeviceFlowClient, DeviceFlowSession
from .manager import AuthManager, CancelToken, FlowState
from .store import AuthToken, TokenStore

__all__ = [
    "AuthManager",
    "AuthToken",
    "CancelToken",
    "DeviceFlowClient",
    "DeviceFlowSession",
    "FlowState",
    "TokenStore",
]
