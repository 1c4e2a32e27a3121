from .auth_api import AuthApi
from .board_api import BoardApi

__all__ = ["AuthApi", "BoardApi"]
