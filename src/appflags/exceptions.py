"""appflags の例外型定義"""

from __future__ import annotations


class AppFlagsError(Exception):
    """appflags ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class AppFlagsErrorCodes:
    """AppFlagsError のエラーコード定数。"""

    INVALID_CREDENTIALS: str = "INVALID_CREDENTIALS"
    LOAD_FAILED: str = "LOAD_FAILED"
    SEND_FAILED: str = "SEND_FAILED"
    NOT_INITIALIZED: str = "NOT_INITIALIZED"
    MISSING_PUBLISHED: str = "MISSING_PUBLISHED"
    INVALID_CONFIG: str = "INVALID_CONFIG"
    INVALID_FLAG: str = "INVALID_FLAG"
    DECODE_ERROR: str = "DECODE_ERROR"
    REALTIME_ERROR: str = "REALTIME_ERROR"
