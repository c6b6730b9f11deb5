"""EvaluationEngine プロトコル"""

from __future__ import annotations

from typing import Protocol


class EvaluationEngine(Protocol):
    """外部のフラグ評価エンジン。

    エンコード済みの設定とユーザーを受け取り、エンコード済みの結果を返す。
    設定が変わるたびに ``set_configuration`` で再設定する必要がある。
    """

    def set_configuration(self, configuration: bytes) -> None: ...

    def bucket(self, user: bytes) -> bytes: ...

    def bucket_one_flag(self, user: bytes, flag_key: str) -> bytes: ...
