"""Store層の抽象インターフェース（永続化ゲートウェイ）。

Store層は論理名ごとに1つのJSONドキュメントを保存・読込する。
マージ処理はこの層に一切依存せず、メモリ上の構造だけを扱う。

ドキュメント名の文法:
    "<type>"            例: "workers", "settings"
    "months/<YYYY-MM>"  例: "months/2024-05"
"""

import re
from abc import ABC, abstractmethod
from typing import Any

MONTHS_PREFIX = "months/"

MONTH_PATTERN = r"^\d{4}-\d{2}$"
"""月IDの形式（YYYY-MM）。"""

_TYPE_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")
_MONTH_RE = re.compile(MONTH_PATTERN)


def month_document_name(month: str) -> str:
    """月IDからドキュメント名を組み立てる。"""
    return f"{MONTHS_PREFIX}{month}"


def is_valid_document_name(name: str) -> bool:
    """ドキュメント名が文法に従っているかを判定する。

    パス区切りや ".." を含む名前はここで弾かれる。
    """
    if name.startswith(MONTHS_PREFIX):
        return bool(_MONTH_RE.match(name[len(MONTHS_PREFIX) :]))
    return bool(_TYPE_NAME_RE.match(name))


class DocumentStoreInterface(ABC):
    """Store層の抽象インターフェース。

    ファイルシステムを直接触るコードが他の層に漏洩してはならない。
    load/save はどちらも冪等。ドキュメント単位の排他は呼び出し側
    （SyncService）が保証する。
    """

    @abstractmethod
    def load(self, name: str) -> Any | None:
        """ドキュメントを読み込む。

        存在しない、または読めない場合は None を返す（例外にしない）。

        Raises:
            ValueError: ドキュメント名が不正な場合
        """
        ...

    @abstractmethod
    def save(self, name: str, document: Any) -> None:
        """ドキュメントを保存する（上書き）。

        Raises:
            ValueError: ドキュメント名が不正な場合
        """
        ...

    @abstractmethod
    def list_months(self) -> list[str]:
        """保存済みの月ID一覧を昇順で返す。"""
        ...

    @abstractmethod
    def has_data(self) -> bool:
        """何らかのドキュメントが保存済みかを返す。"""
        ...

    def get_last_modified(self, name: str) -> str | None:
        """ドキュメントの lastModified を返す。未保存・未設定なら None。"""
        document = self.load(name)
        if isinstance(document, dict):
            return document.get("lastModified")
        return None
