"""Store層のJSONファイル実装。

DocumentStoreInterfaceに準拠し、論理名ごとに1つのJSONファイルを持つ。

    <data_dir>/workers.json
    <data_dir>/settings.json
    <data_dir>/months/2024-05.json
"""

import json
import logging
from pathlib import Path
from typing import Any

from backend.interfaces.document_store import (
    MONTHS_PREFIX,
    DocumentStoreInterface,
    is_valid_document_name,
)

logger = logging.getLogger(__name__)


class JsonDocumentStore(DocumentStoreInterface):
    """JSONファイルによるStore層実装。"""

    def __init__(self, data_dir: str | Path):
        """初期化。

        Args:
            data_dir: データディレクトリのパス（無ければ作成する）
        """
        self._data_dir = Path(data_dir)
        self._months_dir = self._data_dir / "months"
        self._init_layout()

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _init_layout(self) -> None:
        """ディレクトリ構成を初期化する。"""
        self._months_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, name: str) -> Path:
        """ドキュメント名をファイルパスに変換する。

        Raises:
            ValueError: ドキュメント名が不正な場合
        """
        if not is_valid_document_name(name):
            raise ValueError(f"Invalid document name: {name!r}")
        if name.startswith(MONTHS_PREFIX):
            return self._months_dir / f"{name[len(MONTHS_PREFIX):]}.json"
        return self._data_dir / f"{name}.json"

    def load(self, name: str) -> Any | None:
        """ドキュメントを読み込む。読めない場合はログを残して None。"""
        path = self._path_for(name)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Error loading %s: %s", path, e)
            return None

    def save(self, name: str, document: Any) -> None:
        """一時ファイルに書いてからリネームする（アトミック書き込み）。"""
        path = self._path_for(name)
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, ensure_ascii=False)
        tmp_path.replace(path)
        logger.debug("Saved %s", path)

    def list_months(self) -> list[str]:
        return sorted(
            p.stem
            for p in self._months_dir.glob("*.json")
            if is_valid_document_name(f"{MONTHS_PREFIX}{p.stem}")
        )

    def has_data(self) -> bool:
        return any(self._data_dir.glob("*.json")) or bool(self.list_months())
