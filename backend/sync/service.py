"""同期サービス — 読込 → マージ → 保存のオーケストレーター."""

import logging
import threading
from collections.abc import Callable
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from backend.interfaces.document_store import (
    DocumentStoreInterface,
    month_document_name,
)
from backend.interfaces.merge import (
    COLLECTION_TYPES,
    DOCUMENT_TYPES,
    document_type_for,
)
from backend.merge.resolver import collection_items, resolve
from backend.merge.timestamps import format_timestamp, utc_now

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0.0"


class SyncService:
    """同期サービス.

    DocumentStore からサーバー側ドキュメントを読み、クライアントから
    届いたドキュメントとマージし、結果を保存して返す。
    同じドキュメント名への読込〜保存はロックで直列化する。
    別ドキュメント同士は並行に処理できる。
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._now = now
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _exclusive(self, name: str):
        """ドキュメント名ごとの排他区間."""
        with self._locks_guard:
            lock = self._locks.setdefault(name, threading.Lock())
        with lock:
            yield

    def _timestamp(self) -> str:
        return format_timestamp(self._now())

    def _merge_and_save(self, name: str, remote: Any) -> dict | None:
        """1ドキュメント分の読込 → マージ → 保存."""
        policy = document_type_for(name).policy
        with self._exclusive(name):
            local = self._store.load(name)
            merged = resolve(local, remote, policy, now=self._now)
            if merged is not None:
                self._store.save(name, merged)
        logger.info("Merged %s (policy=%s)", name, policy.value)
        return merged

    # ---------- 種別ごとのドキュメント ----------

    def get_document(self, type_name: str) -> Any | None:
        """種別ドキュメントを取得する.

        Raises:
            ValueError: 未登録の種別の場合
        """
        if type_name not in DOCUMENT_TYPES:
            raise ValueError(f"Unknown document type: {type_name}")
        return self._store.load(type_name)

    def sync_document(self, type_name: str, payload: Any) -> dict:
        """種別ドキュメントをマージして保存し、結果を返す.

        Raises:
            ValueError: 未登録の種別の場合
        """
        if type_name not in DOCUMENT_TYPES:
            raise ValueError(f"Unknown document type: {type_name}")
        return self._merge_and_save(type_name, payload)

    # ---------- 月次勤怠 ----------

    def get_month(self, month: str) -> Any | None:
        return self._store.load(month_document_name(month))

    def sync_month(self, month: str, payload: Any) -> dict | None:
        """月次ドキュメントをマージして保存し、結果を返す.

        Raises:
            ValueError: 月IDが YYYY-MM 形式でない場合
        """
        return self._merge_and_save(month_document_name(month), payload)

    # ---------- 一覧・一括 ----------

    def manifest(self) -> dict:
        """全ドキュメントの lastModified 一覧を返す."""
        manifest: dict[str, Any] = {
            name: self._store.get_last_modified(name) for name in DOCUMENT_TYPES
        }
        manifest["months"] = {
            month: self._store.get_last_modified(month_document_name(month))
            for month in self._store.list_months()
        }
        return manifest

    def _load_months(self) -> dict[str, dict]:
        months: dict[str, dict] = {}
        for month in self._store.list_months():
            document = self._store.load(month_document_name(month))
            if isinstance(document, dict):
                months[month] = document
        return months

    def pull_all(self) -> dict:
        """全データを一括で返す."""
        data: dict[str, Any] = {}
        for name in COLLECTION_TYPES:
            data[name] = collection_items(self._store.load(name)) or []
        data["months"] = list(self._load_months().values())

        settings = self._store.load("settings")
        version = settings.get("version") if isinstance(settings, dict) else None
        data["version"] = version or DEFAULT_VERSION
        data["lastSyncedAt"] = self._timestamp()
        return data

    def push_all(self, payload: dict) -> dict:
        """クライアントの全データを一括でマージする.

        payload にあるコレクションだけをマージし、month を持つ月次データを
        それぞれマージする。month の無い月次データは読み飛ばす。
        レスポンスには保存済みの全ての月を含める。
        """
        data: dict[str, Any] = {}
        for name in COLLECTION_TYPES:
            if name in payload:
                merged = self.sync_document(name, {"items": payload.get(name)})
            else:
                merged = self._store.load(name)
            data[name] = collection_items(merged) or []

        remote_months = payload.get("months")
        for remote_month in remote_months if isinstance(remote_months, list) else []:
            month = remote_month.get("month") if isinstance(remote_month, dict) else None
            if not month:
                logger.warning("Skipping month entry without 'month' field")
                continue
            try:
                self.sync_month(month, remote_month)
            except ValueError as e:
                logger.warning("Skipping month %r: %s", month, e)

        data["months"] = [
            {**document, "month": month}
            for month, document in self._load_months().items()
        ]

        version = payload.get("version") or DEFAULT_VERSION
        self._merge_and_save("settings", {"version": version})
        data["version"] = version
        data["lastSyncedAt"] = self._timestamp()
        return data

    def status(self) -> dict:
        return {
            "status": "online",
            "timestamp": self._timestamp(),
            "dataExists": self._store.has_data(),
            "multiFile": True,
        }

