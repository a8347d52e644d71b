"""ドキュメント単位のマージ — ポリシーに応じた振り分け.

周辺コンポーネント（SyncService）が呼ぶ唯一の入口は resolve()。
"""

import copy
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from backend.interfaces.merge import MergePolicy
from backend.merge.attendance import merge_month
from backend.merge.keyed import merge_records
from backend.merge.timestamps import format_timestamp, utc_now

logger = logging.getLogger(__name__)


def collection_items(document: Any) -> Any:
    """コレクションドキュメントから items を取り出す.

    クライアントが配列をそのまま送ってきた場合は配列自体を items とみなす。
    それ以外の形は空として扱う（merge_records 側で正規化される）。
    """
    if isinstance(document, Mapping):
        return document.get("items")
    if isinstance(document, list):
        return document
    return None


def merge_settings(
    local: Any,
    remote: Any,
    now: Callable[[], datetime] = utc_now,
) -> dict:
    """フラットなキー/値をキーごとに remote 優先で重ねる."""
    return {
        **copy.deepcopy(local if isinstance(local, Mapping) else {}),
        **copy.deepcopy(remote if isinstance(remote, Mapping) else {}),
        "lastModified": format_timestamp(now()),
    }


def merge_collection(
    local: Any,
    remote: Any,
    now: Callable[[], datetime] = utc_now,
) -> dict:
    """items を id でキー付きマージし、{items, lastModified} に包み直す."""
    return {
        "items": merge_records(
            collection_items(local), collection_items(remote), "id"
        ),
        "lastModified": format_timestamp(now()),
    }


def resolve(
    local: Any,
    remote: Any,
    policy: MergePolicy,
    now: Callable[[], datetime] = utc_now,
) -> dict | None:
    """サーバー側ドキュメントとクライアント側ドキュメントを統合する.

    Args:
        local: サーバーに保存済みのドキュメント（無ければ None）
        remote: クライアントから届いたドキュメント（無ければ None）
        policy: 種別に対応するマージポリシー
        now: lastModified に刻む時刻の取得関数（テストで差し替え可能）

    Returns:
        マージ結果。MONTH で両側とも無い場合のみ None。

    Raises:
        ValueError: 未知のポリシーが指定された場合
    """
    if policy is MergePolicy.OVERLAY:
        merged = merge_settings(local, remote, now)
    elif policy is MergePolicy.KEYED_LIST:
        merged = merge_collection(local, remote, now)
        logger.debug("keyed merge produced %d items", len(merged["items"]))
    elif policy is MergePolicy.MONTH:
        merged = merge_month(local, remote, now)
    else:
        raise ValueError(f"Unknown merge policy: {policy}")
    return merged
