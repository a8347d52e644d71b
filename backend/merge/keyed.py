"""キー付きコレクションのマージ.

ローカルを種にしたマップへリモートを重ねる、というパターンを
汎用関数 merge_by_key にまとめ、レコード一覧のマージ（merge_records）と
月次勤怠のネストしたマージ（backend.merge.attendance）で共有する。
"""

import copy
from collections.abc import Callable, Hashable, Mapping
from typing import Any, TypeVar

from backend.merge.timestamps import effective_time

T = TypeVar("T")

KeyFunc = Callable[[T], Hashable]
CombineFunc = Callable[[T, T], T]


def as_records(value: Any, key_field: str) -> list[dict]:
    """マージ入力を dict のリストに正規化する.

    None や配列でない値は空リスト。dict でない要素と、
    キーが配列・オブジェクトの要素は読み飛ばす。
    """
    if not isinstance(value, (list, tuple)):
        return []
    return [
        item
        for item in value
        if isinstance(item, Mapping)
        and not isinstance(item.get(key_field), (list, dict))
    ]


def merge_by_key(
    local: list[T],
    remote: list[T],
    key: KeyFunc,
    combine: CombineFunc,
) -> list[T]:
    """2つのシーケンスをキーでマージする.

    1. local の各要素のコピーでマップを作る
    2. remote の要素のキーが未登録なら、そのコピーを追加
    3. 登録済みなら combine(既存, remote要素のコピー) で置き換える

    出力順はマップの挿入順（local の順序、続いて remote のみのキー）。
    入力は変更しない。

    Args:
        local: サーバー側の要素
        remote: クライアントから届いた要素
        key: 要素からキーを取り出す関数
        combine: キー衝突時に (既存, 受信) から結果を作る関数

    Returns:
        キーごとに1要素のリスト
    """
    merged: dict[Hashable, T] = {}
    for item in local:
        merged[key(item)] = copy.deepcopy(item)

    for item in remote:
        item_key = key(item)
        incoming = copy.deepcopy(item)
        if item_key in merged:
            merged[item_key] = combine(merged[item_key], incoming)
        else:
            merged[item_key] = incoming

    return list(merged.values())


def newer_wins(existing: Mapping[str, Any], incoming: Mapping[str, Any]):
    """実効時刻が新しい方を丸ごと採用する。同時刻は incoming（remote）が勝つ."""
    if effective_time(incoming) >= effective_time(existing):
        return incoming
    return existing


def merge_records(
    local: Any,
    remote: Any,
    key_field: str = "id",
) -> list[dict]:
    """レコード一覧を key_field でマージする.

    キー衝突時はフィールド単位のマージではなくレコード全体を置き換える。
    古い実効時刻のレコードは、後から送られても黙って捨てられる。
    キーは値の完全一致で比較する（正規化しない）。
    """
    return merge_by_key(
        as_records(local, key_field),
        as_records(remote, key_field),
        key=lambda record: record.get(key_field),
        combine=newer_wins,
    )
