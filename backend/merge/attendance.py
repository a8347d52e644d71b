"""月次勤怠のネストしたマージ（月 → グループ → 日 → 作業員ごとの勤怠）.

トップレベルのレコードは「新しい方で丸ごと置換」だが、月次勤怠は
端末ごとに別々のサブフィールド（メンバー、特定日の勤怠）を編集するため、
フィールド単位で重ね合わせて同時編集を失わないようにする。

グループ・日のスカラーフィールドはタイムスタンプを見ずに remote が勝つ。
古い remote がローカルの新しい編集（例: グループ名）を上書きし得るが、
これは既知の非対称として維持している。
"""

import copy
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from backend.merge.keyed import as_records, merge_by_key
from backend.merge.timestamps import format_timestamp, utc_now


def _union(local: Any, remote: Any) -> list:
    """順序付きの和集合（local の順、続いて remote の新規分）."""
    members: list = []
    for values in (local, remote):
        if not isinstance(values, list):
            continue
        for value in values:
            if value not in members:
                members.append(value)
    return members


def _as_mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _merge_day(local_day: dict, remote_day: dict) -> dict:
    attendance = {
        **_as_mapping(local_day.get("attendance")),
        **_as_mapping(remote_day.get("attendance")),
    }
    return {**local_day, **remote_day, "attendance": attendance}


def _merge_group(local_group: dict, remote_group: dict) -> dict:
    return {
        **local_group,
        **remote_group,
        "workerIds": _union(
            local_group.get("workerIds"), remote_group.get("workerIds")
        ),
        "days": merge_days(local_group.get("days"), remote_group.get("days")),
    }


def merge_days(local_days: Any, remote_days: Any) -> list[dict]:
    """日エントリを date でマージする.

    同じ日付が両側にある場合、attendance は作業員IDごとに remote 優先で
    重ね合わせ、local にしかない作業員の値は残す。
    """
    return merge_by_key(
        as_records(local_days, "date"),
        as_records(remote_days, "date"),
        key=lambda day: day.get("date"),
        combine=_merge_day,
    )


def merge_groups(local_groups: Any, remote_groups: Any) -> list[dict]:
    """グループを id でマージする.

    衝突時は置換ではなく重ね合わせ:
    workerIds は和集合、days は merge_days、その他は remote 優先。
    """
    return merge_by_key(
        as_records(local_groups, "id"),
        as_records(remote_groups, "id"),
        key=lambda group: group.get("id"),
        combine=_merge_group,
    )


def merge_month(
    local: Mapping[str, Any] | None,
    remote: Mapping[str, Any] | None,
    now: Callable[[], datetime] = utc_now,
) -> dict | None:
    """月次ドキュメントをマージする.

    片側が無ければもう片側をそのまま返す（lastModified も更新しない）。
    両側あればトップレベルを remote 優先で重ね、groups は merge_groups、
    lastModified はマージ時刻で付け直す。
    """
    if not isinstance(local, Mapping):
        return copy.deepcopy(dict(remote)) if isinstance(remote, Mapping) else None
    if not isinstance(remote, Mapping):
        return copy.deepcopy(dict(local))

    merged = copy.deepcopy({**local, **remote})
    merged["groups"] = merge_groups(local.get("groups"), remote.get("groups"))
    merged["lastModified"] = format_timestamp(now())
    return merged
