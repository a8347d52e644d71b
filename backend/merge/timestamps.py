"""実効時刻（effective time）の算出."""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
"""欠損タイムスタンプの扱い（最も古い時刻）."""


def parse_timestamp(value: Any) -> datetime | None:
    """タイムスタンプ値を UTC の datetime に変換する.

    受け付ける形式:
        - ISO-8601 文字列（"Z" / オフセット付き、日付のみも可）
        - datetime
        - エポックミリ秒（int / float）

    TZなしの値は UTC とみなす。解釈できない値は None を返す。
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def effective_time(item: Mapping[str, Any]) -> datetime:
    """modifiedAt と deletedAt の遅い方を返す.

    欠損・解釈不能なフィールドは EPOCH として扱う。
    編集より後の削除は削除が勝ち、削除より後の編集は編集が勝つ。
    """
    modified = parse_timestamp(item.get("modifiedAt")) or EPOCH
    deleted = parse_timestamp(item.get("deletedAt")) or EPOCH
    return max(modified, deleted)


def format_timestamp(dt: datetime) -> str:
    """datetime をミリ秒精度の ISO-8601 (UTC, "Z" 付き) 文字列にする."""
    return (
        dt.astimezone(UTC)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def utc_now() -> datetime:
    """現在時刻（UTC）."""
    return datetime.now(UTC)
