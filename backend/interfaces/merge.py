"""マージポリシーとドキュメント種別の定義。

ドキュメント種別ごとに、3つのマージポリシーのどれに従うかを宣言する。
新しい種別を追加する際は DOCUMENT_TYPES に登録するだけでよい。
"""

from dataclasses import dataclass
from enum import Enum

from backend.interfaces.document_store import MONTHS_PREFIX, is_valid_document_name


class MergePolicy(str, Enum):
    """マージポリシー。

    OVERLAY: フラットなキー/値。キーごとに remote 優先。
    KEYED_LIST: items 配列を id でキー付きマージ（レコード単位で置換）。
    MONTH: 月次勤怠のネストしたマージ（グループ → 日 → 勤怠）。
    """

    OVERLAY = "overlay"
    KEYED_LIST = "keyed-list"
    MONTH = "month"


@dataclass(frozen=True)
class DocumentType:
    """ドキュメント種別。"""

    name: str
    policy: MergePolicy
    label: str = ""


DOCUMENT_TYPES: dict[str, DocumentType] = {
    "workers": DocumentType("workers", MergePolicy.KEYED_LIST, "作業員"),
    "areas": DocumentType("areas", MergePolicy.KEYED_LIST, "区画"),
    "activities": DocumentType("activities", MergePolicy.KEYED_LIST, "作業内容"),
    "groups": DocumentType("groups", MergePolicy.KEYED_LIST, "グループ"),
    "expenseCategories": DocumentType(
        "expenseCategories", MergePolicy.KEYED_LIST, "経費区分"
    ),
    "expenses": DocumentType("expenses", MergePolicy.KEYED_LIST, "雑費"),
    "payments": DocumentType("payments", MergePolicy.KEYED_LIST, "支払い"),
    "settings": DocumentType("settings", MergePolicy.OVERLAY, "設定"),
}
"""種別名 → DocumentType のレジストリ。月次ドキュメントは含まない。"""

MONTH_DOCUMENT_TYPE = DocumentType("months", MergePolicy.MONTH, "月次勤怠")

COLLECTION_TYPES: tuple[str, ...] = tuple(
    name
    for name, doc_type in DOCUMENT_TYPES.items()
    if doc_type.policy is MergePolicy.KEYED_LIST
)
"""KEYED_LIST ポリシーの種別名（登録順）。"""


def document_type_for(name: str) -> DocumentType:
    """ドキュメント名から種別を解決する。

    Raises:
        ValueError: 未登録の種別、または不正な月ドキュメント名の場合
    """
    if name.startswith(MONTHS_PREFIX):
        if not is_valid_document_name(name):
            raise ValueError(f"Invalid month document name: {name}")
        return MONTH_DOCUMENT_TYPE
    doc_type = DOCUMENT_TYPES.get(name)
    if doc_type is None:
        raise ValueError(f"Unknown document type: {name}")
    return doc_type
