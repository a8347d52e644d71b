"""DI用ファクトリ関数。

backend/ 直下に配置することで、api/ から store/ への
直接依存を避けつつ、FastAPI の Depends() で注入できる。
"""

from backend.config import get_settings
from backend.interfaces.document_store import DocumentStoreInterface
from backend.sync.service import SyncService

_document_store: DocumentStoreInterface | None = None
_sync_service: SyncService | None = None


def get_document_store() -> DocumentStoreInterface:
    """DocumentStoreのシングルトンインスタンスを返す。"""
    global _document_store
    if _document_store is None:
        from backend.store.json_files import JsonDocumentStore

        _document_store = JsonDocumentStore(get_settings().data_dir)
    return _document_store


def get_sync_service() -> SyncService:
    """SyncServiceのシングルトンインスタンスを返す。"""
    global _sync_service
    if _sync_service is None:
        _sync_service = SyncService(get_document_store())
    return _sync_service


def _reset_all() -> None:
    """全シングルトンをリセットする（テスト用）。"""
    global _document_store, _sync_service
    _document_store = None
    _sync_service = None
