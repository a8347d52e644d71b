"""FastAPIアプリケーション。

マニフェスト + 種別ドキュメント + 月次勤怠 + 一括同期APIを統合。
"""

import io
import json
import logging
from contextlib import asynccontextmanager
from typing import Annotated, Any

import pandas as pd
from fastapi import Body, Depends, FastAPI, HTTPException, Path, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from backend.config import get_settings
from backend.dependencies import get_sync_service
from backend.interfaces.document_store import MONTH_PATTERN
from backend.interfaces.merge import DOCUMENT_TYPES, DocumentType, MergePolicy
from backend.merge.timestamps import format_timestamp, utc_now
from backend.sync.service import SyncService

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SyncServiceDep = Annotated[SyncService, Depends(get_sync_service)]
MonthParam = Annotated[str, Path(pattern=MONTH_PATTERN)]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Attendance sync server starting (data_dir=%s)", settings.data_dir)
    yield


app = FastAPI(
    title="勤怠同期サーバー API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_origins_list(),
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Pydantic モデル ----------


class SyncResponse(BaseModel):
    """データ取得・同期のレスポンス。"""

    success: bool = True
    data: Any = None
    timestamp: str


class CsvImportResponse(SyncResponse):
    """CSV取り込みのレスポンス。"""

    imported: int
    skipped: int


class ManifestResponse(BaseModel):
    """GET /api/manifest のレスポンス。"""

    success: bool = True
    manifest: dict[str, Any]
    timestamp: str


class StatusResponse(BaseModel):
    """GET /api/status のレスポンス。"""

    status: str
    timestamp: str
    dataExists: bool
    multiFile: bool


# ---------- ヘルパー ----------


def _now() -> str:
    return format_timestamp(utc_now())


def _require_type(type_name: str) -> DocumentType:
    """種別名を検証する。未登録なら 400。"""
    doc_type = DOCUMENT_TYPES.get(type_name)
    if doc_type is None:
        raise HTTPException(status_code=400, detail="Invalid data type")
    return doc_type


def _records_from_csv(content: bytes, modified_at: str) -> tuple[list[dict], int]:
    """CSVを行ごとのレコードに変換する。id の無い行は読み飛ばす。"""
    try:
        df = pd.read_csv(io.BytesIO(content), dtype={"id": str})
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid CSV: {e}") from e

    if "id" not in df.columns:
        raise HTTPException(status_code=400, detail="id column is required")

    records: list[dict] = []
    skipped = 0
    for row in json.loads(df.to_json(orient="records", force_ascii=False)):
        record = {k: v for k, v in row.items() if v is not None and v != ""}
        if not record.get("id"):
            skipped += 1
            continue
        record.setdefault("modifiedAt", modified_at)
        records.append(record)
    return records, skipped


# ---------- エンドポイント ----------


@app.get("/api/status")
async def get_status(service: SyncServiceDep) -> StatusResponse:
    """サーバー状態。"""
    return StatusResponse(**service.status())


@app.get("/api/manifest")
async def get_manifest(service: SyncServiceDep) -> ManifestResponse:
    """全ドキュメントの lastModified 一覧。"""
    return ManifestResponse(manifest=service.manifest(), timestamp=_now())


@app.get("/api/data")
async def get_all_data(service: SyncServiceDep) -> SyncResponse:
    """全データを一括取得する。"""
    return SyncResponse(data=service.pull_all(), timestamp=_now())


@app.post("/api/data")
async def post_all_data(
    service: SyncServiceDep,
    payload: Annotated[dict | None, Body()] = None,
):
    """全データを一括同期する。"""
    if payload is None:
        raise HTTPException(status_code=400, detail="No data provided")
    data = service.push_all(payload)
    return {
        "success": True,
        "data": data,
        "timestamp": _now(),
        "message": "Data synced successfully",
    }


@app.get("/api/data/months/{month}")
async def get_month(month: MonthParam, service: SyncServiceDep) -> SyncResponse:
    """月次勤怠を取得する。未保存なら data は null。"""
    return SyncResponse(data=service.get_month(month), timestamp=_now())


@app.post("/api/data/months/{month}")
async def post_month(
    month: MonthParam,
    service: SyncServiceDep,
    payload: Annotated[dict | None, Body()] = None,
) -> SyncResponse:
    """月次勤怠をマージして保存する。"""
    merged = service.sync_month(month, payload)
    return SyncResponse(data=merged, timestamp=_now())


@app.get("/api/data/{type_name}")
async def get_document(type_name: str, service: SyncServiceDep) -> SyncResponse:
    """種別ドキュメントを取得する。"""
    _require_type(type_name)
    return SyncResponse(data=service.get_document(type_name), timestamp=_now())


@app.post("/api/data/{type_name}")
async def post_document(
    type_name: str,
    service: SyncServiceDep,
    payload: Annotated[dict | list | None, Body()] = None,
) -> SyncResponse:
    """種別ドキュメントをマージして保存する。

    本文は {"items": [...]}（settings はキー/値）か、レコード配列そのもの。
    """
    _require_type(type_name)
    merged = service.sync_document(type_name, payload)
    return SyncResponse(data=merged, timestamp=_now())


@app.post("/api/data/{type_name}/csv")
async def post_document_csv(
    type_name: str,
    file: UploadFile,
    service: SyncServiceDep,
) -> CsvImportResponse:
    """CSVファイルからレコードを取り込む。

    id 列が必須。その他の列はそのままレコードのフィールドになる。
    modifiedAt 列が無い行は取り込み時刻を付ける。
    """
    doc_type = _require_type(type_name)
    if doc_type.policy is not MergePolicy.KEYED_LIST:
        raise HTTPException(
            status_code=400,
            detail="CSV import is only supported for record collections",
        )

    content = await file.read()
    records, skipped = _records_from_csv(content, _now())
    merged = service.sync_document(type_name, {"items": records})
    logger.info("Imported %d %s from CSV (skipped %d)", len(records), type_name, skipped)
    return CsvImportResponse(
        data=merged,
        timestamp=_now(),
        imported=len(records),
        skipped=skipped,
    )
