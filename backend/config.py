"""アプリケーション設定。

環境変数（または .env）から読み込む。
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """同期サーバーの設定。"""

    data_dir: str = "data"
    allowed_origins: str = "*"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        extra="ignore",
    )

    def get_origins_list(self) -> list[str]:
        """カンマ区切りの origins をリストにする。空なら全許可。"""
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return origins or ["*"]


_settings: Settings | None = None


def get_settings() -> Settings:
    """Settingsのシングルトンインスタンスを返す。"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
