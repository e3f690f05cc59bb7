from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Note: do not hardcode env_file here; tests instantiate Settings() directly and
    # should not implicitly read the repo's .env. Runtime uses get_settings().
    model_config = SettingsConfigDict(extra="ignore")

    app_name: str = "lifedrama-backend"
    environment: str = Field(default="dev", description="dev|staging|prod")
    log_level: str = Field(default="INFO", description="应用/Uvicorn 日志级别")

    api_v1_prefix: str = "/api/v1"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # ============================================
    # 凭证（用户输入 > 平台提供 > 未设置）
    # ============================================
    api_key: str | None = Field(
        default=None,
        description="平台提供的 API 凭证（环境变量 API_KEY）",
    )
    credentials_path: Path = Field(
        default_factory=lambda: Path.home() / ".lifedrama" / "credentials.json",
        description="用户手动输入的凭证保存位置",
    )

    # ============================================
    # 文本分析服务 (Anthropic Messages API)
    # ============================================
    anthropic_base_url: str | None = Field(
        default=None,
        description="Anthropic 中转站/代理地址，例如 https://your-proxy.example.com",
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-5-20250929",
        description="剧本分析使用的模型名称",
    )
    analysis_max_tokens: int = Field(default=8192, ge=256)
    narrative_language: str = Field(
        default="Korean",
        description="标题、人物、场景摘要等叙事字段使用的语言（图像 prompt 固定为英文）",
    )

    # ============================================
    # 图像生成服务 (OpenAI 兼容接口)
    # ============================================
    image_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="图像生成服务基础地址",
    )
    image_model: str = Field(
        default="gpt-image-1",
        description="图像生成模型名称",
    )
    image_endpoint: str = Field(
        default="/images/generations",
        description="图像生成 API 端点路径",
    )
    image_response_format: str | None = Field(
        default=None,
        description="DALL-E 类模型需设置为 b64_json；gpt-image-1 默认返回 base64，无需设置",
    )

    request_timeout_s: float = 120.0
    # 流水线层面不做自动重试，重试由用户手动触发
    llm_max_retries: int = Field(default=0, ge=0)
    image_max_retries: int = Field(default=0, ge=0)

    def image_url(self) -> str:
        base = self.image_base_url.rstrip("/")
        endpoint = self.image_endpoint
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        return f"{base}{endpoint}"

    def image_headers(self, api_key: str | None) -> dict[str, str]:
        """图像服务请求头"""
        headers: dict[str, str] = {"User-Agent": self.app_name}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers


@lru_cache
def get_settings() -> Settings:
    return Settings(_env_file=".env", _env_file_encoding="utf-8")
