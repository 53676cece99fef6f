from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql://postgres:postgres@db:5432/foodcheck"
    anthropic_api_key: str = ""

    text_model: str = "claude-sonnet-4-5-20250929"
    vision_model: str = "claude-sonnet-4-5-20250929"

    # Anthropic API timeout settings (seconds)
    llm_timeout: int = 30
    llm_connect_timeout: int = 10

    # Public data services (data.go.kr / foodsafetykorea.go.kr)
    public_data_service_key: str = ""
    recipe_api_key: str = ""
    mfds_base_url: str = "https://apis.data.go.kr/1471000"
    recipe_base_url: str = "http://openapi.foodsafetykorea.go.kr/api"
    public_data_timeout: float = 15.0

    # Daily quota ceilings (10,000 calls/day minus 500 headroom)
    drug_api_daily_limit: int = 9500
    health_food_api_daily_limit: int = 9500
    recipe_api_daily_limit: int = 9500
    quota_warning_ratio: float = 0.8
    quota_timezone: str = "Asia/Seoul"
    quota_backend: str = "memory"  # 'memory' or 'database'

    # Smart cache expiry; None keeps entries forever
    general_info_cache_ttl_days: Optional[int] = None

    # Retry policy per LLM call site
    image_retry_max_attempts: int = 3
    image_retry_base_delay: float = 1.0
    image_retry_multiplier: float = 2.0
    text_retry_max_attempts: int = 1

    class Config:
        env_file = ".env"


settings = Settings()
