"""
애플리케이션 설정 관리
"""
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import validator
from pydantic_settings import BaseSettings


_FILE_PATH = Path(__file__).resolve()


def _collect_env_files(file_path: Path) -> tuple[Path, ...]:
    """환경 파일 후보를 가까운 디렉터리부터 수집"""

    collected: list[Path] = []
    seen: set[Path] = set()

    for directory in file_path.parents:
        for name in (".env", ".env.local"):
            candidate = directory / name
            if candidate.exists() and candidate not in seen:
                collected.append(candidate)
                seen.add(candidate)

    return tuple(collected)


_ENV_FILES = _collect_env_files(_FILE_PATH)


def _load_dotenv_files() -> None:
    """프로젝트 전체에서 활용할 .env 파일들을 순차적으로 로드"""

    for dotenv_path in _ENV_FILES:
        load_dotenv(dotenv_path, override=False)


_load_dotenv_files()

class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    APP_URL: str = "http://localhost:3000"

    # Supabase 설정
    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # 세션 쿠키 설정
    COOKIE_SECURE: bool = True
    SESSION_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 7

    # 로깅 설정
    LOG_LEVEL: str = "INFO"

    # Paddle Billing 설정
    PADDLE_API_KEY: Optional[str] = None
    PADDLE_API_BASE_URL: str = "https://api.paddle.com"
    PADDLE_NOTIFICATION_WEBHOOK_SECRET: Optional[str] = None
    # 서명 타임스탬프 허용 오차(초). 0이면 검사하지 않음
    PADDLE_WEBHOOK_MAX_VARIANCE: int = 5

    # 확장 프로그램 푸시 설정
    FIREBASE_SERVER_KEY: Optional[str] = None

    # 확장 프로그램 API 요청 제한
    EXTENSION_RATE_LIMIT: int = 30
    EXTENSION_RATE_WINDOW_SECONDS: int = 60

    @validator('SUPABASE_URL')
    def validate_supabase_url(cls, v):
        if not v:
            raise ValueError('SUPABASE_URL은 필수입니다')
        return v

    @validator('SUPABASE_ANON_KEY')
    def validate_supabase_anon_key(cls, v):
        if not v:
            raise ValueError('SUPABASE_ANON_KEY는 필수입니다')
        return v

    class Config:
        env_file = tuple(str(path) for path in _ENV_FILES) if _ENV_FILES else None
        case_sensitive = True
        extra = "allow"  # 추가 환경변수 허용

# 전역 설정 인스턴스
settings = Settings()
