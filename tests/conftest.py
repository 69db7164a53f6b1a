"""공통 테스트 설정

core.config 가 import 시점에 Settings 를 생성하므로 필수 환경변수를 먼저 채운다.
"""
import os

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("PADDLE_NOTIFICATION_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("COOKIE_SECURE", "false")
os.environ.setdefault("APP_URL", "https://app.example.com")

import pytest  # noqa: E402

from core.container import container  # noqa: E402
from core.rate_limiter import rate_limiter  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_global_state():
    container.reset()
    rate_limiter.clear()
    yield
    container.reset()
    rate_limiter.clear()
