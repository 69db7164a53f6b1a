from fastapi import FastAPI
import uvicorn
import signal
from contextlib import asynccontextmanager
import logging
from datetime import datetime

# Core imports
from core.auth_middleware import AuthMiddleware
from core.config import settings
from core.factory import ServiceFactory
from core.middleware import setup_cors, setup_exception_handlers
from core.rate_limiter import rate_limiter
from core.responses import success_response

# Routers Import
from routers import agreements_router, auth_router, extension_router, paddle_router, subscription_router

# 로깅 설정
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Factory 패턴으로 서비스 초기화
ServiceFactory.configure_dependencies()


def signal_handler(signum, frame):
    """SIGINT (Ctrl+C) 및 SIGTERM 처리"""
    import sys
    sys.exit(0)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info("ColorKit 서버 시작 (paddle_client=%s, fcm=%s)",
                ServiceFactory.get_paddle_billing_client() is not None,
                bool(settings.FIREBASE_SERVER_KEY))
    if not settings.PADDLE_NOTIFICATION_WEBHOOK_SECRET:
        logger.warning("[PADDLE] PADDLE_NOTIFICATION_WEBHOOK_SECRET이 설정되지 않아 웹훅이 500을 반환합니다")

    yield

    # 종료 시 정리
    rate_limiter.clear()
    logger.info("ColorKit 서버 종료")


app = FastAPI(
    title="ColorKit Server",
    description="Subscription, webhook and extension API for the ColorKit calendar extension",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.DEBUG
)

# 예외 처리 미들웨어 설정
setup_exception_handlers(app)

# 세션 확인 미들웨어 (웹훅 경로 제외)
app.middleware("http")(AuthMiddleware())

# CORS 미들웨어 추가
setup_cors(app)


# 기본 엔드포인트
@app.get("/")
async def root():
    return success_response(
        data={"message": "Hello, ColorKit Server!"},
        message="서버가 정상적으로 실행 중입니다"
    )


@app.get("/health")
async def health_check():
    return success_response(
        data={
            "paddle": {"configured": ServiceFactory.get_paddle_billing_client() is not None},
            "webhook_secret": {"configured": bool(settings.PADDLE_NOTIFICATION_WEBHOOK_SECRET)},
            "timestamp": datetime.now().isoformat(),
            "version": "1.0.0",
            "environment": "development" if settings.DEBUG else "production"
        },
        message="헬스 체크"
    )


# 라우터 등록
app.include_router(auth_router.router)
app.include_router(paddle_router.router)  # Paddle 웹훅 라우터
app.include_router(extension_router.router)  # 확장 프로그램 API
app.include_router(subscription_router.router)
app.include_router(agreements_router.router)

if __name__ == "__main__":
    # 메인 스레드에서만 신호 핸들러 등록
    try:
        import threading
        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, signal_handler)
            signal.signal(signal.SIGTERM, signal_handler)
        else:
            logger.warning("메인 스레드가 아니므로 signal 핸들러 등록을 건너뜁니다")
    except Exception as e:
        logger.warning(f"signal 핸들러 등록 실패, uvicorn 기본 처리에 위임: {e}")

    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=settings.DEBUG
    )
