# Routers package
from . import (
    agreements_router,
    auth_router,
    extension_router,
    paddle_router,
    subscription_router,
)

__all__ = [
    "agreements_router",
    "auth_router",
    "extension_router",
    "paddle_router",
    "subscription_router",
]
