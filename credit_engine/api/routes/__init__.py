from credit_engine.api.routes.admin import router as admin_router
from credit_engine.api.routes.credits import router as credits_router
from credit_engine.api.routes.fx import router as fx_router
from credit_engine.api.routes.questions import router as questions_router

__all__ = [
    "admin_router",
    "credits_router",
    "fx_router",
    "questions_router",
]
