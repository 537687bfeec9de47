from fastapi import APIRouter
from payrecon.api.v1.endpoints import payments, admin

router = APIRouter()

router.include_router(payments.router, tags=["payments"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
