from fastapi import APIRouter
from matchcall.api import call_requests

router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "ok"}


router.include_router(call_requests.router)
