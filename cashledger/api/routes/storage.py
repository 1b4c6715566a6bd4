# cashledger/api/routes/storage.py
from fastapi import APIRouter, Request

from cashledger.api.deps import read_json
from cashledger.utils.helpers import success_response
from cashledger.utils.storage import create_signed_urls

router = APIRouter()


@router.post("/sign")
async def sign_storage_paths(request: Request):
    body = await read_json(request)
    urls = create_signed_urls(body.get("bucket"), body.get("paths"), body.get("expiresIn"))
    return success_response(data={"urls": urls}, message="Signed URLs generated successfully")
