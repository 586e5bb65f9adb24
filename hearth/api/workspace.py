"""
Workspace API.

GET /v1/workspace — Files the assistant has saved
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.dependencies import get_runtime
from ..runtime import Runtime

workspace_router = APIRouter(prefix="/workspace", tags=["workspace"])


class FileOut(BaseModel):
    name: str
    size: int
    modified: str


@workspace_router.get("", response_model=list[FileOut])
async def list_files(runtime: Runtime = Depends(get_runtime)):
    return [
        FileOut(name=f.name, size=f.size, modified=f.modified.isoformat())
        for f in runtime.workspace.list_files()
    ]
