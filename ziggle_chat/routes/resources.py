from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ..dependencies import get_resource_proxy, get_session_id
from ..services.resources import ResourceProxy

router = APIRouter(prefix="/api/v1/widget/messages", tags=["widget-resources"])


def _inline_disposition(path: str) -> str:
    filename = path.split("/")[-1] or "resource"
    return f"inline; filename*=UTF-8''{quote(filename)}"


@router.get("/resources/{resource_path:path}")
async def get_resource(
    resource_path: str,
    session_id: str = Depends(get_session_id),
    proxy: ResourceProxy = Depends(get_resource_proxy),
) -> Response:
    """Proxy a cited document (PDF, image or markdown) from the resource API."""
    payload = await proxy.get_resource(resource_path)
    headers = {"Cache-Control": "private, max-age=300"}
    media_type = payload.media_type.lower()
    if media_type.startswith("application/pdf") or media_type.startswith("image/"):
        headers["Content-Disposition"] = _inline_disposition(resource_path)
    return Response(content=payload.content, media_type=payload.media_type, headers=headers)
