"""UI kit showcase, only served with ENABLE_BRANDING_PREVIEW on."""
from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from ngoinfo.core.config import settings
from ngoinfo.core.errors import NotFoundError
from ngoinfo.core.flags import compute_flags
from ngoinfo.ui.components import render_showcase

router = APIRouter(tags=["sandbox"])


@router.get("/sandbox/ui", response_class=HTMLResponse)
def ui_sandbox():
    if not compute_flags(settings).ENABLE_BRANDING_PREVIEW:
        raise NotFoundError("Not found")
    return HTMLResponse(content=str(render_showcase()))
