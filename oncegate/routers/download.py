# oncegate/routers/download.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from oncegate.config import Settings, get_settings
from oncegate.dependencies import get_gate
from oncegate.services.errors import (
    AlreadyGranted, CollaboratorFailure, DeliveryFailure, InvalidInput, ObjectMissing,
)
from oncegate.services.gate import DownloadGate
from oncegate.services.proxy import sanitize_headers

logger = logging.getLogger(__name__)

router = APIRouter(tags=["download"])


@router.get("/")
def download(
    request: Request,
    gate: DownloadGate = Depends(get_gate),
    settings: Settings = Depends(get_settings),
):
    """
    Entrega el archivo `file` una sola vez; toda request posterior recibe 403.
    """
    # con ?file= repetido vale el primero
    files = request.query_params.getlist("file")
    file = files[0] if files else ""

    country = request.headers.get(settings.country_header, "")
    region = request.headers.get(settings.region_header, "")

    try:
        stream = gate.grant(file, country=country, region=region)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=f"bad request: {e}")
    except AlreadyGranted:
        raise HTTPException(status_code=403, detail="forbidden")
    except ObjectMissing:
        raise HTTPException(status_code=404, detail="not found")
    except DeliveryFailure as e:
        # grant confirmado pero el upstream no respondió: el nombre queda consumido
        logger.error("%s: %s", e.operation, e.__cause__)
        raise HTTPException(status_code=502, detail="bad gateway")
    except CollaboratorFailure as e:
        logger.error("%s: %s", e.operation, e.__cause__)
        raise HTTPException(status_code=500, detail="internal error")

    return StreamingResponse(
        stream.iter_body(),
        status_code=stream.status_code,
        headers=sanitize_headers(stream.headers),
    )
