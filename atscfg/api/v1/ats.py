"""ATS configuration file endpoints"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from atscfg.api.deps import get_id_or_host
from atscfg.core.database import get_db
from atscfg.core.exceptions import ServerNotFoundError, ConfigFormatError
from atscfg.services.parent_config_service import ParentConfigService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/servers/{id_or_host}/configfiles/ats/parent.config",
    response_class=PlainTextResponse,
)
async def get_parent_config(
    id_or_host: str = Depends(get_id_or_host),
    db: AsyncSession = Depends(get_db)
):
    """
    Get parent.config for a cache server
    
    Path params:
    - id_or_host: numeric server ID or server host name
    """
    try:
        text = await ParentConfigService.generate(db, id_or_host)
    except ServerNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="server not found"
        )
    except ConfigFormatError as e:
        logger.error(f"Failed to format parent.config for {id_or_host}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error: formatting parent.config"
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to query parent.config data for {id_or_host}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error: querying parent.config data"
        )
    
    return PlainTextResponse(content=text)
