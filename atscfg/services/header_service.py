"""Header comment shared by generated ATS config files"""
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from atscfg.core.config import settings
from atscfg.services.server_service import ServerService

PARAM_TOOL_NAME = "tm.toolname"
PARAM_TOOL_URL = "tm.url"


def format_header_timestamp(now: datetime) -> str:
    """Timestamp as 'Mon Jan 2 15:04:05 UTC 2006'"""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{now:%a %b} {now.day} {now:%H:%M:%S} UTC {now:%Y}"


def generic_header_comment(
    name: str,
    tool_name: str,
    tool_url: str,
    now: Optional[datetime] = None
) -> str:
    """First line of every generated file, newline included"""
    timestamp = format_header_timestamp(now or datetime.now(timezone.utc))
    return f"# DO NOT EDIT - Generated for {name} by {tool_name} ({tool_url}) on {timestamp}\n"


class HeaderService:
    """Builds config file headers from the GLOBAL profile"""

    @staticmethod
    async def header_comment(db: AsyncSession, name: str, now: Optional[datetime] = None) -> str:
        """Header naming the tool and URL configured in tm.toolname / tm.url"""
        tool_name = await ServerService.get_global_param(db, PARAM_TOOL_NAME) or settings.TOOL_NAME
        tool_url = await ServerService.get_global_param(db, PARAM_TOOL_URL) or settings.TOOL_URL
        return generic_header_comment(name, tool_name, tool_url, now)
