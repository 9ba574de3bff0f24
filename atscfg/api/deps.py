"""API dependencies"""
from fastapi import Path

# Host names and numeric IDs only; a legacy ".json" suffix is tolerated
ID_OR_HOST_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9.\-_]*$"


async def get_id_or_host(
    id_or_host: str = Path(..., min_length=1, max_length=255, pattern=ID_OR_HOST_PATTERN)
) -> str:
    """Server ID or host name from the request path"""
    return id_or_host
