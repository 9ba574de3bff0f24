"""Server, profile and parameter lookups"""
import logging
import re
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from atscfg.core.config import settings
from atscfg.core.exceptions import ATSVersionError
from atscfg.models.cdn import CDN, Type
from atscfg.models.cachegroup import CacheGroup
from atscfg.models.profile import Profile, Parameter, ProfileParameter
from atscfg.models.server import Server
from atscfg.schemas.parent_config import (
    ServerInfo,
    ServerParentParams,
    PARAM_QSTRING_HANDLING,
    PARAM_ALGORITHM,
    PARAM_QSTRING,
)

logger = logging.getLogger(__name__)

PARENT_CONFIG_FILE = "parent.config"
GLOBAL_PROFILE_NAME = "GLOBAL"

# "7.1.4-1.el7" -> 7
ATS_MAJOR_VERSION_RE = re.compile(r"^(\d+)")


class ServerService:
    """Service for server and profile lookups"""

    @staticmethod
    def _server_info_query():
        server_type = aliased(Type)
        parent_cachegroup = aliased(CacheGroup)
        parent_type = aliased(Type)
        secondary_cachegroup = aliased(CacheGroup)
        secondary_type = aliased(Type)

        return (
            select(
                CDN.name,
                Server.cdn_id,
                Server.id,
                Server.host_name,
                CDN.domain_name,
                Server.ip_address,
                Server.profile_id,
                Profile.name,
                Server.tcp_port,
                server_type.name,
                Server.cachegroup_id,
                CacheGroup.parent_cachegroup_id,
                CacheGroup.secondary_parent_cachegroup_id,
                parent_type.name,
                secondary_type.name,
            )
            .select_from(Server)
            .join(CDN, Server.cdn_id == CDN.id)
            .join(server_type, Server.type_id == server_type.id)
            .join(Profile, Profile.id == Server.profile_id)
            .join(CacheGroup, Server.cachegroup_id == CacheGroup.id)
            .outerjoin(parent_cachegroup, parent_cachegroup.id == CacheGroup.parent_cachegroup_id)
            .outerjoin(parent_type, parent_type.id == parent_cachegroup.type_id)
            .outerjoin(secondary_cachegroup, secondary_cachegroup.id == CacheGroup.secondary_parent_cachegroup_id)
            .outerjoin(secondary_type, secondary_type.id == secondary_cachegroup.type_id)
        )

    @staticmethod
    async def _get_server_info(db: AsyncSession, query) -> Optional[ServerInfo]:
        result = await db.execute(query)
        row = result.first()
        if row is None:
            return None

        (
            cdn, cdn_id, server_id, host_name, domain_name, ip, profile_id, profile_name,
            port, type_name, cachegroup_id, parent_cg_id, secondary_cg_id,
            parent_cg_type, secondary_cg_type,
        ) = row
        return ServerInfo(
            cdn=cdn,
            cdn_id=cdn_id,
            id=server_id,
            host_name=host_name,
            domain_name=domain_name,
            ip=ip,
            profile_id=profile_id,
            profile_name=profile_name,
            port=port,
            type=type_name,
            cachegroup_id=cachegroup_id,
            parent_cachegroup_id=parent_cg_id,
            secondary_parent_cachegroup_id=secondary_cg_id,
            parent_cachegroup_type=parent_cg_type or "",
            secondary_parent_cachegroup_type=secondary_cg_type or "",
        )

    @staticmethod
    async def get_server_info_by_id(db: AsyncSession, server_id: int) -> Optional[ServerInfo]:
        """Get server info by ID"""
        query = ServerService._server_info_query().where(Server.id == server_id)
        return await ServerService._get_server_info(db, query)

    @staticmethod
    async def get_server_info_by_host(db: AsyncSession, host_name: str) -> Optional[ServerInfo]:
        """Get server info by host name"""
        query = (
            ServerService._server_info_query()
            .where(Server.host_name == host_name)
            .order_by(Server.id)
        )
        return await ServerService._get_server_info(db, query)

    @staticmethod
    async def get_server_info(db: AsyncSession, id_or_host: str) -> Optional[ServerInfo]:
        """
        Get server info from a route parameter

        Numeric values are server IDs, anything else is a host name.
        A trailing ".json" is accepted for compatibility with the legacy routes.
        """
        if id_or_host.endswith(".json"):
            id_or_host = id_or_host[:-len(".json")]
        if id_or_host.isdigit():
            return await ServerService.get_server_info_by_id(db, int(id_or_host))
        return await ServerService.get_server_info_by_host(db, id_or_host)

    @staticmethod
    async def get_profile_param_value(
        db: AsyncSession,
        profile_id: int,
        config_file: str,
        name: str
    ) -> Optional[str]:
        """Get the value of a parameter assigned to a profile, None if unassigned"""
        result = await db.execute(
            select(Parameter.value)
            .join(ProfileParameter, ProfileParameter.parameter_id == Parameter.id)
            .where(
                ProfileParameter.profile_id == profile_id,
                Parameter.config_file == config_file,
                Parameter.name == name,
            )
            .order_by(Parameter.id)
        )
        return result.scalars().first()

    @staticmethod
    async def get_ats_major_version(db: AsyncSession, profile_id: int) -> int:
        """Major version of the profile's package.trafficserver parameter"""
        ats_version = await ServerService.get_profile_param_value(
            db, profile_id, "package", "trafficserver"
        )
        if not ats_version:
            ats_version = settings.DEFAULT_ATS_VERSION
            logger.warning(
                f"Parameter package.trafficserver missing for profile {profile_id}. "
                f"Assuming version {ats_version}"
            )
        match = ATS_MAJOR_VERSION_RE.match(ats_version)
        if not match:
            raise ATSVersionError(profile_id, ats_version)
        return int(match.group(1))

    @staticmethod
    async def get_server_parent_params(db: AsyncSession, profile_id: int) -> ServerParentParams:
        """parent.config parameters of a server profile"""
        result = await db.execute(
            select(Parameter.name, Parameter.value)
            .join(ProfileParameter, ProfileParameter.parameter_id == Parameter.id)
            .where(
                ProfileParameter.profile_id == profile_id,
                Parameter.config_file == PARENT_CONFIG_FILE,
                Parameter.name.in_([PARAM_QSTRING_HANDLING, PARAM_ALGORITHM, PARAM_QSTRING]),
            )
            .order_by(Parameter.id)
        )
        params = ServerParentParams()
        for name, value in result.all():
            if name == PARAM_QSTRING_HANDLING:
                params.qstring_handling = value
            elif name == PARAM_ALGORITHM:
                params.algorithm = value
            elif name == PARAM_QSTRING:
                params.qstring = value
        return params

    @staticmethod
    async def get_cdn_domain_by_profile_id(db: AsyncSession, profile_id: int) -> Optional[str]:
        """Domain name of the CDN a profile belongs to"""
        result = await db.execute(
            select(CDN.domain_name)
            .join(Profile, Profile.cdn_id == CDN.id)
            .where(Profile.id == profile_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_global_param(db: AsyncSession, name: str) -> Optional[str]:
        """Value of a parameter on the GLOBAL profile"""
        result = await db.execute(
            select(Parameter.value)
            .join(ProfileParameter, ProfileParameter.parameter_id == Parameter.id)
            .join(Profile, Profile.id == ProfileParameter.profile_id)
            .where(
                Profile.name == GLOBAL_PROFILE_NAME,
                Parameter.config_file == "global",
                Parameter.name == name,
            )
            .order_by(Parameter.id)
        )
        return result.scalars().first()
