"""Resolution of candidate parent caches for a server"""
import logging
from typing import Dict, List, Sequence
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from atscfg.models.cdn import CDN, Type, Status
from atscfg.models.cachegroup import CacheGroup
from atscfg.models.delivery_service import DeliveryServiceServer
from atscfg.models.profile import Parameter, ProfileParameter
from atscfg.models.server import Server
from atscfg.schemas.parent_config import (
    OriginURI,
    ParentInfo,
    ParentKey,
    PerOrigin,
    ProfileCache,
    ServerInfo,
    SHARED_PARENTS,
    CACHE_PARAM_NAMES,
    TYPE_CACHEGROUP_ORIGIN,
    TYPE_ORIGIN,
)
from atscfg.services.delivery_service_service import DeliveryServiceParentService
from atscfg.services.server_service import ServerService, PARENT_CONFIG_FILE

logger = logging.getLogger(__name__)

PARENT_SERVER_STATUSES = ("REPORTED", "ONLINE")


class ParentInfoService:
    """Finds the servers a cache may use as parents"""

    @staticmethod
    async def get_parent_cachegroup_ids(db: AsyncSession, server: ServerInfo) -> List[int]:
        """Cache groups whose servers are parent candidates for the server"""
        if server.is_top_level_cache():
            # multi-site origins take every origin location into account
            result = await db.execute(
                select(CacheGroup.id)
                .join(Type, Type.id == CacheGroup.type_id)
                .where(Type.name == TYPE_CACHEGROUP_ORIGIN)
                .order_by(CacheGroup.id)
            )
            return list(result.scalars().all())

        return [
            cachegroup_id
            for cachegroup_id in (server.parent_cachegroup_id, server.secondary_parent_cachegroup_id)
            if cachegroup_id
        ]

    @staticmethod
    async def get_candidate_servers(db: AsyncSession, cdn_name: str, cachegroup_ids: Sequence[int]):
        """Reporting origin, edge and mid servers of the given cache groups"""
        if not cachegroup_ids:
            return []
        result = await db.execute(
            select(
                Server.id,
                Server.host_name,
                Server.domain_name,
                Server.ip_address,
                Server.tcp_port,
                Server.cachegroup_id,
                Server.profile_id,
                Type.name.label("type_name"),
            )
            .select_from(Server)
            .join(Type, Server.type_id == Type.id)
            .join(Status, Server.status_id == Status.id)
            .join(CDN, Server.cdn_id == CDN.id)
            .where(
                Server.cachegroup_id.in_(list(cachegroup_ids)),
                or_(
                    Type.name == TYPE_ORIGIN,
                    Type.name.like("EDGE%"),
                    Type.name.like("MID%"),
                ),
                Status.name.in_(PARENT_SERVER_STATUSES),
                CDN.name == cdn_name,
            )
            .order_by(Server.id)
        )
        return result.all()

    @staticmethod
    async def get_profile_caches(db: AsyncSession, profile_ids: Sequence[int]) -> Dict[int, ProfileCache]:
        """
        Parent attributes per profile

        Every requested profile gets an entry; profiles without any
        parent.config cache parameter keep the ProfileCache defaults.
        """
        caches: Dict[int, ProfileCache] = {}
        if not profile_ids:
            return caches

        result = await db.execute(
            select(ProfileParameter.profile_id, Parameter.name, Parameter.value)
            .select_from(Parameter)
            .join(ProfileParameter, ProfileParameter.parameter_id == Parameter.id)
            .where(
                ProfileParameter.profile_id.in_(list(profile_ids)),
                Parameter.config_file == PARENT_CONFIG_FILE,
                Parameter.name.in_(CACHE_PARAM_NAMES),
            )
            .order_by(Parameter.id)
        )
        for profile_id, name, value in result.all():
            caches.setdefault(profile_id, ProfileCache()).apply_param(name, value)

        for profile_id in profile_ids:
            if profile_id not in caches:
                logger.warning(f"cachegroup has server with profile {profile_id} but that profile has no parameters")
                caches[profile_id] = ProfileCache()
        return caches

    @staticmethod
    async def get_server_ds_ids(db: AsyncSession, server_ids: Sequence[int]) -> Dict[int, List[int]]:
        """Delivery service IDs assigned to each server"""
        server_dses: Dict[int, List[int]] = {}
        if not server_ids:
            return server_dses
        result = await db.execute(
            select(DeliveryServiceServer.server_id, DeliveryServiceServer.deliveryservice_id)
            .where(DeliveryServiceServer.server_id.in_(list(server_ids)))
            .order_by(DeliveryServiceServer.server_id, DeliveryServiceServer.deliveryservice_id)
        )
        for server_id, ds_id in result.all():
            server_dses.setdefault(server_id, []).append(ds_id)
        return server_dses

    @staticmethod
    async def get_ds_origins(db: AsyncSession, ds_ids: Sequence[int]) -> Dict[int, OriginURI]:
        """Primary origin URI of each delivery service, port defaulted from scheme"""
        origins = await DeliveryServiceParentService.get_primary_origins(db, ds_ids)
        return {
            ds_id: OriginURI(
                scheme=origin.protocol,
                host=origin.fqdn,
                port=str(origin.port) if origin.port is not None else "",
            ).with_default_port()
            for ds_id, origin in origins.items()
        }

    @staticmethod
    async def get_parent_info(db: AsyncSession, server: ServerInfo) -> Dict[ParentKey, List[ParentInfo]]:
        """
        Candidate parents of a server

        Origin servers are grouped per multi-site origin (PerOrigin keyed by
        the origin host:port of every delivery service they serve); every
        other candidate goes to SHARED_PARENTS.
        """
        parent_infos: Dict[ParentKey, List[ParentInfo]] = {}

        server_domain = await ServerService.get_cdn_domain_by_profile_id(db, server.profile_id)
        if not server_domain:
            logger.warning(
                f"parent.config generation: profile {server.profile_id} of server "
                f"'{server.host_name}' has no CDN domain, no parents"
            )
            return parent_infos

        cachegroup_ids = await ParentInfoService.get_parent_cachegroup_ids(db, server)
        candidates = await ParentInfoService.get_candidate_servers(db, server.cdn, cachegroup_ids)
        if not candidates:
            return parent_infos

        profile_caches = await ParentInfoService.get_profile_caches(
            db, sorted({row.profile_id for row in candidates})
        )
        server_dses = await ParentInfoService.get_server_ds_ids(db, [row.id for row in candidates])
        ds_origins = await ParentInfoService.get_ds_origins(
            db, sorted({ds_id for ds_ids in server_dses.values() for ds_id in ds_ids})
        )

        for row in candidates:
            profile = profile_caches[row.profile_id]
            if profile.not_a_parent:
                continue

            if row.type_name == TYPE_ORIGIN:
                keys = [
                    PerOrigin(host=ds_origins[ds_id].host_port)
                    for ds_id in server_dses.get(row.id, [])
                    if ds_id in ds_origins
                ]
            else:
                keys = [SHARED_PARENTS]

            for key in keys:
                parent_infos.setdefault(key, []).append(ParentInfo(
                    host=row.host_name,
                    domain=row.domain_name,
                    ip=row.ip_address,
                    port=profile.port if profile.port >= 1 else (row.tcp_port or 0),
                    weight=profile.weight,
                    rank=profile.rank,
                    use_ip=profile.use_ip,
                    primary_parent=server.parent_cachegroup_id == row.cachegroup_id,
                    secondary_parent=server.secondary_parent_cachegroup_id == row.cachegroup_id,
                ))
        return parent_infos
