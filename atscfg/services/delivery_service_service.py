"""Delivery service data needed for parent.config generation"""
import logging
from typing import Dict, List, Sequence, Type as TypingType
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from atscfg.models.cdn import CDN, Type
from atscfg.models.delivery_service import DeliveryService, DeliveryServiceServer, Origin
from atscfg.models.profile import Parameter, ProfileParameter
from atscfg.schemas.parent_config import (
    ParentConfigDS,
    ParentConfigDSTopLevel,
    ParentConfigDSParams,
    PARAM_QSTRING_HANDLING,
    PARAM_MSO_ALGORITHM,
    PARAM_MSO_PARENT_RETRY,
    PARAM_MSO_UNAVAILABLE_SERVER_RETRY_RESPONSES,
    PARAM_MSO_MAX_SIMPLE_RETRIES,
    PARAM_MSO_MAX_UNAVAILABLE_SERVER_RETRIES,
)
from atscfg.services.server_service import PARENT_CONFIG_FILE

logger = logging.getLogger(__name__)

DS_PARAM_NAMES = (PARAM_QSTRING_HANDLING,)

DS_PARAM_NAMES_TOP_LEVEL = (
    PARAM_QSTRING_HANDLING,
    PARAM_MSO_ALGORITHM,
    PARAM_MSO_PARENT_RETRY,
    PARAM_MSO_UNAVAILABLE_SERVER_RETRY_RESPONSES,
    PARAM_MSO_MAX_SIMPLE_RETRIES,
    PARAM_MSO_MAX_UNAVAILABLE_SERVER_RETRIES,
)


def origin_url(protocol: str, fqdn: str, port) -> str:
    """protocol://fqdn[:port] of an origin row"""
    url = f"{protocol}://{fqdn}"
    if port is not None:
        url += f":{port}"
    return url


class DeliveryServiceParentService:
    """Loads delivery services as parent.config generation sees them"""

    @staticmethod
    async def get_primary_origins(db: AsyncSession, ds_ids: Sequence[int]) -> Dict[int, Origin]:
        """Primary origin of each delivery service, by delivery service ID"""
        if not ds_ids:
            return {}
        result = await db.execute(
            select(Origin)
            .where(Origin.deliveryservice_id.in_(list(ds_ids)), Origin.is_primary == True)
            .order_by(Origin.id)
        )
        origins: Dict[int, Origin] = {}
        for origin in result.scalars().all():
            origins.setdefault(origin.deliveryservice_id, origin)
        return origins

    @staticmethod
    async def _get_raw(db: AsyncSession, query, ds_class: TypingType[ParentConfigDS]) -> List[ParentConfigDS]:
        result = await db.execute(query)
        rows = result.all()
        origins = await DeliveryServiceParentService.get_primary_origins(
            db, [row.id for row in rows]
        )

        dses = []
        for row in rows:
            origin = origins.get(row.id)
            if origin is None:
                logger.warning(
                    f"parent.config generation: delivery service '{row.xml_id}' has no origin, skipping!"
                )
                continue
            dses.append(ds_class(
                name=row.xml_id,
                origin_fqdn=origin_url(origin.protocol, origin.fqdn, origin.port),
                qstring_ignore=row.qstring_ignore or 0,
                multi_site_origin=bool(row.multi_site_origin),
                origin_shield=row.origin_shield or "",
                type=row.type_name,
            ))
        return dses

    @staticmethod
    def _base_query():
        return (
            select(
                DeliveryService.id,
                DeliveryService.xml_id,
                DeliveryService.qstring_ignore,
                DeliveryService.multi_site_origin,
                DeliveryService.origin_shield,
                Type.name.label("type_name"),
            )
            .select_from(DeliveryService)
            .join(Type, DeliveryService.type_id == Type.id)
        )

    @staticmethod
    async def get_ds_params(
        db: AsyncSession,
        ds_names: Sequence[str],
        param_names: Sequence[str]
    ) -> Dict[str, ParentConfigDSParams]:
        """parent.config overrides of each delivery service profile, by xml_id"""
        params: Dict[str, ParentConfigDSParams] = {}
        if not ds_names:
            return params

        result = await db.execute(
            select(DeliveryService.xml_id, Parameter.name, Parameter.value)
            .select_from(Parameter)
            .join(ProfileParameter, ProfileParameter.parameter_id == Parameter.id)
            .join(DeliveryService, DeliveryService.profile_id == ProfileParameter.profile_id)
            .where(
                Parameter.config_file == PARENT_CONFIG_FILE,
                DeliveryService.xml_id.in_(list(ds_names)),
                Parameter.name.in_(list(param_names)),
            )
            .order_by(Parameter.id)
        )
        for xml_id, name, value in result.all():
            params.setdefault(xml_id, ParentConfigDSParams()).set_param(name, value)
        return params

    @staticmethod
    async def _merge_params(
        db: AsyncSession,
        dses: List[ParentConfigDS],
        param_names: Sequence[str]
    ) -> List[ParentConfigDS]:
        params = await DeliveryServiceParentService.get_ds_params(
            db, [ds.name for ds in dses], param_names
        )
        return [
            params[ds.name].merge_into(ds) if ds.name in params else ds
            for ds in dses
        ]

    @staticmethod
    async def get_parent_config_ds(db: AsyncSession, server_id: int) -> List[ParentConfigDS]:
        """Delivery services assigned to one server, ordered by ID"""
        assigned = select(DeliveryServiceServer.deliveryservice_id).where(
            DeliveryServiceServer.server_id == server_id
        )
        query = (
            DeliveryServiceParentService._base_query()
            .where(DeliveryService.id.in_(assigned))
            .order_by(DeliveryService.id)
        )
        dses = await DeliveryServiceParentService._get_raw(db, query, ParentConfigDS)
        return await DeliveryServiceParentService._merge_params(db, dses, DS_PARAM_NAMES)

    @staticmethod
    async def get_parent_config_ds_top_level(db: AsyncSession, cdn_name: str) -> List[ParentConfigDSTopLevel]:
        """Active, assigned delivery services of a CDN, ordered by ID"""
        assigned = select(DeliveryServiceServer.deliveryservice_id)
        query = (
            DeliveryServiceParentService._base_query()
            .join(CDN, CDN.id == DeliveryService.cdn_id)
            .where(
                CDN.name == cdn_name,
                DeliveryService.id.in_(assigned),
                DeliveryService.active == True,
            )
            .order_by(DeliveryService.id)
        )
        dses = await DeliveryServiceParentService._get_raw(db, query, ParentConfigDSTopLevel)
        return await DeliveryServiceParentService._merge_params(db, dses, DS_PARAM_NAMES_TOP_LEVEL)
