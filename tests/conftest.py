"""Shared fixtures: in-memory database and a topology builder"""
from typing import Dict, Iterable, Optional, Sequence, Tuple

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from atscfg.core.init import create_tables
from atscfg.models import (
    CDN,
    Type,
    Status,
    Profile,
    Parameter,
    ProfileParameter,
    CacheGroup,
    Server,
    DeliveryService,
    DeliveryServiceServer,
    Origin,
)


class Topology:
    """Creates CDN topology rows with sensible defaults"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._types: Dict[str, Type] = {}
        self._statuses: Dict[str, Status] = {}

    async def _add(self, obj):
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def type(self, name: str) -> Type:
        if name not in self._types:
            self._types[name] = await self._add(Type(name=name))
        return self._types[name]

    async def status(self, name: str) -> Status:
        if name not in self._statuses:
            self._statuses[name] = await self._add(Status(name=name))
        return self._statuses[name]

    async def cdn(self, name: str = "mycdn", domain_name: str = "mycdn.example.net") -> CDN:
        return await self._add(CDN(name=name, domain_name=domain_name))

    async def profile(
        self,
        name: str,
        cdn: Optional[CDN] = None,
        params: Iterable[Tuple[str, str, str]] = ()
    ) -> Profile:
        """Profile with (config_file, name, value) parameters"""
        profile = await self._add(Profile(name=name, cdn_id=cdn.id if cdn else None))
        for config_file, param_name, value in params:
            parameter = await self._add(Parameter(name=param_name, config_file=config_file, value=value))
            await self._add(ProfileParameter(profile_id=profile.id, parameter_id=parameter.id))
        return profile

    async def global_params(self, tool_name: str = "Traffic Ops", tool_url: str = "https://to.example.net") -> Profile:
        return await self.profile("GLOBAL", params=[
            ("global", "tm.toolname", tool_name),
            ("global", "tm.url", tool_url),
        ])

    async def cachegroup(
        self,
        name: str,
        type_name: str,
        parent: Optional[CacheGroup] = None,
        secondary: Optional[CacheGroup] = None
    ) -> CacheGroup:
        cg_type = await self.type(type_name)
        return await self._add(CacheGroup(
            name=name,
            short_name=name,
            type_id=cg_type.id,
            parent_cachegroup_id=parent.id if parent else None,
            secondary_parent_cachegroup_id=secondary.id if secondary else None,
        ))

    async def server(
        self,
        host_name: str,
        cdn: CDN,
        cachegroup: CacheGroup,
        profile: Profile,
        type_name: str = "EDGE",
        status: str = "REPORTED",
        domain_name: str = "infra.test",
        ip_address: str = "192.0.2.1",
        tcp_port: int = 80
    ) -> Server:
        server_type = await self.type(type_name)
        server_status = await self.status(status)
        return await self._add(Server(
            host_name=host_name,
            domain_name=domain_name,
            ip_address=ip_address,
            tcp_port=tcp_port,
            cdn_id=cdn.id,
            cachegroup_id=cachegroup.id,
            type_id=server_type.id,
            status_id=server_status.id,
            profile_id=profile.id,
        ))

    async def delivery_service(
        self,
        xml_id: str,
        cdn: CDN,
        origin: Optional[str] = "http://origin.example.com",
        type_name: str = "HTTP",
        servers: Sequence[Server] = (),
        profile: Optional[Profile] = None,
        multi_site_origin: bool = False,
        origin_shield: Optional[str] = None,
        qstring_ignore: int = 0,
        active: bool = True
    ) -> DeliveryService:
        """Delivery service with a primary origin given as protocol://fqdn[:port]"""
        ds_type = await self.type(type_name)
        ds = await self._add(DeliveryService(
            xml_id=xml_id,
            active=active,
            cdn_id=cdn.id,
            type_id=ds_type.id,
            profile_id=profile.id if profile else None,
            qstring_ignore=qstring_ignore,
            multi_site_origin=multi_site_origin,
            origin_shield=origin_shield,
        ))
        if origin:
            protocol, _, host = origin.partition("://")
            fqdn, _, port = host.partition(":")
            await self._add(Origin(
                name=f"{xml_id}-origin",
                fqdn=fqdn,
                protocol=protocol,
                port=int(port) if port else None,
                is_primary=True,
                deliveryservice_id=ds.id,
            ))
        for server in servers:
            await self._add(DeliveryServiceServer(deliveryservice_id=ds.id, server_id=server.id))
        return ds


@pytest_asyncio.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def topology(db):
    return Topology(db)


@pytest_asyncio.fixture
async def edge_topology(db, topology):
    """
    edge0 in edge-east, parent mid-east, secondary parent mid-west, ATS 7

    Delivery services on edge0: ds-http (HTTP), ds-live (HTTP_NO_CACHE) and
    ds-zdup, which shares ds-http's origin.
    """
    await topology.global_params()
    cdn = await topology.cdn()
    origin_east = await topology.cachegroup("origin-east", "ORG_LOC")
    mid_east = await topology.cachegroup("mid-east", "MID_LOC", parent=origin_east)
    mid_west = await topology.cachegroup("mid-west", "MID_LOC", parent=origin_east)
    edge_east = await topology.cachegroup("edge-east", "EDGE_LOC", parent=mid_east, secondary=mid_west)

    edge_profile = await topology.profile("EDGE_ATS_7", cdn, params=[
        ("package", "trafficserver", "7.0.0-1.el7"),
    ])
    mid_profile = await topology.profile("MID_ATS_7", cdn, params=[
        ("parent.config", "weight", "0.5"),
    ])

    edge0 = await topology.server("edge0", cdn, edge_east, edge_profile, type_name="EDGE")
    await topology.server("mid0", cdn, mid_east, mid_profile, type_name="MID", ip_address="192.0.2.10")
    await topology.server("mid1", cdn, mid_west, mid_profile, type_name="MID", status="ONLINE", ip_address="192.0.2.11")
    await topology.server("mid2", cdn, mid_east, mid_profile, type_name="MID", status="OFFLINE", ip_address="192.0.2.12")

    await topology.delivery_service("ds-http", cdn, origin="http://origin.example.com", servers=[edge0])
    await topology.delivery_service(
        "ds-live", cdn, origin="https://live.example.com", type_name="HTTP_NO_CACHE", servers=[edge0]
    )
    await topology.delivery_service("ds-zdup", cdn, origin="http://origin.example.com", servers=[edge0])
    await db.commit()
    return edge0


@pytest_asyncio.fixture
async def top_level_topology(db, topology):
    """
    mid0 in mid-east, parent origin-east, secondary parent origin-west, ATS 6

    mso-ds is a multi-site origin served by org0 (origin-east) and org1
    (origin-west); shield-ds goes through an origin shield.
    """
    await topology.global_params()
    cdn = await topology.cdn()
    origin_east = await topology.cachegroup("origin-east", "ORG_LOC")
    origin_west = await topology.cachegroup("origin-west", "ORG_LOC")
    mid_east = await topology.cachegroup("mid-east", "MID_LOC", parent=origin_east, secondary=origin_west)

    mid_profile = await topology.profile("MID_ATS_6", cdn, params=[
        ("package", "trafficserver", "6.2.1"),
    ])
    org_profile = await topology.profile("ORG_PROFILE", cdn)
    ds_profile = await topology.profile("MSO_DS_PROFILE", cdn, params=[
        ("parent.config", "mso.algorithm", "consistent_hash"),
        ("parent.config", "mso.parent_retry", "both"),
        ("parent.config", "mso.unavailable_server_retry_responses", "503, 504"),
        ("parent.config", "mso.max_simple_retries", "2"),
        ("parent.config", "mso.max_unavailable_server_retry_responses", "3"),
    ])

    mid0 = await topology.server("mid0", cdn, mid_east, mid_profile, type_name="MID")
    org0 = await topology.server(
        "org0", cdn, origin_east, org_profile, type_name="ORG", domain_name="example.com", ip_address="198.51.100.1"
    )
    org1 = await topology.server(
        "org1", cdn, origin_west, org_profile, type_name="ORG", domain_name="example.com", ip_address="198.51.100.2"
    )

    await topology.delivery_service(
        "mso-ds", cdn, origin="http://mso.example.com", servers=[mid0, org0, org1],
        profile=ds_profile, multi_site_origin=True,
    )
    await topology.delivery_service(
        "shield-ds", cdn, origin="https://shielded.example.com:8443", servers=[mid0],
        origin_shield="shield.example.net",
    )
    await topology.delivery_service("no-origin-ds", cdn, origin=None, servers=[mid0], multi_site_origin=True)
    await topology.delivery_service(
        "inactive-ds", cdn, origin="http://inactive.example.com", servers=[mid0],
        multi_site_origin=True, active=False,
    )
    await db.commit()
    return mid0

