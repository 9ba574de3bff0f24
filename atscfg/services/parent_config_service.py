"""parent.config generation"""
import logging
import re
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from atscfg.core.exceptions import ServerNotFoundError
from atscfg.schemas.parent_config import (
    OriginURI,
    ParentConfigDS,
    ParentConfigDSTopLevel,
    ParentInfo,
    ParentKey,
    PerOrigin,
    ServerInfo,
    ServerParentParams,
    SHARED_PARENTS,
    ALGORITHM_CONSISTENT_HASH,
    GO_DIRECT_DS_TYPES,
)
from atscfg.services.delivery_service_service import DeliveryServiceParentService
from atscfg.services.header_service import HeaderService
from atscfg.services.parent_info_service import ParentInfoService
from atscfg.services.server_service import ServerService

logger = logging.getLogger(__name__)

# Lowest ATS major version supporting secondary_parent and parent_retry
ATS_SECONDARY_PARENT_MIN_VERSION = 6

RETRY_RESPONSES_RE = re.compile(r"^\d{3}(,\d{3})*$")
WHITESPACE_RE = re.compile(r"\s+")


def unavailable_server_retry_responses_valid(value: str) -> bool:
    """Whether value is a comma separated list of 3 digit HTTP codes"""
    return bool(value) and RETRY_RESPONSES_RE.match(value) is not None


def remove_duplicates(*groups: Sequence[str]) -> List[List[str]]:
    """Drop entries already seen in the same or an earlier group"""
    seen = set()
    deduped = []
    for group in groups:
        kept = []
        for entry in group:
            if entry not in seen:
                seen.add(entry)
                kept.append(entry)
        deduped.append(kept)
    return deduped


def split_ranked_parents(parents: Sequence[ParentInfo]) -> Tuple[List[str], List[str], List[str]]:
    """
    Formatted primary, secondary and unranked parents, in rank order

    When there is no primary parent the secondary parents become primary;
    when there is no secondary parent either, the parents in neither parent
    cache group take their place.
    """
    primary, secondary, unranked = [], [], []
    for parent in sorted(parents, key=lambda p: p.rank):
        if parent.primary_parent:
            primary.append(parent.format())
        elif parent.secondary_parent:
            secondary.append(parent.format())
        else:
            unranked.append(parent.format())

    if not primary:
        if not secondary:
            secondary, unranked = unranked, []
        primary, secondary = secondary, []

    primary, secondary, unranked = remove_duplicates(primary, secondary, unranked)
    return primary, secondary, unranked


def split_shared_parents(parents: Sequence[ParentInfo]) -> Tuple[List[str], List[str]]:
    """Formatted primary and secondary parents, each sorted"""
    primary, secondary = [], []
    for parent in parents:
        if parent.primary_parent:
            primary.append(parent.format())
        elif parent.secondary_parent:
            secondary.append(parent.format())

    if not primary:
        primary, secondary = secondary, []

    primary, secondary = remove_duplicates(primary, secondary)
    return sorted(primary), sorted(secondary)


def parent_list(directive: str, entries: Sequence[str]) -> str:
    return f'{directive}="{"".join(entries)}"'


def top_level_qstring(ds: ParentConfigDSTopLevel) -> str:
    """qstring of a multi-site origin line"""
    if ds.qstring_handling:
        return ds.qstring_handling
    if ds.mso_algorithm == ALGORITHM_CONSISTENT_HASH and ds.qstring_ignore == 0:
        return "consider"
    return "ignore"


def edge_qstring(ds: ParentConfigDS, server_qstring_handling: str) -> str:
    """
    qstring of an edge line

    A psel.qstring_handling parameter on the server profile applies to every
    delivery service; otherwise the one on the delivery service profile is
    used. Without either, the delivery service's qstring_ignore decides.
    """
    handling = server_qstring_handling or ds.qstring_handling
    if handling:
        return handling
    if ds.qstring_ignore == 0:
        return "consider"
    return "ignore"


def render_parent_config(header: str, lines: Sequence[str], default_line: Optional[str] = None) -> str:
    """Header, then the lines sorted, then the catch-all default line"""
    text = header + "".join(f"{line}\n" for line in sorted(lines))
    if default_line is not None:
        text += f"{default_line}\n"
    return text


class ParentConfigAccumulator:
    """Lines of one parent.config and the origins they already cover"""

    def __init__(self):
        self.lines: List[str] = []
        self.origins: Dict[str, str] = {}  # lowercased origin host:port -> delivery service name

    def claim_origin(self, origin: str, ds_name: str) -> bool:
        """False if an earlier delivery service already has a line for this origin"""
        existing = self.origins.get(origin)
        if existing is not None:
            logger.error(
                f"parent.config generation: duplicate origin! services '{ds_name}' and "
                f"'{existing}' share origin '{origin}': skipping '{ds_name}'!"
            )
            return False
        self.origins[origin] = ds_name
        return True

    def add(self, *tokens: str) -> None:
        """Add a line made of the non-empty tokens"""
        self.lines.append(" ".join(token for token in tokens if token))


class ParentConfigStrategy:
    """Builds the lines of parent.config for one kind of cache"""

    def __init__(
        self,
        server: ServerInfo,
        ats_major_version: int,
        server_params: ServerParentParams,
        delivery_services: Sequence[ParentConfigDS],
        parent_infos: Dict[ParentKey, List[ParentInfo]]
    ):
        self.server = server
        self.ats_major_version = ats_major_version
        self.server_params = server_params
        self.delivery_services = list(delivery_services)
        self.parent_infos = parent_infos

    @classmethod
    async def load(
        cls,
        db: AsyncSession,
        server: ServerInfo,
        ats_major_version: int,
        server_params: ServerParentParams
    ) -> "ParentConfigStrategy":
        raise NotImplementedError

    @property
    def supports_secondary_parent(self) -> bool:
        return self.ats_major_version >= ATS_SECONDARY_PARENT_MIN_VERSION

    def parse_origin(self, ds: ParentConfigDS) -> Optional[OriginURI]:
        """Origin of ds with its port defaulted, None (logged) when malformed"""
        try:
            return OriginURI.parse(ds.origin_fqdn).with_default_port()
        except ValueError as e:
            logger.error(
                f"Malformed ds '{ds.name}' origin URI: '{ds.origin_fqdn}', skipping! : {e}"
            )
            return None

    def build(self, accumulator: ParentConfigAccumulator) -> None:
        raise NotImplementedError

    def default_destination(self) -> Optional[str]:
        """Catch-all line written after the sorted lines, if any"""
        return None

    def render(self, header: str) -> str:
        accumulator = ParentConfigAccumulator()
        self.build(accumulator)
        return render_parent_config(header, accumulator.lines, self.default_destination())


class TopLevelStrategy(ParentConfigStrategy):
    """Caches whose parents are origins: origin shields and multi-site origins"""

    @classmethod
    async def load(cls, db, server, ats_major_version, server_params):
        delivery_services = await DeliveryServiceParentService.get_parent_config_ds_top_level(db, server.cdn)
        parent_infos = {}
        if any(ds.multi_site_origin and not ds.origin_shield for ds in delivery_services):
            parent_infos = await ParentInfoService.get_parent_info(db, server)
        return cls(server, ats_major_version, server_params, delivery_services, parent_infos)

    def build(self, accumulator: ParentConfigAccumulator) -> None:
        for ds in self.delivery_services:
            origin = self.parse_origin(ds)
            if origin is None:
                continue
            if not accumulator.claim_origin(origin.dedup_key, ds.name):
                continue

            if ds.origin_shield:
                accumulator.add(*self.origin_shield_tokens(ds, origin))
            elif ds.multi_site_origin:
                accumulator.add(*self.multi_site_origin_tokens(ds, origin))

    def origin_shield_tokens(self, ds: ParentConfigDSTopLevel, origin: OriginURI) -> List[str]:
        algorithm = self.server_params.algorithm
        return [
            f"dest_domain={origin.host}",
            f"port={origin.port}",
            f"parent={ds.origin_shield}",
            f"round_robin={algorithm}" if algorithm else "",
            "go_direct=true",
        ]

    def multi_site_origin_tokens(self, ds: ParentConfigDSTopLevel, origin: OriginURI) -> List[str]:
        parents = self.parent_infos.get(PerOrigin(host=origin.host_port), [])
        if not parents:
            logger.warning(f"ParentInfo: delivery service {ds.name} has no parent servers")

        primary, secondary, unranked = split_ranked_parents(parents)

        # secondary and unranked parents are only used once every primary is down
        if (
            self.supports_secondary_parent
            and ds.mso_algorithm == ALGORITHM_CONSISTENT_HASH
            and (secondary or unranked)
        ):
            parent_tokens = [
                parent_list("parent", primary),
                parent_list("secondary_parent", secondary + unranked),
            ]
        else:
            parent_tokens = [parent_list("parent", primary + secondary + unranked)]

        return [
            f"dest_domain={origin.host}",
            f"port={origin.port}",
            *parent_tokens,
            f"round_robin={ds.mso_algorithm}",
            "go_direct=false",
            "parent_is_proxy=false",
            f"qstring={top_level_qstring(ds)}",
            *self.retry_tokens(ds),
        ]

    def retry_tokens(self, ds: ParentConfigDSTopLevel) -> List[str]:
        if not self.supports_secondary_parent or not ds.mso_parent_retry:
            return []

        tokens = [f"parent_retry={ds.mso_parent_retry}"]
        responses = WHITESPACE_RE.sub("", ds.mso_unavailable_server_retry_responses)
        if unavailable_server_retry_responses_valid(responses):
            tokens.append(f"unavailable_server_retry_responses={responses}")
        elif responses:
            logger.error(f"Malformed unavailable_server_retry_responses parameter '{responses}', not using!")

        if ds.mso_max_simple_retries:
            tokens.append(f"max_simple_retries={ds.mso_max_simple_retries}")
        if ds.mso_max_unavailable_server_retries:
            tokens.append(f"max_unavailable_server_retries={ds.mso_max_unavailable_server_retries}")
        return tokens


class EdgeStrategy(ParentConfigStrategy):
    """Caches whose parents are other caches"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        primary, secondary = split_shared_parents(self.parent_infos.get(SHARED_PARENTS, []))
        if self.supports_secondary_parent and secondary:
            self.parent_tokens = [
                parent_list("parent", primary),
                parent_list("secondary_parent", secondary),
            ]
        else:
            self.parent_tokens = [parent_list("parent", primary + secondary)]

    @classmethod
    async def load(cls, db, server, ats_major_version, server_params):
        delivery_services = await DeliveryServiceParentService.get_parent_config_ds(db, server.id)
        parent_infos = await ParentInfoService.get_parent_info(db, server)
        return cls(server, ats_major_version, server_params, delivery_services, parent_infos)

    def build(self, accumulator: ParentConfigAccumulator) -> None:
        for ds in sorted(self.delivery_services, key=lambda ds: ds.name):
            if not ds.origin_fqdn:
                continue
            origin = self.parse_origin(ds)
            if origin is None:
                continue
            if not accumulator.claim_origin(origin.dedup_key, ds.name):
                continue

            if ds.type in GO_DIRECT_DS_TYPES:
                accumulator.add(f"dest_domain={origin.host}", f"port={origin.port}", "go_direct=true")
            else:
                accumulator.add(
                    f"dest_domain={origin.host}",
                    f"port={origin.port}",
                    *self.parent_tokens,
                    f"round_robin={ALGORITHM_CONSISTENT_HASH}",
                    "go_direct=false",
                    f"qstring={edge_qstring(ds, self.server_params.qstring_handling)}",
                )

    def default_destination(self) -> str:
        if self.server_params.algorithm == ALGORITHM_CONSISTENT_HASH:
            tokens = ["dest_domain=.", *self.parent_tokens, f"round_robin={ALGORITHM_CONSISTENT_HASH}", "go_direct=false"]
        else:
            # TODO: urlhash is not a valid ATS round_robin value, switch the fallback to consistent_hash
            tokens = ["dest_domain=.", self.parent_tokens[0], "round_robin=urlhash", "go_direct=false"]

        if self.server_params.qstring:
            tokens.append(f"qstring={self.server_params.qstring}")
        return " ".join(tokens)


class ParentConfigService:
    """Generates parent.config for a cache server"""

    @staticmethod
    async def generate(db: AsyncSession, id_or_host: str, now: Optional[datetime] = None) -> str:
        """
        Full parent.config text for a server

        Raises ServerNotFoundError when no server matches id_or_host.
        Database errors propagate; nothing is returned for a partial read.
        """
        server = await ServerService.get_server_info(db, id_or_host)
        if server is None:
            raise ServerNotFoundError(id_or_host)

        ats_major_version = await ServerService.get_ats_major_version(db, server.profile_id)
        header = await HeaderService.header_comment(db, server.host_name, now)
        server_params = await ServerService.get_server_parent_params(db, server.profile_id)

        strategy_class = TopLevelStrategy if server.is_top_level_cache() else EdgeStrategy
        logger.debug(
            f"Generating parent.config for {server.host_name} with {strategy_class.__name__} "
            f"(ATS {ats_major_version})"
        )
        strategy = await strategy_class.load(db, server, ats_major_version, server_params)
        return strategy.render(header)
