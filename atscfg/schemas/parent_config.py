"""Parent selection (parent.config) schemas"""
import logging
from decimal import Decimal
from typing import Optional, Union
from urllib.parse import urlsplit
from pydantic import BaseModel

logger = logging.getLogger(__name__)

TYPE_CACHEGROUP_ORIGIN = "ORG_LOC"
TYPE_ORIGIN = "ORG"

ALGORITHM_CONSISTENT_HASH = "consistent_hash"

# Delivery service types that never go through a parent cache
GO_DIRECT_DS_TYPES = ("HTTP_NO_CACHE", "HTTP_LIVE", "DNS_LIVE")

DEFAULT_SCHEME_PORTS = {
    "http": "80",
    "https": "443",
}

# parent.config parameter names
PARAM_QSTRING_HANDLING = "psel.qstring_handling"
PARAM_ALGORITHM = "algorithm"
PARAM_QSTRING = "qstring"
PARAM_MSO_ALGORITHM = "mso.algorithm"
PARAM_MSO_PARENT_RETRY = "mso.parent_retry"
PARAM_MSO_UNAVAILABLE_SERVER_RETRY_RESPONSES = "mso.unavailable_server_retry_responses"
PARAM_MSO_MAX_SIMPLE_RETRIES = "mso.max_simple_retries"
PARAM_MSO_MAX_UNAVAILABLE_SERVER_RETRIES = "mso.max_unavailable_server_retry_responses"

PARAM_CACHE_WEIGHT = "weight"
PARAM_CACHE_PORT = "port"
PARAM_CACHE_USE_IP = "use_ip_address"
PARAM_CACHE_RANK = "rank"
PARAM_CACHE_NOT_A_PARENT = "not_a_parent"

DS_PARAM_FIELDS = {
    PARAM_QSTRING_HANDLING: "qstring_handling",
    PARAM_MSO_ALGORITHM: "mso_algorithm",
    PARAM_MSO_PARENT_RETRY: "mso_parent_retry",
    PARAM_MSO_UNAVAILABLE_SERVER_RETRY_RESPONSES: "mso_unavailable_server_retry_responses",
    PARAM_MSO_MAX_SIMPLE_RETRIES: "mso_max_simple_retries",
    PARAM_MSO_MAX_UNAVAILABLE_SERVER_RETRIES: "mso_max_unavailable_server_retries",
}

CACHE_PARAM_NAMES = (
    PARAM_CACHE_WEIGHT,
    PARAM_CACHE_PORT,
    PARAM_CACHE_USE_IP,
    PARAM_CACHE_RANK,
    PARAM_CACHE_NOT_A_PARENT,
)


def format_weight(weight: float) -> str:
    """Shortest decimal that reads back as the same float, never in exponent form"""
    text = format(Decimal(repr(float(weight))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


class ServerInfo(BaseModel):
    """Identity and topology of the server a config is generated for"""
    cdn: str
    cdn_id: int
    id: int
    host_name: str
    domain_name: str
    ip: str
    profile_id: int
    profile_name: str
    port: Optional[int] = None
    type: str
    cachegroup_id: int
    parent_cachegroup_id: Optional[int] = None
    secondary_parent_cachegroup_id: Optional[int] = None
    parent_cachegroup_type: str = ""
    secondary_parent_cachegroup_type: str = ""

    class Config:
        frozen = True

    def is_top_level_cache(self) -> bool:
        """True when both parent cache groups are origin locations or unset"""
        parent_is_origin = (
            not self.parent_cachegroup_id
            or self.parent_cachegroup_type == TYPE_CACHEGROUP_ORIGIN
        )
        secondary_is_origin = (
            not self.secondary_parent_cachegroup_id
            or self.secondary_parent_cachegroup_type == TYPE_CACHEGROUP_ORIGIN
        )
        return parent_is_origin and secondary_is_origin


class ServerParentParams(BaseModel):
    """parent.config parameters of the server's own profile, empty when unset"""
    qstring_handling: str = ""
    algorithm: str = ""
    qstring: str = ""


class ParentConfigDS(BaseModel):
    """Parent-relevant projection of a delivery service"""
    name: str
    origin_fqdn: str = ""
    qstring_ignore: int = 0
    multi_site_origin: bool = False
    origin_shield: str = ""
    type: str = ""
    qstring_handling: str = ""


class ParentConfigDSTopLevel(ParentConfigDS):
    """Delivery service as seen by a top-level (mid tier) cache"""
    mso_algorithm: str = ALGORITHM_CONSISTENT_HASH
    mso_parent_retry: str = ""
    mso_unavailable_server_retry_responses: str = ""
    mso_max_simple_retries: str = ""
    mso_max_unavailable_server_retries: str = ""


class ParentConfigDSParams(BaseModel):
    """
    parent.config overrides found on a delivery service profile.

    None means the parameter is not assigned and the delivery service keeps
    its own default.
    """
    qstring_handling: Optional[str] = None
    mso_algorithm: Optional[str] = None
    mso_parent_retry: Optional[str] = None
    mso_unavailable_server_retry_responses: Optional[str] = None
    mso_max_simple_retries: Optional[str] = None
    mso_max_unavailable_server_retries: Optional[str] = None

    def set_param(self, name: str, value: str) -> None:
        """Record a parameter row; unknown names are ignored"""
        field = DS_PARAM_FIELDS.get(name)
        if field:
            setattr(self, field, value)

    def merge_into(self, ds: ParentConfigDS) -> ParentConfigDS:
        """Copy of ds with every assigned override that ds has a field for"""
        fields = type(ds).model_fields
        update = {
            key: value
            for key, value in self.model_dump(exclude_none=True).items()
            if key in fields
        }
        return ds.model_copy(update=update)


class ProfileCache(BaseModel):
    """
    Parent attributes shared by every server of a profile.

    The defaults are what a profile gets when the matching parent.config
    parameter is not assigned to it: weight 0.999, rank 1, port 0 (meaning
    "use the server's own TCP port"), host name rather than IP, and
    eligible as a parent.
    """
    weight: float = 0.999
    port: int = 0
    use_ip: bool = False
    rank: int = 1
    not_a_parent: bool = False

    def apply_param(self, name: str, value: str) -> None:
        """Apply one parent.config parameter; bad numbers keep the default"""
        if name == PARAM_CACHE_WEIGHT:
            try:
                self.weight = float(value)
            except ValueError:
                logger.error(f"parent.config generation: weight param '{value}' is not a float, skipping!")
        elif name == PARAM_CACHE_PORT:
            try:
                self.port = int(value)
            except ValueError:
                logger.error(f"parent.config generation: port param '{value}' is not an integer, skipping!")
        elif name == PARAM_CACHE_USE_IP:
            self.use_ip = value == "1"
        elif name == PARAM_CACHE_RANK:
            try:
                self.rank = int(value)
            except ValueError:
                logger.error(f"parent.config generation: rank param '{value}' is not an integer, skipping!")
        elif name == PARAM_CACHE_NOT_A_PARENT:
            self.not_a_parent = value != "false"


class ParentInfo(BaseModel):
    """One candidate parent cache"""
    host: str
    domain: str = ""
    ip: str = ""
    port: int
    weight: float = 0.999
    rank: int = 1
    use_ip: bool = False
    primary_parent: bool = False
    secondary_parent: bool = False

    def format(self) -> str:
        """Render as a parent list entry: host.domain:port|weight;"""
        if self.use_ip:
            host = self.ip
        elif self.domain:
            host = f"{self.host}.{self.domain}"
        else:
            host = self.host
        return f"{host}:{self.port}|{format_weight(self.weight)};"


class OriginURI(BaseModel):
    """Scheme, host and port of a delivery service origin"""
    scheme: str = ""
    host: str
    port: str = ""

    @property
    def host_port(self) -> str:
        if self.port:
            return f"{self.host}:{self.port}"
        return self.host

    @classmethod
    def parse(cls, url: str) -> "OriginURI":
        """
        Parse an origin URL; raises ValueError when malformed

        The host keeps the case it is stored with.
        """
        parts = urlsplit(url)
        port = parts.port
        if not parts.hostname:
            raise ValueError(f"no host in '{url}'")

        host = parts.netloc.rpartition("@")[2]
        if host.startswith("["):
            host = host[1:host.index("]")]
        else:
            host = host.partition(":")[0]
        return cls(
            scheme=parts.scheme,
            host=host,
            port=str(port) if port is not None else "",
        )

    @property
    def dedup_key(self) -> str:
        """host:port compared case-insensitively, as DNS names are"""
        return self.host_port.lower()

    def with_default_port(self) -> "OriginURI":
        """Fill a missing port from the scheme; unknown schemes are left as-is"""
        if self.port:
            return self
        default_port = DEFAULT_SCHEME_PORTS.get(self.scheme)
        if default_port is None:
            logger.warning(
                f"parent.config generation: origin '{self.host}' has unknown scheme "
                f"'{self.scheme}' and no port, using as-is"
            )
            return self
        return self.model_copy(update={"port": default_port})


class PerOrigin(BaseModel):
    """Parents of one multi-site origin, keyed by origin host:port"""
    host: str

    class Config:
        frozen = True


class Shared(BaseModel):
    """Parents shared by every delivery service that is not multi-site-origin"""

    class Config:
        frozen = True


ParentKey = Union[PerOrigin, Shared]

SHARED_PARENTS = Shared()
