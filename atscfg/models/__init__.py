from atscfg.models.cdn import CDN, Type, Status
from atscfg.models.profile import Profile, Parameter, ProfileParameter
from atscfg.models.cachegroup import CacheGroup
from atscfg.models.server import Server
from atscfg.models.delivery_service import DeliveryService, DeliveryServiceServer, Origin
