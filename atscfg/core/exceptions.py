"""Errors raised while generating ATS configuration files"""


class ATSConfigError(Exception):
    """Base class for config generation errors"""


class ServerNotFoundError(ATSConfigError):
    """Requested cache server does not exist"""
    
    def __init__(self, id_or_host: str):
        self.id_or_host = id_or_host
        super().__init__(f"server not found: {id_or_host}")


class ConfigFormatError(ATSConfigError):
    """Stored data cannot be turned into a valid config file"""


class ATSVersionError(ConfigFormatError):
    """The package.trafficserver parameter is not a version number"""
    
    def __init__(self, profile_id: int, value: str):
        self.profile_id = profile_id
        self.value = value
        super().__init__(
            f"ats version parameter '{value}' on profile {profile_id} is not a number "
            "(config_file 'package', name 'trafficserver')"
        )
