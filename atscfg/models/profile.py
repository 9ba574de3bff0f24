"""Profile and parameter models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Text

from atscfg.core.database import Base


class Profile(Base):
    """Profile: a named bag of parameters shared by servers or delivery services"""
    __tablename__ = "profile"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(256), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    cdn_id = Column("cdn", Integer, ForeignKey("cdn.id"), nullable=True)
    type = Column(String(64), default="ATS_PROFILE", nullable=False)
    routing_disabled = Column(Boolean, default=False, nullable=False)
    
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Parameter(Base):
    """Configuration parameter (name/value scoped to a config file)"""
    __tablename__ = "parameter"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(1024), nullable=False)
    config_file = Column(String(256), nullable=True)  # parent.config, package, global, ...
    value = Column(Text, nullable=False)
    secure = Column(Boolean, default=False, nullable=False)
    
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ProfileParameter(Base):
    """Assignment of a parameter to a profile"""
    __tablename__ = "profile_parameter"
    
    profile_id = Column("profile", Integer, ForeignKey("profile.id"), primary_key=True)
    parameter_id = Column("parameter", Integer, ForeignKey("parameter.id"), primary_key=True)
    
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
