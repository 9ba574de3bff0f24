"""CDN, type and status lookup models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean

from atscfg.core.database import Base


class CDN(Base):
    """CDN model"""
    __tablename__ = "cdn"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(1024), unique=True, nullable=False)
    domain_name = Column(String(1024), nullable=False)  # e.g. mycdn.example.net
    dnssec_enabled = Column(Boolean, default=False, nullable=False)
    
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Type(Base):
    """Type of a server, cache group or delivery service"""
    __tablename__ = "type"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(256), unique=True, nullable=False)  # EDGE, MID, ORG, ORG_LOC, HTTP, HTTP_NO_CACHE, ...
    description = Column(String(256), nullable=True)
    use_in_table = Column(String(256), nullable=True)  # server, cachegroup, deliveryservice
    
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Status(Base):
    """Server status"""
    __tablename__ = "status"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(256), unique=True, nullable=False)  # ONLINE, REPORTED, OFFLINE, ADMIN_DOWN
    description = Column(String(256), nullable=True)
    
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
