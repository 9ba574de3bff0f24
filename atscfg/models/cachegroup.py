"""Cache group models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Float

from atscfg.core.database import Base


class CacheGroup(Base):
    """Cache group: servers sharing a location and a parent assignment"""
    __tablename__ = "cachegroup"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(1024), unique=True, nullable=False)
    short_name = Column(String(255), nullable=False)
    type_id = Column("type", Integer, ForeignKey("type.id"), nullable=False)  # EDGE_LOC, MID_LOC, ORG_LOC
    
    # Parent hierarchy (null = no parent)
    parent_cachegroup_id = Column(Integer, ForeignKey("cachegroup.id"), nullable=True)
    secondary_parent_cachegroup_id = Column(Integer, ForeignKey("cachegroup.id"), nullable=True)
    
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
