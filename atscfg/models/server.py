"""Cache server models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from atscfg.core.database import Base


class Server(Base):
    """Cache or origin server"""
    __tablename__ = "server"
    
    id = Column(Integer, primary_key=True, index=True)
    host_name = Column(String(63), nullable=False, index=True)
    domain_name = Column(String(1024), nullable=False)
    tcp_port = Column(Integer, default=80, nullable=True)
    
    # Network
    ip_address = Column(String(45), nullable=False)
    ip6_address = Column(String(50), nullable=True)
    
    # Topology
    cdn_id = Column(Integer, ForeignKey("cdn.id"), nullable=False)
    cachegroup_id = Column("cachegroup", Integer, ForeignKey("cachegroup.id"), nullable=False, index=True)
    type_id = Column("type", Integer, ForeignKey("type.id"), nullable=False)
    status_id = Column("status", Integer, ForeignKey("status.id"), nullable=False)
    profile_id = Column("profile", Integer, ForeignKey("profile.id"), nullable=False)
    
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
