"""Delivery service and origin models"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean
from sqlalchemy.orm import relationship

from atscfg.core.database import Base


class DeliveryService(Base):
    """Delivery service model"""
    __tablename__ = "deliveryservice"
    
    id = Column(Integer, primary_key=True, index=True)
    xml_id = Column(String(48), unique=True, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    cdn_id = Column(Integer, ForeignKey("cdn.id"), nullable=False)
    type_id = Column("type", Integer, ForeignKey("type.id"), nullable=False)
    profile_id = Column("profile", Integer, ForeignKey("profile.id"), nullable=True)
    
    # Parent selection
    qstring_ignore = Column(Integer, default=0, nullable=True)  # 0 = use in cache key, 1 = ignore, 2 = drop
    multi_site_origin = Column(Boolean, default=False, nullable=True)
    origin_shield = Column(String(1024), nullable=True)
    
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    origins = relationship("Origin", back_populates="delivery_service", cascade="all, delete-orphan")


class DeliveryServiceServer(Base):
    """Assignment of a server to a delivery service"""
    __tablename__ = "deliveryservice_server"
    
    deliveryservice_id = Column("deliveryservice", Integer, ForeignKey("deliveryservice.id"), primary_key=True)
    server_id = Column("server", Integer, ForeignKey("server.id"), primary_key=True)
    
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Origin(Base):
    """Origin server of a delivery service"""
    __tablename__ = "origin"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    fqdn = Column(String(255), nullable=False)
    protocol = Column(String(10), default="http", nullable=False)  # http, https
    port = Column(Integer, nullable=True)  # null = scheme default
    is_primary = Column(Boolean, default=False, nullable=False)
    deliveryservice_id = Column("deliveryservice", Integer, ForeignKey("deliveryservice.id"), nullable=False, index=True)
    
    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    delivery_service = relationship("DeliveryService", back_populates="origins")
