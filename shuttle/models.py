from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Text, ForeignKey, Numeric, JSON, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from shuttle.database import Base

# SQLite only auto-increments INTEGER primary keys
Identifier = BigInteger().with_variant(Integer, "sqlite")

# ================================
# Users & Riders
# ================================
class User(Base):
    __tablename__ = "users"

    id = Column(Identifier, primary_key=True, index=True)
    name = Column(String(255))
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False, default="USER")
    status = Column(String(20), nullable=False, default="ACTIVE", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    riders = relationship("Rider", back_populates="user")
    bookings = relationship("Booking", back_populates="user")
    credit_balance = relationship("CreditBalance", back_populates="user", uselist=False)
    credit_transactions = relationship("CreditTransaction", back_populates="user")
    notifications = relationship("Notification", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Unknown"

class Rider(Base):
    __tablename__ = "riders"

    id = Column(Identifier, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="riders")
    bookings = relationship("Booking", back_populates="rider")

# ================================
# Destinations & Pricing Tiers
# ================================
class Location(Base):
    __tablename__ = "locations"

    id = Column(Identifier, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(Text)
    base_cost = Column(Numeric(10, 2))
    default_duration = Column(Integer)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    pricing_tiers = relationship(
        "PricingTier",
        back_populates="location",
        order_by="PricingTier.min_passengers",
        cascade="all, delete-orphan",
    )
    trips = relationship("Trip", back_populates="destination")

class PricingTier(Base):
    __tablename__ = "pricing_tiers"
    __table_args__ = (
        UniqueConstraint("location_id", "min_passengers", name="uq_pricing_tier_location_min"),
    )

    id = Column(Identifier, primary_key=True, index=True)
    location_id = Column(BigInteger, ForeignKey("locations.id"), nullable=False, index=True)
    min_passengers = Column(Integer, nullable=False)
    cost_per_person = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    location = relationship("Location", back_populates="pricing_tiers")

# ================================
# Trips & Bookings
# ================================
class Trip(Base):
    __tablename__ = "trips"

    id = Column(Identifier, primary_key=True, index=True)
    destination_id = Column(BigInteger, ForeignKey("locations.id"), nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False)
    max_passengers = Column(Integer, nullable=False)
    current_passengers = Column(Integer, nullable=False, default=0)
    status = Column(String(20), default="SCHEDULED", index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    destination = relationship("Location", back_populates="trips")
    bookings = relationship("Booking", back_populates="trip")
    calendar_event = relationship("CalendarEventMapping", back_populates="trip", uselist=False)

class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Identifier, primary_key=True, index=True)
    trip_id = Column(BigInteger, ForeignKey("trips.id"), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    rider_id = Column(BigInteger, ForeignKey("riders.id"))
    guest_name = Column(String(255))
    passenger_count = Column(Integer, nullable=False, default=1)
    credits_cost = Column(Numeric(10, 2), nullable=False)
    original_cost = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default="CONFIRMED", index=True)
    cancellation_reason = Column(Text)
    cancelled_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    trip = relationship("Trip", back_populates="bookings")
    user = relationship("User", back_populates="bookings")
    rider = relationship("Rider", back_populates="bookings")

# ================================
# Credit Ledger
# ================================
class CreditBalance(Base):
    __tablename__ = "credit_balances"

    id = Column(Identifier, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    credits = Column(Numeric(12, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="credit_balance")

class CreditTransaction(Base):
    __tablename__ = "credit_transactions"

    id = Column(Identifier, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(30), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text)
    booking_id = Column(BigInteger, ForeignKey("bookings.id"), index=True)
    trip_id = Column(BigInteger, ForeignKey("trips.id"), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Relationships
    user = relationship("User", back_populates="credit_transactions")
    booking = relationship("Booking")

# ================================
# Calendar
# ================================
class CalendarEventMapping(Base):
    __tablename__ = "calendar_event_mappings"

    id = Column(Identifier, primary_key=True, index=True)
    trip_id = Column(BigInteger, ForeignKey("trips.id"), unique=True, nullable=False, index=True)
    provider = Column(String(50), nullable=False)
    external_event_id = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    trip = relationship("Trip", back_populates="calendar_event")

class CalendarBlock(Base):
    __tablename__ = "calendar_blocks"

    id = Column(Identifier, primary_key=True, index=True)
    trip_id = Column(BigInteger, ForeignKey("trips.id"), index=True)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False, index=True)
    reason = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

# ================================
# Notifications
# ================================
class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Identifier, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, index=True)
    priority = Column(String(20), default="MEDIUM")
    data = Column(JSON, default=dict)
    is_read = Column(Boolean, default=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    read_at = Column(DateTime(timezone=True))

    # Relationships
    user = relationship("User", back_populates="notifications")
