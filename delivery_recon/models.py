from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from delivery_recon.core.database import Base
from delivery_recon.core.enum.Platform import Platform

ID_TYPE = BigInteger().with_variant(Integer, "sqlite")

UNMAPPED_LOCATION_NAME = "Unmapped Locations"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Location(Base):
    __tablename__ = "locations"
    __table_args__ = (
        Index("ix_locations_client_canonical", "client_id", "canonical_name"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("clients.id"), nullable=False)
    canonical_name: Mapped[str] = mapped_column(String(255), nullable=False)
    uber_eats_store_label: Mapped[Optional[str]] = mapped_column(String(255))
    doordash_name: Mapped[Optional[str]] = mapped_column(String(255))
    grubhub_name: Mapped[Optional[str]] = mapped_column(String(255))
    store_id: Mapped[Optional[str]] = mapped_column(String(64))
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def is_unmapped(self) -> bool:
        return self.canonical_name == UNMAPPED_LOCATION_NAME

    def platform_name(self, platform: Platform) -> Optional[str]:
        return getattr(self, PLATFORM_NAME_FIELDS[platform])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "canonical_name": self.canonical_name,
            "uber_eats_store_label": self.uber_eats_store_label,
            "doordash_name": self.doordash_name,
            "grubhub_name": self.grubhub_name,
            "store_id": self.store_id,
            "is_verified": self.is_verified,
            "is_unmapped": self.is_unmapped,
        }


class UberEatsTransaction(Base):
    __tablename__ = "uber_eats_transactions"
    __table_args__ = (
        UniqueConstraint("client_id", "workflow_id", name="uq_uber_eats_client_workflow"),
        Index("ix_uber_eats_client_date", "client_id", "order_date"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("clients.id"), nullable=False)
    location_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("locations.id"), nullable=False)
    workflow_id: Mapped[str] = mapped_column(String(128), nullable=False)
    order_id: Mapped[str] = mapped_column(String(128), nullable=False)
    order_date: Mapped[str] = mapped_column(String(10), nullable=False)
    order_status: Mapped[Optional[str]] = mapped_column(String(64))
    store_name: Mapped[str] = mapped_column(String(255), nullable=False)
    sales_excl_tax: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tax: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    offers_on_items: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    delivery_offer_redemptions: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    offer_redemption_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    other_payments: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    other_payments_description: Mapped[Optional[str]] = mapped_column(Text)
    marketplace_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    delivery_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    service_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    net_payout: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class DoordashTransaction(Base):
    __tablename__ = "doordash_transactions"
    __table_args__ = (
        UniqueConstraint("client_id", "transaction_id", name="uq_doordash_client_transaction"),
        Index("ix_doordash_client_date", "client_id", "transaction_date"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("clients.id"), nullable=False)
    location_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("locations.id"), nullable=False)
    transaction_id: Mapped[str] = mapped_column(String(128), nullable=False)
    order_id: Mapped[Optional[str]] = mapped_column(String(128))
    transaction_date: Mapped[str] = mapped_column(String(10), nullable=False)
    store_name: Mapped[str] = mapped_column(String(255), nullable=False)
    store_id: Mapped[Optional[str]] = mapped_column(String(64))
    channel: Mapped[Optional[str]] = mapped_column(String(64))
    transaction_type: Mapped[Optional[str]] = mapped_column(String(64))
    order_status: Mapped[Optional[str]] = mapped_column(String(64))
    sales_excl_tax: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tax: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    customer_fees: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    error_charges: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    offers: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    delivery_redemptions: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    marketing_credits: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    third_party_contribution: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    other_payments: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    other_payments_description: Mapped[Optional[str]] = mapped_column(Text)
    total_payout: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class GrubhubTransaction(Base):
    __tablename__ = "grubhub_transactions"
    __table_args__ = (
        UniqueConstraint("client_id", "transaction_id", name="uq_grubhub_client_transaction"),
        Index("ix_grubhub_client_date", "client_id", "transaction_date"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("clients.id"), nullable=False)
    location_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("locations.id"), nullable=False)
    transaction_id: Mapped[str] = mapped_column(String(128), nullable=False)
    order_number: Mapped[Optional[str]] = mapped_column(String(128))
    transaction_date: Mapped[str] = mapped_column(String(10), nullable=False)
    transaction_type: Mapped[Optional[str]] = mapped_column(String(64))
    store_name: Mapped[str] = mapped_column(String(255), nullable=False)
    store_number: Mapped[Optional[str]] = mapped_column(String(64))
    order_channel: Mapped[Optional[str]] = mapped_column(String(64))
    fulfillment_type: Mapped[Optional[str]] = mapped_column(String(64))
    subtotal: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    subtotal_sales_tax: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    delivery_commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    processing_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    merchant_funded_promotion: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    merchant_net_total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    transaction_note: Mapped[Optional[str]] = mapped_column(Text)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


# Location column holding each platform's store name
PLATFORM_NAME_FIELDS = {
    Platform.UBER_EATS: "uber_eats_store_label",
    Platform.DOORDASH: "doordash_name",
    Platform.GRUBHUB: "grubhub_name",
}

TRANSACTION_MODELS = {
    Platform.UBER_EATS: UberEatsTransaction,
    Platform.DOORDASH: DoordashTransaction,
    Platform.GRUBHUB: GrubhubTransaction,
}

# Natural key columns backing each table's unique constraint
NATURAL_KEY_COLUMNS = {
    Platform.UBER_EATS: ("client_id", "workflow_id"),
    Platform.DOORDASH: ("client_id", "transaction_id"),
    Platform.GRUBHUB: ("client_id", "transaction_id"),
}

DATE_COLUMNS = {
    Platform.UBER_EATS: "order_date",
    Platform.DOORDASH: "transaction_date",
    Platform.GRUBHUB: "transaction_date",
}
