import enum
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
	JSON,
	Boolean,
	DateTime,
	Enum,
	ForeignKey,
	Integer,
	Numeric,
	String,
	Text,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from .db import Base

QUOTE_VALIDITY_DAYS = 30


def utcnow() -> datetime:
	# naive UTC: SQLite drops tzinfo on read and comparisons must stay consistent
	return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_id() -> str:
	return str(uuid.uuid4())


class ProductType(str, enum.Enum):
	RACK = "RACK"
	SWITCH = "SWITCH"
	PSU = "PSU"
	CABLE = "CABLE"
	SFP_MODULE = "SFP_MODULE"
	ACCESSORY = "ACCESSORY"


class ConfigurationStatus(str, enum.Enum):
	DRAFT = "DRAFT"
	VALIDATED = "VALIDATED"
	PRICED = "PRICED"
	QUOTED = "QUOTED"
	ORDERED = "ORDERED"
	ARCHIVED = "ARCHIVED"


class QuoteStatus(str, enum.Enum):
	PENDING = "PENDING"
	GENERATING = "GENERATING"
	READY = "READY"
	SENT = "SENT"
	ACCEPTED = "ACCEPTED"
	REJECTED = "REJECTED"
	EXPIRED = "EXPIRED"


class Product(Base):
	__tablename__ = "products"

	id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
	sku: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
	name: Mapped[str] = mapped_column(String(255), nullable=False)
	description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
	type: Mapped[ProductType] = mapped_column(Enum(ProductType), index=True, nullable=False)
	base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
	currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
	attributes: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
	compatibility_rules: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
	active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
	created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class RackConfiguration(Base):
	"""A customer's rack build: a base rack plus the components placed in it.

	Every mutation of the item list goes through the methods below so that the
	``validated`` flag is cleared; only :meth:`record_validation` sets it.
	"""

	__tablename__ = "rack_configurations"

	id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
	name: Mapped[str] = mapped_column(String(255), nullable=False)
	description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
	customer_id: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
	rack_sku: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
	status: Mapped[ConfigurationStatus] = mapped_column(
		Enum(ConfigurationStatus), default=ConfigurationStatus.DRAFT, nullable=False
	)
	validated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
	validation_errors: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
	created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
	updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

	items: Mapped[List["ConfigurationItem"]] = relationship(
		"ConfigurationItem",
		back_populates="configuration",
		cascade="all, delete-orphan",
		order_by="ConfigurationItem.position",
	)

	def mark_dirty(self) -> None:
		self.validated = False
		self.validation_errors = []
		self.status = ConfigurationStatus.DRAFT
		self.updated_at = utcnow()

	def add_item(self, item: "ConfigurationItem") -> None:
		item.position = len(self.items)
		self.items.append(item)
		self.mark_dirty()

	def remove_item(self, item_id: str) -> bool:
		before = len(self.items)
		self.items = [i for i in self.items if i.id != item_id]
		self.mark_dirty()
		return len(self.items) != before

	def find_item(self, item_id: str) -> Optional["ConfigurationItem"]:
		for item in self.items:
			if item.id == item_id:
				return item
		return None

	def update_item_quantity(self, item_id: str, quantity: int) -> bool:
		if quantity < 1:
			raise ValueError("quantity must be >= 1")
		item = self.find_item(item_id)
		if item is None:
			return False
		item.quantity = quantity
		self.mark_dirty()
		return True

	def record_validation(self, valid: bool, errors: List[str]) -> None:
		self.validated = valid and not errors
		self.validation_errors = list(errors)
		if self.validated:
			self.status = ConfigurationStatus.VALIDATED
		self.updated_at = utcnow()


class ConfigurationItem(Base):
	__tablename__ = "configuration_items"

	id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
	configuration_id: Mapped[str] = mapped_column(ForeignKey("rack_configurations.id"), nullable=False)
	product_sku: Mapped[str] = mapped_column(String(64), nullable=False)
	product_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
	quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
	rack_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
	position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

	configuration: Mapped["RackConfiguration"] = relationship("RackConfiguration", back_populates="items")


class Quote(Base):
	"""Immutable pricing snapshot. Only status and document metadata change after creation."""

	__tablename__ = "quotes"

	id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
	quote_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
	configuration_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
	customer_id: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
	customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
	customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

	subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
	total_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
	service_add_on: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
	grand_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
	currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)

	status: Mapped[QuoteStatus] = mapped_column(Enum(QuoteStatus), default=QuoteStatus.PENDING, nullable=False)
	pdf_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
	pdf_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

	created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
	expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

	line_items: Mapped[List["QuoteLineItem"]] = relationship(
		"QuoteLineItem",
		back_populates="quote",
		cascade="all, delete-orphan",
		order_by="QuoteLineItem.position",
	)

	def is_expired(self, now: Optional[datetime] = None) -> bool:
		return (now or utcnow()) > self.expires_at

	@staticmethod
	def expiry_for(created_at: datetime, validity_days: int = QUOTE_VALIDITY_DAYS) -> datetime:
		return created_at + timedelta(days=validity_days)


class QuoteLineItem(Base):
	__tablename__ = "quote_line_items"

	id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
	quote_id: Mapped[str] = mapped_column(ForeignKey("quotes.id"), nullable=False)
	position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
	product_sku: Mapped[str] = mapped_column(String(64), nullable=False)
	product_name: Mapped[str] = mapped_column(String(255), nullable=False)
	product_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
	quantity: Mapped[int] = mapped_column(Integer, nullable=False)
	unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
	line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
	discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
	discount_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

	quote: Mapped["Quote"] = relationship("Quote", back_populates="line_items")

	@property
	def final_total(self) -> Decimal:
		return self.line_total - (self.discount_amount or Decimal("0"))

	def as_dict(self) -> Dict[str, Any]:
		return {
			"product_sku": self.product_sku,
			"product_name": self.product_name,
			"product_type": self.product_type,
			"quantity": self.quantity,
			"unit_price": self.unit_price,
			"line_total": self.line_total,
			"discount_amount": self.discount_amount,
			"discount_reason": self.discount_reason,
		}
