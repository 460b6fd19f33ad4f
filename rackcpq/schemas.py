from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import ConfigurationStatus, ProductType, QuoteStatus


class ProductOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	sku: str
	name: str
	type: ProductType
	base_price: Decimal
	currency: str
	attributes: Dict[str, Any]
	compatibility_rules: Dict[str, Any]

	@field_validator("attributes", "compatibility_rules", mode="before")
	@classmethod
	def as_plain_dict(cls, v: Any) -> Dict[str, Any]:
		return dict(v or {})


class ConfigurationItemIn(BaseModel):
	product_sku: str
	quantity: int = Field(default=1, ge=1)
	rack_position: Optional[int] = Field(default=None, ge=1)

	@field_validator("product_sku")
	@classmethod
	def validate_sku(cls, v: str) -> str:
		if not v.strip():
			raise ValueError("product_sku must not be blank")
		return v.strip()


class ConfigurationItemOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	product_sku: str
	product_name: Optional[str]
	quantity: int
	rack_position: Optional[int]


class ConfigurationCreate(BaseModel):
	name: str = Field(min_length=1)
	description: Optional[str] = None
	customer_id: Optional[str] = None
	rack_sku: Optional[str] = None
	items: List[ConfigurationItemIn] = Field(default_factory=list)


class ConfigurationUpdate(BaseModel):
	name: Optional[str] = None
	description: Optional[str] = None
	rack_sku: Optional[str] = None
	items: Optional[List[ConfigurationItemIn]] = None


class ConfigurationOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	name: str
	description: Optional[str]
	customer_id: Optional[str]
	rack_sku: Optional[str]
	status: ConfigurationStatus
	validated: bool
	validation_errors: List[str]
	items: List[ConfigurationItemOut]
	created_at: datetime
	updated_at: datetime


class RuleResultOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	rule_name: str
	passed: bool
	errors: List[str]
	warnings: List[str]


class ValidationSummaryOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	configuration_id: Optional[str]
	valid: bool
	rule_results: List[RuleResultOut]
	total_power_draw_watts: int
	total_psu_capacity_watts: int
	total_rack_units_used: int
	rack_capacity_units: int
	power_utilization_percent: int
	rack_utilization_percent: int
	all_errors: List[str]
	all_warnings: List[str]
	failed_rules: List[str]
	validated_at: datetime


class PricingRequest(BaseModel):
	configuration_id: str = Field(min_length=1)
	customer_tier: Optional[str] = None
	rack_units_used: Optional[int] = Field(default=None, ge=0)
	rack_capacity: Optional[int] = Field(default=None, ge=0)
	options: Dict[str, Any] = Field(default_factory=dict)


class PricingLineItemOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	product_sku: str
	product_name: str
	product_type: Optional[str]
	quantity: int
	unit_price: Decimal
	line_total: Decimal
	discount_amount: Decimal
	discount_reason: Optional[str]


class PricingResultOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	configuration_id: Optional[str]
	line_items: List[PricingLineItemOut]
	subtotal: Decimal
	line_item_discount: Decimal
	order_discount: Decimal
	total_discount: Decimal
	service_add_on: Decimal
	grand_total: Decimal
	currency: str
	applied_strategies: List[str]
	discount_descriptions: List[str]
	calculated_at: datetime


class CreateQuoteRequest(BaseModel):
	configuration_id: str = Field(min_length=1)
	customer_id: Optional[str] = None
	customer_name: Optional[str] = None
	customer_email: Optional[str] = None
	customer_tier: Optional[str] = None
	include_support: bool = False
	support_tier: Optional[str] = None

	@field_validator("customer_email")
	@classmethod
	def validate_email(cls, v: Optional[str]) -> Optional[str]:
		if v is not None and "@" not in v:
			raise ValueError("Valid email is required")
		return v


class QuoteResponse(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	quote_number: str
	configuration_id: str
	customer_id: Optional[str]
	customer_name: Optional[str]
	customer_email: Optional[str]
	line_items: List[PricingLineItemOut]
	subtotal: Decimal
	total_discount: Decimal
	service_add_on: Decimal
	grand_total: Decimal
	currency: str
	status: QuoteStatus
	pdf_url: Optional[str]
	created_at: datetime
	expires_at: datetime
	expired: bool = False


class QuoteDocumentOut(BaseModel):
	quote_id: str
	quote_number: str
	pdf_url: str
	generated_at: Optional[datetime]


class QuoteStats(BaseModel):
	total: int
	pending: int
	generating: int
	ready: int
	sent: int
	accepted: int
	rejected: int
	expired: int
