"""Price calculation for rack configurations.

The engine folds an ordered list of strategies over a :class:`PricingResult`.
Each strategy works on its own copy of the running result, so one that raises
half way through leaves nothing behind: the engine logs it and continues with
the result as it stood before that strategy.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from .catalog import Catalog
from .errors import ConfigurationNotFound, InvalidPricingOptions
from .models import ProductType, RackConfiguration, utcnow
from .rules_engine import ZERO, RulePipeline, UnitOutcome, to_decimal, truncated_percent
from .validation import ProductLookup

logger = logging.getLogger(__name__)

INCLUDE_SUPPORT = "include_support"
SUPPORT_TIER = "support_tier"


@dataclass
class PricingLineItem:
	product_sku: str
	product_name: str
	product_type: str
	quantity: int
	unit_price: Decimal
	line_total: Decimal = None  # type: ignore[assignment]
	discount_amount: Decimal = ZERO
	discount_reason: Optional[str] = None

	def __post_init__(self) -> None:
		if self.quantity < 1:
			raise ValueError(f"quantity must be >= 1 for {self.product_sku}")
		self.unit_price = to_decimal(self.unit_price)
		if self.line_total is None:
			self.line_total = self.unit_price * Decimal(self.quantity)
		self.discount_amount = to_decimal(self.discount_amount)

	@property
	def final_total(self) -> Decimal:
		return self.line_total - self.discount_amount

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


def _check_options(options: Any) -> Dict[str, Any]:
	if options is None:
		return {}
	if not isinstance(options, Mapping):
		raise InvalidPricingOptions(f"options must be a mapping, got {type(options).__name__}")
	for key in options:
		if not isinstance(key, str):
			raise InvalidPricingOptions(f"option keys must be strings, got {key!r}")
	if INCLUDE_SUPPORT in options and not isinstance(options[INCLUDE_SUPPORT], bool):
		raise InvalidPricingOptions(f"{INCLUDE_SUPPORT} must be a boolean")
	if options.get(SUPPORT_TIER) is not None and not isinstance(options[SUPPORT_TIER], str):
		raise InvalidPricingOptions(f"{SUPPORT_TIER} must be a string")
	return dict(options)


@dataclass
class PricingContext:
	configuration_id: Optional[str]
	line_items: List[PricingLineItem] = field(default_factory=list)
	customer_id: Optional[str] = None
	customer_tier: Optional[str] = None
	options: Dict[str, Any] = field(default_factory=dict)
	rack_units_used: Optional[int] = None
	rack_capacity: Optional[int] = None

	def __post_init__(self) -> None:
		self.options = _check_options(self.options)

	def has_option(self, key: str) -> bool:
		return self.options.get(key) is True

	@property
	def switch_count(self) -> int:
		return sum(i.quantity for i in self.line_items if i.product_type == ProductType.SWITCH.value)

	@property
	def rack_utilization_known(self) -> bool:
		return self.rack_units_used is not None and bool(self.rack_capacity)

	@property
	def rack_utilization_percent(self) -> Optional[int]:
		if not self.rack_utilization_known:
			return None
		return truncated_percent(self.rack_units_used, self.rack_capacity)

	def rack_utilization_at_least(self, threshold_percent: int) -> bool:
		if not self.rack_utilization_known:
			return False
		# integer cross-multiplication: exact, no truncation at the boundary
		return self.rack_units_used * 100 >= threshold_percent * self.rack_capacity


@dataclass
class PricingResult:
	configuration_id: Optional[str] = None
	line_items: List[PricingLineItem] = field(default_factory=list)
	subtotal: Decimal = ZERO
	line_item_discount: Decimal = ZERO
	order_discount: Decimal = ZERO
	total_discount: Decimal = ZERO
	service_add_on: Decimal = ZERO
	grand_total: Decimal = ZERO
	currency: str = "USD"
	applied_strategies: List[str] = field(default_factory=list)
	discount_descriptions: List[str] = field(default_factory=list)
	calculated_at: datetime = field(default_factory=utcnow)

	@property
	def discounted_total(self) -> Decimal:
		"""Hardware total after every discount applied so far."""
		return self.subtotal - self.total_discount

	def copy(self) -> "PricingResult":
		return copy.deepcopy(self)

	def set_line_items(self, items: Iterable[PricingLineItem]) -> None:
		self.line_items = [copy.deepcopy(i) for i in items]
		self.recalculate_totals()

	def add_line_discount(self, item: PricingLineItem, amount: Decimal, reason: str) -> None:
		item.discount_amount = item.discount_amount + amount
		item.discount_reason = reason
		self.recalculate_totals()

	def add_order_discount(self, amount: Decimal) -> None:
		self.order_discount = self.order_discount + amount
		self.recalculate_totals()

	def set_service_add_on(self, amount: Decimal) -> None:
		self.service_add_on = amount
		self.recalculate_totals()

	def recalculate_totals(self) -> None:
		self.subtotal = sum((i.line_total for i in self.line_items), ZERO)
		self.line_item_discount = sum((i.discount_amount for i in self.line_items), ZERO)
		self.total_discount = self.line_item_discount + self.order_discount
		self.grand_total = self.subtotal - self.total_discount + self.service_add_on

	def as_dict(self) -> Dict[str, Any]:
		return {
			"configuration_id": self.configuration_id,
			"line_items": [i.as_dict() for i in self.line_items],
			"subtotal": self.subtotal,
			"line_item_discount": self.line_item_discount,
			"order_discount": self.order_discount,
			"total_discount": self.total_discount,
			"service_add_on": self.service_add_on,
			"grand_total": self.grand_total,
			"currency": self.currency,
			"applied_strategies": list(self.applied_strategies),
			"discount_descriptions": list(self.discount_descriptions),
			"calculated_at": self.calculated_at,
		}


class PricingStrategy:
	"""One pricing step. Subclasses set ``name``/``order`` and implement :meth:`apply`."""

	name: str = "Strategy"
	order: int = 100

	def apply(self, context: PricingContext, result: PricingResult) -> PricingResult:
		raise NotImplementedError


class PricingEngine:
	def __init__(self, strategies: Optional[Iterable[PricingStrategy]] = None, currency: str = "USD"):
		if strategies is None:
			from .pricing_strategies import default_strategies

			strategies = default_strategies()
		self.currency = currency
		self.pipeline: RulePipeline[PricingStrategy] = RulePipeline(strategies, kind="strategy")

	def strategy_names(self) -> List[str]:
		return self.pipeline.unit_names()

	def price(self, context: PricingContext) -> PricingResult:
		logger.info("Calculating price for configuration: %s", context.configuration_id)

		def step(strategy: PricingStrategy, running: PricingResult) -> PricingResult:
			logger.debug("Applying strategy: %s", strategy.name)
			updated = strategy.apply(context, running.copy())
			if not isinstance(updated, PricingResult):
				raise TypeError(f"strategy {strategy.name} returned {type(updated).__name__}")
			return updated

		def skipped(outcome: UnitOutcome[PricingResult], running: PricingResult) -> None:
			logger.warning("Skipping strategy %s: %s", outcome.unit_name, outcome.error)

		initial = PricingResult(configuration_id=context.configuration_id, currency=self.currency)
		result = self.pipeline.fold(initial, step, on_error=skipped)

		logger.info(
			"Pricing complete for %s: subtotal=%s, discount=%s, total=%s",
			context.configuration_id,
			result.subtotal,
			result.total_discount,
			result.grand_total,
		)
		return result


def build_line_items(configuration: RackConfiguration, catalog: ProductLookup) -> List[PricingLineItem]:
	"""One line per configuration item whose SKU resolves, then the rack itself."""
	items: List[PricingLineItem] = []
	for item in configuration.items or []:
		product = catalog.get_product_by_sku(item.product_sku)
		if product is None:
			logger.warning("Product not found in catalog: %s", item.product_sku)
			continue
		items.append(PricingLineItem(product.sku, product.name, product.type, item.quantity, product.base_price))

	if configuration.rack_sku:
		rack = catalog.get_product_by_sku(configuration.rack_sku)
		if rack is not None:
			items.append(PricingLineItem(rack.sku, rack.name, rack.type, 1, rack.base_price))
	return items


class PricingService:
	"""Resolves a stored configuration into a :class:`PricingContext` and prices it."""

	def __init__(self, db: Session, engine: PricingEngine, catalog: Optional[ProductLookup] = None):
		self.db = db
		self.engine = engine
		self.catalog = catalog or Catalog(db)

	def build_context(
		self,
		configuration: RackConfiguration,
		*,
		customer_tier: Optional[str] = None,
		options: Optional[Mapping[str, Any]] = None,
		rack_units_used: Optional[int] = None,
		rack_capacity: Optional[int] = None,
	) -> PricingContext:
		context = PricingContext(
			configuration_id=configuration.id,
			line_items=build_line_items(configuration, self.catalog),
			customer_id=configuration.customer_id,
			customer_tier=customer_tier,
			options=options or {},
		)
		if rack_units_used is not None and rack_capacity is not None:
			context.rack_units_used = rack_units_used
			context.rack_capacity = rack_capacity
		return context

	def calculate(self, configuration_id: str, **request: Any) -> PricingResult:
		logger.info("Processing pricing request for configuration: %s", configuration_id)
		configuration = self.db.get(RackConfiguration, configuration_id)
		if configuration is None:
			raise ConfigurationNotFound(configuration_id)
		return self.engine.price(self.build_context(configuration, **request))
