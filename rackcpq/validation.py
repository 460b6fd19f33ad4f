"""Feasibility checking for rack configurations.

The validator resolves every product a configuration references exactly once,
wraps them in a :class:`ValidationContext` and runs each registered rule
against it. Rules never raise for an infeasible build; they return a
:class:`RuleResult` with errors and warnings.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from .catalog import ProductRecord
from .models import ProductType, utcnow
from .rules_engine import RulePipeline, UnitOutcome, truncated_percent

logger = logging.getLogger(__name__)


class ProductLookup(Protocol):
	def get_product_by_sku(self, sku: str) -> Optional[ProductRecord]: ...


@dataclass(frozen=True)
class RuleResult:
	rule_name: str
	errors: Sequence[str] = ()
	warnings: Sequence[str] = ()

	def __post_init__(self) -> None:
		object.__setattr__(self, "errors", tuple(self.errors))
		object.__setattr__(self, "warnings", tuple(self.warnings))

	@property
	def passed(self) -> bool:
		return not self.errors

	@classmethod
	def ok(cls, rule_name: str, warnings: Iterable[str] = ()) -> "RuleResult":
		return cls(rule_name, (), tuple(warnings))

	@classmethod
	def fail(cls, rule_name: str, *errors: str) -> "RuleResult":
		return cls(rule_name, tuple(errors), ())

	def as_dict(self) -> Dict[str, Any]:
		return {
			"rule_name": self.rule_name,
			"passed": self.passed,
			"errors": list(self.errors),
			"warnings": list(self.warnings),
		}


class ValidationContext:
	"""Read-only view of one configuration and every product it references."""

	def __init__(self, configuration: Any, rack: Optional[ProductRecord], products_by_sku: Dict[str, ProductRecord]):
		self.configuration = configuration
		self.rack = rack
		self.products_by_sku = dict(products_by_sku)
		self._items_by_type: Dict[str, List[Any]] = {}
		for item in self.items:
			product = self.products_by_sku.get(item.product_sku)
			if product is not None:
				self._items_by_type.setdefault(product.type, []).append(item)

	@classmethod
	def build(cls, configuration: Any, catalog: ProductLookup) -> "ValidationContext":
		rack = None
		rack_sku = (configuration.rack_sku or "").strip()
		if rack_sku:
			rack = catalog.get_product_by_sku(rack_sku)

		products: Dict[str, ProductRecord] = {}
		seen = set()
		for item in configuration.items or []:
			if item.product_sku in seen:
				continue
			seen.add(item.product_sku)
			product = catalog.get_product_by_sku(item.product_sku)
			if product is not None:
				products[item.product_sku] = product
		return cls(configuration, rack, products)

	@property
	def configuration_id(self) -> Optional[str]:
		return getattr(self.configuration, "id", None)

	@property
	def rack_sku(self) -> Optional[str]:
		return self.configuration.rack_sku

	@property
	def items(self) -> List[Any]:
		return list(self.configuration.items or [])

	def get_product(self, sku: str) -> Optional[ProductRecord]:
		return self.products_by_sku.get(sku)

	def items_by_type(self, product_type: ProductType | str) -> List[Any]:
		return list(self._items_by_type.get(ProductType(product_type).value, []))

	def count_by_type(self, product_type: ProductType | str) -> int:
		return sum(item.quantity for item in self.items_by_type(product_type))

	@property
	def switch_count(self) -> int:
		return self.count_by_type(ProductType.SWITCH)

	@property
	def psu_count(self) -> int:
		return self.count_by_type(ProductType.PSU)

	@property
	def total_power_draw(self) -> int:
		total = 0
		for item in self.items:
			product = self.products_by_sku.get(item.product_sku)
			if product is not None and product.power_draw is not None:
				total += product.power_draw * item.quantity
		return total

	@property
	def total_psu_capacity(self) -> int:
		total = 0
		for item in self.items_by_type(ProductType.PSU):
			capacity = self.products_by_sku[item.product_sku].capacity_watts
			if capacity is not None:
				total += capacity * item.quantity
		return total

	@property
	def total_rack_units_used(self) -> int:
		total = 0
		for item in self.items:
			product = self.products_by_sku.get(item.product_sku)
			if product is not None:
				total += product.rack_units * item.quantity
		return total

	@property
	def rack_capacity(self) -> int:
		if self.rack is None:
			return 0
		return self.rack.total_rack_units or 0

	def has_powered_components(self) -> bool:
		for item in self.items:
			product = self.products_by_sku.get(item.product_sku)
			if product is not None and product.requires_power:
				return True
		return False


@dataclass
class ValidationSummary:
	configuration_id: Optional[str]
	valid: bool
	rule_results: List[RuleResult]
	total_power_draw_watts: int
	total_psu_capacity_watts: int
	total_rack_units_used: int
	rack_capacity_units: int
	validated_at: datetime = field(default_factory=utcnow)

	@property
	def all_errors(self) -> List[str]:
		return [e for r in self.rule_results if not r.passed for e in r.errors]

	@property
	def all_warnings(self) -> List[str]:
		return [w for r in self.rule_results for w in r.warnings]

	@property
	def failed_rules(self) -> List[str]:
		return [r.rule_name for r in self.rule_results if not r.passed]

	@property
	def power_utilization_percent(self) -> int:
		return truncated_percent(self.total_power_draw_watts, self.total_psu_capacity_watts)

	@property
	def rack_utilization_percent(self) -> int:
		return truncated_percent(self.total_rack_units_used, self.rack_capacity_units)


class ConfigurationRule:
	"""One feasibility check. Subclasses set ``name``/``order`` and implement :meth:`validate`."""

	name: str = "Rule"
	order: int = 100

	def validate(self, context: ValidationContext) -> RuleResult:
		raise NotImplementedError


def _total(context: ValidationContext, attr: str) -> int:
	# a malformed attribute is already reported by the rule that tripped on it
	try:
		return getattr(context, attr)
	except TypeError as exc:
		logger.warning("Cannot compute %s for %s: %s", attr, context.configuration_id, exc)
		return 0


def _outcome_to_result(outcome: UnitOutcome[RuleResult]) -> RuleResult:
	if outcome.ok:
		return outcome.value
	return RuleResult.fail(outcome.unit_name, f"Internal error during validation: {outcome.error}")


class ConfigurationValidator:
	def __init__(self, catalog: ProductLookup, rules: Optional[Iterable[ConfigurationRule]] = None):
		if rules is None:
			from .validation_rules import default_rules

			rules = default_rules()
		self.catalog = catalog
		self.pipeline: RulePipeline[ConfigurationRule] = RulePipeline(rules, kind="rule")

	def rule_names(self) -> List[str]:
		return self.pipeline.unit_names()

	def validate(self, configuration: Any) -> ValidationSummary:
		configuration_id = getattr(configuration, "id", None)
		logger.info("Validating configuration: %s", configuration_id)
		context = ValidationContext.build(configuration, self.catalog)
		return self.validate_context(context)

	def validate_context(self, context: ValidationContext) -> ValidationSummary:
		results = [_outcome_to_result(o) for o in self.pipeline.outcomes(lambda rule: rule.validate(context))]
		for result in results:
			if not result.passed:
				logger.debug("Rule %s failed: %s", result.rule_name, list(result.errors))
			elif result.warnings:
				logger.debug("Rule %s passed with warnings: %s", result.rule_name, list(result.warnings))

		valid = all(r.passed for r in results)
		summary = ValidationSummary(
			configuration_id=context.configuration_id,
			valid=valid,
			rule_results=results,
			total_power_draw_watts=_total(context, "total_power_draw"),
			total_psu_capacity_watts=_total(context, "total_psu_capacity"),
			total_rack_units_used=_total(context, "total_rack_units_used"),
			rack_capacity_units=_total(context, "rack_capacity"),
		)
		logger.info("Validation complete for %s: %s", context.configuration_id, "PASSED" if valid else "FAILED")
		return summary
