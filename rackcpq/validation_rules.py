from __future__ import annotations

from typing import List

from .validation import ConfigurationRule, RuleResult, ValidationContext
from .rules_engine import truncated_percent


class RackRequiredRule(ConfigurationRule):
	name = "RackRequired"
	order = 1

	def validate(self, context: ValidationContext) -> RuleResult:
		rack_sku = (context.rack_sku or "").strip()
		if not rack_sku:
			return RuleResult.fail(self.name, "A base rack must be selected for the configuration")
		if context.rack is None:
			return RuleResult.fail(self.name, f"Selected rack SKU is not valid: {rack_sku}")
		return RuleResult.ok(self.name)


class ComponentExistsRule(ConfigurationRule):
	name = "ComponentExists"
	order = 2

	def validate(self, context: ValidationContext) -> RuleResult:
		errors = [
			f"Product not found in catalog: {item.product_sku}"
			for item in context.items
			if context.get_product(item.product_sku) is None
		]
		if errors:
			return RuleResult.fail(self.name, *errors)
		return RuleResult.ok(self.name)


class MinimumPsuRule(ConfigurationRule):
	name = "MinimumPSU"
	order = 5

	def validate(self, context: ValidationContext) -> RuleResult:
		if context.has_powered_components() and context.psu_count == 0:
			return RuleResult.fail(
				self.name,
				f"Configuration has {context.switch_count} switch(es) that require power, but no PSU is configured",
			)
		return RuleResult.ok(self.name)


class PowerBudgetRule(ConfigurationRule):
	"""sum(power_draw) must fit within sum(PSU capacity_watts)."""

	name = "PowerBudget"
	order = 10

	def __init__(self, warning_threshold: float = 0.8):
		self.warning_threshold = warning_threshold

	def validate(self, context: ValidationContext) -> RuleResult:
		if not context.has_powered_components():
			return RuleResult.ok(self.name)

		draw = context.total_power_draw
		capacity = context.total_psu_capacity
		if capacity == 0:
			return RuleResult.fail(
				self.name, f"Configuration requires {draw}W of power but no PSU is configured"
			)
		if draw > capacity:
			return RuleResult.fail(
				self.name,
				f"Power budget exceeded: {draw}W required but only {capacity}W available "
				f"(deficit: {draw - capacity}W)",
			)

		if draw / capacity >= self.warning_threshold:
			return RuleResult.ok(
				self.name,
				[
					f"Power utilization at {truncated_percent(draw, capacity)}% ({draw}W of {capacity}W) "
					f"- consider additional PSU capacity"
				],
			)
		return RuleResult.ok(self.name)


class RackCapacityRule(ConfigurationRule):
	"""sum(rack_units) must fit within the rack's ``units``."""

	name = "RackCapacity"
	order = 20

	def __init__(self, warning_threshold: float = 0.9):
		self.warning_threshold = warning_threshold

	def validate(self, context: ValidationContext) -> RuleResult:
		# no resolved rack is reported by RackRequired
		if context.rack is None:
			return RuleResult.ok(self.name)

		used = context.total_rack_units_used
		capacity = context.rack_capacity
		if capacity == 0:
			return RuleResult.fail(self.name, "Rack capacity information is not available")
		if used > capacity:
			return RuleResult.fail(
				self.name,
				f"Rack capacity exceeded: {used}U required but rack only has {capacity}U "
				f"(excess: {used - capacity}U)",
			)

		if used / capacity >= self.warning_threshold:
			return RuleResult.ok(
				self.name,
				[
					f"Rack utilization at {truncated_percent(used, capacity)}% ({used}U of {capacity}U) "
					f"- limited space for expansion"
				],
			)
		return RuleResult.ok(self.name)


class RedundantPsuRule(ConfigurationRule):
	"""Advisory only: recommends a second PSU. Never fails."""

	name = "RedundantPSU"
	order = 30

	def __init__(self, switch_threshold: int = 3):
		self.switch_threshold = switch_threshold

	def validate(self, context: ValidationContext) -> RuleResult:
		psu_count = context.psu_count
		switch_count = context.switch_count
		warnings: List[str] = []

		if switch_count >= self.switch_threshold and psu_count < 2:
			warnings.append(
				f"Configuration has {switch_count} switches but only {psu_count} PSU. "
				"Consider adding a redundant PSU for high availability."
			)

		if psu_count == 1 and context.has_powered_components():
			draw = context.total_power_draw
			capacity = context.total_psu_capacity
			if capacity > 0 and draw > capacity * 0.5:
				warnings.append(
					f"Single PSU at {truncated_percent(draw, capacity)}% utilization. "
					"Redundant PSU recommended for fault tolerance."
				)

		return RuleResult.ok(self.name, warnings)


def default_rules() -> List[ConfigurationRule]:
	return [
		RackRequiredRule(),
		ComponentExistsRule(),
		MinimumPsuRule(),
		PowerBudgetRule(),
		RackCapacityRule(),
		RedundantPsuRule(),
	]
