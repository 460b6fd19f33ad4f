from __future__ import annotations

from typing import List, Optional

from .models import ProductType
from .pricing import INCLUDE_SUPPORT, SUPPORT_TIER, PricingContext, PricingResult, PricingStrategy
from .rules_engine import ZERO, percent_to_rate, rate_to_percent, round_currency
from .settings import Settings, get_settings


class BasePriceStrategy(PricingStrategy):
	"""Catalog price times quantity. Always first."""

	name = "BasePrice"
	order = 1

	def apply(self, context: PricingContext, result: PricingResult) -> PricingResult:
		result.set_line_items(context.line_items)
		result.applied_strategies.append(self.name)
		return result


class VolumeDiscountStrategy(PricingStrategy):
	"""Percent off every switch line once more than ``switch_threshold`` switches are bought."""

	name = "VolumeDiscount"
	order = 10

	def __init__(self, switch_threshold: int = 5, discount_percent: int = 10):
		self.switch_threshold = switch_threshold
		self.rate = percent_to_rate(discount_percent)

	def apply(self, context: PricingContext, result: PricingResult) -> PricingResult:
		switch_count = context.switch_count
		if switch_count <= self.switch_threshold:
			return result

		percent = rate_to_percent(self.rate)
		reason = f"Volume discount: {percent}% off (>{self.switch_threshold} switches)"
		saved = ZERO
		for item in result.line_items:
			if item.product_type != ProductType.SWITCH.value:
				continue
			item_discount = round_currency(item.line_total * self.rate)
			result.add_line_discount(item, item_discount, reason)
			saved += item_discount

		if saved > 0:
			result.discount_descriptions.append(
				f"Volume discount: {percent}% off switches (purchased {switch_count}, "
				f"threshold {self.switch_threshold}) - saved ${saved:.2f}"
			)
			result.applied_strategies.append(self.name)
		return result


class BundleDiscountStrategy(PricingStrategy):
	"""Order-level percent off when the rack is well utilised."""

	name = "BundleDiscount"
	order = 20

	def __init__(self, capacity_threshold: int = 80, discount_percent: int = 5):
		self.capacity_threshold = capacity_threshold
		self.rate = percent_to_rate(discount_percent)

	def apply(self, context: PricingContext, result: PricingResult) -> PricingResult:
		if not context.rack_utilization_at_least(self.capacity_threshold):
			return result

		discount = round_currency(result.discounted_total * self.rate)
		result.add_order_discount(discount)
		result.discount_descriptions.append(
			f"Bundle discount: {rate_to_percent(self.rate)}% off (rack {context.rack_utilization_percent}% utilized, "
			f"threshold {self.capacity_threshold}%) - saved ${discount:.2f}"
		)
		result.applied_strategies.append(self.name)
		return result


class PartnerDiscountStrategy(PricingStrategy):
	"""Order-level percent off for PARTNER and ENTERPRISE customers."""

	name = "PartnerDiscount"
	order = 30

	def __init__(self, partner_percent: int = 15, enterprise_percent: int = 20):
		self.tiers = {
			"PARTNER": ("Partner", percent_to_rate(partner_percent)),
			"ENTERPRISE": ("Enterprise", percent_to_rate(enterprise_percent)),
		}

	def apply(self, context: PricingContext, result: PricingResult) -> PricingResult:
		tier = self.tiers.get((context.customer_tier or "").strip().upper())
		if tier is None:
			return result

		label, rate = tier
		discount = round_currency(result.discounted_total * rate)
		result.add_order_discount(discount)
		result.discount_descriptions.append(
			f"{label} tier discount: {rate_to_percent(rate)}% off - saved ${discount:.2f}"
		)
		result.applied_strategies.append(self.name)
		return result


class SupportAddOnStrategy(PricingStrategy):
	"""24/7 support priced as a share of the discounted hardware total. Always last."""

	name = "SupportAddOn"
	order = 100

	def __init__(self, standard_percent: int = 15, premium_percent: int = 20):
		self.standard_rate = percent_to_rate(standard_percent)
		self.premium_rate = percent_to_rate(premium_percent)

	def apply(self, context: PricingContext, result: PricingResult) -> PricingResult:
		if not context.has_option(INCLUDE_SUPPORT):
			return result

		support_tier = (context.options.get(SUPPORT_TIER) or "STANDARD").upper()
		rate = self.premium_rate if support_tier == "PREMIUM" else self.standard_rate

		# rebuild everything from the line items first; earlier strategies
		# may or may not have run
		result.recalculate_totals()
		hardware_total = result.discounted_total
		support_cost = round_currency(hardware_total * rate)
		result.set_service_add_on(support_cost)
		result.discount_descriptions.append(
			f"24/7 {support_tier} Support: {rate_to_percent(rate)}% of hardware "
			f"(${hardware_total:.2f}) = ${support_cost:.2f}"
		)
		result.applied_strategies.append(self.name)
		return result


def default_strategies(settings: Optional[Settings] = None) -> List[PricingStrategy]:
	settings = settings or get_settings()
	return [
		BasePriceStrategy(),
		VolumeDiscountStrategy(settings.volume_switch_threshold, settings.volume_discount_percent),
		BundleDiscountStrategy(settings.bundle_capacity_threshold, settings.bundle_discount_percent),
		PartnerDiscountStrategy(settings.partner_discount_percent, settings.enterprise_discount_percent),
		SupportAddOnStrategy(settings.support_standard_percent, settings.support_premium_percent),
	]
