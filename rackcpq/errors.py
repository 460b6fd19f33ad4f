"""Caller-visible failures of configuration, pricing and quote operations.

Feasibility and pricing outcomes are never raised; they come back as data.
These exceptions only abort the single request that hit them.
"""


class CPQError(Exception):
	pass


class NotFoundError(CPQError):
	def __init__(self, kind: str, key: str):
		super().__init__(f"{kind} not found: {key}")
		self.kind = kind
		self.key = key


class ProductNotFound(NotFoundError):
	def __init__(self, sku: str):
		super().__init__("Product", sku)


class ConfigurationNotFound(NotFoundError):
	def __init__(self, configuration_id: str):
		super().__init__("Configuration", configuration_id)


class ConfigurationItemNotFound(NotFoundError):
	def __init__(self, item_id: str):
		super().__init__("Configuration item", item_id)


class QuoteNotFound(NotFoundError):
	def __init__(self, key: str):
		super().__init__("Quote", key)


class ConfigurationNotValidated(CPQError):
	def __init__(self, configuration_id: str):
		super().__init__(f"Configuration must be validated before creating a quote: {configuration_id}")
		self.configuration_id = configuration_id


class PricingUnavailable(CPQError):
	def __init__(self, configuration_id: str, reason: str = ""):
		message = f"Failed to calculate pricing for configuration: {configuration_id}"
		if reason:
			message = f"{message} ({reason})"
		super().__init__(message)
		self.configuration_id = configuration_id


class QuoteStateError(CPQError):
	pass


class InvalidPricingOptions(CPQError, ValueError):
	pass


class UnknownComponent(CPQError):
	"""A component was added with a SKU the catalog does not know."""

	def __init__(self, sku: str):
		super().__init__(f"Cannot add unknown product to configuration: {sku}")
		self.sku = sku
