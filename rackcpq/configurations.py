from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from .catalog import Catalog
from .errors import ConfigurationItemNotFound, ConfigurationNotFound, UnknownComponent
from .models import ConfigurationItem, ConfigurationStatus, RackConfiguration
from .validation import ConfigurationValidator, ProductLookup, ValidationSummary

logger = logging.getLogger(__name__)


class ConfigurationService:
	def __init__(self, db: Session, validator: ConfigurationValidator, catalog: Optional[ProductLookup] = None):
		self.db = db
		self.validator = validator
		self.catalog = catalog or Catalog(db)

	def list_configurations(self, customer_id: Optional[str] = None) -> List[RackConfiguration]:
		query = self.db.query(RackConfiguration)
		if customer_id is not None:
			query = query.filter(RackConfiguration.customer_id == customer_id)
		return query.order_by(RackConfiguration.created_at.asc()).all()

	def get_configuration(self, configuration_id: str) -> RackConfiguration:
		configuration = self.db.get(RackConfiguration, configuration_id)
		if configuration is None:
			raise ConfigurationNotFound(configuration_id)
		return configuration

	def create_configuration(
		self,
		name: str,
		*,
		description: Optional[str] = None,
		customer_id: Optional[str] = None,
		rack_sku: Optional[str] = None,
		items: Iterable[ConfigurationItem] = (),
	) -> RackConfiguration:
		configuration = RackConfiguration(
			name=name,
			description=description,
			customer_id=customer_id,
			rack_sku=rack_sku,
			status=ConfigurationStatus.DRAFT,
			validated=False,
			validation_errors=[],
		)
		for item in items:
			configuration.add_item(item)
		self.db.add(configuration)
		self.db.commit()
		self.db.refresh(configuration)
		logger.info("Created configuration: %s for rack: %s", configuration.id, configuration.rack_sku)
		return configuration

	def update_configuration(
		self,
		configuration_id: str,
		*,
		name: Optional[str] = None,
		description: Optional[str] = None,
		rack_sku: Optional[str] = None,
		items: Optional[Iterable[ConfigurationItem]] = None,
	) -> RackConfiguration:
		configuration = self.get_configuration(configuration_id)
		if name is not None:
			configuration.name = name
		if description is not None:
			configuration.description = description
		if rack_sku is not None:
			configuration.rack_sku = rack_sku
		if items is not None:
			configuration.items = []
			for item in items:
				configuration.add_item(item)
		configuration.mark_dirty()
		self.db.commit()
		self.db.refresh(configuration)
		logger.info("Updated configuration: %s", configuration.id)
		return configuration

	def delete_configuration(self, configuration_id: str) -> None:
		configuration = self.get_configuration(configuration_id)
		self.db.delete(configuration)
		self.db.commit()
		logger.info("Deleted configuration: %s", configuration_id)

	def add_component(
		self, configuration_id: str, product_sku: str, quantity: int = 1, rack_position: Optional[int] = None
	) -> RackConfiguration:
		configuration = self.get_configuration(configuration_id)
		product = self.catalog.get_product_by_sku(product_sku)
		if product is None:
			raise UnknownComponent(product_sku)
		if quantity < 1:
			raise ValueError("quantity must be >= 1")

		configuration.add_item(
			ConfigurationItem(
				product_sku=product.sku,
				product_name=product.name,
				quantity=quantity,
				rack_position=rack_position,
			)
		)
		self.db.commit()
		self.db.refresh(configuration)
		logger.info("Added component %s to configuration %s", product_sku, configuration_id)
		return configuration

	def remove_component(self, configuration_id: str, item_id: str) -> RackConfiguration:
		configuration = self.get_configuration(configuration_id)
		if not configuration.remove_item(item_id):
			raise ConfigurationItemNotFound(item_id)
		self.db.commit()
		self.db.refresh(configuration)
		logger.info("Removed component %s from configuration %s", item_id, configuration_id)
		return configuration

	def update_component_quantity(self, configuration_id: str, item_id: str, quantity: int) -> RackConfiguration:
		configuration = self.get_configuration(configuration_id)
		if not configuration.update_item_quantity(item_id, quantity):
			raise ConfigurationItemNotFound(item_id)
		self.db.commit()
		self.db.refresh(configuration)
		logger.info("Updated quantity for component %s in configuration %s", item_id, configuration_id)
		return configuration

	def validate_configuration(self, configuration_id: str) -> ValidationSummary:
		configuration = self.get_configuration(configuration_id)
		summary = self.validator.validate(configuration)
		configuration.record_validation(summary.valid, summary.all_errors)
		self.db.commit()
		logger.info("Validated configuration %s: %s", configuration_id, "PASSED" if summary.valid else "FAILED")
		return summary

	def clone_configuration(self, configuration_id: str, new_name: Optional[str] = None) -> RackConfiguration:
		original = self.get_configuration(configuration_id)
		clone = self.create_configuration(
			new_name or f"{original.name} (Copy)",
			description=original.description,
			customer_id=original.customer_id,
			rack_sku=original.rack_sku,
			items=[
				ConfigurationItem(
					product_sku=item.product_sku,
					product_name=item.product_name,
					quantity=item.quantity,
					rack_position=item.rack_position,
				)
				for item in original.items
			],
		)
		logger.info("Cloned configuration %s to new configuration %s", configuration_id, clone.id)
		return clone

	def validation_rules(self) -> List[str]:
		return self.validator.rule_names()
