"""Read-only access to the product catalog.

Products are handed to the engines as :class:`ProductRecord` snapshots, taken
once per fetch, so rules and strategies never see a live ORM row.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from .models import Product, ProductType


def _coerce_number(key: str, value: Any) -> Decimal:
	if isinstance(value, bool):
		raise TypeError(f"attribute {key!r} is boolean, not numeric")
	if isinstance(value, (int, Decimal)):
		number = Decimal(value)
	elif isinstance(value, (float, str)):
		try:
			number = Decimal(str(value).strip())
		except InvalidOperation:
			raise TypeError(f"attribute {key!r} is not numeric: {value!r}") from None
	else:
		raise TypeError(f"attribute {key!r} is not numeric: {value!r}")
	# inf and nan parse as Decimal but have no integer value
	if not number.is_finite():
		raise TypeError(f"attribute {key!r} is not a finite number: {value!r}")
	return number


@dataclass(frozen=True)
class ProductRecord:
	sku: str
	name: str
	type: str
	base_price: Decimal = Decimal("0")
	attributes: Mapping[str, Any] = field(default_factory=dict)
	compatibility_rules: Mapping[str, Any] = field(default_factory=dict)
	currency: str = "USD"

	def __post_init__(self) -> None:
		object.__setattr__(self, "type", ProductType(self.type).value)
		object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes or {})))
		object.__setattr__(self, "compatibility_rules", MappingProxyType(dict(self.compatibility_rules or {})))

	@classmethod
	def from_model(cls, product: Product) -> "ProductRecord":
		return cls(
			sku=product.sku,
			name=product.name,
			type=product.type,
			base_price=Decimal(str(product.base_price)),
			attributes=product.attributes or {},
			compatibility_rules=product.compatibility_rules or {},
			currency=product.currency,
		)

	def get_attribute(self, key: str) -> Optional[Any]:
		return self.attributes.get(key)

	def get_int(self, key: str) -> Optional[int]:
		value = self.attributes.get(key)
		if value is None:
			return None
		return int(_coerce_number(key, value))

	def get_float(self, key: str) -> Optional[float]:
		value = self.attributes.get(key)
		if value is None:
			return None
		return float(_coerce_number(key, value))

	def get_bool(self, key: str) -> Optional[bool]:
		value = self.attributes.get(key)
		if value is None:
			value = self.compatibility_rules.get(key)
		if value is None:
			return None
		if isinstance(value, str):
			return value.strip().lower() in ("true", "yes", "1")
		return bool(value)

	@property
	def power_draw(self) -> Optional[int]:
		return self.get_int("power_draw")

	@property
	def capacity_watts(self) -> Optional[int]:
		return self.get_int("capacity_watts")

	@property
	def rack_units(self) -> int:
		# vertical-mount equipment legitimately declares (or omits) zero units
		return self.get_int("rack_units") or 0

	@property
	def total_rack_units(self) -> Optional[int]:
		return self.get_int("units")

	@property
	def ports(self) -> Optional[int]:
		return self.get_int("ports")

	@property
	def requires_power(self) -> bool:
		flag = self.get_bool("requires_power")
		if flag is None:
			return self.type == ProductType.SWITCH.value
		return flag


class Catalog:
	"""Catalog lookups backed by the ``products`` table."""

	def __init__(self, db: Session):
		self.db = db

	def get_product_by_sku(self, sku: str) -> Optional[ProductRecord]:
		if not sku:
			return None
		row = self.db.query(Product).filter(Product.sku == sku).first()
		if row is None:
			return None
		return ProductRecord.from_model(row)

	def list_products(self, product_type: Optional[ProductType] = None, active_only: bool = True) -> List[ProductRecord]:
		query = self.db.query(Product)
		if product_type is not None:
			query = query.filter(Product.type == product_type)
		if active_only:
			query = query.filter(Product.active == True)  # noqa: E712
		return [ProductRecord.from_model(p) for p in query.order_by(Product.type.asc(), Product.sku.asc()).all()]


class StaticCatalog:
	"""In-memory catalog, keyed by SKU."""

	def __init__(self, products: Iterable[ProductRecord] = ()):
		self._products: Dict[str, ProductRecord] = {p.sku: p for p in products}

	def add(self, product: ProductRecord) -> None:
		self._products[product.sku] = product

	def get_product_by_sku(self, sku: str) -> Optional[ProductRecord]:
		if not sku:
			return None
		return self._products.get(sku)
