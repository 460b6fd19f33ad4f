import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_rackcpq.db")
os.environ.setdefault("RACKCPQ_DOCUMENT_GENERATION_DELAY_SECONDS", "0")

import pytest

from rackcpq.catalog import ProductRecord, StaticCatalog
from rackcpq.db import db_session_scope, init_db
from rackcpq.models import ConfigurationItem, RackConfiguration
from rackcpq.seed import SAMPLE_PRODUCTS, seed_catalog


@pytest.fixture(scope="session", autouse=True)
def setup_db():
	init_db(drop=True)
	with db_session_scope() as s:
		seed_catalog(s)
	yield


@pytest.fixture
def catalog():
	return StaticCatalog(
		ProductRecord(
			sku=p["sku"],
			name=p["name"],
			type=p["type"],
			base_price=p["base_price"],
			attributes=p["attributes"],
			compatibility_rules=p["compatibility_rules"],
		)
		for p in SAMPLE_PRODUCTS
	)


@pytest.fixture
def make_config():
	"""Build an unsaved configuration from (sku, quantity) pairs."""

	def _make(items=(), rack_sku="RACK-42U-STD"):
		configuration = RackConfiguration(name="test", rack_sku=rack_sku)
		for sku, quantity in items:
			configuration.add_item(ConfigurationItem(product_sku=sku, quantity=quantity))
		return configuration

	return _make
