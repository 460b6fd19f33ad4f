"""Sample network-hardware catalog for development and tests."""
import logging
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from .models import Product, ProductType

logger = logging.getLogger(__name__)


def _product(sku: str, name: str, description: str, type_: ProductType, price: str, attributes: Dict[str, Any], rules: Dict[str, Any]) -> Dict[str, Any]:
	return {
		"sku": sku,
		"name": name,
		"description": description,
		"type": type_,
		"base_price": Decimal(price),
		"attributes": attributes,
		"compatibility_rules": rules,
	}


SAMPLE_PRODUCTS: List[Dict[str, Any]] = [
	# racks
	_product(
		"RACK-42U-STD", "42U Standard Server Rack", "Enterprise-grade 42U server rack with cable management",
		ProductType.RACK, "2499.99",
		{"units": 42, "max_weight_kg": 1000, "depth_mm": 1000, "width_mm": 600, "power_slots": 2},
		{"max_psu": 4},
	),
	_product(
		"RACK-24U-COMPACT", "24U Compact Server Rack", "Space-efficient 24U rack for smaller deployments",
		ProductType.RACK, "1299.99",
		{"units": 24, "max_weight_kg": 500, "depth_mm": 800, "width_mm": 600, "power_slots": 2},
		{"max_psu": 2},
	),
	# switches
	_product(
		"SW-CATALYST-9300-24", "Catalyst 9300 24-Port Switch", "Enterprise-class stackable switch with 24 ports",
		ProductType.SWITCH, "4599.99",
		{"ports": 24, "poe": True, "poe_budget_watts": 715, "power_draw": 350, "throughput_gbps": 10, "rack_units": 1, "stackable": True},
		{"min_rack_units": 1, "requires_power": True},
	),
	_product(
		"SW-CATALYST-9300-48", "Catalyst 9300 48-Port Switch", "Enterprise-class stackable switch with 48 ports",
		ProductType.SWITCH, "7299.99",
		{"ports": 48, "poe": True, "poe_budget_watts": 980, "power_draw": 450, "throughput_gbps": 10, "rack_units": 1, "stackable": True},
		{"min_rack_units": 1, "requires_power": True},
	),
	_product(
		"SW-NEXUS-9336C", "Nexus 9336C-FX2 Data Center Switch", "High-performance 36-port 100G data center switch",
		ProductType.SWITCH, "24999.99",
		{"ports": 36, "port_speed_gbps": 100, "poe": False, "power_draw": 650, "throughput_tbps": 7.2, "rack_units": 1, "stackable": False},
		{"min_rack_units": 1, "requires_power": True},
	),
	_product(
		"SW-MERAKI-MS250-48", "Meraki MS250-48 Cloud Managed Switch", "Cloud-managed 48-port Gigabit switch",
		ProductType.SWITCH, "5899.99",
		{"ports": 48, "poe": True, "poe_budget_watts": 370, "power_draw": 180, "throughput_gbps": 1, "rack_units": 1, "cloud_managed": True},
		{"min_rack_units": 1, "requires_power": True},
	),
	# power
	_product(
		"PSU-1000W-PLAT", "1000W Platinum Rack PDU", "High-efficiency 1000W power distribution unit",
		ProductType.PSU, "599.99",
		{"capacity_watts": 1000, "efficiency": "80_PLUS_PLATINUM", "outlets": 8, "voltage": 220, "rack_units": 1, "redundant": False},
		{},
	),
	_product(
		"PSU-2000W-TITANIUM", "2000W Titanium Rack PDU", "Enterprise 2000W power distribution unit with monitoring",
		ProductType.PSU, "1299.99",
		{"capacity_watts": 2000, "efficiency": "80_PLUS_TITANIUM", "outlets": 16, "voltage": 220, "rack_units": 2, "redundant": True, "monitoring": True},
		{},
	),
	_product(
		"PSU-3000W-MODULAR", "3000W Modular PDU System", "Modular high-capacity power distribution for data centers",
		ProductType.PSU, "2499.99",
		# vertical mount: no rack units
		{"capacity_watts": 3000, "efficiency": "80_PLUS_TITANIUM", "outlets": 24, "voltage": 220, "rack_units": 0, "redundant": True, "monitoring": True, "modular": True},
		{},
	),
	# cabling
	_product(
		"CBL-DAC-10G-3M", "10G DAC Cable 3M", "Direct Attach Copper cable for 10G connections",
		ProductType.CABLE, "49.99",
		{"type": "DAC", "speed_gbps": 10, "length_meters": 3, "connector": "SFP+"},
		{"compatible_ports": ["SFP+", "SFP28"]},
	),
	_product(
		"CBL-FIBER-LC-10M", "LC Fiber Patch Cable 10M", "OM4 multimode fiber patch cable with LC connectors",
		ProductType.CABLE, "34.99",
		{"type": "FIBER", "fiber_type": "OM4", "speed_gbps": 100, "length_meters": 10, "connector": "LC"},
		{},
	),
	# optics
	_product(
		"SFP-10G-SR", "10GBASE-SR SFP+ Module", "10G short-range multimode fiber transceiver",
		ProductType.SFP_MODULE, "149.99",
		{"speed_gbps": 10, "type": "SR", "wavelength_nm": 850, "max_distance_m": 300, "fiber_type": "MMF"},
		{"compatible_ports": ["SFP+"]},
	),
	_product(
		"SFP-10G-LR", "10GBASE-LR SFP+ Module", "10G long-range single-mode fiber transceiver",
		ProductType.SFP_MODULE, "299.99",
		{"speed_gbps": 10, "type": "LR", "wavelength_nm": 1310, "max_distance_m": 10000, "fiber_type": "SMF"},
		{"compatible_ports": ["SFP+"]},
	),
	_product(
		"QSFP-100G-SR4", "100GBASE-SR4 QSFP28 Module", "100G short-range multimode fiber transceiver",
		ProductType.SFP_MODULE, "599.99",
		{"speed_gbps": 100, "type": "SR4", "wavelength_nm": 850, "max_distance_m": 100, "fiber_type": "MMF", "lanes": 4},
		{"compatible_ports": ["QSFP28", "QSFP+"]},
	),
]


def seed_catalog(db: Session) -> int:
	"""Insert the sample products into an empty catalog. Returns how many were added."""
	if db.query(Product).count() > 0:
		logger.info("Database already contains data, skipping sample data load")
		return 0
	logger.info("Loading sample product data...")
	for data in SAMPLE_PRODUCTS:
		db.add(Product(**data))
	db.commit()
	logger.info("Sample product data loaded successfully (%d products)", len(SAMPLE_PRODUCTS))
	return len(SAMPLE_PRODUCTS)
