import re
import threading
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from rackcpq.catalog import Catalog
from rackcpq.configurations import ConfigurationService
from rackcpq.db import SessionLocal
from rackcpq.errors import (
	ConfigurationNotFound,
	ConfigurationNotValidated,
	PricingUnavailable,
	QuoteStateError,
	UnknownComponent,
)
from rackcpq.models import ConfigurationItem, ConfigurationStatus, QuoteStatus
from rackcpq.pricing import PricingContext, PricingEngine, PricingLineItem, PricingService
from rackcpq.quotes import QuoteNumberGenerator, QuoteService, build_quote, generate_document, resume_quote_numbers
from rackcpq.validation import ConfigurationValidator

# one generator for the module so numbers stay unique in the shared database
numbers = QuoteNumberGenerator(prefix="TQ")


def test_quote_numbers_are_unique_and_increasing_across_threads():
	generator = QuoteNumberGenerator(today=lambda: date(2026, 3, 1))
	issued = {}

	def worker(n):
		issued[n] = [generator.generate() for _ in range(50)]

	threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
	for t in threads:
		t.start()
	for t in threads:
		t.join()

	all_numbers = [q for batch in issued.values() for q in batch]
	assert len(set(all_numbers)) == 400
	assert all(q.startswith("QT-20260301-") for q in all_numbers)
	for batch in issued.values():
		sequences = [int(q.rsplit("-", 1)[1]) for q in batch]
		assert sequences == sorted(sequences)
		assert len(set(sequences)) == len(sequences)
	assert sorted(int(q.rsplit("-", 1)[1]) for q in all_numbers) == list(range(1, 401))


def test_quote_number_sequence_restarts_each_day():
	today = [date(2026, 3, 1)]
	generator = QuoteNumberGenerator(today=lambda: today[0])
	assert generator.generate() == "QT-20260301-00001"
	assert generator.generate() == "QT-20260301-00002"
	today[0] = date(2026, 3, 2)
	assert generator.generate() == "QT-20260302-00001"



def test_quote_numbers_resume_after_restart():
	generator = QuoteNumberGenerator(today=lambda: date(2026, 3, 1))
	generator.resume_from("QT-20260301-00041")
	assert generator.generate() == "QT-20260301-00042"

	# numbers from another day or prefix leave the sequence alone
	fresh = QuoteNumberGenerator(today=lambda: date(2026, 3, 2))
	fresh.resume_from("QT-20260301-00041")
	fresh.resume_from("XX-20260302-00007")
	fresh.resume_from(None)
	assert fresh.generate() == "QT-20260302-00001"

def test_build_quote_freezes_pricing():
	engine = PricingEngine()
	pricing = engine.price(
		PricingContext(
			"cfg-1",
			line_items=[
				PricingLineItem("SW-1", "Switch", "SWITCH", 6, Decimal("1000.00")),
				PricingLineItem("RACK-1", "Rack", "RACK", 1, Decimal("2000.00")),
			],
			customer_tier="PARTNER",
		)
	)
	created = datetime(2026, 1, 1, 12, 0)
	quote = build_quote("QT-20260101-00001", "cfg-1", pricing, customer_id="c1", created_at=created)

	assert quote.status == QuoteStatus.PENDING
	assert quote.expires_at == created + timedelta(days=30)
	assert [li.as_dict() for li in quote.line_items] == [li.as_dict() for li in pricing.line_items]
	assert (quote.subtotal, quote.total_discount, quote.service_add_on, quote.grand_total) == (
		pricing.subtotal,
		pricing.total_discount,
		pricing.service_add_on,
		pricing.grand_total,
	)

	pricing.line_items[0].unit_price = Decimal("1.00")
	pricing.line_items[0].discount_amount = Decimal("0")
	pricing.grand_total = Decimal("0")
	assert quote.line_items[0].unit_price == Decimal("1000.00")
	assert quote.line_items[0].discount_amount == Decimal("600.00")
	assert quote.grand_total == Decimal("6290.00")


def test_quote_expiry():
	pricing = PricingEngine().price(PricingContext("cfg-1"))
	quote = build_quote("QT-20260101-00002", "cfg-1", pricing, created_at=datetime(2026, 1, 1))
	assert not quote.is_expired(datetime(2026, 1, 31))
	assert quote.is_expired(datetime(2026, 1, 31, 0, 0, 1))


@pytest.fixture
def db():
	session = SessionLocal()
	yield session
	session.close()


@pytest.fixture
def services(db):
	catalog = Catalog(db)
	configurations = ConfigurationService(db, ConfigurationValidator(catalog), catalog)
	quotes = QuoteService(db, PricingService(db, PricingEngine()), numbers=numbers)
	return configurations, quotes


def _configuration(configurations, validate=True):
	config = configurations.create_configuration(
		"Edge rack",
		customer_id="cust-1",
		rack_sku="RACK-42U-STD",
		items=[
			ConfigurationItem(product_sku="SW-CATALYST-9300-48", quantity=2),
			ConfigurationItem(product_sku="PSU-2000W-TITANIUM", quantity=1),
		],
	)
	if validate:
		assert configurations.validate_configuration(config.id).valid
	return config


def test_quote_requires_existing_configuration(services):
	_, quotes = services
	with pytest.raises(ConfigurationNotFound):
		quotes.create_quote("does-not-exist")


def test_quote_requires_validated_configuration(services):
	configurations, quotes = services
	config = _configuration(configurations, validate=False)
	with pytest.raises(ConfigurationNotValidated):
		quotes.create_quote(config.id)


def test_quote_requires_base_price(db, services):
	configurations, _ = services
	config = _configuration(configurations)
	quotes = QuoteService(db, PricingService(db, PricingEngine([])), numbers=numbers)
	with pytest.raises(PricingUnavailable):
		quotes.create_quote(config.id)


def test_quote_lifecycle(db, services):
	configurations, quotes = services
	config = _configuration(configurations)

	quote = quotes.create_quote(config.id, customer_name="Ada", customer_email="ada@example.com")
	assert re.fullmatch(r"TQ-\d{8}-\d{5}", quote.quote_number)
	assert quote.status == QuoteStatus.PENDING
	assert quote.customer_id == "cust-1"
	assert quote.subtotal == Decimal("18399.96")
	assert quote.grand_total == Decimal("18399.96")
	assert [li.product_sku for li in quote.line_items] == ["SW-CATALYST-9300-48", "PSU-2000W-TITANIUM", "RACK-42U-STD"]
	assert configurations.get_configuration(config.id).status == ConfigurationStatus.QUOTED

	with pytest.raises(QuoteStateError):
		quotes.accept_quote(quote.id)

	assert generate_document(quote.id) == f"/quotes/{quote.id}/pdf"
	db.refresh(quote)
	assert quote.status == QuoteStatus.READY
	assert quote.pdf_generated_at is not None

	assert quotes.mark_as_sent(quote.id).status == QuoteStatus.SENT
	assert quotes.accept_quote(quote.id).status == QuoteStatus.ACCEPTED
	with pytest.raises(QuoteStateError):
		quotes.reject_quote(quote.id)
	assert quotes.get_quote_by_number(quote.quote_number).id == quote.id


def test_quote_is_unaffected_by_later_configuration_changes(db, services):
	configurations, quotes = services
	config = _configuration(configurations)
	quote = quotes.create_quote(config.id, customer_tier="PARTNER", include_support=True)
	frozen = (quote.subtotal, quote.total_discount, quote.service_add_on, quote.grand_total)

	configurations.add_component(config.id, "SW-NEXUS-9336C", 4)
	db.expire_all()
	reloaded = quotes.get_quote(quote.id)
	assert (reloaded.subtotal, reloaded.total_discount, reloaded.service_add_on, reloaded.grand_total) == frozen
	assert len(reloaded.line_items) == 3
	assert not configurations.get_configuration(config.id).validated


def test_expired_quote_cannot_be_accepted(services):
	configurations, quotes = services
	quote = quotes.create_quote(_configuration(configurations).id)
	generate_document(quote.id)
	with pytest.raises(QuoteStateError):
		quotes.accept_quote(quote.id, now=quote.expires_at + timedelta(seconds=1))


def test_expire_old_quotes_skips_terminal_quotes(db, services):
	configurations, quotes = services
	open_quote = quotes.create_quote(_configuration(configurations).id)
	rejected = quotes.create_quote(_configuration(configurations).id)
	quotes.reject_quote(rejected.id, "too expensive")

	assert quotes.expire_old_quotes(now=open_quote.expires_at - timedelta(days=1)) == 0
	assert quotes.expire_old_quotes(now=open_quote.expires_at + timedelta(days=1)) >= 1
	db.expire_all()
	assert quotes.get_quote(open_quote.id).status == QuoteStatus.EXPIRED
	assert quotes.get_quote(rejected.id).status == QuoteStatus.REJECTED

	stats = quotes.stats()
	assert stats["total"] == sum(v for k, v in stats.items() if k != "total")
	assert stats["expired"] >= 1


def test_restarted_generator_continues_stored_sequence(db, services):
	configurations, quotes = services
	first = quotes.create_quote(_configuration(configurations).id)

	restarted = QuoteNumberGenerator(prefix="TQ")
	resume_quote_numbers(db, restarted)
	issued = restarted.generate()
	assert issued > first.quote_number
	assert issued not in [q.quote_number for q in quotes.list_quotes()]


def test_rejected_quote_keeps_status_when_document_job_runs(db, services):
	configurations, quotes = services
	quote = quotes.create_quote(_configuration(configurations).id)
	quotes.reject_quote(quote.id, "changed plans")

	assert generate_document(quote.id) is None
	db.expire_all()
	stored = quotes.get_quote(quote.id)
	assert stored.status == QuoteStatus.REJECTED
	assert stored.pdf_url is None


def test_adding_unknown_component_is_rejected(services):
	configurations, _ = services
	config = _configuration(configurations, validate=False)
	with pytest.raises(UnknownComponent):
		configurations.add_component(config.id, "SW-DOES-NOT-EXIST")
	assert len(configurations.get_configuration(config.id).items) == 2
