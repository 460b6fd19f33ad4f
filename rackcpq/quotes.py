"""Quote numbering, snapshotting and lifecycle."""
from __future__ import annotations

import logging
import threading
import time
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .db import db_session_scope
from .errors import (
	ConfigurationNotFound,
	ConfigurationNotValidated,
	PricingUnavailable,
	QuoteNotFound,
	QuoteStateError,
)
from .models import (
	QUOTE_VALIDITY_DAYS,
	ConfigurationStatus,
	Quote,
	QuoteLineItem,
	QuoteStatus,
	RackConfiguration,
	utcnow,
)
from .pricing import PricingResult, PricingService

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (QuoteStatus.ACCEPTED, QuoteStatus.REJECTED, QuoteStatus.EXPIRED)


class QuoteNumberGenerator:
	"""Issues ``QT-YYYYMMDD-NNNNN`` numbers; the sequence restarts at 1 each day."""

	def __init__(self, prefix: str = "QT", today: Callable[[], date] = date.today):
		self.prefix = prefix
		self._today = today
		self._lock = threading.Lock()
		self._current_date: Optional[date] = None
		self._sequence = 0

	def generate(self) -> str:
		# date read, reset and increment must happen under one lock
		with self._lock:
			today = self._today()
			if today != self._current_date:
				self._current_date = today
				self._sequence = 0
			self._sequence += 1
			return f"{self.prefix}-{today:%Y%m%d}-{self._sequence:05d}"

	def resume_from(self, last_number: Optional[str]) -> None:
		"""Continue after ``last_number`` when it was issued today, e.g. after a restart."""
		if not last_number:
			return
		prefix, day, sequence = last_number.rsplit("-", 2)
		with self._lock:
			today = self._today()
			if prefix != self.prefix or day != f"{today:%Y%m%d}":
				return
			if today != self._current_date:
				self._current_date = today
				self._sequence = 0
			self._sequence = max(self._sequence, int(sequence))

	def today_pattern(self) -> str:
		return f"{self.prefix}-{self._today():%Y%m%d}-%"


quote_numbers = QuoteNumberGenerator()


def resume_quote_numbers(db: Session, numbers: QuoteNumberGenerator = quote_numbers) -> None:
	"""Seed the daily sequence from the highest number already stored for today."""
	last = (
		db.query(func.max(Quote.quote_number))
		.filter(Quote.quote_number.like(numbers.today_pattern()))
		.scalar()
	)
	numbers.resume_from(last)
	if last:
		logger.info("Resuming quote numbers after %s", last)


def build_quote(
	quote_number: str,
	configuration_id: str,
	pricing: PricingResult,
	*,
	customer_id: Optional[str] = None,
	customer_name: Optional[str] = None,
	customer_email: Optional[str] = None,
	created_at: Optional[datetime] = None,
	validity_days: int = QUOTE_VALIDITY_DAYS,
) -> Quote:
	"""Freeze a pricing result into a new PENDING quote.

	Values are copied, not referenced: later changes to the pricing result, the
	configuration or catalog prices do not reach the quote.
	"""
	created_at = created_at or utcnow()
	quote = Quote(
		quote_number=quote_number,
		configuration_id=configuration_id,
		customer_id=customer_id,
		customer_name=customer_name,
		customer_email=customer_email,
		subtotal=pricing.subtotal,
		total_discount=pricing.total_discount,
		service_add_on=pricing.service_add_on,
		grand_total=pricing.grand_total,
		currency=pricing.currency,
		status=QuoteStatus.PENDING,
		created_at=created_at,
		expires_at=Quote.expiry_for(created_at, validity_days),
	)
	quote.line_items = [
		QuoteLineItem(
			position=position,
			product_sku=item.product_sku,
			product_name=item.product_name,
			product_type=item.product_type,
			quantity=item.quantity,
			unit_price=item.unit_price,
			line_total=item.line_total,
			discount_amount=item.discount_amount,
			discount_reason=item.discount_reason,
		)
		for position, item in enumerate(pricing.line_items)
	]
	return quote


def generate_document(quote_id: str, delay_seconds: float = 0.0) -> Optional[str]:
	"""Background job: PENDING -> GENERATING -> READY with a document URL."""
	logger.info("Received quote requested event for quote: %s", quote_id)
	with db_session_scope() as db:
		quote = db.get(Quote, quote_id)
		if quote is None:
			logger.error("Quote not found for document generation: %s", quote_id)
			return None
		if quote.status != QuoteStatus.PENDING:
			logger.info("Skipping document generation for quote %s in status %s", quote_id, quote.status.value)
			return None
		quote.status = QuoteStatus.GENERATING

	if delay_seconds > 0:
		logger.info("Generating PDF for quote: %s...", quote_id)
		time.sleep(delay_seconds)

	pdf_url = f"/quotes/{quote_id}/pdf"
	with db_session_scope() as db:
		quote = db.get(Quote, quote_id)
		if quote is None:
			logger.error("Quote disappeared during document generation: %s", quote_id)
			return None
		if quote.status != QuoteStatus.GENERATING:
			logger.info("Quote %s moved to %s while generating; document discarded", quote_id, quote.status.value)
			return None
		quote.status = QuoteStatus.READY
		quote.pdf_url = pdf_url
		quote.pdf_generated_at = utcnow()

	logger.info("Quote %s is ready. PDF available at: %s", quote_id, pdf_url)
	return pdf_url


class QuoteService:
	def __init__(
		self,
		db: Session,
		pricing: PricingService,
		numbers: QuoteNumberGenerator = quote_numbers,
		validity_days: int = QUOTE_VALIDITY_DAYS,
	):
		self.db = db
		self.pricing = pricing
		self.numbers = numbers
		self.validity_days = validity_days

	def create_quote(
		self,
		configuration_id: str,
		*,
		customer_id: Optional[str] = None,
		customer_name: Optional[str] = None,
		customer_email: Optional[str] = None,
		customer_tier: Optional[str] = None,
		include_support: bool = False,
		support_tier: Optional[str] = None,
	) -> Quote:
		logger.info("Creating quote for configuration: %s", configuration_id)
		configuration = self.db.get(RackConfiguration, configuration_id)
		if configuration is None:
			raise ConfigurationNotFound(configuration_id)
		if not configuration.validated:
			raise ConfigurationNotValidated(configuration_id)

		options: Dict[str, object] = {}
		if include_support:
			options = {"include_support": True, "support_tier": support_tier or "STANDARD"}
		pricing = self.pricing.engine.price(
			self.pricing.build_context(configuration, customer_tier=customer_tier, options=options)
		)
		if "BasePrice" not in pricing.applied_strategies or not pricing.line_items:
			raise PricingUnavailable(configuration_id, "no priced line items")

		quote = build_quote(
			self.numbers.generate(),
			configuration_id,
			pricing,
			customer_id=customer_id or configuration.customer_id,
			customer_name=customer_name,
			customer_email=customer_email,
			validity_days=self.validity_days,
		)
		self.db.add(quote)
		configuration.status = ConfigurationStatus.QUOTED
		self.db.commit()
		self.db.refresh(quote)
		logger.info("Created quote: %s (%s)", quote.quote_number, quote.id)
		return quote

	def get_quote(self, quote_id: str) -> Quote:
		quote = self.db.get(Quote, quote_id)
		if quote is None:
			raise QuoteNotFound(quote_id)
		return quote

	def get_quote_by_number(self, quote_number: str) -> Quote:
		quote = self.db.query(Quote).filter(Quote.quote_number == quote_number).first()
		if quote is None:
			raise QuoteNotFound(quote_number)
		return quote

	def list_quotes(
		self,
		*,
		customer_id: Optional[str] = None,
		status: Optional[QuoteStatus] = None,
		configuration_id: Optional[str] = None,
	) -> List[Quote]:
		query = self.db.query(Quote)
		if customer_id is not None:
			query = query.filter(Quote.customer_id == customer_id)
		if status is not None:
			query = query.filter(Quote.status == status)
		if configuration_id is not None:
			query = query.filter(Quote.configuration_id == configuration_id)
		return query.order_by(Quote.created_at.asc(), Quote.quote_number.asc()).all()

	def accept_quote(self, quote_id: str, now: Optional[datetime] = None) -> Quote:
		quote = self.get_quote(quote_id)
		if quote.is_expired(now):
			raise QuoteStateError(f"Cannot accept expired quote: {quote.quote_number}")
		if quote.status not in (QuoteStatus.READY, QuoteStatus.SENT):
			raise QuoteStateError(
				f"Quote must be in READY or SENT status to accept. Current: {quote.status.value}"
			)
		return self._transition(quote, QuoteStatus.ACCEPTED)

	def reject_quote(self, quote_id: str, reason: str = "Customer declined") -> Quote:
		quote = self.get_quote(quote_id)
		if quote.status == QuoteStatus.ACCEPTED:
			raise QuoteStateError("Cannot reject already accepted quote")
		logger.info("Quote rejected: %s - %s", quote.quote_number, reason)
		return self._transition(quote, QuoteStatus.REJECTED)

	def mark_as_sent(self, quote_id: str) -> Quote:
		quote = self.get_quote(quote_id)
		if quote.status != QuoteStatus.READY:
			raise QuoteStateError(f"Quote must be in READY status to send. Current: {quote.status.value}")
		return self._transition(quote, QuoteStatus.SENT)

	def regenerate_document(self, quote_id: str) -> Quote:
		quote = self.get_quote(quote_id)
		quote.pdf_url = None
		quote.pdf_generated_at = None
		logger.info("Triggered PDF regeneration for quote: %s", quote.quote_number)
		return self._transition(quote, QuoteStatus.PENDING)

	def expire_old_quotes(self, now: Optional[datetime] = None) -> int:
		now = now or utcnow()
		expired = (
			self.db.query(Quote)
			.filter(Quote.expires_at < now)
			.filter(Quote.status.notin_(TERMINAL_STATUSES))
			.all()
		)
		for quote in expired:
			quote.status = QuoteStatus.EXPIRED
			logger.info("Expired quote: %s", quote.quote_number)
		self.db.commit()
		return len(expired)

	def stats(self) -> Dict[str, int]:
		counts = dict(self.db.query(Quote.status, func.count(Quote.id)).group_by(Quote.status).all())
		stats = {"total": sum(counts.values())}
		for status in QuoteStatus:
			stats[status.value.lower()] = counts.get(status, 0)
		return stats

	def _transition(self, quote: Quote, status: QuoteStatus) -> Quote:
		previous = quote.status
		quote.status = status
		self.db.commit()
		self.db.refresh(quote)
		logger.info("Quote %s: %s -> %s", quote.quote_number, previous.value, status.value)
		return quote
