"""Shared machinery behind the validation and pricing pipelines.

Both pipelines are an ordered list of independent units. Each unit declares a
``name`` and an ``order``; the pipeline sorts them once (stable, so equal
orders keep registration order) and runs them one by one. A unit that raises
is captured as a :class:`UnitOutcome` carrying the error instead of a value,
and the run moves on to the next unit.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

U = TypeVar("U")
T = TypeVar("T")

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value: float | int | str | Decimal) -> Decimal:
	if isinstance(value, Decimal):
		return value
	return Decimal(str(value))


def round_currency(value: Decimal) -> Decimal:
	return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percent_to_rate(percent: float | int | str | Decimal) -> Decimal:
	"""15 -> Decimal('0.1500')"""
	return (to_decimal(percent) / HUNDRED).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


def rate_to_percent(rate: Decimal) -> int:
	return int(rate * HUNDRED)


def truncated_percent(numerator: float, denominator: float) -> int:
	"""Display percentage, truncated toward zero. Never use it for threshold checks."""
	if not denominator:
		return 0
	return int(numerator / denominator * 100)


@dataclass(frozen=True)
class UnitOutcome(Generic[T]):
	unit_name: str
	value: Optional[T] = None
	error: Optional[BaseException] = None

	@property
	def ok(self) -> bool:
		return self.error is None


class RulePipeline(Generic[U]):
	def __init__(self, units: Iterable[U], kind: str = "unit"):
		# sorted() is stable: ties keep declaration order
		self.units: List[U] = sorted(units, key=lambda u: getattr(u, "order", 100))
		self.kind = kind
		logger.info(
			"Initialized %s pipeline with %d units: %s",
			kind,
			len(self.units),
			self.unit_names(),
		)

	def unit_names(self) -> List[str]:
		return [u.name for u in self.units]

	def invoke(self, unit: U, call: Callable[[U], T]) -> UnitOutcome[T]:
		try:
			return UnitOutcome(unit_name=unit.name, value=call(unit))
		except Exception as exc:  # noqa: BLE001 - one broken unit must not stop the run
			logger.exception("%s %s raised", self.kind.capitalize(), unit.name)
			return UnitOutcome(unit_name=unit.name, error=exc)

	def outcomes(self, call: Callable[[U], T]) -> List[UnitOutcome[T]]:
		"""Run every unit independently and collect one outcome per unit, in order."""
		return [self.invoke(unit, call) for unit in self.units]

	def fold(self, initial: T, step: Callable[[U, T], T], on_error: Optional[Callable[[UnitOutcome[T], T], Any]] = None) -> T:
		"""Thread ``initial`` through every unit: ``acc = step(unit, acc)``.

		When a unit raises, the accumulator from before that unit is kept.
		"""
		acc = initial
		for unit in self.units:
			outcome = self.invoke(unit, lambda u, prev=acc: step(u, prev))
			if outcome.ok:
				acc = outcome.value
			elif on_error is not None:
				on_error(outcome, acc)
		return acc

	def __len__(self) -> int:
		return len(self.units)

	def __iter__(self):
		return iter(self.units)
