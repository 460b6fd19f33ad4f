import logging
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .catalog import Catalog
from .configurations import ConfigurationService
from .db import db_session_scope, get_db, init_db
from .errors import (
	ConfigurationNotValidated,
	InvalidPricingOptions,
	NotFoundError,
	PricingUnavailable,
	ProductNotFound,
	QuoteStateError,
	UnknownComponent,
)
from .models import ConfigurationItem, ProductType, Quote, QuoteStatus
from .pricing import PricingEngine, PricingService
from .pricing_strategies import default_strategies
from .quotes import QuoteService, generate_document, resume_quote_numbers
from .schemas import (
	ConfigurationCreate,
	ConfigurationItemIn,
	ConfigurationOut,
	ConfigurationUpdate,
	CreateQuoteRequest,
	PricingRequest,
	PricingResultOut,
	ProductOut,
	QuoteDocumentOut,
	QuoteResponse,
	QuoteStats,
	ValidationSummaryOut,
)
from .seed import seed_catalog
from .settings import get_settings
from .validation import ConfigurationValidator
from .validation_rules import default_rules

settings = get_settings()
logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="RackCPQ API")

# Set up on import; there are no migrations
init_db()
if settings.seed_catalog:
	with db_session_scope() as _db:
		seed_catalog(_db)
with db_session_scope() as _db:
	resume_quote_numbers(_db)

# Rules and strategies are sorted once here and shared by every request.
validation_rules = default_rules()
pricing_engine = PricingEngine(default_strategies(settings), currency=settings.currency)


def get_configuration_service(db: Session = Depends(get_db)) -> ConfigurationService:
	catalog = Catalog(db)
	return ConfigurationService(db, ConfigurationValidator(catalog, validation_rules), catalog)


def get_pricing_service(db: Session = Depends(get_db)) -> PricingService:
	return PricingService(db, pricing_engine)


def get_quote_service(db: Session = Depends(get_db)) -> QuoteService:
	return QuoteService(db, PricingService(db, pricing_engine), validity_days=settings.quote_validity_days)


def _error(status_code: int, exc: Exception) -> JSONResponse:
	return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
def not_found(request: Request, exc: NotFoundError):
	return _error(404, exc)


@app.exception_handler(ConfigurationNotValidated)
def not_validated(request: Request, exc: ConfigurationNotValidated):
	return _error(409, exc)


@app.exception_handler(QuoteStateError)
def quote_state(request: Request, exc: QuoteStateError):
	return _error(409, exc)


@app.exception_handler(PricingUnavailable)
def pricing_unavailable(request: Request, exc: PricingUnavailable):
	return _error(422, exc)


@app.exception_handler(InvalidPricingOptions)
def invalid_options(request: Request, exc: InvalidPricingOptions):
	return _error(400, exc)


@app.exception_handler(UnknownComponent)
def unknown_component(request: Request, exc: UnknownComponent):
	return _error(400, exc)


def _quote_out(quote: Quote) -> QuoteResponse:
	return QuoteResponse.model_validate(quote).model_copy(update={"expired": quote.is_expired()})


def _items(items: List[ConfigurationItemIn]) -> List[ConfigurationItem]:
	return [ConfigurationItem(product_sku=i.product_sku, quantity=i.quantity, rack_position=i.rack_position) for i in items]


@app.get("/health")
def health() -> dict:
	return {"status": "UP", "rules": len(validation_rules), "strategies": len(pricing_engine.strategy_names())}


# ---- catalog ----

@app.get("/products", response_model=List[ProductOut])
def list_products(product_type: Optional[ProductType] = Query(default=None, alias="type"), db: Session = Depends(get_db)):
	return Catalog(db).list_products(product_type)


@app.get("/products/{sku}", response_model=ProductOut)
def get_product(sku: str, db: Session = Depends(get_db)):
	product = Catalog(db).get_product_by_sku(sku)
	if product is None:
		raise ProductNotFound(sku)
	return product


# ---- configurations ----

@app.get("/configurations/validation-rules", response_model=List[str])
def get_validation_rules(service: ConfigurationService = Depends(get_configuration_service)):
	return service.validation_rules()


@app.get("/configurations", response_model=List[ConfigurationOut])
def list_configurations(customer_id: Optional[str] = None, service: ConfigurationService = Depends(get_configuration_service)):
	return service.list_configurations(customer_id)


@app.post("/configurations", response_model=ConfigurationOut, status_code=201)
def create_configuration(req: ConfigurationCreate, service: ConfigurationService = Depends(get_configuration_service)):
	return service.create_configuration(
		req.name,
		description=req.description,
		customer_id=req.customer_id,
		rack_sku=req.rack_sku,
		items=_items(req.items),
	)


@app.get("/configurations/{configuration_id}", response_model=ConfigurationOut)
def get_configuration(configuration_id: str, service: ConfigurationService = Depends(get_configuration_service)):
	return service.get_configuration(configuration_id)


@app.put("/configurations/{configuration_id}", response_model=ConfigurationOut)
def update_configuration(configuration_id: str, req: ConfigurationUpdate, service: ConfigurationService = Depends(get_configuration_service)):
	return service.update_configuration(
		configuration_id,
		name=req.name,
		description=req.description,
		rack_sku=req.rack_sku,
		items=_items(req.items) if req.items is not None else None,
	)


@app.delete("/configurations/{configuration_id}", status_code=204)
def delete_configuration(configuration_id: str, service: ConfigurationService = Depends(get_configuration_service)):
	service.delete_configuration(configuration_id)


@app.post("/configurations/{configuration_id}/components", response_model=ConfigurationOut)
def add_component(configuration_id: str, item: ConfigurationItemIn, service: ConfigurationService = Depends(get_configuration_service)):
	return service.add_component(configuration_id, item.product_sku, item.quantity, item.rack_position)


@app.delete("/configurations/{configuration_id}/components/{item_id}", response_model=ConfigurationOut)
def remove_component(configuration_id: str, item_id: str, service: ConfigurationService = Depends(get_configuration_service)):
	return service.remove_component(configuration_id, item_id)


@app.patch("/configurations/{configuration_id}/components/{item_id}", response_model=ConfigurationOut)
def update_component_quantity(
	configuration_id: str,
	item_id: str,
	quantity: int = Query(ge=1),
	service: ConfigurationService = Depends(get_configuration_service),
):
	return service.update_component_quantity(configuration_id, item_id, quantity)


@app.post("/configurations/{configuration_id}/validate", response_model=ValidationSummaryOut)
def validate_configuration(configuration_id: str, service: ConfigurationService = Depends(get_configuration_service)):
	return service.validate_configuration(configuration_id)


@app.post("/configurations/{configuration_id}/clone", response_model=ConfigurationOut, status_code=201)
def clone_configuration(configuration_id: str, new_name: Optional[str] = None, service: ConfigurationService = Depends(get_configuration_service)):
	return service.clone_configuration(configuration_id, new_name)


# ---- pricing ----

@app.post("/pricing/calculate", response_model=PricingResultOut)
def calculate_price(req: PricingRequest, service: PricingService = Depends(get_pricing_service)):
	return service.calculate(
		req.configuration_id,
		customer_tier=req.customer_tier,
		options=req.options,
		rack_units_used=req.rack_units_used,
		rack_capacity=req.rack_capacity,
	)


@app.get("/pricing/configurations/{configuration_id}", response_model=PricingResultOut)
def get_configuration_price(
	configuration_id: str,
	customer_tier: Optional[str] = None,
	include_support: bool = False,
	support_tier: str = "STANDARD",
	service: PricingService = Depends(get_pricing_service),
):
	options = {"include_support": True, "support_tier": support_tier} if include_support else {}
	return service.calculate(configuration_id, customer_tier=customer_tier, options=options)


@app.get("/pricing/strategies", response_model=List[str])
def get_strategies():
	return pricing_engine.strategy_names()


# ---- quotes ----

@app.post("/quotes", response_model=QuoteResponse, status_code=201)
def create_quote(req: CreateQuoteRequest, background_tasks: BackgroundTasks, service: QuoteService = Depends(get_quote_service)):
	quote = service.create_quote(
		req.configuration_id,
		customer_id=req.customer_id,
		customer_name=req.customer_name,
		customer_email=req.customer_email,
		customer_tier=req.customer_tier,
		include_support=req.include_support,
		support_tier=req.support_tier,
	)
	background_tasks.add_task(generate_document, quote.id, settings.document_generation_delay_seconds)
	return _quote_out(quote)


@app.get("/quotes", response_model=List[QuoteResponse])
def list_quotes(
	customer_id: Optional[str] = None,
	status: Optional[QuoteStatus] = None,
	configuration_id: Optional[str] = None,
	service: QuoteService = Depends(get_quote_service),
):
	quotes = service.list_quotes(customer_id=customer_id, status=status, configuration_id=configuration_id)
	return [_quote_out(q) for q in quotes]


@app.get("/quotes/stats", response_model=QuoteStats)
def quote_stats(service: QuoteService = Depends(get_quote_service)):
	return service.stats()


@app.post("/quotes/expire")
def expire_quotes(service: QuoteService = Depends(get_quote_service)) -> dict:
	return {"expired": service.expire_old_quotes()}


@app.get("/quotes/number/{quote_number}", response_model=QuoteResponse)
def get_quote_by_number(quote_number: str, service: QuoteService = Depends(get_quote_service)):
	return _quote_out(service.get_quote_by_number(quote_number))


@app.get("/quotes/{quote_id}", response_model=QuoteResponse)
def get_quote(quote_id: str, service: QuoteService = Depends(get_quote_service)):
	return _quote_out(service.get_quote(quote_id))


@app.post("/quotes/{quote_id}/accept", response_model=QuoteResponse)
def accept_quote(quote_id: str, service: QuoteService = Depends(get_quote_service)):
	return _quote_out(service.accept_quote(quote_id))


@app.post("/quotes/{quote_id}/reject", response_model=QuoteResponse)
def reject_quote(quote_id: str, reason: str = "Customer declined", service: QuoteService = Depends(get_quote_service)):
	return _quote_out(service.reject_quote(quote_id, reason))


@app.post("/quotes/{quote_id}/send", response_model=QuoteResponse)
def mark_quote_sent(quote_id: str, service: QuoteService = Depends(get_quote_service)):
	return _quote_out(service.mark_as_sent(quote_id))


@app.post("/quotes/{quote_id}/regenerate-pdf", response_model=QuoteResponse)
def regenerate_pdf(quote_id: str, background_tasks: BackgroundTasks, service: QuoteService = Depends(get_quote_service)):
	quote = service.regenerate_document(quote_id)
	background_tasks.add_task(generate_document, quote.id, settings.document_generation_delay_seconds)
	return _quote_out(quote)


@app.get("/quotes/{quote_id}/pdf", response_model=QuoteDocumentOut)
def get_quote_pdf(quote_id: str, service: QuoteService = Depends(get_quote_service)):
	quote = service.get_quote(quote_id)
	if quote.pdf_url is None:
		raise HTTPException(status_code=404, detail="PDF not yet generated")
	return QuoteDocumentOut(
		quote_id=quote.id,
		quote_number=quote.quote_number,
		pdf_url=quote.pdf_url,
		generated_at=quote.pdf_generated_at,
	)
