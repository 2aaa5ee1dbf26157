from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session
from typing import Optional, Type
import json
import logging
import time

from hotel_pricing.database import get_db
from hotel_pricing.errors import PricingError
from hotel_pricing.schemas import CalculateRequest, BatchCalculateRequest, ProcessEventsRequest
from hotel_pricing.services.event_queue import PricingEventQueue
from hotel_pricing.services.notification import get_global_notifier
from hotel_pricing.services.pricing_calculator import PricingCalculator
from hotel_pricing.utils.clock import hotel_today

router = APIRouter()
logger = logging.getLogger(__name__)


def get_pricing_calculator(db: Session = Depends(get_db)) -> PricingCalculator:
    return PricingCalculator(db)


class BadRequest(Exception):
    pass


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _envelope(started: float, data=None, error: Optional[str] = None, status_code: int = 200, **extra) -> JSONResponse:
    body = {"success": error is None}
    if error is None:
        body["data"] = data
    else:
        body["error"] = error
    body["processing_time_ms"] = _elapsed_ms(started)
    body.update(extra)
    return JSONResponse(content=jsonable_encoder(body), status_code=status_code)


def _error_envelope(started: float, exc: Exception) -> JSONResponse:
    if isinstance(exc, BadRequest):
        return _envelope(started, error=str(exc), status_code=400)
    if isinstance(exc, PricingError):
        return _envelope(started, error=exc.message, status_code=exc.status_code)
    logger.exception("Unhandled pricing error")
    return _envelope(started, error=str(exc) or exc.__class__.__name__, status_code=500)


async def _parse_body(request: Request, model: Type[BaseModel], allow_empty: bool = False):
    """Validate the JSON body ourselves so bad input still gets the envelope."""
    raw = await request.body()
    if not raw.strip():
        if allow_empty:
            return model()
        raise BadRequest("Request body is required")
    try:
        payload = json.loads(raw)
    except ValueError:
        raise BadRequest("Request body must be valid JSON")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in e.errors()
        )
        raise BadRequest(f"Invalid request: {problems}")


@router.post("/calculate")
async def calculate_price(
    request: Request,
    calculator: PricingCalculator = Depends(get_pricing_calculator),
):
    """Price one room for one night."""
    started = time.perf_counter()
    try:
        body = await _parse_body(request, CalculateRequest)
        factors = calculator.calculate(
            body.room_id,
            body.date or hotel_today(),
            force_recalculate=body.force_recalculate,
        )
        return _envelope(started, data=factors.to_dict())
    except Exception as e:
        return _error_envelope(started, e)


@router.post("/batch-calculate")
async def batch_calculate(
    request: Request,
    calculator: PricingCalculator = Depends(get_pricing_calculator),
):
    """
    Price several rooms for the same night. A room that fails is reported
    in its own entry; the request as a whole still succeeds.
    """
    started = time.perf_counter()
    try:
        body = await _parse_body(request, BatchCalculateRequest)
    except Exception as e:
        return _error_envelope(started, e)

    day = body.date or hotel_today()
    results = []
    for room_id in body.room_ids:
        try:
            factors = calculator.calculate(room_id, day, force_recalculate=body.force_recalculate)
            results.append({"room_id": room_id, "success": True, "data": factors.to_dict()})
        except PricingError as e:
            results.append({"room_id": room_id, "success": False, "error": e.message})
        except Exception as e:
            logger.error(f"Batch pricing failed for room {room_id}: {e}")
            results.append({"room_id": room_id, "success": False, "error": str(e)})

    return _envelope(started, data=results)


@router.post("/process-events")
async def process_events(
    request: Request,
    calculator: PricingCalculator = Depends(get_pricing_calculator),
    notifier=Depends(get_global_notifier),
):
    """Work through one batch of queued pricing events."""
    started = time.perf_counter()
    try:
        body = await _parse_body(request, ProcessEventsRequest, allow_empty=True)
        queue = PricingEventQueue(calculator.db, calculator=calculator, notifier=notifier)
        result = await queue.process_batch(body.batch_size)
        return _envelope(started, data=result, events_processed=result["events_processed"])
    except Exception as e:
        return _error_envelope(started, e)
