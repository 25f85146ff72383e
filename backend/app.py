"""
Formula engine FastAPI application.

Endpoints:
    GET  /                        Health check
    GET  /catalog                 Catalog version and entry counts
    GET  /catalog/{name}          One catalog entry (case-insensitive canonical name)
    POST /formula/validate        Candidate formula -> ValidationResult
    POST /formula/expand          Candidate formula -> expanded formula + ExpansionResult
    POST /formula/screen          Formula + medications -> medication and combination warnings
    POST /formula/extract         AI reply text -> extraction outcome + chat events
    POST /formula/extract/stream  Same, streamed as server-sent events
"""
from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
import logging
import json
from dotenv import load_dotenv
from pathlib import Path

# Load env vars before formula_core reads them
load_dotenv(Path(__file__).parent / ".env")

from formula_core.config import log_config
from formula_core.catalog import CatalogError, get_default_catalog
from formula_core.evaluation import FormulaExpander, FormulaValidator, capsule_budget
from formula_core.interactions import get_default_screener
from formula_core.models import CandidateFormula
from formula_core.normalization import get_default_normalizer
from formula_core.parsing import FormulaParseError, parse_formula_payload
from formula_core.pipeline import FormulaExtractionPipeline
from formula_core.response_composer import compose_outcome_events, format_formula_summary

# Logger
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize App
app = FastAPI(title="Formula Composition & Validation API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

log_config()

# Engine objects are read-only after load; shared by all requests
catalog = get_default_catalog()
normalizer = get_default_normalizer()
validator = FormulaValidator(catalog, normalizer)
expander = FormulaExpander(catalog, normalizer)
screener = get_default_screener()


# --- Request Models ---
class ScreenRequest(BaseModel):
    formula: Dict[str, Any]
    medications: List[str] = []


class ExtractRequest(BaseModel):
    text: str
    user_message: str = ""
    medications: List[str] = []
    auto_expand: Optional[bool] = None


# --- Helper Functions ---

def _parse_or_422(payload: Dict[str, Any]) -> CandidateFormula:
    try:
        return parse_formula_payload(payload)
    except FormulaParseError as e:
        logger.warning("FORMULA_PARSE rejected error=%s", e)
        raise HTTPException(status_code=422, detail=str(e))


def _normalize_in_place(formula: CandidateFormula) -> None:
    for line in formula.lines():
        canonical = normalizer.normalize(line.ingredient_name)
        if catalog.contains(canonical):
            line.ingredient_name = canonical


def _run_extraction(request: ExtractRequest) -> Dict[str, Any]:
    pipeline = FormulaExtractionPipeline(
        catalog=catalog,
        normalizer=normalizer,
        validator=validator,
        expander=expander,
        screener=screener,
        auto_expand=request.auto_expand,
    )
    outcome = pipeline.run(request.text, request.user_message, request.medications)
    result = outcome.to_dict()
    result["events"] = compose_outcome_events(outcome)
    if outcome.formula is not None:
        result["summary"] = format_formula_summary(outcome.formula)
    return result


# --- Endpoints ---

@app.get("/")
def health_check():
    return {"status": "ok", "service": "Formula Engine", "catalog_version": catalog.get_version()}


@app.get("/catalog")
def catalog_info():
    return {
        "version": catalog.get_version(),
        "entries": len(catalog),
        "bundles": len(catalog.bundles()),
        "adjustable": len(catalog.adjustables()),
    }


@app.get("/catalog/{name:path}")
def catalog_entry(name: str):
    """Lookup by canonical name or any name the normalizer resolves."""
    entry = normalizer.resolve(name)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Ingredient not in catalog: {name}")
    return entry.to_dict()


@app.post("/formula/validate")
def validate_endpoint(payload: Dict[str, Any]):
    formula = _parse_or_422(payload)
    try:
        result = validator.validate(formula)
    except Exception as e:
        logger.error("Validate failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    body = result.to_dict()
    body["totalMg"] = formula.total_mg
    body["budget"] = capsule_budget(formula.target_capsules).to_dict()
    return body


@app.post("/formula/expand")
def expand_endpoint(payload: Dict[str, Any]):
    formula = _parse_or_422(payload)
    try:
        _normalize_in_place(formula)
        expansion = expander.expand(formula)
    except Exception as e:
        logger.error("Expand failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    return {"formula": formula.to_dict(), "expansion": expansion.to_dict()}


@app.post("/formula/screen")
def screen_endpoint(request: ScreenRequest):
    formula = _parse_or_422(request.formula)
    _normalize_in_place(formula)
    return {
        "warnings": screener.screen(formula, request.medications),
        "combinations": screener.screen_combinations(formula),
    }


@app.post("/formula/extract")
def extract_endpoint(request: ExtractRequest):
    logger.info("Extract request chars=%d medications=%d", len(request.text), len(request.medications))
    try:
        return _run_extraction(request)
    except CatalogError as e:
        logger.error("Extract failed on catalog data: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/formula/extract/stream")
def extract_stream_endpoint(request: ExtractRequest):
    """Chat events as server-sent events, ending with a done event."""
    result = _run_extraction(request)

    async def generate_events():
        for event in result["events"]:
            yield f"data: {json.dumps(event)}\n\n"
        yield f"data: {json.dumps({'type': 'done', 'status': result['status']})}\n\n"

    return StreamingResponse(generate_events(), media_type="text/event-stream")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=True)
