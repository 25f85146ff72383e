from .extraction_pipeline import (
    TERMINAL_STATES,
    ExtractionOutcome,
    ExtractionState,
    FormulaExtractionPipeline,
)

__all__ = ["TERMINAL_STATES", "ExtractionOutcome", "ExtractionState", "FormulaExtractionPipeline"]
