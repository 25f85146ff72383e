from .formula import CandidateFormula, ExpansionResult, FormulaLine, LineRole, ValidationResult

__all__ = ["CandidateFormula", "ExpansionResult", "FormulaLine", "LineRole", "ValidationResult"]
