"""Post-search result validation."""

from .result_validator import ResultValidator, significant_terms

__all__ = ['ResultValidator', 'significant_terms']
