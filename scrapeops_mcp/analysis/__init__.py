from .api_endpoints import analyze_api_endpoints
from .data_sources import analyze_data_sources
from .difficulty import analyze_difficulty
from .legality import analyze_legality
from .page_types import classify_response, is_valid_classification, page_type_data, parsing_strategy
from .schema import schema_response, summarize_schema
from .tech_stack import analyze_tech_stack, tech_stack_response

__all__ = [
    "analyze_api_endpoints",
    "analyze_data_sources",
    "analyze_difficulty",
    "analyze_legality",
    "analyze_tech_stack",
    "classify_response",
    "is_valid_classification",
    "page_type_data",
    "parsing_strategy",
    "schema_response",
    "summarize_schema",
    "tech_stack_response",
]
