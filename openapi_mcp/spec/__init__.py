"""
OpenAPI document handling: loading, extraction, and linting.
"""

from .extractor import (
    METHOD_ORDER,
    extract_filtered_operations,
    extract_operations,
    filter_operations,
    synthesize_operation_id,
)
from .lint import LintIssue, LintResult, lint_document
from .loader import (
    RefResolver,
    load_multiple_specs_from_string,
    load_spec,
    load_spec_from_string,
    merge_specs,
)
from .models import (
    ApiKeyScheme,
    HttpScheme,
    OAuth2Scheme,
    OpenIdConnectScheme,
    Operation,
    Parameter,
    ParameterLocation,
    RequestBody,
    SecurityScheme,
    SecuritySchemeType,
)

__all__ = [
    # Loading
    "load_spec",
    "load_spec_from_string",
    "load_multiple_specs_from_string",
    "merge_specs",
    "RefResolver",
    # Extraction
    "METHOD_ORDER",
    "extract_operations",
    "extract_filtered_operations",
    "filter_operations",
    "synthesize_operation_id",
    # Lint
    "lint_document",
    "LintIssue",
    "LintResult",
    # Models
    "Operation",
    "Parameter",
    "ParameterLocation",
    "RequestBody",
    "SecurityScheme",
    "SecuritySchemeType",
    "ApiKeyScheme",
    "HttpScheme",
    "OAuth2Scheme",
    "OpenIdConnectScheme",
]
