from .validate import REPORT_SCHEMA, RULES_SCHEMA, load_catalog, schema_errors, validate

__all__ = ["REPORT_SCHEMA", "RULES_SCHEMA", "load_catalog", "schema_errors", "validate"]
