"""Parsers module - tolerant JSON extraction from model output."""

from .output_parser import coerce_to_schema, light_repair, parse_candidate, parse_model_output

__all__ = ["coerce_to_schema", "light_repair", "parse_candidate", "parse_model_output"]
