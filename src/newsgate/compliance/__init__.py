"""Compliance module - risk scanning of generated text."""

from .scanner import DEFAULT_RULES, ComplianceRule, ComplianceScanner

__all__ = ["DEFAULT_RULES", "ComplianceRule", "ComplianceScanner"]
