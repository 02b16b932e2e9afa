from __future__ import annotations

from .graph import closure, cycle_paths, topological_order
from .loader import SUBSET_ALL, SUBSET_FULL, RuleSet, build_rule_set, builtin_rule_sets, load_rules, read_rule_document

__all__ = [
    "RuleSet",
    "SUBSET_ALL",
    "SUBSET_FULL",
    "build_rule_set",
    "builtin_rule_sets",
    "closure",
    "cycle_paths",
    "load_rules",
    "read_rule_document",
    "topological_order",
]
