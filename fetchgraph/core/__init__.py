"""
fetchgraph Core Module

Contains the foundation layer:
- Stage enumeration
- Definition records and the define_data_handler factory
- Id generation and dotted-path helpers
"""

from fetchgraph.core.enums import Stage, RECONCILABLE_STAGES
from fetchgraph.core.ids import IdGenerator, get_default_generator
from fetchgraph.core.paths import assign_path
from fetchgraph.core.definition import (
    Definition,
    define_data_handler,
    default_is_data_available,
)

__all__ = [
    "Stage",
    "RECONCILABLE_STAGES",
    "IdGenerator",
    "get_default_generator",
    "assign_path",
    "Definition",
    "define_data_handler",
    "default_is_data_available",
]
