"""Representation backend exports."""

from representations.base import (
    REPRESENTATION_REGISTRY,
    get_representation,
    register_representation,
    representation_for_path,
)
from representations.lines import LineRepresentation
from representations.python_ast import PythonRepresentation

__all__ = [
    "REPRESENTATION_REGISTRY",
    "get_representation",
    "register_representation",
    "representation_for_path",
    "LineRepresentation",
    "PythonRepresentation",
]
