"""Rendering of statuses and repository trees."""

from .status import format_status, status_indicators, status_text
from .tree import TreeNode, build_tree, format_tree, validate_tree

__all__ = [
    'format_status',
    'status_indicators',
    'status_text',
    'TreeNode',
    'build_tree',
    'format_tree',
    'validate_tree',
]
