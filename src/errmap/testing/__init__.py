from __future__ import annotations

from .corpus import RemapCase, encode_mappings, generate_remap_cases

__all__ = ["RemapCase", "encode_mappings", "generate_remap_cases"]
