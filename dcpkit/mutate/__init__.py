"""Patch application and before/after previews for registry documents."""

from __future__ import annotations

from .patches import (
    BatchMutator,
    MutationResult,
    RollbackPoint,
    is_valid_patch,
    load_patches,
    save_document,
)
from .preview import DiffPreview, PreviewBuilder, build_preview, render_preview, save_preview

__all__ = [
    "BatchMutator",
    "DiffPreview",
    "MutationResult",
    "PreviewBuilder",
    "RollbackPoint",
    "build_preview",
    "is_valid_patch",
    "load_patches",
    "render_preview",
    "save_document",
    "save_preview",
]
