"""
NIP Editor Core — game-agnostic taxonomy and session settings.

Usage:
    from core import EditorConfig, Taxonomy
    from games.d2r import create_d2r_taxonomy

    taxonomy = create_d2r_taxonomy()
    classifier = RuleClassifier(taxonomy)
"""

from core.editor_config import EditorConfig
from core.taxonomy import Taxonomy, normalize_item_key

__all__ = [
    "EditorConfig",
    "Taxonomy",
    "normalize_item_key",
]
