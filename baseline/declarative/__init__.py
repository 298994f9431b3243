"""
Sistema declarativo: recetas YAML → recursos del core.
"""

from baseline.declarative.loader import RecipeLoader, load_recipe
from baseline.declarative.models import RecipeFile

__all__ = ["RecipeFile", "RecipeLoader", "load_recipe"]
