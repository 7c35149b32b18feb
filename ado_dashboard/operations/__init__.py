"""Read-only endpoint groups of the Azure DevOps REST API."""

from .builds import BuildOperations
from .definitions import DefinitionOperations
from .git import GitOperations
from .library import LibraryOperations

__all__ = ["BuildOperations", "DefinitionOperations", "GitOperations", "LibraryOperations"]
