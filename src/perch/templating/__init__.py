"""View rendering — a narrow protocol with a kida-backed default."""

from perch.templating.integration import KidaRenderer, ViewNotFound, ViewRenderer
from perch.templating.returns import View

__all__ = ["KidaRenderer", "View", "ViewNotFound", "ViewRenderer"]
