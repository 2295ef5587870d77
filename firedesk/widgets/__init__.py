"""Widget library for the Textual UI."""

from __future__ import annotations

from .add_project import AddProjectScreen
from .project_sidebar import ProjectSidebar
from .query_pad import QueryPad
from .status_bar import StatusBar

__all__ = ["AddProjectScreen", "ProjectSidebar", "QueryPad", "StatusBar"]
