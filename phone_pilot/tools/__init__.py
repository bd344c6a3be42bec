from phone_pilot.tools.catalog import (
    Tool,
    ToolCatalog,
    ToolParam,
    build_catalog,
    build_chat_catalog,
)

__all__ = ["Tool", "ToolCatalog", "ToolParam", "build_catalog", "build_chat_catalog"]
