"""Document export module for downfolio."""
from downfolio.export.pandoc import (
    PANDOC_INSTALL_URL,
    PandocConverter,
    find_tex_toolchain,
)

__all__ = ["PandocConverter", "find_tex_toolchain", "PANDOC_INSTALL_URL"]
