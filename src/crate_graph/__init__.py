"""
Cargo 依赖关系图生成工具

解析 Cargo 项目的依赖关系，按包名过滤，并用 Graphviz 渲染成图片。
"""

from .graph import DependencyGraph, FilterSpec
from .loader import CargoMetadataResolver, ManifestLoader
from .metadata import CargoMetadataParser, DependencyEdge, Package
from .renderer import GraphvizEngine, RenderConfig, Renderer

__version__ = "0.1.0"
__all__ = [
    "CargoMetadataParser",
    "CargoMetadataResolver",
    "DependencyEdge",
    "DependencyGraph",
    "FilterSpec",
    "GraphvizEngine",
    "ManifestLoader",
    "Package",
    "RenderConfig",
    "Renderer",
]
