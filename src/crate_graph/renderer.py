"""
依赖图渲染模块

将依赖图序列化为 Graphviz DOT 文本，并调用布局引擎生成图片。
节点按来源着色，边按依赖类型使用不同线条样式。
"""

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from .config import DEFAULT_ENGINE, DEFAULT_FONT, DEFAULT_FORMAT
from .errors import LayoutEngineError, LayoutEngineUnavailable, WriteError
from .graph import DependencyGraph
from .metadata import DependencyKind, Package, SourceKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderConfig:
    """渲染配置"""

    output_path: Path
    format: str = DEFAULT_FORMAT
    font: str = DEFAULT_FONT
    engine: str = DEFAULT_ENGINE
    title: str = ""


# 节点颜色配置（按来源）
SOURCE_COLORS = {
    SourceKind.ROOT: "#4CAF50",  # 绿色
    SourceKind.PATH: "#2196F3",  # 蓝色
    SourceKind.GIT: "#FF9800",  # 橙色
    SourceKind.REGISTRY: "#E0E0E0",  # 浅灰
}

# 孤儿节点
ORPHAN_COLOR = "#FFEB3B"

# 边样式配置（按依赖类型）
EDGE_STYLES = {
    DependencyKind.NORMAL: {"color": "#424242", "style": "solid"},
    DependencyKind.BUILD: {"color": "#2196F3", "style": "dashed"},
    DependencyKind.DEV: {"color": "#FF9800", "style": "dotted"},
}


def quote(value: str) -> str:
    """DOT 双引号字符串"""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def _attrs(**attrs) -> str:
    return ", ".join(f"{key}={quote(str(value))}" for key, value in attrs.items())


def _node_label(pkg: Package) -> str:
    if pkg.version:
        return f"{pkg.name}\n{pkg.version}"
    return pkg.name


def to_dot(graph: DependencyGraph, config: RenderConfig) -> str:
    """
    序列化为 DOT 文本

    节点和边按标识排序输出，同一个图总是得到相同的文本。

    Args:
        graph: 依赖图
        config: 渲染配置（使用其中的字体和标题）

    Returns:
        DOT 描述
    """
    graph_attrs = {"fontname": config.font, "rankdir": "LR"}
    if config.title:
        graph_attrs.update(label=config.title, labelloc="t")

    lines = [
        "digraph dependencies {",
        f"    graph [{_attrs(**graph_attrs)}];",
        f"    node [{_attrs(fontname=config.font, shape='box', style='rounded,filled')}];",
        f"    edge [{_attrs(fontname=config.font)}];",
    ]

    packages = graph.packages
    for node in sorted(packages):
        pkg = packages[node]
        if graph.is_orphan(node):
            color = ORPHAN_COLOR
        else:
            color = SOURCE_COLORS[pkg.source_kind]
        lines.append(f"    {quote(node)} [{_attrs(label=_node_label(pkg), fillcolor=color)}];")

    for edge in graph.edges:
        style = EDGE_STYLES[edge.primary_kind]
        lines.append(
            f"    {quote(edge.dependent)} -> {quote(edge.dependency)} [{_attrs(**style)}];"
        )

    lines.append("}")
    return "\n".join(lines) + "\n"


class LayoutEngine(ABC):
    """布局引擎接口：render(description, fmt) -> bytes"""

    name = "layout-engine"

    @abstractmethod
    def render(self, description: str, fmt: str) -> bytes:
        """把 DOT 描述渲染为指定格式的图片"""


class GraphvizEngine(LayoutEngine):
    """调用 Graphviz 命令行（dot、neato 等）"""

    def __init__(self, program: str = DEFAULT_ENGINE):
        self.program = program
        self.name = program

    def is_available(self) -> bool:
        """检查 Graphviz 是否已安装"""
        return shutil.which(self.program) is not None

    def render(self, description: str, fmt: str) -> bytes:
        """
        渲染 DOT 描述

        Args:
            description: DOT 文本
            fmt: 输出格式（png、svg、pdf ...）

        Returns:
            图片内容
        """
        if not self.is_available():
            raise LayoutEngineUnavailable(f"'{self.program}' was not found on PATH")

        cmd = [self.program, f"-T{fmt}"]
        logger.debug("Running %s", " ".join(cmd))

        try:
            process = subprocess.run(
                cmd, input=description.encode("utf-8"), capture_output=True, check=False
            )
        except OSError as e:
            raise LayoutEngineUnavailable(f"Failed to run '{self.program}': {e}") from e

        if process.returncode != 0:
            stderr = process.stderr.decode("utf-8", errors="replace").strip()
            raise LayoutEngineError(
                f"'{self.program}' exited with status {process.returncode}: {stderr}"
            )

        return process.stdout


class Renderer:
    """依赖图渲染器"""

    def __init__(self, engine: LayoutEngine | None = None):
        """
        初始化渲染器

        Args:
            engine: 布局引擎，默认按 RenderConfig.engine 创建 GraphvizEngine
        """
        self.engine = engine

    def render(self, graph: DependencyGraph, config: RenderConfig) -> Path:
        """
        渲染依赖图并写入文件

        Args:
            graph: 依赖图
            config: 渲染配置

        Returns:
            输出文件路径
        """
        output_path = Path(config.output_path)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteError(f"Cannot create {output_path.parent}: {e}") from e

        description = to_dot(graph, config)
        engine = self.engine or GraphvizEngine(config.engine)
        image = engine.render(description, config.format)

        try:
            output_path.write_bytes(image)
        except OSError as e:
            raise WriteError(f"Cannot write {output_path}: {e}") from e

        logger.info("Wrote %s (%d packages, %d edges)", output_path, len(graph), len(graph.edges))
        return output_path
