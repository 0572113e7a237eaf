"""
渲染流水线

加载依赖图 → 重置输出目录 → 分别渲染过滤后的图和完整的图。
"""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from .config import Settings
from .errors import OutputDirError, RenderError
from .graph import DependencyGraph, FilterSpec
from .loader import CargoMetadataResolver, ManifestLoader, Resolver
from .renderer import LayoutEngine, RenderConfig, Renderer

logger = logging.getLogger(__name__)

FILTERED_NAME = "filtered_dependencies"
FULL_NAME = "all_dependencies"


@dataclass
class RenderPass:
    """单次渲染结果"""

    name: str
    output_path: Path
    packages: int = 0
    edges: int = 0
    error: RenderError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunResult:
    """一次运行的结果"""

    graph: DependencyGraph
    filtered: DependencyGraph
    output_dir: Path
    passes: list[RenderPass] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(p.ok for p in self.passes)

    @property
    def errors(self) -> list[RenderError]:
        return [p.error for p in self.passes if p.error is not None]


def reset_output_dir(output_dir: Path):
    """删除并重新创建输出目录"""
    try:
        if output_dir.exists():
            shutil.rmtree(output_dir)
        output_dir.mkdir(parents=True)
    except OSError as e:
        raise OutputDirError(f"Cannot reset output directory {output_dir}: {e}") from e


def make_resolver(settings: Settings) -> Resolver:
    """根据配置创建 cargo metadata 解析器"""
    return CargoMetadataResolver(
        dev_deps=settings.dev_deps,
        build_deps=settings.build_deps,
        offline=settings.offline,
        all_features=settings.all_features,
    )


def run(
    project: str | Path,
    settings: Settings,
    resolver: Resolver | None = None,
    engine: LayoutEngine | None = None,
) -> RunResult:
    """
    执行完整流水线

    加载失败和输出目录重置失败会直接抛出；单次渲染失败只记录在结果中，
    另一次渲染仍会进行。

    Args:
        project: 项目目录或 Cargo.toml 路径
        settings: 运行配置
        resolver: 依赖解析器，默认使用 cargo metadata
        engine: 布局引擎，默认使用 Graphviz

    Returns:
        运行结果
    """
    loader = ManifestLoader(resolver or make_resolver(settings))
    graph = loader.load(project)

    spec = FilterSpec(
        include=settings.include,
        include_orphans=settings.include_orphans,
        exclude=settings.exclude,
    )
    filtered = graph.filter(spec)

    # 相对路径以清单所在目录为基准
    output_dir = Path(settings.output_dir)
    if not output_dir.is_absolute():
        output_dir = ManifestLoader.locate(project).parent / output_dir
    reset_output_dir(output_dir)

    renderer = Renderer(engine)
    result = RunResult(graph=graph, filtered=filtered, output_dir=output_dir)

    project_name = ", ".join(graph.roots)
    passes = (
        (FILTERED_NAME, filtered, "filtered dependencies"),
        (FULL_NAME, graph, "all dependencies"),
    )

    for name, target, label in passes:
        config = RenderConfig(
            output_path=output_dir / f"{name}.{settings.format}",
            format=settings.format,
            font=settings.font,
            engine=settings.engine,
            title=f"{project_name}: {label}" if project_name else label,
        )
        render_pass = RenderPass(
            name=name,
            output_path=config.output_path,
            packages=len(target),
            edges=len(target.edges),
        )

        try:
            renderer.render(target, config)
        except RenderError as e:
            logger.error("Rendering %s failed: %s", name, e)
            render_pass.error = e

        result.passes.append(render_pass)

    return result
