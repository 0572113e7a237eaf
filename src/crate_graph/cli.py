"""
命令行入口

提供 crate-graph 命令行工具。
"""

import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import settings_from_manifest
from .errors import CrateGraphError, RenderError
from .loader import ManifestLoader
from .pipeline import run

console = Console()


def configure_logging(verbose: bool = False):
    """配置日志输出（stderr，rich 格式）"""
    handler = RichHandler(console=Console(stderr=True), show_time=False, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("crate_graph")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@click.command(context_settings={"auto_envvar_prefix": "CRATE_GRAPH"})
@click.version_option(version=__version__)
@click.argument("project", default=".", type=click.Path())
@click.option("--include", "-i", multiple=True, help="要保留的包（可重复）")
@click.option("--exclude", "-x", multiple=True, help="从过滤图中排除的包（可重复）")
@click.option(
    "--include-orphans/--no-include-orphans",
    default=None,
    help="保留只能经由被排除的包到达的依赖",
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, resolve_path=True),
    help="输出目录（每次运行前清空，默认: 项目的 target/dependency-graphs）",
)
@click.option("--font", help="节点和边使用的字体")
@click.option("--format", "-f", "fmt", help="图片格式 (默认: png)")
@click.option("--engine", help="Graphviz 布局程序 (默认: dot)")
@click.option("--dev-deps/--no-dev-deps", default=None, help="包含 dev-dependencies")
@click.option("--build-deps/--no-build-deps", default=None, help="包含 build-dependencies")
@click.option("--offline/--no-offline", default=None, help="以 --offline 运行 cargo metadata")
@click.option("--all-features/--no-all-features", default=None, help="启用所有 feature")
@click.option("--verbose", "-v", is_flag=True, help="输出调试日志")
def main(
    project: str,
    include: tuple,
    exclude: tuple,
    include_orphans: bool | None,
    output_dir: str | None,
    font: str | None,
    fmt: str | None,
    engine: str | None,
    dev_deps: bool | None,
    build_deps: bool | None,
    offline: bool | None,
    all_features: bool | None,
    verbose: bool,
):
    """为 Cargo 项目生成依赖关系图

    输出两张图：只包含 --include 指定的包及其依赖的过滤图，以及完整依赖图。

    \b
    示例：
    crate-graph                                  # 当前目录
    crate-graph ../app -i serde -i tokio         # 只看 serde 和 tokio
    crate-graph -i app -x log --include-orphans  # 排除 log 但保留它的依赖
    """
    configure_logging(verbose)

    try:
        _, manifest = ManifestLoader.read(project)
        settings = settings_from_manifest(manifest).merge(
            include=list(include) or None,
            exclude=list(exclude) or None,
            include_orphans=include_orphans,
            output_dir=output_dir,
            font=font,
            format=fmt,
            engine=engine,
            dev_deps=dev_deps,
            build_deps=build_deps,
            offline=offline,
            all_features=all_features,
        )

        with console.status("Generating dependency graphs..."):
            result = run(project, settings)
    except CrateGraphError as e:
        console.print(f"[red]Error:[/red] ({e.stage}) {escape(str(e))}", soft_wrap=True)
        sys.exit(e.exit_code)

    table = Table(title="Dependency Graphs", show_header=True, header_style="bold magenta")
    table.add_column("Graph", style="cyan")
    table.add_column("Packages", justify="right")
    table.add_column("Edges", justify="right")
    table.add_column("Output")

    for render_pass in result.passes:
        output = str(render_pass.output_path) if render_pass.ok else "[red]failed[/red]"
        table.add_row(render_pass.name, str(render_pass.packages), str(render_pass.edges), output)

    console.print(table)

    if result.filtered.orphans:
        console.print(f"[yellow]Orphans kept:[/yellow] {', '.join(sorted(result.filtered.orphans))}")

    if not result.ok:
        for error in result.errors:
            console.print(f"[red]Error:[/red] ({error.stage}) {escape(str(error))}", soft_wrap=True)
        sys.exit(RenderError.exit_code)

    console.print(f"[green]✓[/green] Generated graphs in {result.output_dir}")


if __name__ == "__main__":
    main()
