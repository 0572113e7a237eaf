#!/usr/bin/env python3
"""
示例脚本：不经过命令行，直接使用 API 生成依赖图

使用方法:
    python examples/render_project.py /path/to/cargo/project [package ...]
"""

import os
import sys

# 添加 src 目录到路径
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from crate_graph import FilterSpec, ManifestLoader, RenderConfig, Renderer


def main():
    if len(sys.argv) < 2:
        print("Usage: python render_project.py <project_path> [package ...]")
        print("\nExamples:")
        print("  python render_project.py ~/src/ripgrep")
        print("  python render_project.py ~/src/ripgrep regex grep-searcher")
        sys.exit(1)

    project = sys.argv[1]
    include = sys.argv[2:]

    print(f"🔍 Resolving {project} ...")
    graph = ManifestLoader().load(project)

    stats = graph.get_statistics()
    print(f"  Packages: {stats['nodes']}")
    print(f"  Edges: {stats['edges']}")
    for kind, count in stats["by_source"].items():
        print(f"    - {kind}: {count}")
    print()

    renderer = Renderer()

    if include:
        filtered = graph.filter(FilterSpec(include=include, include_orphans=True))
        path = renderer.render(filtered, RenderConfig(output_path="filtered_dependencies.svg", format="svg"))
        print(f"✅ {path} ({len(filtered)} packages, {len(filtered.orphans)} orphans)")

    path = renderer.render(graph, RenderConfig(output_path="all_dependencies.svg", format="svg"))
    print(f"✅ {path}")


if __name__ == "__main__":
    main()
