"""
依赖关系图谱

使用 NetworkX 构建和过滤软件包依赖关系图。
"""

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass

import networkx as nx

from .errors import InvalidGraphError
from .metadata import DependencyEdge, Package, ParsedMetadata, SourceKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterSpec:
    """过滤条件"""

    include: frozenset[str] = frozenset()
    include_orphans: bool = False
    exclude: frozenset[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "include", frozenset(self.include))
        object.__setattr__(self, "exclude", frozenset(self.exclude))


class DependencyGraph:
    """依赖关系图"""

    def __init__(
        self,
        packages: dict[str, Package] | None = None,
        edges: Iterable[DependencyEdge] | None = None,
        roots: Iterable[str] | None = None,
    ):
        """
        初始化依赖图

        Args:
            packages: 节点标识 -> 软件包
            edges: 依赖边
            roots: 工作区成员的节点标识
        """
        self._graph: nx.DiGraph = nx.DiGraph()

        for pkg in (packages or {}).values():
            self.add_package(pkg)

        for edge in edges or []:
            self.add_edge(edge)

        self.roots: list[str] = sorted(r for r in (roots or []) if r in self._graph)

    @classmethod
    def from_metadata(cls, parsed: ParsedMetadata) -> "DependencyGraph":
        """从 cargo metadata 解析结果构建"""
        return cls(parsed.packages, parsed.edges, parsed.roots)

    def add_package(self, pkg: Package):
        """添加软件包"""
        if pkg.id in self._graph:
            raise InvalidGraphError(f"Duplicate package '{pkg.id}'")
        self._graph.add_node(pkg.id, package=pkg, orphan=False)

    def add_edge(self, edge: DependencyEdge):
        """添加依赖边，两端必须已经存在"""
        for endpoint in (edge.dependent, edge.dependency):
            if endpoint not in self._graph:
                raise InvalidGraphError(
                    f"Edge {edge.dependent} -> {edge.dependency} references unknown package '{endpoint}'"
                )

        if self._graph.has_edge(edge.dependent, edge.dependency):
            # 合并同一对节点上的依赖类型
            existing = self._graph.edges[edge.dependent, edge.dependency]["edge"]
            edge = DependencyEdge(edge.dependent, edge.dependency, existing.kinds | edge.kinds)

        self._graph.add_edge(edge.dependent, edge.dependency, edge=edge)

    @property
    def packages(self) -> dict[str, Package]:
        """所有软件包（按节点标识）"""
        return {node: data["package"] for node, data in self._graph.nodes(data=True)}

    @property
    def edges(self) -> list[DependencyEdge]:
        """所有依赖边（排序后）"""
        return sorted(
            (data["edge"] for _, _, data in self._graph.edges(data=True)),
            key=lambda e: (e.dependent, e.dependency),
        )

    @property
    def orphans(self) -> set[str]:
        """过滤后保留下来的孤儿节点"""
        return {node for node, data in self._graph.nodes(data=True) if data["orphan"]}

    def is_orphan(self, node: str) -> bool:
        return bool(self._graph.nodes[node]["orphan"])

    def __len__(self) -> int:
        return self._graph.number_of_nodes()

    def __contains__(self, node: str) -> bool:
        return node in self._graph

    def __eq__(self, other) -> bool:
        if not isinstance(other, DependencyGraph):
            return NotImplemented
        return self.packages == other.packages and set(self.edges) == set(other.edges)

    def copy(self) -> "DependencyGraph":
        """复制依赖图（包括孤儿标记）"""
        clone = DependencyGraph(self.packages, self.edges, self.roots)
        for node in self.orphans:
            clone._graph.nodes[node]["orphan"] = True
        return clone

    def get_dependencies(self, package: str, recursive: bool = False) -> list[str]:
        """
        获取软件包的依赖

        Args:
            package: 节点标识
            recursive: 是否递归获取所有依赖

        Returns:
            依赖列表
        """
        if package not in self._graph:
            return []

        if not recursive:
            return sorted(self._graph.successors(package))

        return sorted(nx.descendants(self._graph, package))

    def _matching(self, names: frozenset[str]) -> set[str]:
        """按包名（或节点标识）匹配节点"""
        return {
            node
            for node, data in self._graph.nodes(data=True)
            if node in names or data["package"].name in names
        }

    def filter(self, spec: FilterSpec | None = None) -> "DependencyGraph":
        """
        获取过滤后的子图

        从 include 中的每个包出发做广度优先遍历，沿依赖方向收集节点。
        exclude 中的包不会保留；开启 include_orphans 时遍历会穿过被排除的包，
        保留只能经由它们到达的依赖（孤儿节点）。

        Args:
            spec: 过滤条件，None 表示不过滤

        Returns:
            新的依赖图
        """
        if spec is None:
            return self.copy()

        matched = self._matching(spec.include)
        excluded = self._matching(spec.exclude)

        matched_names = {self._graph.nodes[node]["package"].name for node in matched} | matched
        for name in sorted(spec.include - matched_names):
            logger.warning("Included package '%s' is not in the dependency graph", name)

        # 被排除的起点不参与遍历，孤儿只能来自保留节点经过的被排除包
        starts = matched - excluded

        retained = set()
        visited = set()
        queue = deque(sorted(starts))

        while queue:
            current = queue.popleft()

            if current in visited:
                continue
            visited.add(current)

            if current in excluded:
                if not spec.include_orphans:
                    continue
            else:
                retained.add(current)

            for dep in sorted(self._graph.successors(current)):
                if dep not in visited:
                    queue.append(dep)

        edges = [
            edge
            for edge in self.edges
            if edge.dependent in retained and edge.dependency in retained
        ]
        result = DependencyGraph(
            {node: self._graph.nodes[node]["package"] for node in sorted(retained)},
            edges,
            self.roots,
        )

        # 没有被任何保留节点直接依赖、也不在 include 中的节点
        for node in retained - starts:
            if not any(pred in retained for pred in self._graph.predecessors(node)):
                result._graph.nodes[node]["orphan"] = True

        if not retained:
            logger.warning("Filtered dependency graph is empty")
        else:
            logger.debug(
                "Filtered graph keeps %d of %d packages (%d orphans)",
                len(retained),
                len(self),
                len(result.orphans),
            )

        return result

    def to_dict(self) -> dict:
        """导出为字典"""
        nodes = []
        for node in sorted(self._graph.nodes()):
            node_data = self._graph.nodes[node]["package"].to_dict()
            node_data["orphan"] = self.is_orphan(node)
            nodes.append(node_data)

        edges = [
            {
                "source": edge.dependent,
                "target": edge.dependency,
                "kinds": sorted(kind.value for kind in edge.kinds),
            }
            for edge in self.edges
        ]

        return {"roots": self.roots, "nodes": nodes, "edges": edges}

    def get_statistics(self) -> dict:
        """获取图统计信息"""
        by_source = {kind.value: 0 for kind in SourceKind}
        for pkg in self.packages.values():
            by_source[pkg.source_kind.value] += 1

        return {
            "nodes": self._graph.number_of_nodes(),
            "edges": self._graph.number_of_edges(),
            "roots": len(self.roots),
            "orphans": len(self.orphans),
            "is_dag": nx.is_directed_acyclic_graph(self._graph),
            "by_source": by_source,
        }
