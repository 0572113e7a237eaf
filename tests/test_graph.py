"""
测试依赖图
"""

import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from crate_graph.errors import InvalidGraphError
from crate_graph.graph import DependencyGraph, FilterSpec
from crate_graph.metadata import DependencyEdge, DependencyKind, Package
from fakes import make_graph


class TestDependencyGraph:
    """测试依赖图"""

    def setup_method(self):
        """创建测试数据"""
        self.graph = make_graph(
            {
                "app": ["libfoo", "libbar", "cmake"],
                "libfoo": ["libc"],
                "libbar": ["libc", "libfoo"],
                "cmake": ["libc"],
            },
            roots=["app"],
        )

    def test_direct_dependencies(self):
        """测试直接依赖"""
        assert self.graph.get_dependencies("app") == ["cmake", "libbar", "libfoo"]

    def test_recursive_dependencies(self):
        """测试递归依赖"""
        deps = self.graph.get_dependencies("app", recursive=True)

        assert "libc" in deps
        assert "app" not in deps

    def test_unknown_package(self):
        assert self.graph.get_dependencies("nope") == []

    def test_self_edge_rejected(self):
        """测试自环"""
        with pytest.raises(InvalidGraphError):
            DependencyEdge("libc", "libc")

    def test_dangling_edge_rejected(self):
        """测试边的端点必须存在"""
        with pytest.raises(InvalidGraphError):
            self.graph.add_edge(DependencyEdge("libc", "missing"))

    def test_duplicate_package_rejected(self):
        with pytest.raises(InvalidGraphError):
            self.graph.add_package(Package(name="libc"))

    def test_edge_kinds_merged(self):
        """测试同一条边的依赖类型合并"""
        self.graph.add_edge(
            DependencyEdge("app", "cmake", frozenset({DependencyKind.BUILD}))
        )
        (edge,) = [e for e in self.graph.edges if (e.dependent, e.dependency) == ("app", "cmake")]

        assert edge.kinds == {DependencyKind.NORMAL, DependencyKind.BUILD}
        assert edge.primary_kind == DependencyKind.NORMAL

    def test_roots(self):
        assert self.graph.roots == ["app"]

    def test_statistics(self):
        """测试统计信息"""
        stats = self.graph.get_statistics()

        assert stats["nodes"] == 5
        assert stats["edges"] == 7
        assert stats["is_dag"] is True
        assert stats["by_source"]["root"] == 1
        assert stats["by_source"]["path"] == 4

    def test_to_dict(self):
        data = self.graph.to_dict()

        assert data["roots"] == ["app"]
        assert [n["id"] for n in data["nodes"]] == ["app", "cmake", "libbar", "libc", "libfoo"]
        assert {"source": "app", "target": "cmake", "kinds": ["normal"]} in data["edges"]


class TestFilter:
    """测试过滤"""

    def setup_method(self):
        self.chain = make_graph({"A": ["B"], "B": ["C"], "C": ["D"]})

    def test_filter_by_everything_is_noop(self):
        """include 为全部包名时结果与原图相同"""
        spec = FilterSpec(include=self.chain.packages.keys())

        assert self.chain.filter(spec) == self.chain

    def test_filter_none_returns_copy(self):
        filtered = self.chain.filter(None)

        assert filtered == self.chain
        assert filtered is not self.chain

    def test_empty_include(self):
        """空 include 得到空图"""
        filtered = self.chain.filter(FilterSpec())

        assert len(filtered) == 0
        assert filtered.edges == []

    def test_empty_include_with_orphans(self):
        filtered = self.chain.filter(FilterSpec(include_orphans=True))

        assert len(filtered) == 0

    def test_chain(self):
        """A→B→C→D，include {B} 得到 {B, C, D}"""
        for orphans in (False, True):
            filtered = self.chain.filter(FilterSpec(include={"B"}, include_orphans=orphans))

            assert set(filtered.packages) == {"B", "C", "D"}
            assert {(e.dependent, e.dependency) for e in filtered.edges} == {
                ("B", "C"),
                ("C", "D"),
            }
            assert filtered.orphans == set()

    def test_branch(self):
        """A→B, A→C，include {A} 保留 B 和 C"""
        graph = make_graph({"A": ["B", "C"]})

        for orphans in (False, True):
            filtered = graph.filter(FilterSpec(include={"A"}, include_orphans=orphans))
            assert set(filtered.packages) == {"A", "B", "C"}

    def test_orphan_flag_decides_dependency_of_excluded(self):
        """C 被排除时，只能经由 C 到达的 D 由 include_orphans 决定"""
        graph = make_graph({"A": ["B", "C"], "C": ["D"]})

        without = graph.filter(FilterSpec(include={"A"}, exclude={"C"}))
        with_orphans = graph.filter(
            FilterSpec(include={"A"}, exclude={"C"}, include_orphans=True)
        )

        assert set(without.packages) == {"A", "B"}
        assert set(with_orphans.packages) == {"A", "B", "D"}
        assert with_orphans.orphans == {"D"}
        assert with_orphans.is_orphan("D")
        assert not with_orphans.is_orphan("B")

    def test_orphan_with_several_excluded_ancestors(self):
        graph = make_graph({"A": ["X", "Y"], "X": ["Z"], "Y": ["Z"], "Z": ["W"]})

        filtered = graph.filter(
            FilterSpec(include={"A"}, exclude={"X", "Y"}, include_orphans=True)
        )

        assert set(filtered.packages) == {"A", "Z", "W"}
        assert filtered.orphans == {"Z"}
        assert {(e.dependent, e.dependency) for e in filtered.edges} == {("Z", "W")}

    def test_dependency_kept_when_also_reachable_directly(self):
        """D 同时可以不经过被排除的包到达时不算孤儿"""
        graph = make_graph({"A": ["C", "D"], "C": ["D"]})

        filtered = graph.filter(FilterSpec(include={"A"}, exclude={"C"}))

        assert set(filtered.packages) == {"A", "D"}
        assert filtered.orphans == set()

    def test_excluded_include_name(self):
        """同时在 include 和 exclude 中的包不保留"""
        filtered = self.chain.filter(FilterSpec(include={"B"}, exclude={"B"}))

        assert len(filtered) == 0

        # 没有保留节点依赖 C、D，开启孤儿也不保留
        filtered = self.chain.filter(
            FilterSpec(include={"B"}, exclude={"B"}, include_orphans=True)
        )

        assert len(filtered) == 0
        assert filtered.orphans == set()

    def test_excluded_include_name_among_others(self):
        """其他起点经过被排除的包时仍保留孤儿"""
        filtered = self.chain.filter(
            FilterSpec(include={"A", "B"}, exclude={"B"}, include_orphans=True)
        )

        assert set(filtered.packages) == {"A", "C", "D"}
        assert filtered.orphans == {"C"}

    def test_orphans_are_monotonic(self):
        """开启 include_orphans 不会减少节点"""
        graph = make_graph(
            {"A": ["B", "C"], "B": ["D"], "C": ["E"], "E": ["F"], "G": ["C"]}
        )
        specs = [
            ({"A"}, set()),
            ({"A"}, {"C"}),
            ({"A", "G"}, {"B", "C"}),
            ({"G"}, {"C", "E"}),
            (set(), {"A"}),
            ({"A", "C"}, {"A"}),
        ]

        for include, exclude in specs:
            off = graph.filter(FilterSpec(include=include, exclude=exclude))
            on = graph.filter(FilterSpec(include=include, exclude=exclude, include_orphans=True))
            assert set(off.packages) <= set(on.packages)

    def test_unknown_include_name_warns(self, caplog):
        """不存在的包名不是错误，只记录警告"""
        with caplog.at_level(logging.WARNING, logger="crate_graph.graph"):
            filtered = self.chain.filter(FilterSpec(include={"nope"}))

        assert len(filtered) == 0
        assert "nope" in caplog.text
        assert "empty" in caplog.text

    def test_cycle_terminates(self):
        """遍历能处理循环依赖"""
        graph = make_graph({"A": ["B"], "B": ["C"], "C": ["A"], "D": ["A"]})

        filtered = graph.filter(FilterSpec(include={"A"}))

        assert set(filtered.packages) == {"A", "B", "C"}
        assert filtered.get_statistics()["is_dag"] is False

    def test_match_by_name_for_multiple_versions(self):
        """同名多版本的包都按包名匹配"""
        packages = {
            "app": Package(name="app", is_root=True),
            "rand v0.7.3": Package(name="rand", version="0.7.3", id="rand v0.7.3"),
            "rand v0.8.5": Package(name="rand", version="0.8.5", id="rand v0.8.5"),
        }
        edges = [
            DependencyEdge("app", "rand v0.7.3"),
            DependencyEdge("app", "rand v0.8.5"),
        ]
        graph = DependencyGraph(packages, edges, ["app"])

        by_name = graph.filter(FilterSpec(include={"rand"}))
        by_id = graph.filter(FilterSpec(include={"rand v0.8.5"}))

        assert set(by_name.packages) == {"rand v0.7.3", "rand v0.8.5"}
        assert set(by_id.packages) == {"rand v0.8.5"}

    def test_roots_kept_only_when_retained(self):
        graph = make_graph({"app": ["serde"]}, roots=["app"])

        assert graph.filter(FilterSpec(include={"serde"})).roots == []
        assert graph.filter(FilterSpec(include={"app"})).roots == ["app"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
