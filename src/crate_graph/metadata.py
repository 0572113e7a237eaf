"""
cargo metadata 输出解析器

将 `cargo metadata --format-version 1` 的 JSON 输出转换为软件包和依赖边。
"""

from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import InvalidGraphError


class DependencyKind(Enum):
    """依赖类型"""

    NORMAL = "normal"  # 普通依赖
    BUILD = "build"  # 构建脚本依赖
    DEV = "dev"  # 开发/测试依赖


class SourceKind(Enum):
    """软件包来源"""

    ROOT = "root"  # 工作区成员
    PATH = "path"  # 本地路径
    GIT = "git"  # git 仓库
    REGISTRY = "registry"  # crates.io 等注册表


@dataclass(frozen=True)
class Package:
    """软件包信息"""

    name: str
    version: str = ""
    source: str | None = None
    manifest_path: str = ""
    is_root: bool = False
    # 图中的节点标识，默认与 name 相同
    id: str = ""

    def __post_init__(self):
        if not self.id:
            object.__setattr__(self, "id", self.name)

    @property
    def source_kind(self) -> SourceKind:
        """来源类型"""
        if self.is_root:
            return SourceKind.ROOT
        if self.source is None:
            return SourceKind.PATH
        if self.source.startswith("git+"):
            return SourceKind.GIT
        return SourceKind.REGISTRY

    def to_dict(self) -> dict[str, Any]:
        """转换为字典"""
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "source": self.source,
            "source_kind": self.source_kind.value,
            "manifest_path": self.manifest_path,
            "is_root": self.is_root,
        }


@dataclass(frozen=True)
class DependencyEdge:
    """依赖边：dependent 依赖 dependency"""

    dependent: str
    dependency: str
    kinds: frozenset[DependencyKind] = frozenset({DependencyKind.NORMAL})

    def __post_init__(self):
        if self.dependent == self.dependency:
            raise InvalidGraphError(f"Package '{self.dependent}' depends on itself")

    @property
    def primary_kind(self) -> DependencyKind:
        """用于绘图的主要类型（normal > build > dev）"""
        for kind in (DependencyKind.NORMAL, DependencyKind.BUILD, DependencyKind.DEV):
            if kind in self.kinds:
                return kind
        return DependencyKind.NORMAL


@dataclass
class ParsedMetadata:
    """解析结果"""

    packages: dict[str, Package]
    edges: list[DependencyEdge] = field(default_factory=list)
    roots: list[str] = field(default_factory=list)
    workspace_root: str = ""


class CargoMetadataParser:
    """cargo metadata 解析器"""

    def __init__(self, dev_deps: bool = False, build_deps: bool = True):
        """
        初始化解析器

        Args:
            dev_deps: 是否保留 dev-dependencies
            build_deps: 是否保留 build-dependencies
        """
        self.dev_deps = dev_deps
        self.build_deps = build_deps

    def parse(self, data: dict) -> ParsedMetadata:
        """
        解析 cargo metadata 输出

        只保留从工作区成员出发可达的软件包。

        Args:
            data: `cargo metadata` 的 JSON 对象

        Returns:
            解析结果
        """
        resolve = data.get("resolve")
        if not resolve:
            raise InvalidGraphError("cargo metadata output has no resolve graph")

        raw_packages = {pkg["id"]: pkg for pkg in data.get("packages", [])}
        members = {m for m in data.get("workspace_members", []) if m in raw_packages}

        # 收集依赖边（以 cargo 的 package id 表示）
        adjacency: dict[str, dict[str, set[DependencyKind]]] = {}
        for node in resolve.get("nodes", []):
            node_id = node["id"]
            if node_id not in raw_packages:
                raise InvalidGraphError(f"Resolve node '{node_id}' has no package entry")

            targets = adjacency.setdefault(node_id, {})
            for dep in node.get("deps", []):
                dep_id = dep["pkg"]
                if dep_id not in raw_packages:
                    raise InvalidGraphError(
                        f"Package '{raw_packages[node_id]['name']}' depends on unknown id '{dep_id}'"
                    )
                if dep_id == node_id:
                    raise InvalidGraphError(
                        f"Package '{raw_packages[node_id]['name']}' depends on itself"
                    )

                kinds = self._edge_kinds(dep)
                if kinds:
                    targets.setdefault(dep_id, set()).update(kinds)

        reachable = self._reachable(members, adjacency)

        # 同名多版本时使用 "name vX.Y.Z" 作为节点标识
        name_counts = Counter(raw_packages[pkg_id]["name"] for pkg_id in reachable)
        keys: dict[str, str] = {}
        packages: dict[str, Package] = {}

        for pkg_id in sorted(reachable):
            raw = raw_packages[pkg_id]
            name = raw["name"]
            version = raw.get("version", "")
            key = name if name_counts[name] == 1 else f"{name} v{version}"
            keys[pkg_id] = key
            packages[key] = Package(
                name=name,
                version=version,
                source=raw.get("source"),
                manifest_path=raw.get("manifest_path", ""),
                is_root=pkg_id in members,
                id=key,
            )

        edges = []
        for node_id in sorted(reachable):
            for dep_id, kinds in sorted(adjacency.get(node_id, {}).items()):
                edges.append(DependencyEdge(keys[node_id], keys[dep_id], frozenset(kinds)))

        return ParsedMetadata(
            packages=packages,
            edges=edges,
            roots=sorted(keys[m] for m in members if m in keys),
            workspace_root=data.get("workspace_root", ""),
        )

    def _edge_kinds(self, dep: dict) -> set[DependencyKind]:
        """获取一条依赖的类型集合（已按配置过滤）"""
        # 旧版本 cargo 没有 dep_kinds 字段
        dep_kinds = dep.get("dep_kinds") or [{"kind": None}]

        kinds = set()
        for entry in dep_kinds:
            kind = DependencyKind(entry.get("kind") or "normal")
            if kind == DependencyKind.DEV and not self.dev_deps:
                continue
            if kind == DependencyKind.BUILD and not self.build_deps:
                continue
            kinds.add(kind)
        return kinds

    @staticmethod
    def _reachable(roots: set[str], adjacency: dict[str, dict[str, set]]) -> set[str]:
        """从工作区成员出发的可达集合"""
        visited = set()
        queue = deque(roots)

        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)

            for dep in adjacency.get(current, {}):
                if dep not in visited:
                    queue.append(dep)

        return visited
