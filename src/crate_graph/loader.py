"""
清单加载器

定位 Cargo.toml，并调用 cargo metadata 得到已解析的依赖图。
"""

import json
import logging
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from .config import load_manifest
from .errors import ManifestNotFound, ManifestParseError, ResolverError, ResolverUnavailable
from .graph import DependencyGraph
from .metadata import CargoMetadataParser

logger = logging.getLogger(__name__)

MANIFEST_NAME = "Cargo.toml"


class Resolver(ABC):
    """依赖解析器接口：resolve(manifest) -> DependencyGraph"""

    name = "resolver"

    @abstractmethod
    def resolve(self, manifest_path: Path) -> DependencyGraph:
        """解析清单，返回完整依赖图"""


class CargoMetadataResolver(Resolver):
    """使用 `cargo metadata` 解析依赖"""

    name = "cargo"

    def __init__(
        self,
        cargo: str = "cargo",
        dev_deps: bool = False,
        build_deps: bool = True,
        offline: bool = False,
        all_features: bool = False,
    ):
        self.cargo = cargo
        self.offline = offline
        self.all_features = all_features
        self.parser = CargoMetadataParser(dev_deps=dev_deps, build_deps=build_deps)

    def is_available(self) -> bool:
        """检查 cargo 是否已安装"""
        return shutil.which(self.cargo) is not None

    def command(self, manifest_path: Path) -> list[str]:
        """构造 cargo metadata 命令行"""
        cmd = [
            self.cargo,
            "metadata",
            "--format-version",
            "1",
            "--manifest-path",
            str(manifest_path),
        ]
        if self.offline:
            cmd.append("--offline")
        if self.all_features:
            cmd.append("--all-features")
        return cmd

    def resolve(self, manifest_path: Path) -> DependencyGraph:
        """
        运行 cargo metadata 并解析其输出

        Args:
            manifest_path: Cargo.toml 路径

        Returns:
            依赖图

        Raises:
            ResolverUnavailable: cargo 未安装
            ResolverError: cargo 执行失败或输出不是 JSON
            ManifestParseError: cargo 无法解析清单
        """
        if not self.is_available():
            raise ResolverUnavailable(f"'{self.cargo}' was not found on PATH")

        cmd = self.command(manifest_path)
        logger.debug("Running %s", " ".join(cmd))

        try:
            process = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            raise ResolverUnavailable(f"Failed to run '{self.cargo}': {e}") from e

        if process.returncode != 0:
            stderr = process.stderr.strip()
            if "failed to parse manifest" in stderr:
                raise ManifestParseError(stderr)
            raise ResolverError(
                f"'{' '.join(cmd[:2])}' exited with status {process.returncode}: {stderr}"
            )

        try:
            data = json.loads(process.stdout)
        except json.JSONDecodeError as e:
            raise ResolverError(f"cargo metadata produced invalid JSON: {e}") from e

        return DependencyGraph.from_metadata(self.parser.parse(data))


class ManifestLoader:
    """清单加载器"""

    def __init__(self, resolver: Resolver | None = None):
        """
        初始化加载器

        Args:
            resolver: 依赖解析器，默认为 CargoMetadataResolver
        """
        self.resolver = resolver or CargoMetadataResolver()

    @staticmethod
    def locate(project: str | Path) -> Path:
        """
        定位清单文件

        Args:
            project: 项目目录或 Cargo.toml 路径

        Returns:
            Cargo.toml 的绝对路径
        """
        path = Path(project)
        if path.is_dir():
            path = path / MANIFEST_NAME

        if not path.is_file():
            raise ManifestNotFound(f"No {MANIFEST_NAME} found at {path}")

        return path.resolve()

    @classmethod
    def read(cls, project: str | Path) -> tuple[Path, dict]:
        """定位并解析清单，返回 (路径, 内容)"""
        manifest_path = cls.locate(project)
        manifest = load_manifest(manifest_path)

        if "package" not in manifest and "workspace" not in manifest:
            raise ManifestParseError(
                f"{manifest_path} has neither a [package] nor a [workspace] table"
            )

        return manifest_path, manifest

    def load(self, project: str | Path) -> DependencyGraph:
        """
        加载项目的依赖图

        Args:
            project: 项目目录或 Cargo.toml 路径

        Returns:
            完整依赖图
        """
        manifest_path, _ = self.read(project)
        graph = self.resolver.resolve(manifest_path)

        logger.info(
            "Resolved %d packages and %d edges from %s",
            len(graph),
            len(graph.edges),
            manifest_path,
        )

        if not graph.get_statistics()["is_dag"]:
            logger.warning("Dependency graph contains cycles")

        return graph
