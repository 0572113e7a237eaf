"""
错误类型

按流水线阶段划分的异常层级，每一类带有独立的退出码。
"""


class CrateGraphError(Exception):
    """所有错误的基类"""

    exit_code = 1
    stage = "run"


class OutputDirError(CrateGraphError):
    """输出目录无法重置"""

    exit_code = 6
    stage = "setup"


class ManifestError(CrateGraphError):
    """清单文件错误"""

    exit_code = 3
    stage = "manifest"


class ManifestNotFound(ManifestError):
    """找不到 Cargo.toml"""


class ManifestParseError(ManifestError):
    """Cargo.toml 无法解析"""


class InvalidGraphError(ManifestError):
    """解析结果不是合法的依赖图（自环或悬空边）"""


class ResolverUnavailable(CrateGraphError):
    """cargo 不在 PATH 中"""

    exit_code = 4
    stage = "resolve"


class ResolverError(ResolverUnavailable):
    """cargo metadata 执行失败或输出无效"""


class RenderError(CrateGraphError):
    """渲染错误的基类"""

    exit_code = 5
    stage = "render"


class LayoutEngineUnavailable(RenderError):
    """Graphviz 不在 PATH 中"""


class LayoutEngineError(RenderError):
    """Graphviz 返回非零退出码"""


class WriteError(RenderError):
    """无法写入输出文件"""
