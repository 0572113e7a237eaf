"""
配置管理

默认值来自目标项目 Cargo.toml 中的元数据表：

    [package.metadata.crate-graph]
    include = ["serde", "tokio"]
    include-orphans = true

虚拟工作区使用 [workspace.metadata.crate-graph]。命令行参数优先级更高。
"""

import logging
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path

from .errors import ManifestError, ManifestParseError

logger = logging.getLogger(__name__)

METADATA_TABLE = "crate-graph"

DEFAULT_OUTPUT_DIR = Path("target") / "dependency-graphs"
DEFAULT_FONT = "DejaVu Sans"
DEFAULT_FORMAT = "png"
DEFAULT_ENGINE = "dot"


@dataclass
class Settings:
    """一次运行的全部配置"""

    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    include_orphans: bool = False
    output_dir: Path = DEFAULT_OUTPUT_DIR
    font: str = DEFAULT_FONT
    format: str = DEFAULT_FORMAT
    engine: str = DEFAULT_ENGINE
    dev_deps: bool = False
    build_deps: bool = True
    offline: bool = False
    all_features: bool = False

    def merge(self, **overrides) -> "Settings":
        """用非 None 的值覆盖当前配置，返回新对象"""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in overrides.items():
            if key not in values:
                raise TypeError(f"Unknown setting '{key}'")
            if value is not None:
                values[key] = value
        values["output_dir"] = Path(values["output_dir"])
        return Settings(**values)


def load_manifest(manifest_path: Path) -> dict:
    """读取并解析 Cargo.toml"""
    try:
        with open(manifest_path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise ManifestParseError(f"Failed to parse {manifest_path}: {e}") from e
    except OSError as e:
        raise ManifestError(f"Cannot read {manifest_path}: {e}") from e


def _expected_type(name: str) -> type:
    """配置项期望的 TOML 值类型"""
    default = getattr(Settings(), name)
    if isinstance(default, bool):
        return bool
    if isinstance(default, list):
        return list
    return str


def _metadata_table(manifest: dict, section: str) -> dict | None:
    """取出 [<section>.metadata.crate-graph]，类型不对时报错"""
    table = manifest.get(section, {})
    for key in ("metadata", METADATA_TABLE):
        if not isinstance(table, dict):
            break
        table = table.get(key)
        if table is None:
            return None

    if not isinstance(table, dict):
        raise ManifestParseError(
            f"'{section}.metadata.{METADATA_TABLE}' must be a table, got {type(table).__name__}"
        )
    return table


def settings_from_manifest(manifest: dict) -> Settings:
    """
    从清单的元数据表读取默认配置

    Args:
        manifest: 已解析的 Cargo.toml

    Returns:
        配置（未设置的项使用内置默认值）

    Raises:
        ManifestParseError: 元数据表或配置项的类型不正确
    """
    table = _metadata_table(manifest, "package")
    if table is None:
        table = _metadata_table(manifest, "workspace") or {}

    known = {f.name for f in fields(Settings)}
    overrides = {}
    for key, value in table.items():
        name = key.replace("-", "_")
        if name not in known:
            logger.debug("Ignoring unknown %s setting '%s'", METADATA_TABLE, key)
            continue
        if name in ("include", "exclude") and isinstance(value, str):
            value = [value]

        expected = _expected_type(name)
        valid = isinstance(value, expected)
        if expected is list:
            valid = valid and all(isinstance(item, str) for item in value)
        if not valid:
            kind = "a list of strings" if expected is list else f"a {expected.__name__}"
            raise ManifestParseError(f"{METADATA_TABLE} setting '{key}' must be {kind}")
        overrides[name] = value

    return Settings().merge(**overrides)
