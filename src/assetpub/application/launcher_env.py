"""Build-time environment variables for the CLI launcher, derived from product.json"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from assetpub.infrastructure.git import get_commit

logger = logging.getLogger(__name__)

OSS_QUALITY = "oss"

EnvVars = List[Tuple[str, Optional[str]]]


def read_json(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


class LauncherEnvironment:
    """Computes the VSCODE_CLI_* variables baked into the CLI launcher build"""

    def __init__(
        self,
        root: Path,
        quality: Optional[str] = None,
        package_version: Optional[str] = None,
        commit: Optional[str] = None,
    ):
        """Initialize launcher environment

        Args:
            root: Repository root holding product.json and quality/
            quality: Build quality; empty or "oss" selects the root product.json
            package_version: Version to embed (default: version from <root>/package.json)
            commit: Commit to embed (default: read from git metadata under root)

        Raises:
            FileNotFoundError: If the selected product.json does not exist
        """
        self.root = Path(root)
        self.quality = quality
        self.is_oss = not quality or quality == OSS_QUALITY

        if self.is_oss:
            self.product_json_path = self.root / "product.json"
        else:
            self.product_json_path = self.root / "quality" / quality / "product.json"
        logger.info(f"Loading product.json from {self.product_json_path}")
        self.product = read_json(self.product_json_path)

        self.package_version = package_version or self._read_package_version()
        self.commit = commit or get_commit(self.root)
        self._qualities: Optional[Dict[str, Dict[str, Any]]] = None

    def _read_package_version(self) -> Optional[str]:
        package_json = self.root / "package.json"
        if not package_json.is_file():
            logger.warning(f"No package.json at {package_json}, version will be omitted")
            return None
        return read_json(package_json).get("version")

    @property
    def all_qualities(self) -> Dict[str, Dict[str, Any]]:
        """product.json of every quality under <root>/quality, keyed by quality name"""
        if self._qualities is None:
            self._qualities = {}
            quality_dir = self.root / "quality"
            if quality_dir.is_dir():
                for entry in sorted(quality_dir.iterdir()):
                    product_json = entry / "product.json"
                    if product_json.is_file():
                        self._qualities[entry.name] = read_json(product_json)
        return self._qualities

    def make_quality_map(self, mapper: Callable[[Dict[str, Any]], Any]) -> Optional[str]:
        """JSON object mapping each quality to ``mapper(product)``; None for OSS builds"""
        if self.is_oss:
            return None
        mapped = {quality: mapper(product) for quality, product in self.all_qualities.items()}
        return _compact_json({quality: value for quality, value in mapped.items() if value is not None})

    @staticmethod
    def _win32_app_ids(product: Dict[str, Any]) -> List[str]:
        return [
            re.sub(r"[{}]", "", str(value))
            for key, value in product.items()
            if re.match(r"^win32.*AppId$", key)
        ]

    def variables(self) -> EnvVars:
        """All launcher variables, including unset ones (value None)"""
        product = self.product
        server_license = product.get("serverLicense")
        name_long = product.get("nameLong")
        ai_config = product.get("aiConfig") or {}
        tunnel_config = product.get("tunnelApplicationConfig") or {}

        return [
            ("VSCODE_CLI_REMOTE_LICENSE_TEXT", "\\n".join(server_license) if server_license else None),
            ("VSCODE_CLI_REMOTE_LICENSE_PROMPT", product.get("serverLicensePrompt")),
            ("VSCODE_CLI_AI_KEY", ai_config.get("cliKey")),
            ("VSCODE_CLI_AI_ENDPOINT", ai_config.get("cliEndpoint")),
            ("VSCODE_CLI_VERSION", self.package_version),
            ("VSCODE_CLI_UPDATE_ENDPOINT", product.get("updateUrl")),
            ("VSCODE_CLI_QUALITY", product.get("quality")),
            ("VSCODE_CLI_NAME_SHORT", product.get("nameShort")),
            ("VSCODE_CLI_NAME_LONG", name_long),
            (
                "VSCODE_CLI_QUALITYLESS_PRODUCT_NAME",
                re.sub(r" - [a-z]+$", "", name_long, flags=re.IGNORECASE) if name_long else None,
            ),
            ("VSCODE_CLI_DOCUMENTATION_URL", product.get("documentationUrl")),
            ("VSCODE_CLI_APPLICATION_NAME", product.get("applicationName")),
            ("VSCODE_CLI_EDITOR_WEB_URL", tunnel_config.get("editorWebUrl")),
            ("VSCODE_CLI_COMMIT", self.commit),
            ("VSCODE_CLI_WIN32_APP_IDS", self.make_quality_map(self._win32_app_ids)),
            ("VSCODE_CLI_NAME_LONG_MAP", self.make_quality_map(lambda p: p.get("nameLong"))),
            ("VSCODE_CLI_APPLICATION_NAME_MAP", self.make_quality_map(lambda p: p.get("applicationName"))),
            ("VSCODE_CLI_SERVER_NAME_MAP", self.make_quality_map(lambda p: p.get("serverApplicationName"))),
            ("VSCODE_CLI_QUALITY_DOWNLOAD_URIS", self.make_quality_map(lambda p: p.get("downloadUrl"))),
        ]

    def defined_variables(self) -> List[Tuple[str, str]]:
        """Variables with a non-empty value"""
        return [(name, value) for name, value in self.variables() if value]


def format_json(variables: List[Tuple[str, str]]) -> str:
    return _compact_json([[name, value] for name, value in variables])


def format_vso(variables: List[Tuple[str, str]]) -> str:
    """Azure Pipelines logging commands setting each variable"""
    return "\n".join(f"##vso[task.setvariable variable={name}]{value}" for name, value in variables)


FORMATTERS = {
    "json": format_json,
    "vso": format_vso,
}
