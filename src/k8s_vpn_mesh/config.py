"""
설정 관리 모듈
YAML/JSON 기반 설정 파일 관리, 환경변수 기본값 및 시작 시 검증
"""

import os
import socket
import yaml
import json
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict

from .exceptions import ConfigError
from .nodes import LocalIdentity

MEMBERSHIP_LABEL = "net.beta.appscode.com/vpn"

DURATION_UNITS = {"s": 1, "m": 60, "h": 3600}


class _ConfigLoader(yaml.SafeLoader):
    """0644 처럼 0 으로 시작하는 정수를 문자열로 유지하는 로더"""


def _construct_int(loader, node):
    value = loader.construct_scalar(node)
    digits = value.lstrip("+-")
    if len(digits) > 1 and digits.startswith("0") and digits.isdigit():
        return value
    return loader.construct_yaml_int(node)


_ConfigLoader.add_constructor("tag:yaml.org,2002:int", _construct_int)


def parse_duration(value) -> float:
    """초 단위 주기 변환 (10, "10", "10s", "1m", "1h")"""
    if isinstance(value, bool):
        raise ConfigError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    multiplier = 1
    if text and text[-1] in DURATION_UNITS:
        multiplier = DURATION_UNITS[text[-1]]
        text = text[:-1]
    try:
        return float(text) * multiplier
    except ValueError as e:
        raise ConfigError(f"invalid duration: {value!r}") from e


def parse_mode(value) -> int:
    """파일 권한 변환, 정수도 8진수 숫자로 해석 (644, "0644", "0o644")"""
    if isinstance(value, bool):
        raise ConfigError(f"invalid file mode: {value!r}")
    text = str(value).strip().lower()
    if text.startswith("0o"):
        text = text[2:]
    try:
        mode = int(text, 8)
    except ValueError as e:
        raise ConfigError(f"invalid file mode: {value!r}") from e
    if not 0 <= mode <= 0o7777:
        raise ConfigError(f"invalid file mode: {value!r}")
    return mode


def _default_node_name() -> str:
    return os.environ.get("NODE_NAME") or socket.gethostname()


def _default_node_ip() -> str:
    return os.environ.get("NODE_IP") or os.environ.get("HOST_IP", "")


@dataclass
class ClusterConfig:
    """클러스터 접속 설정"""
    master: str = ""
    kubeconfig: str = ""
    resync_period: float = 10.0


@dataclass
class NodeConfig:
    """로컬 노드 식별 정보"""
    name: str = field(default_factory=_default_node_name)
    ip: str = field(default_factory=_default_node_ip)


@dataclass
class MeshConfig:
    """VPN 메시 설정"""
    label_key: str = MEMBERSHIP_LABEL
    label_value: str = "true"
    conf_path: str = "/etc/ipsec.conf"
    conf_mode: int = 0o644
    template_path: str = ""
    reload_command: str = "ipsec reload"


@dataclass
class AgentConfig:
    """에이전트 설정"""
    log_dir: str = ""
    log_level: str = "INFO"


class Config:
    """전체 설정 관리 클래스"""

    DEFAULT_CONFIG_PATHS = [
        "/etc/k8s-vpn-mesh/config.yaml",
        "~/.k8s-vpn-mesh/config.yaml",
        "./config.yaml",
    ]

    SECTIONS = ("cluster", "node", "mesh", "agent")

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.cluster = ClusterConfig()
        self.node = NodeConfig()
        self.mesh = MeshConfig()
        self.agent = AgentConfig()

        if config_path:
            self.load(config_path)
        else:
            self._load_from_default_paths()

    def _load_from_default_paths(self):
        """기본 경로에서 설정 파일 로드"""
        for path in self.DEFAULT_CONFIG_PATHS:
            expanded_path = os.path.expanduser(path)
            if os.path.exists(expanded_path):
                self.load(expanded_path)
                return

    def load(self, path: str):
        """설정 파일 로드"""
        path = os.path.expanduser(path)
        if not os.path.exists(path):
            raise ConfigError(f"config file not found: {path}")

        try:
            with open(path, 'r', encoding='utf-8') as f:
                if path.endswith('.json'):
                    data = json.load(f)
                else:
                    data = yaml.load(f, Loader=_ConfigLoader) or {}
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(f"invalid config file {path}: {e}") from e

        self._update_from_dict(data)
        self.config_path = path

    def _update_from_dict(self, data: Dict[str, Any]):
        """딕셔너리에서 설정 업데이트"""
        if not isinstance(data, dict):
            raise ConfigError(f"config must be a mapping, got {type(data).__name__}")

        for section in self.SECTIONS:
            values = data.get(section) or {}
            if not isinstance(values, dict):
                raise ConfigError(f"config section '{section}' must be a mapping, got {type(values).__name__}")
            target = getattr(self, section)
            for key, value in values.items():
                # 빈 노드 정보는 환경변수 기본값 유지
                if section == "node" and not value:
                    continue
                if hasattr(target, key):
                    setattr(target, key, value)

        self.cluster.resync_period = parse_duration(self.cluster.resync_period)
        self.mesh.conf_mode = parse_mode(self.mesh.conf_mode)

    def override(self, **values):
        """커맨드라인 옵션으로 설정 덮어쓰기 (None 값은 무시)"""
        mapping = {
            "master": (self.cluster, "master"),
            "kubeconfig": (self.cluster, "kubeconfig"),
            "resync_period": (self.cluster, "resync_period"),
            "node_name": (self.node, "name"),
            "node_ip": (self.node, "ip"),
        }
        for key, value in values.items():
            if value is None:
                continue
            target, attr = mapping[key]
            if key == "resync_period":
                value = parse_duration(value)
            setattr(target, attr, value)

    def validate(self):
        """시작 전 설정 검증"""
        if not self.node.ip:
            raise ConfigError(
                "Set NODE_IP (or HOST_IP) environment variable to ip used for intra-cluster communication."
            )
        if not self.node.name:
            raise ConfigError("Set NODE_NAME environment variable to name used by kubernetes to identify host.")
        if not self.mesh.label_key:
            raise ConfigError("mesh.label_key must not be empty")
        if not self.mesh.conf_path:
            raise ConfigError("mesh.conf_path must not be empty")
        if not self.mesh.reload_command.split():
            raise ConfigError("mesh.reload_command must not be empty")
        if self.cluster.resync_period < 0:
            raise ConfigError("cluster.resync_period must not be negative")
        if self.mesh.template_path and not os.path.exists(self.mesh.template_path):
            raise ConfigError(f"template file not found: {self.mesh.template_path}")

    def local_identity(self) -> LocalIdentity:
        return LocalIdentity(name=self.node.name, ip=self.node.ip)

    def save(self, path: Optional[str] = None):
        """설정 파일 저장"""
        save_path = path or self.config_path or self.DEFAULT_CONFIG_PATHS[0]
        save_path = os.path.expanduser(save_path)

        directory = os.path.dirname(save_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        data = self.to_dict()

        with open(save_path, 'w', encoding='utf-8') as f:
            if save_path.endswith('.json'):
                json.dump(data, f, indent=2)
            else:
                yaml.dump(data, f, default_flow_style=False, allow_unicode=True)

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환 (conf_mode 는 8진수 문자열)"""
        data = {section: asdict(getattr(self, section)) for section in self.SECTIONS}
        data["mesh"]["conf_mode"] = f"{self.mesh.conf_mode:04o}"
        return data

    def create_sample(self, output_path: str):
        """샘플 설정 파일 생성"""
        template = """# K8s VPN Mesh Configuration File

# 클러스터 접속 설정
cluster:
  master: ""  # API 서버 주소 (kubeconfig 값보다 우선)
  kubeconfig: ""  # 비워두면 in-cluster 설정 사용
  resync_period: 10  # 전체 재조회 주기 (초 또는 "30s", "1m", 0이면 비활성화)

# 로컬 노드 식별 정보 (비워두면 NODE_NAME / NODE_IP 환경변수 사용)
node:
  name: ""
  ip: ""

# VPN 메시 설정
mesh:
  label_key: "net.beta.appscode.com/vpn"
  label_value: "true"
  conf_path: "/etc/ipsec.conf"
  conf_mode: "0644"
  template_path: ""  # 비워두면 내장 템플릿 사용
  reload_command: "ipsec reload"

# 에이전트 설정
agent:
  log_dir: ""  # 비워두면 콘솔에만 출력
  log_level: "INFO"  # DEBUG, INFO, WARNING, ERROR
"""

        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(template)
