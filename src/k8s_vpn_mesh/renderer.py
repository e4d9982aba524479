"""
피어 설정 렌더링 및 VPN reload 모듈
"""

import os
import subprocess
from typing import List, Optional

from jinja2 import Template, TemplateError

from .exceptions import ConfigWriteError, ReloadError
from .logger import get_logger

DEFAULT_TEMPLATE = """# Generated by k8s-vpn-mesh. Do not edit.
config setup
    uniqueids=no

conn %default
    keyexchange=ikev2
    type=transport
    authby=secret
    left={{ host_ip }}
    auto=route

{% for ip in node_ips %}
conn node-{{ ip }}
    right={{ ip }}

{% endfor %}
"""


def load_template(path: Optional[str] = None) -> Template:
    """템플릿 로드 (경로가 없으면 내장 템플릿)"""
    source = DEFAULT_TEMPLATE
    if path:
        try:
            with open(path, "r", encoding="utf-8") as f:
                source = f.read()
        except OSError as e:
            raise ConfigWriteError(f"failed to read template {path}: {e}") from e
    try:
        return Template(source, trim_blocks=True, keep_trailing_newline=True)
    except TemplateError as e:
        raise ConfigWriteError(f"invalid template: {e}") from e


class ConfigRenderer:
    """피어 설정 파일 생성기"""

    def __init__(self, conf_path: str, conf_mode: int = 0o644, template_path: Optional[str] = None):
        self.conf_path = conf_path
        self.conf_mode = conf_mode
        self.template = load_template(template_path)
        self.logger = get_logger()

    def ensure_directory(self):
        """설정 파일 디렉토리 생성"""
        directory = os.path.dirname(self.conf_path)
        if not directory or os.path.isdir(directory):
            return
        try:
            os.makedirs(directory, 0o755, exist_ok=True)
        except OSError as e:
            raise ConfigWriteError(f"failed to create directory {directory}: {e}") from e

    def render(self, host_ip: str, node_ips: List[str]) -> str:
        try:
            return self.template.render(host_ip=host_ip, node_ips=node_ips)
        except TemplateError as e:
            raise ConfigWriteError(f"failed to render template: {e}") from e

    def write(self, host_ip: str, node_ips: List[str]) -> str:
        """설정 파일 덮어쓰기 (truncate 후 재작성)

        Returns:
            기록한 내용
        """
        content = self.render(host_ip, node_ips)
        self.ensure_directory()

        try:
            fd = os.open(self.conf_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, self.conf_mode)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise ConfigWriteError(f"failed to write {self.conf_path}: {e}") from e

        self.logger.info(f"Wrote {len(node_ips)} peers to {self.conf_path}")
        return content


class Reloader:
    """외부 reload 명령 실행기"""

    def __init__(self, command: str):
        self.command = command.split()
        self.logger = get_logger()

    def reload(self):
        self.logger.debug(f"Running reload command: {' '.join(self.command)}")
        try:
            result = subprocess.run(
                self.command,
                capture_output=True,
                text=True
            )
        except OSError as e:
            raise ReloadError(f"failed to run {self.command[0]}: {e}") from e

        if result.returncode != 0:
            raise ReloadError(
                f"reload command exited with {result.returncode}: {result.stderr.strip()}",
                returncode=result.returncode,
            )
        self.logger.info("VPN configuration reloaded")
