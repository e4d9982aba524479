"""
테스트 공용 fixture 및 가짜 클러스터 클라이언트
"""

import pytest

from k8s_vpn_mesh.config import Config, MEMBERSHIP_LABEL
from k8s_vpn_mesh.nodes import Node, NodeAddress


class StopWatching(Exception):
    """가짜 watch 스트림 종료"""


def make_node(name, ip="", ready=True, labeled=True, address_type="InternalIP", labels=None):
    node_labels = dict(labels or {})
    if labeled:
        node_labels[MEMBERSHIP_LABEL] = "true"
    addresses = [NodeAddress(type=address_type, address=ip)] if ip else []
    return Node(
        name=name,
        labels=node_labels,
        conditions={"Ready": "True" if ready else "False"},
        addresses=addresses,
    )


class FakeCluster:
    """ClusterClient 와 같은 인터페이스의 메모리 구현"""

    def __init__(self, nodes=None):
        self.nodes = list(nodes or [])
        self.resource_version = "1"
        self.list_calls = 0
        self.label_calls = []
        self.watch_calls = []
        self.watch_batches = []

    def _matches(self, node, selector):
        key, value = selector.split("=", 1)
        return node.labels.get(key) == value

    def list_nodes(self, selector):
        self.list_calls += 1
        return [n for n in self.nodes if self._matches(n, selector)], self.resource_version

    def watch_nodes(self, selector, resource_version="", timeout_seconds=None):
        self.watch_calls.append(resource_version)
        if not self.watch_batches:
            raise StopWatching()
        batch = self.watch_batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        for item in batch:
            yield item

    def get_node(self, name):
        for node in self.nodes:
            if node.name == name:
                return node
        raise KeyError(name)

    def set_node_label(self, name, key, value):
        self.label_calls.append((name, key, value))
        self.get_node(name).labels[key] = value


@pytest.fixture
def cluster():
    return FakeCluster()


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.setenv("NODE_NAME", "node-a")
    monkeypatch.setenv("NODE_IP", "10.0.0.1")
    cfg = Config()
    cfg.mesh.conf_path = str(tmp_path / "vpn" / "ipsec.conf")
    cfg.mesh.reload_command = "ipsec reload"
    cfg.cluster.resync_period = 0
    return cfg
