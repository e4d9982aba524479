"""
노드 모델 및 멤버십 결정 모듈
클러스터 노드 목록으로부터 피어 IP 집합과 로컬 노드 등록 여부를 계산
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

INTERNAL_IP = "InternalIP"
EXTERNAL_IP = "ExternalIP"


@dataclass(frozen=True)
class LocalIdentity:
    """로컬 호스트 식별 정보 (프로세스 수명 동안 불변)"""
    name: str
    ip: str


@dataclass
class NodeAddress:
    type: str
    address: str


@dataclass
class Node:
    """클러스터 노드 (읽기 전용 스냅샷)"""
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    conditions: Dict[str, str] = field(default_factory=dict)
    addresses: List[NodeAddress] = field(default_factory=list)

    @property
    def is_ready(self) -> bool:
        return self.conditions.get("Ready") == "True"

    @classmethod
    def from_api(cls, obj) -> "Node":
        """kubernetes V1Node 객체 변환"""
        metadata = obj.metadata
        status = obj.status
        conditions = {}
        addresses = []
        if status is not None:
            for cond in status.conditions or []:
                conditions[cond.type] = cond.status
            for addr in status.addresses or []:
                addresses.append(NodeAddress(type=addr.type, address=addr.address))
        return cls(
            name=metadata.name,
            labels=dict(metadata.labels or {}),
            conditions=conditions,
            addresses=addresses,
        )


@dataclass
class Membership:
    """멤버십 계산 결과"""
    peers: List[str]
    already_labeled: bool
    unresolved: List[str] = field(default_factory=list)


def resolve_node_ip(node: Node) -> Optional[str]:
    """노드 IP 결정: InternalIP 우선, 없으면 ExternalIP"""
    for addr_type in (INTERNAL_IP, EXTERNAL_IP):
        for addr in node.addresses:
            if addr.type == addr_type and addr.address:
                return addr.address
    return None


def resolve_membership(nodes: List[Node], local_ip: str) -> Membership:
    """Ready 상태인 멤버 노드들로부터 피어 IP 집합 계산

    로컬 IP와 같은 노드는 피어에서 제외하고 already_labeled 로 표시한다.
    주소를 결정할 수 없는 노드는 건너뛰고 unresolved 에 이름을 남긴다.
    """
    peers: Set[str] = set()
    unresolved = []
    already_labeled = False

    for node in nodes:
        if not node.is_ready:
            continue

        ip = resolve_node_ip(node)
        if ip is None:
            unresolved.append(node.name)
            continue

        if ip == local_ip:
            already_labeled = True
        else:
            peers.add(ip)

    return Membership(
        peers=sorted(peers),
        already_labeled=already_labeled,
        unresolved=unresolved,
    )
