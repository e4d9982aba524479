"""
노드 모델 및 멤버십 계산 테스트
"""

from k8s_vpn_mesh.nodes import Node, NodeAddress, resolve_node_ip, resolve_membership
from conftest import make_node


def test_node_ready():
    """Ready=True 조건이 있어야 Ready"""
    assert make_node("a", "10.0.0.1").is_ready == True
    assert make_node("a", "10.0.0.1", ready=False).is_ready == False
    assert Node(name="a").is_ready == False
    assert Node(name="a", conditions={"Ready": "Unknown"}).is_ready == False


def test_resolve_ip_prefers_internal():
    """InternalIP 우선"""
    node = Node(name="a", addresses=[
        NodeAddress(type="ExternalIP", address="1.2.3.4"),
        NodeAddress(type="Hostname", address="a"),
        NodeAddress(type="InternalIP", address="10.0.0.5"),
        NodeAddress(type="InternalIP", address="10.0.0.6"),
    ])
    assert resolve_node_ip(node) == "10.0.0.5"


def test_resolve_ip_falls_back_to_external():
    """InternalIP 가 없으면 ExternalIP"""
    node = make_node("a", "1.2.3.4", address_type="ExternalIP")
    assert resolve_node_ip(node) == "1.2.3.4"


def test_resolve_ip_none():
    """주소가 없으면 None"""
    node = make_node("a", "10.0.0.1", address_type="Hostname")
    assert resolve_node_ip(node) is None


def test_membership_excludes_self_and_sorts():
    """로컬 IP 제외 및 정렬"""
    nodes = [
        make_node("a", "10.0.0.1"),
        make_node("b", "10.0.0.3"),
        make_node("c", "10.0.0.2"),
    ]
    membership = resolve_membership(nodes, "10.0.0.1")
    assert membership.peers == ["10.0.0.2", "10.0.0.3"]
    assert membership.already_labeled == True


def test_membership_lexicographic_order():
    """문자열 기준 정렬"""
    nodes = [make_node("b", "10.0.0.10"), make_node("c", "10.0.0.9")]
    membership = resolve_membership(nodes, "10.0.0.1")
    assert membership.peers == ["10.0.0.10", "10.0.0.9"]
    assert membership.already_labeled == False


def test_membership_skips_not_ready():
    """Ready 가 아닌 노드는 제외"""
    nodes = [
        make_node("a", "10.0.0.1"),
        make_node("b", "10.0.0.2", ready=False),
    ]
    membership = resolve_membership(nodes, "10.0.0.1")
    assert membership.peers == []


def test_membership_not_ready_self_is_not_labeled():
    """로컬 노드가 Ready 가 아니면 등록되지 않은 것으로 판단"""
    membership = resolve_membership([make_node("a", "10.0.0.1", ready=False)], "10.0.0.1")
    assert membership.already_labeled == False


def test_membership_skips_unresolved():
    """주소 없는 노드는 빈 IP 없이 unresolved 로 보고"""
    nodes = [
        make_node("a", "10.0.0.1"),
        make_node("b"),
        make_node("c", "10.0.0.2"),
    ]
    membership = resolve_membership(nodes, "10.0.0.1")
    assert membership.peers == ["10.0.0.2"]
    assert "" not in membership.peers
    assert membership.unresolved == ["b"]


def test_membership_deduplicates():
    """같은 IP 는 한 번만"""
    nodes = [make_node("b", "10.0.0.2"), make_node("c", "10.0.0.2")]
    membership = resolve_membership(nodes, "10.0.0.1")
    assert membership.peers == ["10.0.0.2"]
