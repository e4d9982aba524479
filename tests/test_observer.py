"""
노드 감시자 테스트
"""

import pytest

from k8s_vpn_mesh.config import MEMBERSHIP_LABEL
from k8s_vpn_mesh.exceptions import ClusterError
from k8s_vpn_mesh.observer import NodeObserver, ResyncTimer, needs_reconcile
from k8s_vpn_mesh.triggers import TriggerQueue
from conftest import StopWatching, make_node


@pytest.fixture
def triggers():
    return TriggerQueue()


@pytest.fixture
def observer(cluster, triggers):
    return NodeObserver(cluster, triggers, MEMBERSHIP_LABEL)


def test_needs_reconcile_unrelated_label():
    """관련 없는 레이블 변경은 무시"""
    old = make_node("b", "10.0.0.2", labels={"zone": "a"})
    new = make_node("b", "10.0.0.2", labels={"zone": "b"})
    assert needs_reconcile(old, new, MEMBERSHIP_LABEL) == False


def test_needs_reconcile_readiness():
    """Ready 변경은 재조정 대상"""
    old = make_node("b", "10.0.0.2", ready=True)
    new = make_node("b", "10.0.0.2", ready=False)
    assert needs_reconcile(old, new, MEMBERSHIP_LABEL) == True
    assert needs_reconcile(new, old, MEMBERSHIP_LABEL) == True


def test_needs_reconcile_membership_label():
    old = make_node("b", "10.0.0.2")
    new = make_node("b", "10.0.0.2", labeled=False)
    assert needs_reconcile(old, new, MEMBERSHIP_LABEL) == True


def test_add_and_delete_always_trigger(observer, triggers):
    node = make_node("b", "10.0.0.2")
    observer.handle_event("ADDED", node)
    observer.handle_event("DELETED", node)
    assert triggers.fired == 2
    assert observer.nodes == []


def test_update_unrelated_does_not_trigger(observer, triggers):
    observer.handle_event("ADDED", make_node("b", "10.0.0.2", labels={"hb": "1"}))
    triggers.wait(timeout=0)

    observer.handle_event("MODIFIED", make_node("b", "10.0.0.2", labels={"hb": "2"}))
    assert triggers.fired == 1
    assert triggers.wait(timeout=0) == False


def test_update_readiness_triggers(observer, triggers):
    observer.handle_event("ADDED", make_node("b", "10.0.0.2"))
    observer.handle_event("MODIFIED", make_node("b", "10.0.0.2", ready=False))
    assert triggers.fired == 2
    assert observer.nodes[0].is_ready == False


def test_update_of_unknown_node_triggers(observer, triggers):
    """캐시에 없는 노드의 변경은 추가로 처리"""
    observer.handle_event("MODIFIED", make_node("b", "10.0.0.2"))
    assert triggers.fired == 1


def test_resync_detects_missed_changes(cluster, observer, triggers):
    """재조회로 놓친 삭제/변경 감지"""
    observer.handle_event("ADDED", make_node("b", "10.0.0.2"))
    observer.handle_event("ADDED", make_node("c", "10.0.0.3"))
    fired = triggers.fired

    cluster.nodes = [make_node("c", "10.0.0.3", ready=False)]
    observer.resync()

    # c 의 Ready 변경 + b 삭제
    assert triggers.fired == fired + 2
    assert [n.name for n in observer.nodes] == ["c"]


def test_resync_without_changes(cluster, observer, triggers):
    cluster.nodes = [make_node("b", "10.0.0.2")]
    observer.resync()
    fired = triggers.fired
    observer.resync()
    assert triggers.fired == fired


def test_run_lists_then_watches(cluster, observer, triggers):
    """목록 조회 후 마지막 resourceVersion 부터 watch 재개"""
    cluster.nodes = [make_node("a", "10.0.0.1")]
    cluster.watch_batches = [
        [("ADDED", make_node("b", "10.0.0.2"), "5"), ("BOOKMARK", make_node("b"), "6")],
    ]

    with pytest.raises(StopWatching):
        observer.run()

    assert cluster.watch_calls == ["1", "6"]
    assert triggers.fired == 2
    assert sorted(n.name for n in observer.nodes) == ["a", "b"]


def test_run_relists_on_gone(cluster, observer):
    """410 Gone 이면 재조회"""
    cluster.watch_batches = [ClusterError("gone", status=410)]
    with pytest.raises(StopWatching):
        observer.run()
    assert cluster.list_calls == 2


def test_run_propagates_other_errors(cluster, observer):
    """그 외 watch 에러는 치명적"""
    cluster.watch_batches = [ClusterError("forbidden", status=403)]
    with pytest.raises(ClusterError):
        observer.run()


def test_resync_timer_disabled(observer):
    """주기가 0 이면 즉시 반환"""
    ResyncTimer(observer, 0).run()


def test_resync_timer_stops(cluster, observer):
    timer = ResyncTimer(observer, 0.01)

    def stop_after_first(selector):
        timer.stop()
        return [], "1"

    cluster.list_nodes = stop_after_first
    timer.run()
