"""
노드 감시 모듈
멤버십 레이블이 붙은 노드의 추가/변경/삭제를 감시하여 재조정 트리거 발생

- NodeObserver: list 후 watch, 노드 캐시 유지
- ResyncTimer: 주기적 전체 재조회로 놓친 변경 보정
"""

import threading
from typing import Dict, List, Optional

from .cluster import ClusterClient, label_selector
from .exceptions import ClusterError
from .logger import get_logger
from .nodes import Node
from .triggers import TriggerQueue

ADDED = "ADDED"
MODIFIED = "MODIFIED"
DELETED = "DELETED"
BOOKMARK = "BOOKMARK"

HTTP_GONE = 410


def needs_reconcile(old: Node, new: Node, label_key: str) -> bool:
    """변경 이벤트가 재조정 대상인지 판단 (레이블 값 또는 Ready 상태 변경)"""
    return (old.labels.get(label_key) != new.labels.get(label_key)
            or old.is_ready != new.is_ready)


class NodeObserver:
    """멤버 노드 감시자"""

    def __init__(self, cluster: ClusterClient, triggers: TriggerQueue,
                 label_key: str, label_value: str = "true",
                 watch_timeout: Optional[int] = 300):
        self.cluster = cluster
        self.triggers = triggers
        self.label_key = label_key
        self.selector = label_selector(label_key, label_value)
        self.watch_timeout = watch_timeout
        self.logger = get_logger()
        self.running = False

        self._cache: Dict[str, Node] = {}
        self._lock = threading.Lock()
        self._resource_version = ""

    @property
    def nodes(self) -> List[Node]:
        with self._lock:
            return list(self._cache.values())

    def on_add(self, node: Node):
        self.logger.info(f"got one added node {node.name}")
        self.triggers.fire()

    def on_delete(self, node: Node):
        self.logger.info(f"got one deleted node {node.name}")
        self.triggers.fire()

    def on_update(self, old: Node, new: Node):
        if needs_reconcile(old, new, self.label_key):
            self.logger.info(f"got one updated node {new.name}")
            self.triggers.fire()
        else:
            self.logger.debug(f"ignored unrelated update of node {new.name}")

    def handle_event(self, event_type: str, node: Node):
        """watch 이벤트 처리"""
        with self._lock:
            old = self._cache.get(node.name)
            if event_type == DELETED:
                self._cache.pop(node.name, None)
            elif event_type in (ADDED, MODIFIED):
                self._cache[node.name] = node

        if event_type == ADDED:
            self.on_add(node)
        elif event_type == DELETED:
            self.on_delete(node)
        elif event_type == MODIFIED:
            if old is None:
                self.on_add(node)
            else:
                self.on_update(old, node)

    def replace(self, nodes: List[Node]):
        """전체 목록으로 캐시 교체, 차이를 이벤트로 전달"""
        with self._lock:
            previous = self._cache
            self._cache = {node.name: node for node in nodes}

        for node in nodes:
            old = previous.get(node.name)
            if old is None:
                self.on_add(node)
            else:
                self.on_update(old, node)

        for name, node in previous.items():
            if name not in self._cache:
                self.on_delete(node)

    def resync(self):
        """전체 재조회 후 캐시와 비교"""
        nodes, _ = self.cluster.list_nodes(self.selector)
        self.logger.debug(f"Resync found {len(nodes)} member nodes")
        self.replace(nodes)

    def _relist(self):
        nodes, self._resource_version = self.cluster.list_nodes(self.selector)
        self.replace(nodes)

    def run(self):
        """감시 시작 (호출자 블로킹, 스레드에서 실행)"""
        self.logger.info("started watching for peer endpoints")
        self.running = True
        self._relist()

        while self.running:
            try:
                for event_type, node, resource_version in self.cluster.watch_nodes(
                        self.selector, self._resource_version, self.watch_timeout):
                    if resource_version:
                        self._resource_version = resource_version
                    if event_type == BOOKMARK:
                        continue
                    self.handle_event(event_type, node)
                    if not self.running:
                        break
            except ClusterError as e:
                if e.status != HTTP_GONE:
                    raise
                self.logger.info("Watch resourceVersion expired, relisting nodes")
                self._relist()
            else:
                self.logger.debug("Watch stream closed, resuming")

    def stop(self):
        self.running = False


class ResyncTimer:
    """주기적 resync 생산자"""

    def __init__(self, observer: NodeObserver, period: float):
        self.observer = observer
        self.period = period
        self.logger = get_logger()
        self._stopped = threading.Event()

    def run(self):
        if self.period <= 0:
            self.logger.info("Periodic resync disabled")
            return

        self.logger.info(f"Periodic resync every {self.period}s")
        while not self._stopped.wait(self.period):
            self.observer.resync()

    def stop(self):
        self._stopped.set()
