"""
메시 동기화 모듈
재조정(reconcile) 로직, 로컬 노드 자동 등록 및 단일 소비자 동기화 루프

재조정 단계: Listing → Resolving → [Registering] → [Rendering → Reloading]
"""

import json
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .cluster import ClusterClient, label_selector
from .config import Config
from .logger import get_logger
from .nodes import LocalIdentity, resolve_membership
from .observer import NodeObserver, ResyncTimer
from .renderer import ConfigRenderer, Reloader
from .triggers import TriggerQueue


@dataclass
class ReconcileResult:
    """재조정 1회 결과"""
    peers: List[str] = field(default_factory=list)
    registered: bool = False
    written: bool = False
    unresolved: List[str] = field(default_factory=list)


class Reconciler:
    """클러스터 상태를 읽어 VPN 피어 설정에 반영"""

    def __init__(self, cluster: ClusterClient, identity: LocalIdentity,
                 renderer: ConfigRenderer, reloader: Reloader,
                 label_key: str, label_value: str = "true"):
        self.cluster = cluster
        self.identity = identity
        self.renderer = renderer
        self.reloader = reloader
        self.label_key = label_key
        self.label_value = label_value
        self.selector = label_selector(label_key, label_value)
        self.logger = get_logger()

    def reconcile(self, dry_run: bool = False) -> ReconcileResult:
        """재조정 1회 수행

        dry_run 이면 멤버십 계산까지만 하고 등록/파일 쓰기/reload 를 하지 않는다.
        """
        nodes, _ = self.cluster.list_nodes(self.selector)
        membership = resolve_membership(nodes, self.identity.ip)
        result = ReconcileResult(peers=membership.peers, unresolved=membership.unresolved)

        for name in membership.unresolved:
            self.logger.warning(f"Node {name} has no InternalIP or ExternalIP address, skipped")

        if dry_run:
            return result

        if not membership.already_labeled:
            self.register()
            result.registered = True

        # 피어가 없으면 VPN 데몬을 건드리지 않음
        if membership.peers:
            self.renderer.write(self.identity.ip, membership.peers)
            self.reloader.reload()
            result.written = True
        else:
            self.logger.info("No peers found, skipping config write and reload")

        self.logger.debug(f"Reconciled peers: {membership.peers}")
        return result

    def register(self):
        """로컬 노드에 멤버십 레이블 부여"""
        self.logger.info(f"Registering local node {self.identity.name} as VPN member")
        self.cluster.set_node_label(self.identity.name, self.label_key, self.label_value)


class MeshSyncer:
    """노드 감시자와 동기화 루프를 묶는 실행기"""

    def __init__(self, config: Config, cluster: Optional[ClusterClient] = None):
        self.config = config
        self.logger = get_logger()
        self.identity = config.local_identity()
        self.cluster = cluster
        self.triggers = TriggerQueue()
        self.running = False
        self.reconciler: Optional[Reconciler] = None
        self.observer: Optional[NodeObserver] = None
        self.resync_timer: Optional[ResyncTimer] = None
        self._threads: List[threading.Thread] = []

    def setup(self):
        """설정 검증 및 구성요소 초기화"""
        self.config.validate()
        self.logger.debug(f"Configuration: {json.dumps(self.config.to_dict())}")

        mesh = self.config.mesh
        renderer = ConfigRenderer(mesh.conf_path, mesh.conf_mode, mesh.template_path or None)

        if self.cluster is None:
            self.cluster = ClusterClient.connect(self.config.cluster.master, self.config.cluster.kubeconfig)

        self.reconciler = Reconciler(
            self.cluster, self.identity, renderer, Reloader(mesh.reload_command),
            mesh.label_key, mesh.label_value,
        )
        self.observer = NodeObserver(self.cluster, self.triggers, mesh.label_key, mesh.label_value)
        self.resync_timer = ResyncTimer(self.observer, self.config.cluster.resync_period)

    def reconcile(self) -> ReconcileResult:
        return self.reconciler.reconcile()

    def _spawn(self, name: str, target: Callable[[], None]) -> threading.Thread:
        def runner():
            try:
                target()
            except Exception as e:
                self.logger.error(f"{name} stopped: {e}")
                self.triggers.fail(e)

        thread = threading.Thread(target=runner, name=name, daemon=True)
        thread.start()
        self._threads.append(thread)
        return thread

    def start_producers(self):
        self._spawn("node-observer", self.observer.run)
        self._spawn("resync-timer", self.resync_timer.run)

    def sync_loop(self):
        """트리거를 하나씩 소비하며 재조정 (호출자 블로킹)"""
        self.running = True
        while self.running:
            if self.triggers.wait(timeout=1.0):
                self.logger.debug(
                    f"Reconciling ({len(self.observer.nodes)} cached member nodes, "
                    f"{self.triggers.fired} triggers fired, {self.triggers.coalesced} coalesced)"
                )
                self.reconcile()

    def run(self):
        """초기 재조정 후 감시 및 동기화 루프 실행

        어떤 에러든 호출자에게 전파되며 프로세스 종료로 이어진다.
        """
        if self.reconciler is None:
            self.setup()

        self.reconciler.renderer.ensure_directory()
        self.logger.info(f"Starting VPN mesh sync for node {self.identity.name} ({self.identity.ip})")
        self.reconcile()
        self.start_producers()
        self.sync_loop()

    def stop(self):
        self.running = False
        if self.observer:
            self.observer.stop()
        if self.resync_timer:
            self.resync_timer.stop()
