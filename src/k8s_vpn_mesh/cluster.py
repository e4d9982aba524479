"""
Kubernetes 클러스터 접근 모듈
노드 list/watch 및 레이블 update(get 후 replace) 를 감싸고 API 객체를 내부 Node 모델로 변환
"""

from typing import Iterator, List, Optional, Tuple

import urllib3
from kubernetes import client, watch
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException

from .exceptions import ClusterError
from .logger import get_logger
from .nodes import Node


def label_selector(key: str, value: str) -> str:
    return f"{key}={value}"


class ClusterClient:
    """Kubernetes 노드 API 클라이언트"""

    def __init__(self, api: client.CoreV1Api):
        self.api = api
        self.logger = get_logger()

    @classmethod
    def connect(cls, master: str = "", kubeconfig: str = "") -> "ClusterClient":
        """master URL / kubeconfig 기반 클라이언트 생성

        kubeconfig 가 없으면 in-cluster 설정, 기본 kubeconfig 순으로 시도한다.
        master 가 지정되면 in-cluster 설정은 건너뛰고 kubeconfig 의 서버 주소보다 우선한다.
        """
        logger = get_logger()
        configuration = client.Configuration()

        try:
            if kubeconfig:
                k8s_config.load_kube_config(config_file=kubeconfig, client_configuration=configuration)
                logger.debug(f"Loaded kubeconfig from {kubeconfig}")
            elif master:
                try:
                    k8s_config.load_kube_config(client_configuration=configuration)
                    logger.debug("Loaded default kubeconfig")
                except (k8s_config.ConfigException, OSError):
                    logger.warning("No kubeconfig found, using master URL only")
            else:
                try:
                    k8s_config.load_incluster_config(client_configuration=configuration)
                    logger.debug("Loaded in-cluster config")
                except k8s_config.ConfigException:
                    k8s_config.load_kube_config(client_configuration=configuration)
                    logger.debug("Loaded default kubeconfig")
        except (k8s_config.ConfigException, OSError) as e:
            raise ClusterError(f"failed to load cluster credentials: {e}") from e

        if master:
            configuration.host = master

        logger.info(f"Connecting to Kubernetes API at {configuration.host}")
        return cls(client.CoreV1Api(client.ApiClient(configuration)))

    def list_nodes(self, selector: str) -> Tuple[List[Node], str]:
        """레이블 셀렉터에 맞는 노드 목록 조회

        Returns:
            (노드 목록, resourceVersion)
        """
        try:
            result = self.api.list_node(label_selector=selector)
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise _cluster_error("list nodes", e) from e

        nodes = [Node.from_api(item) for item in result.items or []]
        resource_version = result.metadata.resource_version if result.metadata else ""
        self.logger.debug(f"Listed {len(nodes)} nodes (resourceVersion={resource_version})")
        return nodes, resource_version or ""

    def watch_nodes(self, selector: str, resource_version: str = "",
                    timeout_seconds: Optional[int] = None) -> Iterator[Tuple[str, Node, str]]:
        """노드 변경 이벤트 스트림

        Yields:
            (이벤트 타입, 노드, resourceVersion)
        """
        kwargs = {"label_selector": selector}
        if resource_version:
            kwargs["resource_version"] = resource_version
        if timeout_seconds:
            kwargs["timeout_seconds"] = timeout_seconds

        w = watch.Watch()
        try:
            for event in w.stream(self.api.list_node, **kwargs):
                obj = event["object"]
                node = Node.from_api(obj)
                yield event["type"], node, obj.metadata.resource_version or ""
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise _cluster_error("watch nodes", e) from e
        finally:
            w.stop()

    def set_node_label(self, name: str, key: str, value: str):
        """노드 레이블 설정 (get 후 update, 충돌 재시도 없음)"""
        try:
            obj = self.api.read_node(name)
            if obj.metadata.labels is None:
                obj.metadata.labels = {}
            obj.metadata.labels[key] = value
            self.api.replace_node(name, obj)
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            raise _cluster_error(f"label node {name}", e) from e
        self.logger.info(f"Labeled node {name} with {key}={value}")


def _cluster_error(action: str, error: Exception) -> ClusterError:
    status = getattr(error, "status", 0) or 0
    reason = getattr(error, "reason", None) or str(error)
    return ClusterError(f"failed to {action}: {reason}", status=status)
