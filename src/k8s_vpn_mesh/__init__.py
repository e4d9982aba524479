"""
K8s VPN Mesh
클러스터 노드 멤버십을 감시하여 VPN 메시 피어 설정을 동기화하는 에이전트

Features:
- 레이블 기반 VPN 멤버 노드 감시 (watch + 주기적 resync)
- Ready 상태 및 주소 기반 피어 IP 결정
- 로컬 노드 자동 등록 (멤버십 레이블 부여)
- 피어 설정 파일 생성 및 VPN 데몬 reload
"""

__version__ = "1.0.0"
__author__ = "DevOps Team"
