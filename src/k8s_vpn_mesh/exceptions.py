"""
에러 정의 모듈

Exception Hierarchy:
    MeshSyncError (base)
    ├── ConfigError - 시작 시 설정 검증 실패
    ├── ClusterError - 클러스터 API list/get/update/watch 실패
    ├── ConfigWriteError - 피어 설정 파일 생성/쓰기 실패
    └── ReloadError - reload 명령 실행 실패

모든 에러는 치명적이며 프로세스는 종료 후 외부 supervisor에 의해 재시작된다.
"""


class MeshSyncError(Exception):
    """메시 동기화 에러 기본 클래스"""
    pass


class ConfigError(MeshSyncError):
    """설정 검증 에러"""
    pass


class ClusterError(MeshSyncError):
    """클러스터 API 에러"""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class ConfigWriteError(MeshSyncError):
    """피어 설정 파일 쓰기 에러"""
    pass


class ReloadError(MeshSyncError):
    """reload 명령 실행 에러"""

    def __init__(self, message: str, returncode: int = None):
        super().__init__(message)
        self.returncode = returncode
