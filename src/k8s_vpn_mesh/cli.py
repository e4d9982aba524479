"""
CLI 메인 인터페이스
Click 및 Rich 기반 CLI
"""

import sys
import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Config
from .exceptions import MeshSyncError
from .logger import init_logger
from .syncer import MeshSyncer

console = Console()


def _load_config(config_path, **overrides) -> Config:
    cfg = Config(config_path)
    cfg.override(**overrides)
    return cfg


@click.group()
@click.version_option(version=__version__)
def cli():
    """K8s VPN Mesh

    클러스터 노드 멤버십에 맞춰 VPN 메시 피어 설정을 동기화합니다.
    """
    pass


@cli.command()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='설정 파일 경로')
@click.option('--master', default=None,
              help='Kubernetes API 서버 주소 (kubeconfig 값보다 우선)')
@click.option('--kubeconfig', default=None, help='kubeconfig 파일 경로')
@click.option('--peer-ttl', 'peer_ttl', default=None,
              help='노드 전체 재조회 주기 (예: 30, 30s, 1m, 기본값: 10s)')
@click.option('--node-name', default=None, help='Kubernetes 에서 사용하는 호스트 이름 (기본값: $NODE_NAME)')
@click.option('--node-ip', default=None, help='클러스터 내부 통신용 호스트 IP (기본값: $NODE_IP)')
@click.option('--debug', is_flag=True, help='디버그 모드')
def run(config_path, master, kubeconfig, peer_ttl, node_name, node_ip, debug):
    """노드 감시 및 VPN 피어 설정 동기화 실행"""
    try:
        cfg = _load_config(config_path, master=master, kubeconfig=kubeconfig,
                           resync_period=peer_ttl, node_name=node_name, node_ip=node_ip)
    except MeshSyncError as e:
        console.print(f"[red]✗ 설정 오류: {e}[/red]")
        sys.exit(1)

    logger = init_logger(cfg.agent.log_dir, cfg.agent.log_level, debug)

    syncer = MeshSyncer(cfg)
    try:
        syncer.run()
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        syncer.stop()
    except MeshSyncError as e:
        logger.critical(f"{type(e).__name__}: {e}")
        sys.exit(1)


@cli.command()
@click.argument('output', type=click.Path(), default='./config.yaml')
def init(output):
    """샘플 설정 파일 생성"""
    cfg = Config()
    cfg.create_sample(output)
    console.print(f"[green]✓ 샘플 설정 파일 생성: {output}[/green]")
    console.print("[cyan]설정 파일을 편집한 후 다음 명령어로 실행하세요:[/cyan]")
    console.print(f"[cyan]  k8s-vpn-mesh run --config {output}[/cyan]")


@cli.command()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='설정 파일 경로')
@click.option('--node-name', default=None, help='호스트 이름')
@click.option('--node-ip', default=None, help='호스트 IP')
def validate(config_path, node_name, node_ip):
    """설정 파일 유효성 검사"""
    try:
        cfg = _load_config(config_path, node_name=node_name, node_ip=node_ip)
        cfg.validate()
    except MeshSyncError as e:
        console.print(f"[red]✗ 설정 오류: {e}[/red]")
        sys.exit(1)

    console.print("[green]✓ 설정이 유효합니다.[/green]")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("항목", style="cyan")
    table.add_column("값")

    table.add_row("노드 이름", cfg.node.name)
    table.add_row("노드 IP", cfg.node.ip)
    table.add_row("API 서버", cfg.cluster.master or "(kubeconfig)")
    table.add_row("kubeconfig", cfg.cluster.kubeconfig or "(in-cluster)")
    table.add_row("재조회 주기", f"{cfg.cluster.resync_period}초")
    table.add_row("멤버십 레이블", f"{cfg.mesh.label_key}={cfg.mesh.label_value}")
    table.add_row("설정 파일", f"{cfg.mesh.conf_path} ({oct(cfg.mesh.conf_mode)})")
    table.add_row("reload 명령", cfg.mesh.reload_command)

    console.print(table)


@cli.command()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True), help='설정 파일 경로')
@click.option('--master', default=None, help='Kubernetes API 서버 주소')
@click.option('--kubeconfig', default=None, help='kubeconfig 파일 경로')
@click.option('--node-name', default=None, help='호스트 이름')
@click.option('--node-ip', default=None, help='호스트 IP')
def peers(config_path, master, kubeconfig, node_name, node_ip):
    """현재 피어 목록 조회 (레이블/파일/reload 변경 없음)"""
    try:
        cfg = _load_config(config_path, master=master, kubeconfig=kubeconfig,
                           node_name=node_name, node_ip=node_ip)
        syncer = MeshSyncer(cfg)
        syncer.setup()
        result = syncer.reconciler.reconcile(dry_run=True)
    except MeshSyncError as e:
        console.print(f"[red]✗ 오류: {e}[/red]")
        sys.exit(1)

    table = Table(title=f"VPN 피어 ({cfg.node.ip})")
    table.add_column("#", style="cyan")
    table.add_column("피어 IP", style="white")
    for index, ip in enumerate(result.peers, 1):
        table.add_row(str(index), ip)
    console.print(table)

    if not result.peers:
        console.print("[yellow]피어가 없습니다. 설정 파일은 작성되지 않습니다.[/yellow]")
    for name in result.unresolved:
        console.print(f"[yellow]⚠ 주소를 확인할 수 없는 노드: {name}[/yellow]")


def main():
    """메인 엔트리 포인트"""
    cli()


if __name__ == '__main__':
    main()
