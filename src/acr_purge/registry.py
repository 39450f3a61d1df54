"""Async functional purge operations."""

from typing import Callable, Optional

from .core.connectivity import check_connectivity
from .core.registry_client import RegistryClient
from .core.types import PurgeOptions, PurgeResult, RegistryConfig
from .operations.archive import archive_tag_name, unarchive_manifest
from .operations.dangling import purge_dangling_manifests
from .operations.deletion import DeletionCoordinator
from .operations.duration import parse_ago
from .operations.selection import compile_filter
from .operations.tags import purge_tags as _purge_tags


def _validate(options: PurgeOptions) -> None:
    # Malformed input must fail before any network call
    parse_ago(options.ago)
    compile_filter(options.filter)


def _coordinator(
    options: PurgeOptions, report: Optional[Callable[[str], None]]
) -> DeletionCoordinator:
    return DeletionCoordinator(
        report=report,
        continue_on_error=options.continue_on_error,
        dry_run=options.dry_run,
    )


async def purge(
    config: RegistryConfig,
    options: PurgeOptions,
    report: Optional[Callable[[str], None]] = None,
) -> PurgeResult:
    """오래된 태그를 삭제한 뒤 댕글링 매니페스트를 정리합니다.

    ``options.dangling_only`` 가 설정되면 태그 삭제는 건너뛰고
    댕글링 매니페스트만 정리합니다.

    Args:
        config: 레지스트리 연결 설정 (예: RegistryConfig("myreg.azurecr.io", auth))
        options: 실행 옵션 (저장소, 기간, 필터, 아카이브 저장소 등)
        report: 삭제된 항목마다 한 줄씩 호출되는 함수 (기본값: 로그 출력)

    Returns:
        PurgeResult: 삭제된 항목과 실패 목록

    Raises:
        ParseError: 기간 표현식이 잘못된 경우
        PatternError: 필터 정규식이 잘못된 경우
        RegistryError: 레지스트리 요청 실패 시 (continue_on_error 가 아닌 경우)

    Examples:
        # 1일보다 오래된 hello 로 시작하는 태그 삭제
        options = PurgeOptions(repository="myapp", ago="1d", filter="^hello.*")
        result = await purge(RegistryConfig("myreg.azurecr.io", auth), options)
    """
    if not options.dangling_only:
        _validate(options)

    coordinator = _coordinator(options, report)
    result = PurgeResult()
    async with RegistryClient(config) as client:
        await check_connectivity(client)
        if not options.dangling_only:
            result.extend(
                await _purge_tags(client, options, coordinator, config.login_url)
            )
        result.extend(
            await purge_dangling_manifests(client, options, coordinator, config.login_url)
        )
    return result


async def purge_tags(
    config: RegistryConfig,
    options: PurgeOptions,
    report: Optional[Callable[[str], None]] = None,
) -> PurgeResult:
    """기간과 필터 조건에 맞는 태그만 삭제합니다.

    아카이브 저장소가 지정되면 태그 이름을 아카이브 기록에 추가한 뒤 삭제합니다.

    Args:
        config: 레지스트리 연결 설정
        options: 실행 옵션
        report: 삭제된 태그마다 호출되는 함수

    Returns:
        PurgeResult: 삭제된 태그와 실패 목록

    Raises:
        ParseError: 기간 표현식이 잘못된 경우
        PatternError: 필터 정규식이 잘못된 경우
        RegistryError: 레지스트리 요청 실패 시
    """
    _validate(options)

    async with RegistryClient(config) as client:
        await check_connectivity(client)
        return await _purge_tags(
            client, options, _coordinator(options, report), config.login_url
        )


async def purge_dangling(
    config: RegistryConfig,
    options: PurgeOptions,
    report: Optional[Callable[[str], None]] = None,
) -> PurgeResult:
    """태그가 하나도 없는 매니페스트를 삭제하거나 아카이브로 옮깁니다.

    Args:
        config: 레지스트리 연결 설정
        options: 실행 옵션 (repository, archive_repository 사용)
        report: 정리된 매니페스트마다 호출되는 함수

    Returns:
        PurgeResult: 정리된 매니페스트와 실패 목록

    Raises:
        RegistryError: 레지스트리 요청 실패 시
        MetadataError: 아카이브 기록을 읽거나 쓸 수 없는 경우

    Note:
        아카이브 이동이 중간에 실패하면 원본 매니페스트는 삭제되지 않습니다.
    """
    async with RegistryClient(config) as client:
        await check_connectivity(client)
        return await purge_dangling_manifests(
            client, options, _coordinator(options, report), config.login_url
        )


async def unarchive(
    config: RegistryConfig,
    archive_repository: str,
    reference: str,
    new_tag_name: Optional[str] = None,
    repository: Optional[str] = None,
    report: Optional[Callable[[str], None]] = None,
) -> list[str]:
    """아카이브된 이미지를 원래 저장소로 복원합니다.

    Args:
        config: 레지스트리 연결 설정
        archive_repository: 아카이브 저장소 이름
        reference: 복원할 매니페스트 digest (예: "sha256:abc123...")
        new_tag_name: 지정하면 기록된 태그 대신 이 태그로만 복원
        repository: 복원할 저장소 (기본값: 아카이브 기록의 원본 저장소)
        report: 복원된 참조마다 호출되는 함수

    Returns:
        list[str]: 복원된 참조 목록 (예: ["myapp:v1", "myapp:latest"])

    Raises:
        ValidationError: reference 가 digest 형식이 아닌 경우
        MetadataError: 아카이브 기록이 없거나 잘못된 경우
        RegistryError: 레지스트리 요청 실패 시

    Examples:
        # 기록된 원래 태그로 복원
        await unarchive(config, "archive", "sha256:abc123...")

        # 새 태그로 복원
        await unarchive(config, "archive", "sha256:abc123...", new_tag_name="restored")
    """
    archive_tag_name(archive_repository, reference)

    async with RegistryClient(config) as client:
        await check_connectivity(client)
        return await unarchive_manifest(
            client,
            archive_repository,
            reference,
            new_tag_name=new_tag_name,
            repository=repository,
            report=report,
        )
