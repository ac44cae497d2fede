import pytest

from bytewise.filesize import FileSizeUnit
from bytewise.models import EngineState
from bytewise.progress import MemoryBlobStore
from bytewise.scheduler import ManualTickSource
from bytewise.service import FILE_SIZE_MODULE, KNOWN_MODULES, ByteWiseService
from bytewise.variants import BitwiseVariant, PermissionsVariant
from conftest import ScriptedRandom


def _service(values: list[int] | None = None) -> ByteWiseService:
    return ByteWiseService(blobs=MemoryBlobStore(), ticks=ManualTickSource(), rng=ScriptedRandom(values or []))


def test_new_engine_shares_progress_and_ticks() -> None:
    service = _service([7])
    engine = service.new_engine("binary")
    assert engine.progress is service.progress
    assert engine.ticks is service.ticks
    assert engine.start()
    assert engine.snapshot().target == 7
    assert engine.state is EngineState.ACTIVE


def test_new_engine_variants() -> None:
    service = _service()
    bitwise = service.new_engine("bitwise", operation="XOR")
    assert isinstance(bitwise.variant, BitwiseVariant)
    assert bitwise.variant.operation == "XOR"
    permissions = service.new_engine("permissions")
    assert isinstance(permissions.variant, PermissionsVariant)
    assert permissions.variant.scenarios == tuple(service.scenarios)


def test_module_states_list_known_modules_first() -> None:
    service = _service()
    service.progress.update("Custom", False, 3)
    service.progress.update("Hexadecimal", True, 120)
    states = service.list_module_states()
    assert [state.module_key for state in states] == [key for key, _ in KNOWN_MODULES] + ["Custom"]
    hexadecimal = states[1]
    assert hexadecimal.title == "Hexadecimal"
    assert hexadecimal.completed and hexadecimal.score == 120
    assert states[0].score == 0 and states[0].last_accessed is None


def test_file_size_conversions_accumulate_points() -> None:
    service = _service()
    result = service.convert_file_size("2", FileSizeUnit.KIBIBYTE, FileSizeUnit.BYTE)
    assert result.target_value == 2048
    record = service.progress.get(FILE_SIZE_MODULE)
    assert record is not None and record.score == 30 and not record.completed

    for _ in range(16):
        service.convert_file_size("1", FileSizeUnit.BYTE, FileSizeUnit.BYTE)
    record = service.progress.get(FILE_SIZE_MODULE)
    assert record is not None and record.score == 510 and record.completed

    for _ in range(8):
        service.convert_file_size("1", FileSizeUnit.BYTE, FileSizeUnit.BYTE)
    record = service.progress.get(FILE_SIZE_MODULE)
    assert record is not None and record.score == 750
    assert "size_expert" in record.achievements


def test_invalid_file_size_banks_nothing() -> None:
    service = _service()
    with pytest.raises(ValueError, match="valid number"):
        service.convert_file_size("lots", FileSizeUnit.BYTE, FileSizeUnit.KIBIBYTE)
    assert service.progress.get(FILE_SIZE_MODULE) is None


def test_achievement_overview_and_reset() -> None:
    service = _service()
    service.progress.update("App_COLOR CODING", True, 250)
    statuses = {status.achievement.id: status for status in service.list_achievements()}
    assert statuses["color_master"].ratio == pytest.approx(0.5)
    assert not statuses["color_master"].earned

    service.progress.update("App_COLOR CODING", True, 600)
    service.achievements.check_and_award("App_COLOR CODING", 600)
    statuses = {status.achievement.id: status for status in service.list_achievements()}
    assert statuses["color_master"].earned
    assert statuses["color_master"].ratio == 1.0

    service.reset_all_progress()
    record = service.progress.get("App_COLOR CODING")
    assert record is not None and record.score == 0 and not record.achievements


def test_sqlite_backed_service_persists(tmp_path) -> None:
    db_path = tmp_path / "progress.db"
    service = ByteWiseService(db_path, ticks=ManualTickSource())
    service.progress.update("BinaryBasics", False, 40)
    service.close()
    service.close()

    reopened = ByteWiseService(db_path, ticks=ManualTickSource())
    try:
        record = reopened.progress.get("BinaryBasics")
        assert record is not None and record.score == 40
    finally:
        reopened.close()


def test_corrupt_database_starts_with_empty_progress(tmp_path) -> None:
    db_path = tmp_path / "progress.db"
    db_path.write_bytes(b"this is not a sqlite database at all" * 100)

    service = ByteWiseService(db_path, ticks=ManualTickSource())
    try:
        assert service.progress.modules() == {}
        service.progress.update("Hexadecimal", False, 15)
    finally:
        service.close()

    reopened = ByteWiseService(db_path, ticks=ManualTickSource())
    try:
        record = reopened.progress.get("Hexadecimal")
        assert record is not None and record.score == 15
    finally:
        reopened.close()
