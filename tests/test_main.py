import json
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

import main
from models import Record
from record_store import CsvRecordStore


@pytest.fixture
def data_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    monkeypatch.setattr(main, "load_dotenv", lambda: None)
    with patch.dict("os.environ", {"SFA_DATA_DIR": str(tmp_path), "BATCH_ITEM_DELAY": "0"}, clear=True):
        yield tmp_path


def test_parse_args_register_images() -> None:
    args = main.parse_args(["register", "--image", "a.jpg", "--image", "b.jpg", "--mode", "multi"])
    assert args.command == "register"
    assert args.image == [Path("a.jpg"), Path("b.jpg")]
    assert args.mode == "multi"
    assert args.dry_run is False


def test_parse_args_requires_card_source() -> None:
    with pytest.raises(SystemExit):
        main.parse_args(["register"])


def test_register_dry_run_writes_nothing(data_env: Path) -> None:
    cards = data_env / "cards.json"
    cards.write_text(json.dumps([{"companyName": "Acme", "fullName": "Jane"}]), encoding="utf-8")

    assert main.main(["register", "--cards", str(cards), "--dry-run"]) == 0
    assert CsvRecordStore(data_env).read_all() == []


def test_register_from_json_without_api_key_still_writes_rows(data_env: Path) -> None:
    cards = data_env / "cards.json"
    cards.write_text(json.dumps({"companyName": "Acme Inc.", "name": "Jane Doe"}), encoding="utf-8")

    with patch("api_client.requests.request") as mock_request:
        code = main.main(["register", "--cards", str(cards), "--staff", "Sato"])

    assert code == 0
    mock_request.assert_not_called()
    rows = CsvRecordStore(data_env).read_all()
    assert [(r.company_name, r.full_name, r.staff_name) for r in rows] == [("Acme Inc.", "Jane Doe", "Sato")]
    assert rows[0].industry == "分析失敗"
    assert rows[0].company_site


def test_dormant_dry_run_skips_api(data_env: Path) -> None:
    old = (datetime.now(UTC) - timedelta(days=400)).isoformat()
    CsvRecordStore(data_env).append(Record(company_name="Old", last_contact=old))

    with patch.object(main, "run_dormant_revival") as mock_job:
        assert main.main(["dormant", "--dry-run"]) == 0
    mock_job.assert_not_called()


def test_related_backfill_runs_job(data_env: Path) -> None:
    run = MagicMock()
    run.summary.return_value = "related_backfill: processed=0 errors=0 total=0"
    with patch.object(main, "run_related_backfill", return_value=run) as mock_job:
        assert main.main(["related-backfill"]) == 0
    mock_job.assert_called_once()


def test_stats_prints_json(data_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    store = CsvRecordStore(data_env)
    store.append(Record(company_name="A", industry="IT", staff_name="Sato"))

    assert main.main(["stats"]) == 0

    stats = json.loads(capsys.readouterr().out)
    assert stats["total"] == 1
    assert stats["unknown"] == 1
    assert stats["industries"] == [{"name": "IT", "count": 1}]
