"""Tests for the Markdown run log."""

from ecd_logs import RunLogger, mask_passport
from ecd_core.models import IssueReason, ValidationIssue


def test_mask_passport():
    assert mask_passport("A1234567") == "*****567"
    assert mask_passport("AB") == "**"


def test_log_sections_and_toc(tmp_path):
    run_log = RunLogger(passport="A1234567", url="https://ecd.beacukai.go.id/",
                        log_dir=str(tmp_path), session_id="test")
    run_log.log_heading("entry")
    run_log.log_step_result("entry", True, 120)
    run_log.log_heading("Passenger details")
    run_log.log_kv("nationality", "ok")
    run_log.finalize(True, 4200)

    content = (tmp_path / "submission-test.md").read_text(encoding="utf-8")
    assert "- [entry](#entry)" in content
    assert "- [Passenger details](#passenger-details)" in content
    assert "(no sections yet)" not in content
    assert "*****567" in content
    assert "A1234567" not in content
    assert "**entry:** ✅ (120ms)" in content
    assert "✅ SUCCESS" in content
    assert run_log.log_path.endswith("submission-test.md")


def test_log_issues_table(tmp_path):
    run_log = RunLogger(passport="A1234567", url=None, log_dir=str(tmp_path), session_id="issues")
    run_log.log_issues([
        ValidationIssue(field_ref="nama", reason=IssueReason.EMPTY_REQUIRED, field_key="fullPassportName"),
    ], "Remaining")
    run_log.log_issues([], "After repair")

    content = (tmp_path / "submission-issues.md").read_text(encoding="utf-8")
    assert "### Remaining" in content
    assert "| nama " in content
    assert "empty_required" in content
    assert "**After repair:** none" in content


def test_log_image_relative(tmp_path):
    shot = tmp_path / "diag" / "qr-extraction-error.png"
    shot.parent.mkdir()
    shot.write_bytes(b"png")
    run_log = RunLogger(passport="X", url=None, log_dir=str(tmp_path / "logs"), session_id="img")

    run_log.log_image(str(shot), "Extraction failure")

    content = (tmp_path / "logs" / "submission-img.md").read_text(encoding="utf-8")
    assert "![Extraction failure](../diag/qr-extraction-error.png)" in content
