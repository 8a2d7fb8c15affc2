"""Tests for submission outcome classification and confirmation extraction."""

import pytest

from ecd_core.confirmation import ConfirmationExtractor, describe_image, parse_confirmation
from ecd_core.errors import AutomationError, ExtractionFailure
from ecd_core.field_registry import registry
from ecd_core.models import CaptureMethod, SubmitOutcome
from fake_site import DOWNLOAD_GUID, FakeFormPage, make_png

CONSENT = registry.steps[-1]


class TestParseConfirmation:

    def test_positional(self):
        dialog = {
            "message": "Terima kasih",
            "headings": [
                {"text": "BALI (DPS) / NGURAH RAI", "centered": True},
                {"text": "Q7W8E9", "centered": True},
                {"text": "KPPBC TMP A NGURAH RAI", "centered": True},
            ],
        }
        parsed = parse_confirmation(dialog)
        assert parsed == {
            "message": "Terima kasih",
            "port_info": "BALI (DPS) / NGURAH RAI",
            "registration_number": "Q7W8E9",
            "customs_office": "KPPBC TMP A NGURAH RAI",
        }

    def test_shape_pass_fills_gaps(self):
        dialog = {
            "message": "",
            "headings": [
                {"text": "Nomor Registrasi", "centered": False},
                {"text": "JAKARTA (CGK) / SOEKARNO HATTA", "centered": False},
                {"text": "ZX98YU", "centered": False},
                {"text": "KANTOR BEA CUKAI SOEKARNO HATTA", "centered": False},
            ],
        }
        parsed = parse_confirmation(dialog)
        assert parsed["registration_number"] == "ZX98YU"
        assert parsed["port_info"] == "JAKARTA (CGK) / SOEKARNO HATTA"
        assert parsed["customs_office"] == "KANTOR BEA CUKAI SOEKARNO HATTA"
        assert parsed["message"] is None

    def test_registration_shape_is_strict(self):
        dialog = {"headings": [{"text": "PORT", "centered": True}, {"text": "AB-123", "centered": True}]}
        assert parse_confirmation(dialog)["registration_number"] is None

    def test_no_dialog(self):
        assert parse_confirmation(None)["registration_number"] is None


def test_describe_image():
    assert describe_image(make_png((120, 80))) == ("png", 120, 80)


def test_describe_image_rejects_garbage():
    with pytest.raises(ExtractionFailure):
        describe_image(b"not an image")


@pytest.fixture
def consent_site(site):
    site.page = "consent"
    site.accepted = True
    site.radios = {"bringGoods": "false", "bringGadgets": "false"}
    return site


@pytest.fixture
def extractor(consent_site, tmp_path):
    consent_site.download_dir = tmp_path / "downloads"
    return ConfirmationExtractor(FakeFormPage(consent_site), download_dir=tmp_path / "downloads",
                                 outcome_timeout=0.1, dialog_timeout=0.1, download_timeout=0.3,
                                 poll_interval=0.01)


class TestSubmit:

    @pytest.mark.asyncio
    async def test_confirmed(self, extractor, consent_site):
        assert await extractor.submit(CONSENT) == SubmitOutcome.CONFIRMED
        assert consent_site.submits == 1

    @pytest.mark.asyncio
    async def test_validation_error(self, extractor, consent_site):
        consent_site.reject_submits = 1
        assert await extractor.submit(CONSENT) == SubmitOutcome.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_ambiguous(self, extractor, consent_site):
        consent_site.stuck_pages.add("consent")
        assert await extractor.submit(CONSENT) == SubmitOutcome.AMBIGUOUS

    @pytest.mark.asyncio
    async def test_missing_submit_button(self, extractor, consent_site):
        consent_site.page = "passenger"
        with pytest.raises(AutomationError):
            await extractor.submit(CONSENT)


class TestExtract:

    @pytest.mark.asyncio
    async def test_direct_download(self, extractor, consent_site):
        consent_site.dialog_open = True

        artifact = await extractor.extract()

        assert artifact.registration_number == "AB12CD"
        assert artifact.port_info == "JAKARTA (CGK) / SOEKARNO HATTA"
        assert artifact.customs_office == "KPPBC TMP SOEKARNO HATTA"
        assert artifact.capture_method == CaptureMethod.DIRECT
        assert artifact.image.format == "png"
        assert extractor.last_download is not None
        assert extractor.last_download.exists()

    @pytest.mark.asyncio
    async def test_download_seen_on_filesystem_only(self, extractor, consent_site):
        consent_site.download_mode = "file"
        consent_site.dialog_open = True

        artifact = await extractor.extract()

        assert artifact.capture_method == CaptureMethod.DIRECT
        assert extractor.last_download.name == DOWNLOAD_GUID
        assert artifact.image.format == "png"

    @pytest.mark.asyncio
    async def test_unreadable_download_falls_back_to_screenshot(self, extractor, consent_site):
        consent_site.download_mode = "corrupt"
        consent_site.dialog_open = True

        artifact = await extractor.extract()

        assert artifact.capture_method == CaptureMethod.FALLBACK
        assert (artifact.image.width, artifact.image.height) == (200, 200)
        assert extractor.last_download is None

    @pytest.mark.asyncio
    async def test_partial_download_ignored(self, extractor, consent_site, tmp_path):
        consent_site.download_mode = "broken"
        consent_site.dialog_open = True
        partial = tmp_path / "downloads"
        partial.mkdir(parents=True, exist_ok=True)

        async def _partial_file():
            (partial / "3f2a9c1e.crdownload").write_bytes(b"\x89PNG")
            return True

        extractor.form_page.click_download = _partial_file
        artifact = await extractor.extract()

        assert artifact.capture_method == CaptureMethod.FALLBACK

    @pytest.mark.asyncio
    async def test_fallback_screenshot(self, extractor, consent_site):
        consent_site.download_mode = "broken"
        consent_site.dialog_open = True

        artifact = await extractor.extract()

        assert artifact.capture_method == CaptureMethod.FALLBACK
        assert (artifact.image.width, artifact.image.height) == (200, 200)
        assert extractor.last_download is None

    @pytest.mark.asyncio
    async def test_no_dialog(self, extractor):
        with pytest.raises(ExtractionFailure, match="did not appear"):
            await extractor.extract()

    @pytest.mark.asyncio
    async def test_no_registration_number(self, extractor, consent_site):
        consent_site.headings = [{"text": "Terima kasih", "centered": True}]
        consent_site.dialog_open = True

        with pytest.raises(ExtractionFailure, match="registration number"):
            await extractor.extract()

    @pytest.mark.asyncio
    async def test_container_never_renders(self, extractor, consent_site):
        consent_site.download_mode = "broken"
        consent_site.dialog_open = True
        consent_site.qr_rendered = False

        with pytest.raises(ExtractionFailure):
            await extractor.extract()
