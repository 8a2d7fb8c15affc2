"""
In-memory stand-in for the e-CD site.

FakeSite holds the state of one declaration form: the current page, text
values, select widgets, radio groups, repeating rows and the confirmation
dialog. FakeFormPage and FakeSelectDriver expose that state through the same
methods as ecd_core.dom.FormPage and ecd_core.dom.AntSelectDriver, so the
whole pipeline runs unchanged without a browser.

Knobs for failure scenarios:
    dead_controls     select locators whose direct click never opens the list
    inert_selects     select locators that never open at all
    broken_inputs     text locators that refuse input
    lost_answers      radio groups whose first answer is dropped
    stuck_pages       pages whose advance button does nothing
    reject_submits    number of submits rejected with a global error message
    download_mode     "event" (browser download), "file" (file appears in the
                      download directory only), "corrupt" (the download
                      is an HTML page), "broken" (nothing arrives)
    qr_rendered       whether the QR container is in the dialog
    unreachable       goto() raises NetworkError
"""

import asyncio
import io
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from PIL import Image, ImageDraw

from ecd_core.retry import NetworkError
from ecd_core.value_maps import COUNTRY_NAMES, CURRENCY_NAMES, PORT_NAMES

PASSENGER_INPUTS = ("#paspor", "#nama", "#nomorPengangkut", "#bagasiDibawa")
PASSENGER_SELECTS = (
    "#lokasiKedatangan",
    "#tanggalKedatangan",
    "#tanggalLahirTgl",
    "#tanggalLahirBln",
    "#tanggalLahirThn",
    "#kodeNegara",
)
FAMILY_FIELD = re.compile(r"^#dataKeluarga_(\d+)_(paspor|nama|kodeNegara)$")
GOODS_FIELD = re.compile(r"^#dataBarang_(\d+)_(uraian|jumlahSatuan|hargaSatuan|kodeMataUang)$")
RADIO_NAME = re.compile(r'\[name="([^"]*)"\]')

DEFAULT_HEADINGS = [
    {"text": "JAKARTA (CGK) / SOEKARNO HATTA", "centered": True},
    {"text": "AB12CD", "centered": True},
    {"text": "KPPBC TMP SOEKARNO HATTA", "centered": True},
]
DEFAULT_MESSAGE = "Terima kasih, data Anda berhasil disimpan"
DOWNLOAD_GUID = "3f2a9c1e-5b7d-4e21-9a0c-6d8e1f4b2a77"
EXPIRED_PAGE = b"<html><body>Session expired</body></html>"
REJECT_MESSAGE = "Terjadi kesalahan, silakan periksa kembali isian Anda"
UNANSWERED_MESSAGE = "Harap jawab semua pertanyaan"


def make_png(size=(164, 164)) -> bytes:
    """A small black/white checker image, enough to look like a code."""
    img = Image.new("RGB", size, "white")
    draw = ImageDraw.Draw(img)
    cell = max(4, size[0] // 8)
    for x in range(0, size[0], cell):
        for y in range(0, size[1], cell):
            if (x // cell + y // cell) % 3 == 0:
                draw.rectangle([x, y, x + cell - 1, y + cell - 1], fill="black")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _labels(values: Sequence[str]) -> List[Dict[str, str]]:
    return [{"title": v, "text": v} for v in values]


def _list_id(locator: str) -> str:
    return f"{locator.lstrip('#')}_list"


class FakeSite:

    def __init__(
        self,
        arrival_dates: Sequence[str] = ("19-07-2025", "20-07-2025", "21-07-2025"),
        countries: Optional[Sequence[str]] = None,
        address_locator: Optional[str] = "#domisiliJalan",
        extra_radio_groups: Sequence[str] = (),
        download_mode: str = "event",
        headings: Optional[List[Dict[str, Any]]] = None,
    ):
        self.url = "about:blank"
        self.page = "closed"
        self.address_locator = address_locator
        self.download_mode = download_mode
        self.headings = headings if headings is not None else [dict(h) for h in DEFAULT_HEADINGS]
        self.dialog_message = DEFAULT_MESSAGE
        self.qr_rendered = True
        self.unreachable = False
        self.goto_delay = 0.0

        self.options: Dict[str, List[Dict[str, str]]] = {
            "#lokasiKedatangan": _labels(list(PORT_NAMES.values())),
            "#tanggalKedatangan": _labels(list(arrival_dates)),
            "#tanggalLahirTgl": _labels([f"{d:02d}" for d in range(1, 32)]),
            "#tanggalLahirBln": _labels([f"{m:02d}" for m in range(1, 13)]),
            "#tanggalLahirThn": _labels([str(y) for y in range(1930, 2011)]),
            "#kodeNegara": _labels(list(countries or COUNTRY_NAMES.values())),
        }
        self.country_options = self.options["#kodeNegara"]
        self.currency_options = _labels(list(CURRENCY_NAMES.values()))

        self.values: Dict[str, str] = {}
        self.selections: Dict[str, str] = {}
        self.selection_history: List[tuple] = []
        self.open_list: Optional[str] = None
        self.family_rows = 0
        self.goods_rows = 0
        self.radio_groups: List[str] = ["bringGoods", "bringGadgets"] + list(extra_radio_groups)
        self.radios: Dict[str, Optional[str]] = {g: None for g in self.radio_groups}
        self.accepted = False
        self.flagged: set = set()
        self.messages: List[str] = []
        self.dialog_open = False
        self.submits = 0
        self.download_clicks = 0
        self.download_dir: Optional[Path] = None

        self.dead_controls: set = set()
        self.inert_selects: set = set()
        self.broken_inputs: set = set()
        self.lost_answers: set = set()
        self.stuck_pages: set = set()
        self.reject_submits = 0

        self.sessions = 0
        self.closed = False

    async def open_session(self, cfg) -> "FakeSession":
        self.sessions += 1
        self.download_dir = Path(cfg.download_dir)
        return FakeSession(self)

    # -- element model -------------------------------------------------------

    def page_of(self, locator: str) -> Optional[str]:
        if locator in PASSENGER_INPUTS or locator in PASSENGER_SELECTS:
            return "passenger"
        if self.address_locator and locator == self.address_locator:
            return "passenger"
        m = FAMILY_FIELD.match(locator)
        if m:
            return "passenger" if int(m.group(1)) < self.family_rows else None
        m = GOODS_FIELD.match(locator)
        if m:
            return "consent" if int(m.group(1)) < self.goods_rows else None
        if locator == "#accept":
            return "consent"
        return None

    def visible(self, locator: str) -> bool:
        return self.page != "closed" and self.page_of(locator) == self.page

    def is_select(self, locator: str) -> bool:
        if locator in PASSENGER_SELECTS:
            return True
        return locator.endswith("_kodeNegara") or locator.endswith("_kodeMataUang")

    def select_options(self, locator: str) -> List[Dict[str, str]]:
        if locator in self.options:
            return self.options[locator]
        if locator.endswith("_kodeNegara"):
            return self.country_options
        if locator.endswith("_kodeMataUang"):
            return self.currency_options
        return []

    def choose(self, locator: str, title: str):
        self.selections[locator] = title
        self.selection_history.append((locator, title))

    def radio_groups_for(self, locator: str) -> List[str]:
        if self.page != "consent" or 'type="radio"' not in locator:
            return []
        if ':not([name])' in locator:
            return [g for g in self.radio_groups if not g]
        excluded = re.search(r':not\(\[name="([^"]*)"\]\)', locator)
        if excluded:
            return [g for g in self.radio_groups if g != excluded.group(1)]
        named = RADIO_NAME.search(locator)
        if named:
            return [g for g in self.radio_groups if g == named.group(1)]
        return list(self.radio_groups)

    def required_on_page(self) -> List[str]:
        if self.page == "passenger":
            required = list(PASSENGER_INPUTS) + list(PASSENGER_SELECTS)
            if self.address_locator:
                required.append(self.address_locator)
            for i in range(self.family_rows):
                required += [f"#dataKeluarga_{i}_paspor", f"#dataKeluarga_{i}_nama",
                             f"#dataKeluarga_{i}_kodeNegara"]
            return required
        if self.page == "consent":
            required = []
            for i in range(self.goods_rows):
                required += [f"#dataBarang_{i}_uraian", f"#dataBarang_{i}_jumlahSatuan",
                             f"#dataBarang_{i}_hargaSatuan", f"#dataBarang_{i}_kodeMataUang"]
            return required
        return []

    def is_empty(self, locator: str) -> bool:
        if self.is_select(locator):
            return not self.selections.get(locator)
        return not (self.values.get(locator) or "").strip()

    def problems(self) -> List[str]:
        """Element ids the site would refuse to accept on the current page."""
        found = [loc.lstrip("#") for loc in self.required_on_page() if self.is_empty(loc)]
        if self.page == "consent" and not self.accepted:
            found.append("accept")
        return found

    # -- buttons -------------------------------------------------------------

    def buttons(self) -> List[str]:
        if self.dialog_open:
            return ["Download"]
        return {
            "landing": ["Lanjut"],
            "passenger": ["Sebelumnya", "Lanjut"],
            "consent": ["Sebelumnya", "Kirim"],
        }.get(self.page, [])

    def press(self, label: str):
        if self.page in self.stuck_pages:
            return
        if self.page == "landing":
            self.page = "passenger"
        elif self.page == "passenger" and label == "Lanjut":
            problems = self.problems()
            if problems:
                self.flagged.update(problems)
            else:
                self.page = "consent"
        elif self.page == "consent" and label == "Kirim":
            self._submit()

    def _submit(self):
        self.submits += 1
        self.messages = []
        problems = self.problems()
        unanswered = [g for g in self.radio_groups if self.radios[g] is None]
        if problems or unanswered:
            self.flagged.update(problems)
            if unanswered:
                self.messages.append(UNANSWERED_MESSAGE)
            return
        if self.reject_submits > 0:
            self.reject_submits -= 1
            self.messages.append(REJECT_MESSAGE)
            return
        self.dialog_open = True

    def scan(self) -> Dict[str, List[Any]]:
        out: Dict[str, List[Any]] = {"invalid": [], "messages": list(self.messages),
                                     "empty_required": [], "unchecked_radio_groups": []}
        if self.dialog_open:
            return out
        for loc in self.required_on_page():
            ident = loc.lstrip("#")
            if not self.is_empty(loc):
                continue
            out["empty_required"].append({"id": ident, "is_select": self.is_select(loc)})
            if ident in self.flagged:
                out["invalid"].append({"id": ident, "message": "Wajib diisi"})
        if self.page == "consent":
            if "accept" in self.flagged and not self.accepted:
                out["invalid"].append({"id": "accept", "message": "Harap setujui pernyataan"})
            out["unchecked_radio_groups"] = [g for g in self.radio_groups if self.radios[g] is None]
        return out


class FakeFormPage:
    """Same surface as ecd_core.dom.FormPage."""

    def __init__(self, site: FakeSite):
        self.site = site

    @property
    def url(self) -> str:
        return self.site.url

    async def goto(self, url: str, timeout_ms: int, max_attempts: int = 3) -> bool:
        if self.site.goto_delay:
            await asyncio.sleep(self.site.goto_delay)
        if self.site.unreachable:
            raise NetworkError(f"Navigation to {url} failed after {max_attempts} attempts: net::ERR_NAME_NOT_RESOLVED")
        self.site.url = url
        self.site.page = "landing"
        return True

    async def exists(self, selector: str) -> bool:
        return self.site.visible(selector) or bool(self.site.radio_groups_for(selector))

    async def is_visible(self, selector: str) -> bool:
        return await self.exists(selector)

    async def count_visible(self, selector: str) -> int:
        groups = self.site.radio_groups_for(selector)
        if groups:
            return 2 * len(groups)
        return 1 if self.site.visible(selector) else 0

    async def fill_text(self, selector: str, value: str) -> bool:
        if not self.site.visible(selector) or selector in self.site.broken_inputs:
            return False
        self.site.values[selector] = value
        return True

    async def set_checkbox(self, selector: str, checked: bool = True) -> bool:
        if selector != "#accept" or not self.site.visible(selector):
            return False
        self.site.accepted = checked
        return True

    async def is_checked(self, selector: str) -> bool:
        return selector == "#accept" and self.site.accepted

    async def choose_radio(self, locator: str, value: bool) -> bool:
        groups = self.site.radio_groups_for(locator)
        if not groups:
            return False
        group = groups[0]
        if group in self.site.lost_answers:
            self.site.lost_answers.discard(group)
            return False
        self.site.radios[group] = "true" if value else "false"
        return True

    async def click_button(self, words: Sequence[str]) -> bool:
        for label in self.site.buttons():
            if any(w in label.lower() for w in words):
                self.site.press(label)
                return True
        return False

    async def click_add_button(self, text: str) -> bool:
        if self.site.dialog_open:
            return False
        if self.site.page == "passenger":
            self.site.family_rows += 1
            return True
        if self.site.page == "consent":
            self.site.goods_rows += 1
            return True
        return False

    async def scan_validation(self) -> Dict[str, List[Any]]:
        return self.site.scan()

    async def dialog_state(self) -> Dict[str, bool]:
        open_ = self.site.dialog_open
        return {
            "confirmation_dialog_present": open_,
            "artifact_container_present": open_ and self.site.qr_rendered,
            "success_text_present": open_,
        }

    async def read_dialog(self) -> Optional[Dict[str, Any]]:
        if not self.site.dialog_open:
            return None
        return {"message": self.site.dialog_message, "headings": [dict(h) for h in self.site.headings]}

    async def click_download(self) -> bool:
        if not self.site.dialog_open:
            return False
        self.site.download_clicks += 1
        if self.site.download_mode == "file":
            target = self.site.download_dir / DOWNLOAD_GUID
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(make_png())
        return True

    async def wait_for_download(self, dest_dir: Path, timeout_ms: int) -> Optional[Path]:
        deadline = asyncio.get_running_loop().time() + timeout_ms / 1000
        while asyncio.get_running_loop().time() < deadline:
            if self.site.download_mode in ("event", "corrupt") and self.site.download_clicks:
                target = Path(dest_dir) / "qrcode.png"
                target.write_bytes(make_png() if self.site.download_mode == "event" else EXPIRED_PAGE)
                return target
            await asyncio.sleep(0.01)
        raise TimeoutError(f"Timeout {timeout_ms}ms exceeded while waiting for event \"download\"")

    async def screenshot_element(self, selector: str = "#myqrcode .ant-qrcode") -> Optional[bytes]:
        if not (self.site.dialog_open and self.site.qr_rendered):
            return None
        return make_png((200, 200))

    async def screenshot_page(self) -> bytes:
        return make_png((320, 240))

    async def visible_text(self, limit: int = 1000) -> str:
        if self.site.dialog_open:
            text = f"{self.site.dialog_message}\n" + "\n".join(h["text"] for h in self.site.headings)
        else:
            text = f"Electronic Customs Declaration - {self.site.page}"
        return text[:limit]


class FakeSelectDriver:
    """Same surface as ecd_core.dom.AntSelectDriver."""

    def __init__(self, site: FakeSite):
        self.site = site
        self.calls: List[tuple] = []

    async def click_control(self, locator: str) -> bool:
        self.calls.append(("click", locator))
        if not self.site.visible(locator):
            raise RuntimeError(f"Timeout 2000ms exceeded waiting for {locator}")
        if locator not in self.site.dead_controls and locator not in self.site.inert_selects:
            self.site.open_list = locator
        return True

    async def click_container(self, locator: str) -> bool:
        self.calls.append(("container", locator))
        if not self.site.visible(locator) or locator in self.site.inert_selects:
            return False
        self.site.open_list = locator
        return True

    async def dispatch_pointer(self, locator: str) -> bool:
        self.calls.append(("pointer", locator))
        if not self.site.visible(locator) or locator in self.site.inert_selects:
            return False
        self.site.open_list = locator
        return True

    async def is_list_open(self, list_id: Optional[str] = None) -> bool:
        return bool(await self.read_options(list_id))

    async def read_options(self, list_id: Optional[str] = None) -> List[Dict[str, str]]:
        locator = self.site.open_list
        if locator is None:
            return []
        if list_id and _list_id(locator) != list_id:
            return []
        return [dict(o) for o in self.site.select_options(locator)]

    async def click_option(self, index: int, list_id: Optional[str] = None) -> bool:
        options = await self.read_options(list_id)
        if index >= len(options):
            return False
        self.site.choose(self.site.open_list, options[index]["title"])
        return True

    async def close(self) -> None:
        self.site.open_list = None

    async def read_selection(self, locator: str) -> str:
        return self.site.selections.get(locator, "")


class FakeSession:

    def __init__(self, site: FakeSite):
        self.site = site
        self.form_page = FakeFormPage(site)
        self.select_driver = FakeSelectDriver(site)

    async def close(self):
        self.site.closed = True
