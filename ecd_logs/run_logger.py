"""
Run Logger - Markdown log of one customs submission attempt

Provides:
- Table of Contents kept up to date as steps are added
- Step results with timing
- Validation issue tables
- Embedded diagnostic screenshots
"""

import json
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Sequence

TOC_START = "<!-- TOC -->"
TOC_END = "<!-- /TOC -->"


def mask_passport(passport_number: str) -> str:
    """Keep only the last three characters of a passport number."""
    p = (passport_number or "").strip()
    if len(p) <= 3:
        return "*" * len(p)
    return "*" * (len(p) - 3) + p[-3:]


class RunLogger:
    """
    Markdown run logger for step-by-step diagnostics (with TOC and images).

    Usage:
        run_log = RunLogger(passport="A1234567", url="https://ecd.beacukai.go.id/")
        run_log.log_heading("passenger")
        run_log.log_kv("portOfArrival", "JAKARTA (CGK) / SOEKARNO HATTA")
        run_log.log_issues(report.issues_after, "Remaining issues")
        run_log.finalize(True, duration_ms=41250)
    """

    def __init__(
        self,
        passport: str,
        url: Optional[str],
        log_dir: str = "./logs",
        session_id: Optional[str] = None
    ):
        self.session_id = session_id or datetime.now().strftime('%Y%m%d-%H%M%S-%f')
        self.dir = Path(log_dir)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.path = self.dir / f'submission-{self.session_id}.md'
        self._toc: List[str] = []

        with open(self.path, 'w', encoding='utf-8') as f:
            f.write(f"# e-CD Submission Log ({self.session_id})\n\n")
            f.write("## Navigation\n\n")
            f.write(f"{TOC_START}\n(no sections yet)\n{TOC_END}\n\n")
            if url:
                f.write(f"- **URL**: {url}\n")
            f.write(f"- **Passport**: {mask_passport(passport)}\n")
            f.write(f"- **Started**: {datetime.now().isoformat()}\n\n")

    def _write(self, text: str):
        """Append text to log file"""
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(text)

    def log_heading(self, text: str):
        self._write("\n---\n\n")
        self._write(f"## {text}\n\n")
        self._toc.append(text)
        self._update_toc()

    def log_text(self, text: str):
        self._write(f"{text}\n\n")

    def log_kv(self, key: str, value: Any):
        self._write(f"- {key}: {value}\n")

    def log_image(self, image_path: str, alt: str = ""):
        """Embed an image using a path relative to the log directory."""
        img = Path(image_path)
        try:
            rel = os.path.relpath(img.resolve(), start=self.dir.resolve())
        except ValueError:
            # Different drive on Windows
            rel = str(img)
        self._write(f"![{alt or img.name}]({rel})\n\n")

    def log_table(self, headers: Sequence[str], rows: Sequence[Sequence[Any]], title: str = ""):
        if title:
            self._write(f"### {title}\n\n")
        if not headers or not rows:
            return

        col_widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row[:len(headers)]):
                col_widths[i] = max(col_widths[i], len(str(cell)))

        self._write("| " + " | ".join(h.ljust(col_widths[i]) for i, h in enumerate(headers)) + " |\n")
        self._write("|" + "|".join("-" * (w + 2) for w in col_widths) + "|\n")
        for row in rows:
            padded = list(row) + [""] * (len(headers) - len(row))
            self._write("| " + " | ".join(str(c).ljust(col_widths[i]) for i, c in enumerate(padded[:len(headers)])) + " |\n")
        self._write("\n")

    def log_issues(self, issues: Sequence[Any], title: str = "Validation issues"):
        rows = [
            [i.field_ref, i.reason.value, i.field_key or "-", (i.remediation_hint or "")[:60]]
            for i in issues
        ]
        if rows:
            self.log_table(["Field", "Reason", "Key", "Hint"], rows, title)
        else:
            self.log_text(f"**{title}:** none")

    def log_step_result(self, step: str, success: bool, duration_ms: int, details: Optional[str] = None):
        status = "✅" if success else "❌"
        self._write(f"**{step}:** {status} ({duration_ms}ms)\n")
        if details:
            self._write(f"  - {details}\n")
        self._write("\n")

    def log_json(self, data: Any, title: str = "Data"):
        self._write(f"### {title}\n\n")
        self._write(f"```json\n{json.dumps(data, indent=2, ensure_ascii=False, default=str)}\n```\n\n")

    def finalize(self, success: bool, duration_ms: int = 0, error: Optional[str] = None):
        self._write("\n---\n\n")
        self._write("## Summary\n\n")
        self._write(f"**Status:** {'✅ SUCCESS' if success else '❌ FAILED'}\n")
        self._write(f"**Duration:** {duration_ms}ms\n")
        if error:
            self._write(f"\n**Error:** {error}\n")
        self._write("\n")

    def _slugify(self, text: str) -> str:
        s = text.strip().lower()
        s = re.sub(r"[^a-z0-9\s-]", "", s)
        s = re.sub(r"\s+", "-", s)
        return s

    def _update_toc(self):
        with open(self.path, 'r', encoding='utf-8') as fr:
            content = fr.read()
        items = "\n".join(f"- [{title}](#{self._slugify(title)})" for title in self._toc)
        start = content.index(TOC_START) + len(TOC_START)
        end = content.index(TOC_END)
        content = content[:start] + "\n" + items + "\n" + content[end:]
        with open(self.path, 'w', encoding='utf-8') as fw:
            fw.write(content)

    @property
    def log_path(self) -> str:
        return str(self.path)
