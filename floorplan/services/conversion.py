"""
DWG -> DXF conversion via an external converter.

The converter is a command template with two placeholders, {input} and
{output}, for example (a wrapper around ODAFileConverter)::

    DWG_CONVERTER_CMD="dwg2dxf {input} {output}"

When no converter is configured, binary drawings are reported as
UnsupportedFormat and the editor keeps working without an outline.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from .errors import UnsupportedFormat

logger = logging.getLogger(__name__)

CONVERTER_HINT = (
    "Set DWG_CONVERTER_CMD to a DWG->DXF converter command, for example:\n"
    '  DWG_CONVERTER_CMD="dwg2dxf {input} {output}"\n'
    "where 'dwg2dxf' is a small wrapper around ODAFileConverter.\n"
    "Alternatively, upload DXF directly."
)


class DwgConverter:
    """Runs the configured external converter on DWG bytes."""

    def __init__(self, cmd_template: Optional[str], timeout: float = 120.0):
        self.cmd_template = cmd_template
        self.timeout = timeout

    def is_available(self) -> bool:
        return bool(self.cmd_template)

    def convert(self, data: bytes, name: str = "drawing.dwg") -> str:
        """
        Convert DWG bytes and return the DXF text.

        Raises:
            UnsupportedFormat: no converter, a bad command template, or any
                failure while running the converter.
        """
        if not self.cmd_template:
            raise UnsupportedFormat("DWG_CONVERTER_CMD is not configured.\n" + CONVERTER_HINT)

        try:
            with tempfile.TemporaryDirectory(prefix="floorplan-dwg-") as tmp:
                dwg_path = Path(tmp) / (Path(name).stem + ".dwg")
                dxf_path = dwg_path.with_suffix(".dxf")
                cmd = self._command(dwg_path, dxf_path)
                dwg_path.write_bytes(data)

                logger.info("Converting %s with external converter", name)
                try:
                    completed = subprocess.run(
                        cmd, shell=True, capture_output=True, text=True, timeout=self.timeout
                    )
                except subprocess.TimeoutExpired as exc:
                    raise UnsupportedFormat(f"DWG conversion timed out after {self.timeout:.0f}s") from exc

                if completed.returncode != 0:
                    raise UnsupportedFormat(
                        f"DWG conversion failed: {completed.stderr or completed.stdout}"
                    )
                if not dxf_path.exists():
                    raise UnsupportedFormat("DWG conversion produced no DXF output")

                return dxf_path.read_text(errors="ignore")
        except OSError as exc:
            raise UnsupportedFormat(f"DWG conversion failed: {exc}") from exc

    def _command(self, dwg_path: Path, dxf_path: Path) -> str:
        try:
            return self.cmd_template.format(input=str(dwg_path), output=str(dxf_path))
        except (KeyError, IndexError, ValueError) as exc:
            raise UnsupportedFormat(
                f"DWG_CONVERTER_CMD is not a usable template ({exc!r}); "
                "only {input} and {output} are substituted.\n" + CONVERTER_HINT
            ) from exc
