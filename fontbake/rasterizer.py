"""
fontbake Rasterization Adapter

Runs an external outline-to-bitmap rasterizer (otf2bdf) and returns its BDF
output. Anything with a `rasterize(request) -> str` method can stand in for
it; the pipeline never calls subprocess itself.
"""

import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .encoder import I8
from .model import ConversionRequest, FontBakeError, compress_ranges


ENV_BINARY = "FONTBAKE_OTF2BDF"


class RasterizationError(FontBakeError):
    """External rasterizer missing, refused the input, or failed."""
    stage = "rasterize"

    def __init__(self, message: str, command: Optional[list[str]] = None,
                 returncode: Optional[int] = None, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        if returncode is not None:
            message += f" (exit code {returncode})"
        if command:
            message += f"\n  command: {' '.join(command)}"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        super().__init__(message)


@dataclass
class RasterizerConfig:
    """How to find and drive otf2bdf."""
    binary: str = "otf2bdf"
    dpi: int = 72  # at 72 dpi one point is one pixel
    min_size: int = 1
    max_size: int = I8[1]  # ascent is stored as a signed byte
    extra_args: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "RasterizerConfig":
        """Default config, with the binary overridable from the environment."""
        if environ is None:
            environ = os.environ
        config = cls()
        if environ.get(ENV_BINARY):
            config.binary = environ[ENV_BINARY]
        return config


def subset_argument(charset) -> str:
    """otf2bdf -l value: space-separated lo_hi runs."""
    return " ".join(f"{lo}_{hi}" for lo, hi in compress_ranges(charset))


class Otf2BdfRasterizer:
    """Rasterizes through an otf2bdf subprocess."""

    def __init__(self, config: Optional[RasterizerConfig] = None,
                 runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
                 which: Callable[[str], Optional[str]] = shutil.which):
        self.config = config or RasterizerConfig.from_env()
        self.runner = runner
        self.which = which

    def find_binary(self) -> str:
        """Resolve the rasterizer executable on PATH."""
        path = self.which(self.config.binary)
        if path is None:
            raise RasterizationError(
                f"{self.config.binary} not found on PATH "
                f"(install otf2bdf, e.g. 'sudo apt install otf2bdf', or set {ENV_BINARY})")
        return path

    def check_request(self, request: ConversionRequest) -> None:
        """Reject requests the rasterizer would fail on or misread."""
        lo, hi = self.config.min_size, self.config.max_size
        if not lo <= request.pixel_size <= hi:
            raise RasterizationError(f"pixel size {request.pixel_size} outside "
                                     f"supported range {lo}..{hi}")
        # An empty -l filter would emit the whole repertoire
        if not request.charset:
            raise RasterizationError("empty character set")
        font = Path(request.font_path)
        if not font.is_file():
            raise RasterizationError(f"font file not found: {font}")
        if not os.access(font, os.R_OK):
            raise RasterizationError(f"font file not readable: {font}")

    def command(self, request: ConversionRequest, binary: str) -> list[str]:
        """Build the otf2bdf command line."""
        return [
            binary,
            "-p", str(request.pixel_size),
            "-r", str(self.config.dpi),
            "-l", subset_argument(request.charset),
            *self.config.extra_args,
            str(request.font_path),
        ]

    def rasterize(self, request: ConversionRequest) -> str:
        """Run otf2bdf and return its BDF text."""
        self.check_request(request)
        cmd = self.command(request, self.find_binary())
        try:
            result = self.runner(cmd, capture_output=True, text=True,
                                 encoding="utf-8", errors="replace")
        except OSError as e:
            raise RasterizationError(f"cannot run {cmd[0]}: {e}", cmd) from e

        if result.returncode != 0:
            raise RasterizationError(f"{self.config.binary} failed", cmd,
                                     result.returncode, result.stderr or "")
        if not result.stdout.strip():
            raise RasterizationError(f"{self.config.binary} produced no output", cmd,
                                     stderr=result.stderr or "")
        return result.stdout


class BdfFileRasterizer:
    """Stands in for the rasterizer when a BDF file already exists."""

    def __init__(self, bdf_path: Path):
        self.bdf_path = Path(bdf_path)

    def rasterize(self, request: ConversionRequest) -> str:
        try:
            return self.bdf_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise RasterizationError(f"cannot read {self.bdf_path}: {e}") from e
