"""
Interfaces to the devices and services around the core, with local versions.

- BarcodeSource: camera or scanner, produces ScanResult
- ImageStore: product photos keyed by barcode
- ShareSink: turns HTML into a file and hands it to the OS
"""
from __future__ import annotations
import shutil
import webbrowser
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Protocol
from loguru import logger

from .errors import StorageError, ValidationError
from .models import ScanResult
from .parsing import parse_barcode


class BarcodeSource(Protocol):
    """Anything that calls back with a ScanResult on each decode."""

    def subscribe(self, callback: Callable[[ScanResult], None]) -> None: ...


def manual_entry(text: str | None) -> ScanResult:
    """Build a ScanResult from a typed barcode."""
    barcode = parse_barcode(text)
    if barcode is None:
        raise ValidationError("Please enter a barcode")
    return ScanResult(data=barcode, symbology="manual")


class ImageStore(Protocol):
    def save(self, key: str, source: str | Path) -> str: ...

    def delete(self, image_ref: str) -> None: ...


class FileImageStore:
    """
    Product images copied into one directory as ``product_<barcode><suffix>``.

    The returned path string is the image reference stored on the item.
    """

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def ensure_directory(self) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory

    def save(self, key: str, source: str | Path) -> str:
        source = Path(source)
        suffix = source.suffix.lower() or ".jpg"
        target = self.ensure_directory() / f"product_{key}{suffix}"
        try:
            if source.resolve() != target.resolve():
                target.unlink(missing_ok=True)
                shutil.copyfile(source, target)
        except OSError as e:
            logger.error(f"Failed to save image for {key}: {e}")
            raise StorageError(f"Cannot save image {source}") from e
        logger.debug(f"Saved image for {key} to {target}")
        return str(target)

    def delete(self, image_ref: str) -> None:
        Path(image_ref).unlink(missing_ok=True)
        logger.debug(f"Deleted image {image_ref}")


class ShareSink(Protocol):
    def render_to_file(self, html: str) -> str: ...

    def share(self, handle: str) -> None: ...


class FileShareSink:
    """
    Writes documents as HTML files and opens them in the system browser.

    The browser's print dialog takes over from there (print to PDF, share).
    """

    def __init__(self, directory: Path | str, opener: Optional[Callable[[str], bool]] = None):
        self.directory = Path(directory)
        self.opener = opener or webbrowser.open

    def render_to_file(self, html: str, name: Optional[str] = None) -> str:
        name = name or f"document-{datetime.now():%Y%m%d-%H%M%S-%f}"
        path = self.directory / f"{name}.html"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(html, encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise StorageError(f"Cannot write document {path}") from e
        logger.info(f"Wrote {path}")
        return str(path)

    def share(self, handle: str) -> None:
        uri = Path(handle).resolve().as_uri()
        if not self.opener(uri):
            logger.warning(f"Could not open {uri}; the file is at {handle}")
