"""
Image export for rendered flames.

Rendered buffers are RGBA8 arrays of shape (height, width, 4). This module
writes them as PNG or TIFF through Pillow and embeds a JSON description of
the render (the preset included) so that an image can be re-rendered later.
"""

import numpy as np
from typing import Dict, Any, Optional, Tuple
from pathlib import Path
from dataclasses import dataclass, asdict, field
import json
import logging
from datetime import datetime

from PIL import Image, PngImagePlugin, TiffImagePlugin

logger = logging.getLogger(__name__)

METADATA_KEY = "FlameMetadata"
TIFF_DESCRIPTION_TAG = 270
TIFF_SOFTWARE_TAG = 305
TIFF_DATETIME_TAG = 306

# zlib level per PNG compression option (Pillow default is 6)
PNG_COMPRESS_LEVELS = {'none': 0, '0': 0, 'fast': 1, 'low': 1, 'high': 9, 'max': 9}

# Pillow codec per TIFF compression option
TIFF_COMPRESSIONS = {'none': None, 'lzw': 'tiff_lzw', 'deflate': 'tiff_deflate', 'zip': 'tiff_deflate'}


@dataclass
class RenderMetadata:
    """Metadata for flame renders."""

    # Output
    resolution: Tuple[int, int]  # width, height
    iterations: int
    burn_in: int
    gamma: float
    supersample: int

    # Coloring
    coloring_mode: str
    palette: Any

    # Timing
    render_time_seconds: float

    # Generation info
    timestamp: str = ""
    software_version: str = "1.0.0"

    # Full preset, in the JSON preset format
    preset: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()
        self.resolution = (int(self.resolution[0]), int(self.resolution[1]))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenderMetadata':
        return cls(**data)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'RenderMetadata':
        """Parse metadata written by :meth:`to_json`."""
        return cls.from_dict(json.loads(json_str))


class ImageExporter:
    """Image export with metadata support."""

    def __init__(self):
        self.writers = {
            '.png': self._save_png,
            '.tif': self._save_tiff,
            '.tiff': self._save_tiff,
        }

    def save_image(self, image_array: np.ndarray, filepath: Path,
                   metadata: Optional[RenderMetadata] = None,
                   compression: Optional[str] = None) -> Path:
        """
        Save an image array to file with metadata.

        Args:
            image_array: RGBA (H, W, 4) or RGB (H, W, 3) array, uint8 or floats in 0-1
            filepath: Output file path; the suffix selects the format
            metadata: Render metadata to embed
            compression: 'none', 'fast' or 'max' for PNG; 'none', 'lzw' or
                'deflate' for TIFF

        Returns:
            The path written
        """
        filepath = Path(filepath)
        suffix = filepath.suffix.lower()

        if suffix not in self.writers:
            raise ValueError(f"Unsupported format '{suffix}'. Supported: {', '.join(self.writers)}")

        pil_image = Image.fromarray(self._prepare_image_array(image_array))
        self.writers[suffix](pil_image, filepath, metadata, compression)

        logger.info(f"Saved image: {filepath} ({pil_image.size[0]}x{pil_image.size[1]})")
        return filepath

    def _prepare_image_array(self, image_array: np.ndarray) -> np.ndarray:
        """Validate the array and convert it to contiguous 8-bit."""
        image_array = np.asarray(image_array)
        if image_array.ndim != 3 or image_array.shape[2] not in (3, 4):
            raise ValueError(f"Expected image array (H, W, 3) or (H, W, 4), got {image_array.shape}")

        if image_array.dtype != np.uint8:
            if np.issubdtype(image_array.dtype, np.floating):
                image_array = (np.clip(image_array, 0.0, 1.0) * 255).astype(np.uint8)
            else:
                image_array = np.clip(image_array, 0, 255).astype(np.uint8)

        return np.ascontiguousarray(image_array)

    def _save_png(self, pil_image: Image.Image, filepath: Path,
                  metadata: Optional[RenderMetadata], compression: Optional[str]) -> None:
        """Save as PNG with metadata text chunks."""
        pnginfo = PngImagePlugin.PngInfo()

        if metadata:
            pnginfo.add_text("Title", f"Flame: {metadata.coloring_mode}")
            pnginfo.add_text("Software", f"FlameGenerator v{metadata.software_version}")
            pnginfo.add_text("Creation Time", metadata.timestamp)
            pnginfo.add_text(METADATA_KEY, metadata.to_json())

        level = PNG_COMPRESS_LEVELS.get((compression or '').lower(), 6)
        pil_image.save(filepath, "PNG", pnginfo=pnginfo, compress_level=level)

    def _save_tiff(self, pil_image: Image.Image, filepath: Path,
                   metadata: Optional[RenderMetadata], compression: Optional[str]) -> None:
        """Save as TIFF, with the metadata JSON in the ImageDescription tag."""
        tiffinfo = TiffImagePlugin.ImageFileDirectory_v2()

        if metadata:
            tiffinfo[TIFF_DESCRIPTION_TAG] = metadata.to_json(indent=None)
            tiffinfo[TIFF_SOFTWARE_TAG] = f"FlameGenerator v{metadata.software_version}"
            tiffinfo[TIFF_DATETIME_TAG] = metadata.timestamp

        tiff_compression = TIFF_COMPRESSIONS.get((compression or 'lzw').lower(), 'tiff_lzw')

        save_kwargs: Dict[str, Any] = {'format': 'TIFF', 'tiffinfo': tiffinfo}
        if tiff_compression:
            save_kwargs['compression'] = tiff_compression

        pil_image.save(filepath, **save_kwargs)

    def extract_metadata_from_image(self, filepath: Path) -> Optional[RenderMetadata]:
        """
        Extract flame metadata from a saved image.

        Returns:
            Extracted metadata, or None if the image carries none
        """
        filepath = Path(filepath)

        try:
            with Image.open(filepath) as img:
                text = getattr(img, 'text', None)
                if text and METADATA_KEY in text:
                    return RenderMetadata.from_json(text[METADATA_KEY])

                tags = getattr(img, 'tag_v2', None)
                if tags is not None and TIFF_DESCRIPTION_TAG in tags:
                    return RenderMetadata.from_json(tags[TIFF_DESCRIPTION_TAG])

        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Could not extract metadata from {filepath}: {e}")

        return None


def extract_metadata_from_image(filepath: Path) -> Optional[RenderMetadata]:
    return ImageExporter().extract_metadata_from_image(filepath)
