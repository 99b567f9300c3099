"""
Format dispatch: the public entry points of the package.

    load_scene(path)          read any supported file into a new Scene
    write_scene(path, scene)  write a Scene, format chosen by extension
    load_folder(directory)    read points3D/cameras/images (.bin, else .txt)
    write_folder(directory)   write the three companion files

Extensions:
    .bin                binary reconstruction (+ cameras.bin, images.bin)
    .txt                text reconstruction (+ cameras.txt, images.txt),
                        or a plain XYZ list when the content says so
    .ply / .obj / .xyz  plain point lists, no camera data

An unsupported extension raises UnsupportedFormatError before any file is
touched.
"""

from pathlib import Path
from typing import Optional
import logging

from .binary_codec import BinaryModelCodec
from .config import CodecConfig
from .diagnostics import Diagnostics, ExportReport, LoadResult, UnsupportedFormatError
from .model_io import POINTS_NAME, ReconstructionCodec, find_image_base_path
from .point_lists import READERS, load_point_list, write_point_list
from .scene import Scene
from .text_codec import TextModelCodec

logger = logging.getLogger(__name__)

BINARY = "binary"
TEXT = "text"
RECONSTRUCTION_FORMATS = (BINARY, TEXT)
POINT_LIST_FORMATS = {ext: ext[1:] for ext in READERS}

SUPPORTED_EXTENSIONS = ('.bin', '.txt') + tuple(READERS)


def _extension(path: Path) -> str:
    ext = path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            f"Unsupported format: '{ext or path.name}'. "
            f"Supported extensions: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    return ext


def _looks_like_points_text(path: Path) -> bool:
    """
    Decide whether a .txt file is a points3D list or a plain XYZ list.

    A leading comment that does not mention "3D point" means XYZ. Without
    comments, a first data line of 8 + 2k values is a points3D record.
    """
    with open(path, 'r') as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            if line.startswith('#'):
                return "3D point" in line
            n = len(line.split())
            return n >= 8 and (n - 8) % 2 == 0
    return True


def detect_format(path, sniff: bool = True) -> str:
    """
    Name of the codec that handles a path.

    Args:
        path: File path
        sniff: Inspect existing .txt files to tell points3D from XYZ

    Returns:
        'binary', 'text', 'ply', 'obj' or 'xyz'
    """
    path = Path(path)
    ext = _extension(path)

    if ext == '.bin':
        return BINARY
    if ext == '.txt':
        if sniff and path.is_file() and not _looks_like_points_text(path):
            logger.info(f"{path.name} has no 3D point header; reading as XYZ list")
            return 'xyz'
        return TEXT
    return POINT_LIST_FORMATS[ext]


def get_codec(format_name: str, config: Optional[CodecConfig] = None) -> ReconstructionCodec:
    """Codec instance for a reconstruction format name."""
    if format_name == BINARY:
        return BinaryModelCodec(config)
    if format_name == TEXT:
        return TextModelCodec(config)
    raise UnsupportedFormatError(f"No reconstruction codec for '{format_name}'")


def load_scene(filepath, config: Optional[CodecConfig] = None) -> LoadResult:
    """
    Load a scene from a file.

    Reconstruction formats also load the cameras and images files next to
    the points file. The image base path is resolved for every format.

    Args:
        filepath: Points file, or a plain point list
        config: Codec options

    Returns:
        LoadResult holding a new Scene and its diagnostics
    """
    config = config or CodecConfig()
    path = Path(filepath)
    format_name = detect_format(path)

    if not path.is_file():
        raise FileNotFoundError(f"File not found: {filepath}")

    logger.info(f"Loading file: {path}")
    diagnostics = Diagnostics()

    if format_name in RECONSTRUCTION_FORMATS:
        result = get_codec(format_name, config).load(path, diagnostics)
    else:
        scene = load_point_list(path, diagnostics, extension=f".{format_name}")
        result = LoadResult(scene=scene, diagnostics=diagnostics, format_name=format_name)

    base_path, is_fallback = find_image_base_path(
        path,
        image_dir_name=config.image_dir_name,
        max_depth=config.image_search_depth,
        diagnostics=diagnostics,
    )
    result.scene.image_base_path = base_path
    result.scene.image_base_is_fallback = is_fallback

    return result


def write_scene(filepath, scene: Scene, config: Optional[CodecConfig] = None) -> ExportReport:
    """
    Write a scene, choosing the format by extension.

    Args:
        filepath: Destination points file or point list
        scene: Scene to write (not modified)
        config: Codec options

    Returns:
        ExportReport
    """
    path = Path(filepath)
    format_name = detect_format(path, sniff=False)

    if format_name in RECONSTRUCTION_FORMATS:
        return get_codec(format_name, config).write(path, scene)

    path.parent.mkdir(parents=True, exist_ok=True)
    return write_point_list(path, scene, extension=f".{format_name}")


def load_folder(directory, config: Optional[CodecConfig] = None) -> LoadResult:
    """
    Load a reconstruction folder, preferring binary files over text.

    Raises:
        FileNotFoundError: If the folder holds neither points3D.bin nor points3D.txt
    """
    directory = Path(directory)
    for ext in ('.bin', '.txt'):
        candidate = directory / f"{POINTS_NAME}{ext}"
        if candidate.is_file():
            return load_scene(candidate, config)

    raise FileNotFoundError(
        f"No {POINTS_NAME}.bin or {POINTS_NAME}.txt found in {directory}"
    )


def write_folder(
    directory,
    scene: Scene,
    binary: bool = True,
    config: Optional[CodecConfig] = None,
) -> ExportReport:
    """Write cameras, images and points3D files into a folder."""
    ext = '.bin' if binary else '.txt'
    return write_scene(Path(directory) / f"{POINTS_NAME}{ext}", scene, config)
