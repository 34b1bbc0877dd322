"""
    Topocorr: Topographic correction of satellite imagery
    Copyright (C) 2021 Dugal Harris
    Email: dugalh@gmail.com

    This program is free software: you can redistribute it and/or modify
    it under the terms of the GNU Affero General Public License as
    published by the Free Software Foundation, either version 3 of the
    License, or any later version.

    This program is distributed in the hope that it will be useful,
    but WITHOUT ANY WARRANTY; without even the implied warranty of
    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
    GNU Affero General Public License for more details.

    You should have received a copy of the GNU Affero General Public License
    along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""
import logging
import numbers
from itertools import product
from multiprocessing import cpu_count
from typing import Tuple, Union, List, Optional, Sequence

import numpy as np
from rasterio.windows import Window

from topocorr.enums import Method
from topocorr.errors import InvalidGeometryError, InvalidMethodError, BlockSizeError

logger = logging.getLogger(__name__)


def nan_equals(a: Union[np.ndarray, float], b: Union[np.ndarray, float]) -> np.ndarray:
    """ Compare two numpy objects a & b, returning true where elements of both a & b are nan. """
    return (a == b) | (np.isnan(a) & np.isnan(b))


def validate_sun_geometry(sun_elevation: float, sun_azimuth: float) -> Tuple[float, float]:
    """
    Check the sun elevation and azimuth for validity, and convert to zenith and azimuth angles in radians.  Raises
    InvalidGeometryError if either angle is out of range.

    Parameters
    ----------
    sun_elevation: float
        Sun elevation angle in degrees, in the range [0, 90].
    sun_azimuth: float
        Sun azimuth angle in degrees, in the range [0, 360].

    Returns
    -------
    tuple of float
        The (zenith, azimuth) angles in radians.
    """
    if not all([isinstance(angle, numbers.Real) for angle in (sun_elevation, sun_azimuth)]):
        raise InvalidGeometryError(
            f"'sun_elevation' and 'sun_azimuth' should be numbers, not {sun_elevation!r} and {sun_azimuth!r}."
        )
    # the negated comparisons treat nan as out of range
    if not (0 <= sun_elevation <= 90):
        raise InvalidGeometryError(f"'sun_elevation' should be in the range [0, 90] degrees, not {sun_elevation}.")
    if not (0 <= sun_azimuth <= 360):
        raise InvalidGeometryError(f"'sun_azimuth' should be in the range [0, 360] degrees, not {sun_azimuth}.")
    zenith = (np.pi / 180) * (90 - sun_elevation)
    azimuth = (np.pi / 180) * sun_azimuth
    return float(zenith), float(azimuth)


def validate_method(method: Union[Method, str]) -> Method:
    """
    Resolve a correction method from a :class:`~topocorr.enums.Method` instance, its value, or an unambiguous
    (case-insensitive) abbreviation of its value.  Raises InvalidMethodError if ``method`` is unknown or
    ambiguous.
    """
    if isinstance(method, Method):
        return method
    method = str(method)
    if method in [m.value for m in Method]:
        return Method(method)

    matches = [m for m in Method if len(method) > 0 and m.value.lower().startswith(method.lower())]
    if len(matches) == 0:
        raise InvalidMethodError(
            f"Invalid method: '{method}'.  Valid methods are: {', '.join([m.value for m in Method])}."
        )
    elif len(matches) > 1:
        raise InvalidMethodError(
            f"Ambiguous method: '{method}' could be any of: {', '.join([m.value for m in matches])}."
        )
    return matches[0]


def validate_epsilon(epsilon: float) -> float:
    """ Check the illumination epsilon is a finite, strictly positive number. """
    if not (np.isfinite(epsilon) and epsilon > 0):
        raise ValueError(f"'il_epsilon' should be a finite number greater than 0, not {epsilon}.")
    return float(epsilon)


def validate_threads(threads: int) -> int:
    """ Parse number of threads parameter. """
    _cpu_count = cpu_count()
    threads = _cpu_count if threads == 0 else threads
    if threads < 0:
        raise ValueError(f"'threads' should be 0 or a positive number, not {threads}")
    if threads > _cpu_count:
        raise ValueError(f"'threads' is limited to the number of processors ({_cpu_count})")
    return threads


def validate_sample_indices(sample_indices: Optional[Sequence[int]], shape: Tuple[int, int]) -> Optional[np.ndarray]:
    """
    Check a sequence of flat, row-major sample indices is valid for a raster of the given (height, width) ``shape``.
    Raises ValueError if ``sample_indices`` is invalid.

    Parameters
    ----------
    sample_indices: sequence of int, None
        0-based, row-major pixel indices.  Duplicates are allowed.
    shape: tuple of int
        Raster (height, width) in pixels.

    Returns
    -------
    numpy.ndarray, None
        The validated indices as a 1D int64 array, or None if ``sample_indices`` is None.
    """
    if sample_indices is None:
        return None
    indices = np.asarray(sample_indices)
    if indices.ndim != 1:
        raise ValueError("'sample_indices' should be a one dimensional sequence.")
    if indices.size > 0 and not np.issubdtype(indices.dtype, np.integer):
        if not np.all(np.mod(indices, 1) == 0):
            raise ValueError("'sample_indices' should contain integers only.")
    indices = indices.astype('int64')
    num_pixels = int(np.prod(shape))
    if np.any((indices < 0) | (indices >= num_pixels)):
        raise ValueError(f"'sample_indices' should lie in the range [0, {num_pixels}).")
    return indices


def grid_sample_indices(
    shape: Tuple[int, int], step: Tuple[int, int] = (10, 10), offset: Optional[Tuple[int, int]] = None
) -> np.ndarray:
    """
    Return the flat, row-major indices of a regular grid of sample pixels.  Useful for limiting the cost of
    coefficient fitting on large rasters.

    Parameters
    ----------
    shape: tuple of int
        Raster (height, width) in pixels.
    step: tuple of int, optional
        (row, column) spacing of the sample grid in pixels.
    offset: tuple of int, optional
        (row, column) position of the first sample pixel.  Defaults to the center of the first grid cell.

    Returns
    -------
    numpy.ndarray
        1D array of sample indices.
    """
    step = np.array(step).astype('int')
    if np.any(step < 1):
        raise ValueError("'step' must be a minimum of one in both dimensions.")
    offset = step // 2 if offset is None else np.array(offset).astype('int')
    rows = np.arange(offset[0], shape[0], step[0])
    cols = np.arange(offset[1], shape[1], step[1])
    row_grid, col_grid = np.meshgrid(rows, cols, indexing='ij')
    return np.ravel_multi_index((row_grid.ravel(), col_grid.ravel()), tuple(shape))


def random_sample_indices(shape: Tuple[int, int], size: int, seed: Optional[int] = None) -> np.ndarray:
    """ Return ``size`` sorted, unique, flat row-major indices of randomly sampled pixels. """
    num_pixels = int(np.prod(shape))
    if size > num_pixels:
        raise ValueError(f"'size' ({size}) exceeds the number of pixels ({num_pixels}).")
    rng = np.random.default_rng(seed)
    return np.sort(rng.choice(num_pixels, size=size, replace=False))


def auto_block_shape(shape: Tuple[int, int], max_block_mem: float = np.inf, dtype: str = 'float32') -> Tuple[int, int]:
    """
    Find a block shape that satisfies ``max_block_mem``.

    Parameters
    ----------
    shape: tuple of int
        Raster (height, width) in pixels.
    max_block_mem: float, optional
        Maximum size of a block of ``dtype`` data in megabytes.  0 or `float('inf')` gives a single block.
    dtype: str, optional
        Data type of the block.

    Returns
    -------
    tuple of int
        Block (height, width) in pixels.
    """
    max_block_mem = max_block_mem if max_block_mem > 0 else np.inf
    max_block_mem *= 2 ** 20  # convert MB to bytes
    dtype_size = np.dtype(dtype).itemsize

    # set the starting block_shape to correspond to the entire raster
    block_shape = np.array(shape).astype('float')

    # keep halving the block_shape along the longest dimension until it satisfies max_block_mem
    while (np.prod(block_shape) * dtype_size) > max_block_mem:
        div_dim = np.argmax(block_shape)
        block_shape[div_dim] /= 2

    if np.any(block_shape < (1, 1)):
        raise BlockSizeError(f"The auto block shape is smaller than a pixel.  Increase 'max_block_mem'.")

    block_shape = np.ceil(block_shape).astype('int')
    logger.debug(f'Auto block shape: {block_shape}, of raster shape: {list(shape)}')
    return tuple(block_shape)


def block_windows(shape: Tuple[int, int], max_block_mem: float = np.inf, dtype: str = 'float32') -> List[Window]:
    """ Return a list of non-overlapping windows that tile a raster of (height, width) ``shape``. """
    block_shape = auto_block_shape(shape, max_block_mem=max_block_mem, dtype=dtype)
    ul_row_range = range(0, shape[0], block_shape[0])
    ul_col_range = range(0, shape[1], block_shape[1])
    windows = []
    for ul_row, ul_col in product(ul_row_range, ul_col_range):
        height = min(block_shape[0], shape[0] - ul_row)
        width = min(block_shape[1], shape[1] - ul_col)
        windows.append(Window(col_off=ul_col, row_off=ul_row, width=width, height=height))
    return windows
