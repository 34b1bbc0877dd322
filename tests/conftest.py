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
from typing import Dict, Tuple

import numpy as np
import pytest
import rasterio as rio
from rasterio.crs import CRS
from rasterio.transform import Affine

from topocorr import utils
from topocorr.illumination import illumination_array
from topocorr.raster_array import RasterArray


@pytest.fixture
def array_byte() -> np.ndarray:
    """ 20 x 10 uint8 ramp, surrounded by a one pixel border of 255 (nodata). """
    array = np.arange(1, 201, dtype='uint8').reshape(20, 10)
    array[[0, -1], :] = array[:, [0, -1]] = 255
    return array


@pytest.fixture
def array_float(array_byte) -> np.ndarray:
    """ float32 version of array_byte, with a nan (nodata) border. """
    array = array_byte.astype('float32')
    array[array_byte == 255] = float('nan')
    return array


@pytest.fixture
def profile_byte(array_byte) -> Dict:
    """ Geo-referenced profile for array_byte. """
    profile = {
        'crs': CRS.from_epsg(3857),
        # North-up, with origin at (5, -5)
        'transform': Affine(30, 0, 0, 0, -30, 0) * Affine.translation(5, 5),
        'dtype': rio.uint8,
        'width': array_byte.shape[-1],
        'height': array_byte.shape[-2],
        'nodata': 255
    }
    return profile


@pytest.fixture
def profile_float(array_float, profile_byte) -> Dict:
    """ rasterio profile dict for array_float. """
    profile = profile_byte.copy()
    profile.update(dtype=rio.float32, nodata=float('nan'))
    return profile


@pytest.fixture
def ra_byte(array_byte, profile_byte) -> RasterArray:
    """ RasterArray of array_byte. """
    return RasterArray.from_profile(array_byte, profile_byte)


@pytest.fixture
def ra_float(array_float, profile_float) -> RasterArray:
    """ RasterArray of array_float. """
    return RasterArray.from_profile(array_float, profile_float)


@pytest.fixture
def sun_geometry() -> Tuple[float, float]:
    """ Sun (elevation, azimuth) in degrees. """
    return 40., 135.


@pytest.fixture
def terrain_arrays() -> Tuple[np.ndarray, np.ndarray]:
    """
    (slope, aspect) float32 arrays in radians for a cone shaped hill, with a flat (slope=0) strip along the left
    edge, and a nodata pixel in the bottom right corner.
    """
    rows, cols = np.mgrid[-20:20, -25:25].astype('float64')
    slope = np.arctan(np.hypot(rows, cols) / 30)
    aspect = np.arctan2(cols, -rows) % (2 * np.pi)
    slope[:, :3] = 0
    slope[-1, -1] = float('nan')
    return slope.astype('float32'), aspect.astype('float32')


@pytest.fixture
def minnaert_k() -> float:
    """ Minnaert constant used to synthesise band_array. """
    return 0.6


@pytest.fixture
def band_array(terrain_arrays, sun_geometry, minnaert_k) -> np.ndarray:
    """
    float32 band following the Minnaert model i.e. log10(band) = 2 + minnaert_k * log10(il / cos(zenith)).  Pixels
    with illumination <= 0 have a value of 1.
    """
    slope, aspect = terrain_arrays
    zenith, azimuth = utils.validate_sun_geometry(*sun_geometry)
    t = illumination_array(slope.astype('float64'), aspect.astype('float64'), zenith, azimuth) / np.cos(zenith)
    with np.errstate(invalid='ignore'):
        band = np.where(t > 0, 100 * t ** minnaert_k, 1.)
    return band.astype('float32')


@pytest.fixture
def terrain_ras(band_array, terrain_arrays, profile_float) -> Tuple[RasterArray, RasterArray, RasterArray]:
    """ (band, slope, aspect) RasterArrays on the same geo-referenced grid. """
    slope, aspect = terrain_arrays
    return tuple(
        RasterArray(array, profile_float['crs'], profile_float['transform'], nodata=float('nan'))
        for array in (band_array, slope, aspect)
    )  # yapf: disable
