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
from typing import Optional

import numpy as np

from topocorr import utils
from topocorr.raster_array import RasterArray

default_epsilon = 1e-6


def illumination_array(
    slope: np.ndarray, aspect: np.ndarray, zenith: float, azimuth: float, epsilon: float = default_epsilon,
    out: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Find the illumination i.e. the cosine of the solar incidence angle on the terrain surface.

    Parameters
    ----------
    slope: numpy.ndarray
        Terrain slope in radians, with nan for nodata.
    aspect: numpy.ndarray
        Terrain aspect in radians, with nan for nodata.
    zenith: float
        Solar zenith angle in radians.
    azimuth: float
        Solar azimuth angle in radians.
    epsilon: float, optional
        Value to replace illumination values of exactly zero with, so that dividing by illumination remains finite.
    out: numpy.ndarray, optional
        Array to write the illumination into.  Zeros are found at the precision of ``out``.

    Returns
    -------
    numpy.ndarray
        Illumination in the range [-1, 1], with nan where ``slope`` or ``aspect`` are nan.
    """
    il = np.cos(slope) * np.cos(zenith) + np.sin(slope) * np.sin(zenith) * np.cos(azimuth - aspect)
    if out is None:
        out = il
    else:
        out[:] = il
    out[out == 0] = epsilon
    return out


def calc_illumination(
    slope_ra: RasterArray, aspect_ra: RasterArray, zenith: float, azimuth: float, epsilon: float = default_epsilon
) -> RasterArray:
    """
    Find the illumination for slope and aspect RasterArrays.  See :func:`illumination_array` for details.

    Returns
    -------
    RasterArray
        Illumination RasterArray, in the precision of ``slope_ra`` and ``aspect_ra`` (minimum float32), masked
        where ``slope_ra`` or ``aspect_ra`` are masked.
    """
    epsilon = utils.validate_epsilon(epsilon)
    if slope_ra.shape != aspect_ra.shape:
        raise ValueError("'slope_ra' and 'aspect_ra' must have the same shape")

    slope_ra = RasterArray.from_input(slope_ra)
    aspect_ra = RasterArray.from_input(aspect_ra)
    il_array = np.empty(slope_ra.shape, dtype=np.result_type(slope_ra.dtype, aspect_ra.dtype))
    illumination_array(slope_ra.array, aspect_ra.array, zenith, azimuth, epsilon=epsilon, out=il_array)
    return RasterArray.from_profile(il_array, slope_ra.profile)
