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
import warnings
from typing import Optional, Callable, Dict, Union

import numpy as np

from topocorr import utils, coefficients
from topocorr.enums import Method
from topocorr.errors import IgnoredSampleIndicesWarning
from topocorr.raster_array import RasterArray

logger = logging.getLogger(__name__)

ApplyFunc = Callable[[np.ndarray, np.ndarray, np.ndarray, float, Optional[float]], np.ndarray]


def _apply_cosine(x, slope, il, zenith, coefficient):
    return x * (np.cos(zenith) / il)


def _apply_improved_cosine(x, slope, il, zenith, il_mean):
    return x + (x * (il_mean - il) / il_mean)


def _apply_minnaert(x, slope, il, zenith, k):
    return x * (np.cos(zenith) / il) ** k


def _apply_minnaert_slope(x, slope, il, zenith, k):
    return x * np.cos(slope) * (np.cos(zenith) / (il * np.cos(slope))) ** k


def _apply_c_correction(x, slope, il, zenith, c):
    return x * (np.cos(zenith) + c) / (il + c)


def _apply_gamma(x, slope, il, zenith, coefficient):
    # assumes a nadir view i.e. a view zenith of 0, and a view terrain angle of pi/2 - slope
    return x * (np.cos(zenith) + np.cos(np.pi / 2)) / (il + np.cos(np.pi / 2 - slope))


def _apply_scs(x, slope, il, zenith, coefficient):
    return x * (np.cos(zenith) * np.cos(slope)) / il


def _apply_illumination(x, slope, il, zenith, coefficient):
    return il.copy()


apply_funcs: Dict[Method, ApplyFunc] = {
    Method.cosine: _apply_cosine,
    Method.improved_cosine: _apply_improved_cosine,
    Method.minnaert: _apply_minnaert,
    Method.minnaert_slope: _apply_minnaert_slope,
    Method.c_correction: _apply_c_correction,
    Method.gamma: _apply_gamma,
    Method.scs: _apply_scs,
    Method.illumination: _apply_illumination,
}  # yapf: disable
""" Correction formula for each method, as a function of (band, slope, illumination, zenith, coefficient). """


class CorrectionModel:

    default_method = Method.cosine  # default method

    def __init__(self, method: Union[Method, str] = default_method, zenith: float = 0.):
        """
        Topographic correction model for a band.

        The model is first fitted to the band data to find any image-wide coefficient the correction ``method``
        requires.  The corrected band is produced by applying the method formula, with the fitted coefficient, to
        the band, or blocks of the band.

        Parameters
        ----------
        method: topocorr.enums.Method, str, optional
            Correction method, or an unambiguous abbreviation of its value.
        zenith: float, optional
            Solar zenith angle in radians.
        """
        self._method = utils.validate_method(method)
        self._zenith = zenith

    @property
    def method(self) -> Method:
        """ Correction method. """
        return self._method

    @property
    def zenith(self) -> float:
        """ Solar zenith angle in radians. """
        return self._zenith

    def fit(
        self, x_ra: RasterArray, slope_ra: RasterArray, il_ra: RasterArray, sample_indices: Optional[np.ndarray] = None
    ) -> Optional[float]:
        """
        Find the image-wide coefficient used by the correction method.

        Parameters
        ----------
        x_ra: RasterArray
            Band data, with the same shape as ``slope_ra`` and ``il_ra``.
        slope_ra: RasterArray
            Terrain slope in radians.
        il_ra: RasterArray
            Illumination, as returned by :func:`topocorr.illumination.calc_illumination`.
        sample_indices: numpy.ndarray, optional
            Flat, row-major indices of pixels to restrict regression fitting to.  Ignored, with a warning, for
            methods that do not use regression.

        Returns
        -------
        float, None
            The Minnaert constant K for :attr:`~topocorr.enums.Method.minnaert` and
            :attr:`~topocorr.enums.Method.minnaert_slope`, the C coefficient for
            :attr:`~topocorr.enums.Method.c_correction`, the mean illumination for
            :attr:`~topocorr.enums.Method.improved_cosine`, and None for other methods.
        """
        if (x_ra.shape != slope_ra.shape) or (x_ra.shape != il_ra.shape):
            raise ValueError("'x_ra', 'slope_ra' and 'il_ra' must have the same shape")

        if sample_indices is not None and not self._method.fits_coefficient:
            warnings.warn(
                f'Sample indices are not used by the "{self._method.value}" method, ignoring.',
                category=IgnoredSampleIndicesWarning
            )
            sample_indices = None

        # force nodata to nan, so that masked pixels are excluded by the fitting functions
        x_array = RasterArray.from_input(x_ra).array
        slope_array = RasterArray.from_input(slope_ra).array
        il_array = RasterArray.from_input(il_ra).array

        if self._method == Method.improved_cosine:
            il_valid = il_array[~np.isnan(il_array)]
            coefficient = float(np.mean(il_valid, dtype='float64')) if il_valid.size > 0 else float('nan')
            logger.debug(f'Mean illumination: {coefficient:.4f}')
        elif self._method in (Method.minnaert, Method.minnaert_slope):
            coefficient = coefficients.fit_minnaert_k(
                x_array, slope_array, il_array, self._zenith, sample_indices=sample_indices
            )
            logger.debug(f'Minnaert constant K: {coefficient:.4f}')
        elif self._method == Method.c_correction:
            coefficient = coefficients.fit_c(x_array, il_array, sample_indices=sample_indices)
            logger.debug(f'C-correction coefficient C: {coefficient:.4f}')
        else:
            coefficient = None
        return coefficient

    def apply(
        self, x: np.ndarray, slope: np.ndarray, il: np.ndarray, coefficient: Optional[float] = None
    ) -> np.ndarray:
        """
        Apply the correction method formula to band data.

        Parameters
        ----------
        x: numpy.ndarray
            Band data, with nan for nodata.
        slope: numpy.ndarray
            Terrain slope in radians, with nan for nodata.
        il: numpy.ndarray
            Illumination, with nan for nodata.
        coefficient: float, optional
            Coefficient as returned by :meth:`fit`.  Required by methods that fit a coefficient, and by
            :attr:`~topocorr.enums.Method.improved_cosine`.

        Returns
        -------
        numpy.ndarray
            Corrected band data, with nan for nodata.
        """
        if coefficient is None and (self._method.fits_coefficient or self._method == Method.improved_cosine):
            raise ValueError(f'The "{self._method.value}" method requires a fitted coefficient.')

        # nan is the expected result of e.g. raising a negative illumination ratio to a fractional power
        with np.errstate(divide='ignore', invalid='ignore'):
            return apply_funcs[self._method](x, slope, il, self._zenith, coefficient)
