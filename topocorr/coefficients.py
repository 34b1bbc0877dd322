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
from typing import Tuple, Optional

import numpy as np

logger = logging.getLogger(__name__)

ONdArray = Optional[np.ndarray]

min_fit_slope = np.arctan(0.05)
""" Minimum slope (radians) of pixels used to fit the Minnaert constant i.e. a 5% grade. """


def fit_linear(x: np.ndarray, y: np.ndarray) -> Tuple[np.float64, np.float64]:
    """
    Fit the ordinary least squares model ``y = offset + gain * x``.

    Parameters
    ----------
    x: numpy.ndarray
        Independent variable samples.
    y: numpy.ndarray
        Dependent variable samples, with the same number of elements as ``x``.

    Returns
    -------
    tuple of numpy.float64
        The (offset, gain) model parameters.  Both are nan when there are fewer than two samples, and the gain is
        non-finite when ``x`` has no variance.
    """
    x = np.asarray(x, dtype='float64').ravel()
    y = np.asarray(y, dtype='float64').ravel()
    if x.size != y.size:
        raise ValueError("'x' and 'y' must have the same number of elements")
    if x.size < 2:
        return np.float64('nan'), np.float64('nan')

    # gain = cov(x, y) / var(x), found from deviations about the means to limit round-off error
    x_mean, y_mean = x.mean(), y.mean()
    x_dev = x - x_mean
    with np.errstate(divide='ignore', invalid='ignore'):
        gain = np.sum(x_dev * (y - y_mean)) / np.sum(x_dev ** 2)
        # the model passes through (mean(x), mean(y))
        offset = y_mean - gain * x_mean
    return offset, gain


def fit_log_log_slope(
    y: np.ndarray, t: np.ndarray, eligible: np.ndarray, sample_indices: ONdArray = None,
    bounds: Tuple[float, float] = (0., 1.)
) -> Optional[float]:
    """
    Fit ``log10(y) = a + b * log10(t)`` over eligible pixels, and return the slope ``b`` clamped to ``bounds``.

    Pixels with non-finite values, and pixels where ``y <= 0`` or ``t <= 0``, are excluded.

    Parameters
    ----------
    y: numpy.ndarray
        2D dependent variable.
    t: numpy.ndarray
        2D independent variable, the same shape as ``y``.
    eligible: numpy.ndarray
        2D boolean array of pixels eligible for fitting.
    sample_indices: numpy.ndarray, optional
        Flat, row-major indices of sample pixels to fit to.  Sample pixels that are not eligible are excluded.
        Duplicate indices are kept.
    bounds: tuple of float, optional
        (min, max) values to clamp the slope to.

    Returns
    -------
    float, None
        The clamped slope, or None when there are too few usable pixels, or no variation in ``t``, to fit a slope.
    """
    y, t, eligible = y.ravel(), t.ravel(), eligible.ravel()
    if sample_indices is not None:
        y, t, eligible = y[sample_indices], t[sample_indices], eligible[sample_indices]
    y, t = y[eligible], t[eligible]

    # log10 is only defined for positive values (illumination can be <= 0)
    valid = np.isfinite(y) & np.isfinite(t) & (y > 0) & (t > 0)
    y, t = y[valid], t[valid]
    logger.debug(f'Fitting log-log slope to {y.size} pixels.')

    if (y.size < 2) or np.all(t == t[0]):
        logger.warning(f'Cannot fit a log-log slope to {y.size} usable pixel(s).')
        return None

    _, slope = fit_linear(np.log10(t), np.log10(y))
    return float(np.clip(slope, *bounds))


def fit_minnaert_k(
    x: np.ndarray, slope: np.ndarray, il: np.ndarray, zenith: float, sample_indices: ONdArray = None,
    min_slope: float = min_fit_slope
) -> float:
    """
    Fit the Minnaert constant K for a band.

    K is the slope of ``log10(x)`` against ``log10(il / cos(zenith))``, fitted over pixels with a slope of at least
    ``min_slope``, and clamped to [0, 1].

    Parameters
    ----------
    x: numpy.ndarray
        2D band data, with nan for nodata.
    slope: numpy.ndarray
        2D terrain slope in radians, with nan for nodata.
    il: numpy.ndarray
        2D illumination, with nan for nodata.
    zenith: float
        Solar zenith angle in radians.
    sample_indices: numpy.ndarray, optional
        Flat, row-major indices of pixels to restrict the fit to.
    min_slope: float, optional
        Minimum slope (radians) of pixels to fit to.  Flatter terrain does not give a reliable fit.

    Returns
    -------
    float
        Minnaert constant in the range [0, 1].
    """
    # slope >= nan is False, so nodata slope pixels are not eligible
    eligible = (slope >= min_slope) & ~np.isnan(x)
    if np.all(x[eligible] < 0):
        logger.debug('Eligible band pixels are all negative, or there are none.  Using K=1.')
        return 1.

    k = fit_log_log_slope(x, il / np.cos(zenith), eligible, sample_indices=sample_indices)
    return 1. if k is None else k


def fit_c(x: np.ndarray, il: np.ndarray, sample_indices: ONdArray = None) -> float:
    """
    Fit the C-correction coefficient for a band.

    ``x = a + b * il`` is fitted over all valid pixels, or the sample pixels, and C = a / b.  A degenerate fit (b ~ 0)
    gives an extreme or non-finite C, which is returned as is.

    Parameters
    ----------
    x: numpy.ndarray
        2D band data, with nan for nodata.
    il: numpy.ndarray
        2D illumination, with nan for nodata.
    sample_indices: numpy.ndarray, optional
        Flat, row-major indices of pixels to restrict the fit to.

    Returns
    -------
    float
        C-correction coefficient.
    """
    x, il = x.ravel(), il.ravel()
    if sample_indices is not None:
        x, il = x[sample_indices], il[sample_indices]
    valid = np.isfinite(x) & np.isfinite(il)
    logger.debug(f'Fitting C to {np.sum(valid)} pixels.')

    offset, gain = fit_linear(il[valid], x[valid])
    with np.errstate(divide='ignore', invalid='ignore'):
        c = float(np.divide(offset, gain))
    if not np.isfinite(c):
        logger.warning(f'C-correction fit is degenerate (offset={offset:.4g}, gain={gain:.4g}), C={c}.')
    return c
