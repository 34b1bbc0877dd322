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
from concurrent import futures
from timeit import default_timer as timer
from typing import Dict, Optional, Sequence, Union, List, Callable, Tuple

import numpy as np
from rasterio.windows import Window
from tqdm.auto import tqdm

from topocorr import utils
from topocorr.correction_model import CorrectionModel
from topocorr.enums import Method
from topocorr.errors import IgnoredSampleIndicesWarning
from topocorr.illumination import illumination_array, default_epsilon
from topocorr.raster_array import RasterArray

logger = logging.getLogger(__name__)

Raster = Union[RasterArray, np.ndarray]


def mask_out_of_range(
    array: np.ndarray, dn_min: Optional[float] = None, dn_max: Optional[float] = None,
    nodata: float = RasterArray.default_nodata
) -> np.ndarray:
    """
    Set values of ``array`` that lie outside [``dn_min``, ``dn_max``] to ``nodata``, in place.

    Parameters
    ----------
    array: numpy.ndarray
        Array to mask.
    dn_min: float, optional
        Minimum valid value.  No lower bound if None.
    dn_max: float, optional
        Maximum valid value.  No upper bound if None.
    nodata: float, optional
        Value to set out of range pixels to.

    Returns
    -------
    numpy.ndarray
        The masked ``array``.
    """
    if dn_min is not None:
        array[array < dn_min] = nodata
    if dn_max is not None:
        array[array > dn_max] = nodata
    return array


class TopoCorrector:

    def __init__(
        self, sun_elevation: float, sun_azimuth: float, method: Union[Method, str] = CorrectionModel.default_method,
        **kwargs
    ):
        """
        Class for topographic correction of a satellite image band.

        The band is corrected for illumination differences due to terrain, using the terrain slope and aspect,
        and the sun position.  To reduce memory usage and improve speed, the per-pixel stages of the correction are
        divided into blocks for concurrent processing.

        Parameters
        ----------
        sun_elevation: float
            Sun elevation in degrees, in the range [0, 90].
        sun_azimuth: float
            Sun azimuth in degrees, in the range [0, 360].
        method: topocorr.enums.Method, str, optional
            Correction method, or an unambiguous abbreviation of its value.  See :class:`~topocorr.enums.Method`
            for options.
        kwargs:
            Optional configuration arguments.  See :meth:`TopoCorrector.create_config` for keys and default values.
        """
        self._zenith, self._azimuth = utils.validate_sun_geometry(sun_elevation, sun_azimuth)
        self._model = CorrectionModel(method, zenith=self._zenith)

        # update config defaults with any passed values, and set attributes
        config = self.create_config(**kwargs)
        self._il_epsilon: float = utils.validate_epsilon(config['il_epsilon'])
        self._nodata: float = config['nodata']
        self._dn_min: Optional[float] = config['dn_min']
        self._dn_max: Optional[float] = config['dn_max']

    @property
    def method(self) -> Method:
        """ Correction method. """
        return self._model.method

    @property
    def zenith(self) -> float:
        """ Solar zenith angle in radians. """
        return self._zenith

    @property
    def azimuth(self) -> float:
        """ Solar azimuth angle in radians. """
        return self._azimuth

    @staticmethod
    def create_config(
        il_epsilon: float = default_epsilon, nodata: float = float('nan'), dn_min: Optional[float] = None,
        dn_max: Optional[float] = None
    ) -> Dict:
        """
        Utility method to create a TopoCorrector configuration dictionary that can be passed to
        :meth:`TopoCorrector.__init__`.  Without arguments, the default configuration is returned.

        Parameters
        ----------
        il_epsilon: float, optional
            Value to replace illumination values of exactly zero with.  Must be greater than zero.
        nodata: float, optional
            Band value denoting no data, in addition to any band RasterArray nodata value.
        dn_min: float, optional
            Minimum valid corrected value.  Corrected values below this are set to nodata.
        dn_max: float, optional
            Maximum valid corrected value.  Corrected values above this are set to nodata.

        Returns
        -------
        dict
            Configuration dictionary.
        """
        return dict(il_epsilon=il_epsilon, nodata=nodata, dn_min=dn_min, dn_max=dn_max)

    @staticmethod
    def create_block_config(threads: int = 0, max_block_mem: float = 100, progress: bool = False) -> Dict:
        """
        Utility method to create a block processing configuration dictionary that can be passed to
        :meth:`TopoCorrector.process`.  Without arguments, the default configuration is returned.

        Parameters
        ----------
        threads: int, optional
            Number of blocks to process concurrently.  A maximum of the number of processors on your system is
            allowed.  0 = use all processors.
        max_block_mem: float, optional
            Maximum size of a block in megabytes.  Note that the total memory consumed by a thread is proportional
            to, but larger than this number.
        progress: bool, optional
            Display a progress bar over blocks.

        Returns
        -------
        dict
            Block processing configuration dictionary.
        """
        return dict(threads=utils.validate_threads(threads), max_block_mem=max_block_mem, progress=progress)

    @staticmethod
    def _check_grids(x: Raster, slope: Raster, aspect: Raster) -> Tuple[int, int]:
        """
        Raise a ValueError if the band, slope and aspect rasters are not on the same pixel grid, otherwise return
        the grid (height, width).
        """
        shapes = [np.shape(r.array if isinstance(r, RasterArray) else r) for r in (x, slope, aspect)]
        if any([len(shape) != 2 for shape in shapes]):
            raise ValueError("'x', 'slope' and 'aspect' must be 2D")
        if (shapes[0] != shapes[1]) or (shapes[0] != shapes[2]):
            raise ValueError(f"'x', 'slope' and 'aspect' must have the same shape: {shapes}")
        if all([isinstance(r, RasterArray) for r in (x, slope, aspect)]):
            if not (x.same_grid(slope) and x.same_grid(aspect)):
                raise ValueError("'x', 'slope' and 'aspect' must have the same transform")
        return shapes[0]

    def _illumination_block(self, window: Window, slope_ra: RasterArray, aspect_ra: RasterArray, il_ra: RasterArray):
        """ Thread-safe method to find the illumination of a block, and write it into ``il_ra``. """
        slices = window.toslices()
        illumination_array(
            slope_ra.array[slices], aspect_ra.array[slices], self._zenith, self._azimuth, epsilon=self._il_epsilon,
            out=il_ra.array[slices]
        )

    def _correct_block(
        self, window: Window, x_ra: RasterArray, slope_ra: RasterArray, il_ra: RasterArray,
        coefficient: Optional[float], corr_ra: RasterArray
    ):
        """ Thread-safe method to correct a block, post-process it, and write it into ``corr_ra``. """
        slices = window.toslices()
        x, slope, il = x_ra.array[slices], slope_ra.array[slices], il_ra.array[slices]
        corr_array = self._model.apply(x, slope, il, coefficient=coefficient)

        if self.method != Method.illumination:
            # reflectance of flat terrain does not change (slope == nan is False, so nodata slope is excluded)
            flat_mask = slope == 0
            corr_array[flat_mask] = x[flat_mask]

        corr_ra.array[slices] = mask_out_of_range(
            corr_array, dn_min=self._dn_min, dn_max=self._dn_max, nodata=corr_ra.nodata
        )

    @staticmethod
    def _process_blocks(func: Callable, windows: List[Window], block_config: Dict, desc: str, *args):
        """ Call ``func(window, *args)`` for each window in ``windows``, consecutively or concurrently. """
        # tqdm progress bar format
        bar_format = '{l_bar}{bar}|{n_fmt}/{total_fmt} blocks [{elapsed}<{remaining}]'
        disable = not block_config['progress']

        if block_config['threads'] == 1 or len(windows) == 1:
            # process blocks consecutively in the main thread (useful for profiling)
            for window in tqdm(windows, desc=desc, bar_format=bar_format, disable=disable):
                func(window, *args)
        else:
            # process blocks concurrently
            with futures.ThreadPoolExecutor(max_workers=block_config['threads']) as executor:
                # submit block jobs to the thread pool
                proc_futures = [executor.submit(func, window, *args) for window in windows]

                # wait for threads in order of completion, and raise any thread generated exceptions
                for future in tqdm(
                    futures.as_completed(proc_futures), desc=desc, bar_format=bar_format, total=len(proc_futures),
                    dynamic_ncols=True, disable=disable
                ):  # yapf: disable
                    future.result()

    def process(
        self, x: Raster, slope: Raster, aspect: Raster, sample_indices: Optional[Sequence[int]] = None,
        block_config: Optional[Dict] = None
    ) -> RasterArray:
        """
        Topographically correct a band.

        Parameters
        ----------
        x: RasterArray, numpy.ndarray
            2D band to correct.  Numpy arrays are assumed to have a nodata value of nan.
        slope: RasterArray, numpy.ndarray
            Terrain slope in radians, on the same pixel grid as ``x``.
        aspect: RasterArray, numpy.ndarray
            Terrain aspect (downslope direction) in radians, on the same pixel grid as ``x``.
        sample_indices: sequence of int, optional
            Flat, row-major indices of pixels to restrict regression fitting to.  Useful for speeding up the
            :attr:`~topocorr.enums.Method.minnaert`, :attr:`~topocorr.enums.Method.minnaert_slope` and
            :attr:`~topocorr.enums.Method.c_correction` methods on large images.  Ignored, with a warning,
            for other methods.
        block_config: dict, optional
            Configuration dictionary for block processing.  See :meth:`~TopoCorrector.create_block_config` for keys
            and default values.

        Returns
        -------
        RasterArray
            Corrected band, in the CRS, grid and floating point precision of ``x`` (minimum float32), with nodata=nan.
        """
        start_time = timer()
        shape = self._check_grids(x, slope, aspect)
        block_config = self.create_block_config(**(block_config or {}))
        sample_indices = utils.validate_sample_indices(sample_indices, shape)
        if sample_indices is not None and not self.method.fits_coefficient:
            warnings.warn(
                f'Sample indices are not used by the "{self.method.value}" method, ignoring.',
                category=IgnoredSampleIndicesWarning
            )
            sample_indices = None

        # copy inputs to float RasterArrays with nan nodata, keeping their precision
        x_ra = RasterArray.from_input(x, nodata=self._nodata)
        slope_ra = RasterArray.from_input(slope)
        aspect_ra = RasterArray.from_input(aspect)
        il_dtype = np.result_type(slope_ra.dtype, aspect_ra.dtype)
        windows = utils.block_windows(
            x_ra.shape, max_block_mem=block_config['max_block_mem'], dtype=np.result_type(x_ra.dtype, il_dtype)
        )

        # find illumination
        il_ra = RasterArray.from_profile(None, dict(x_ra.profile, dtype=il_dtype))
        self._process_blocks(
            self._illumination_block, windows, block_config, 'Illumination', slope_ra, aspect_ra, il_ra
        )

        # fit image-wide coefficient(s), then apply the correction
        coefficient = self._model.fit(x_ra, slope_ra, il_ra, sample_indices=sample_indices)
        corr_ra = RasterArray.from_profile(None, x_ra.profile)
        self._process_blocks(
            self._correct_block, windows, block_config, 'Correction', x_ra, slope_ra, il_ra, coefficient, corr_ra
        )

        logger.debug(f'Corrected {x_ra.shape} band with "{self.method.value}" in {timer() - start_time:.2f} secs')
        return corr_ra


def correct(
    x: Raster, slope: Raster, aspect: Raster, sun_elevation: float, sun_azimuth: float,
    method: Union[Method, str] = CorrectionModel.default_method, nodata: float = float('nan'),
    il_epsilon: float = default_epsilon, sample_indices: Optional[Sequence[int]] = None,
    dn_min: Optional[float] = None, dn_max: Optional[float] = None, threads: int = 0, max_block_mem: float = 100,
) -> RasterArray:
    """
    Topographically correct a band.

    Parameters
    ----------
    x: RasterArray, numpy.ndarray
        2D band to correct.  Numpy arrays are assumed to have a nodata value of nan.
    slope: RasterArray, numpy.ndarray
        Terrain slope in radians, on the same pixel grid as ``x``.
    aspect: RasterArray, numpy.ndarray
        Terrain aspect (downslope direction) in radians, on the same pixel grid as ``x``.
    sun_elevation: float
        Sun elevation in degrees, in the range [0, 90].
    sun_azimuth: float
        Sun azimuth in degrees, in the range [0, 360].
    method: topocorr.enums.Method, str, optional
        Correction method, or an unambiguous abbreviation of its value.
    nodata: float, optional
        Band value denoting no data.
    il_epsilon: float, optional
        Value to replace illumination values of exactly zero with.
    sample_indices: sequence of int, optional
        Flat, row-major indices of pixels to restrict regression fitting to.
    dn_min: float, optional
        Minimum valid corrected value.  Corrected values below this are set to nodata.
    dn_max: float, optional
        Maximum valid corrected value.  Corrected values above this are set to nodata.
    threads: int, optional
        Number of blocks to process concurrently.  0 = use all processors.
    max_block_mem: float, optional
        Maximum size of a block in megabytes.

    Returns
    -------
    RasterArray
        Corrected band, in the floating point precision of ``x`` (minimum float32), with nodata=nan.
    """
    topo_corrector = TopoCorrector(
        sun_elevation, sun_azimuth, method=method, il_epsilon=il_epsilon, nodata=nodata, dn_min=dn_min,
        dn_max=dn_max
    )
    block_config = dict(threads=threads, max_block_mem=max_block_mem)
    return topo_corrector.process(x, slope, aspect, sample_indices=sample_indices, block_config=block_config)
