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
from typing import Tuple, Dict, Optional, Union

import numpy as np
from rasterio import Affine
from rasterio.crs import CRS

from topocorr import utils


class RasterArray:
    """
    A 2D band, slope, aspect or illumination array, with its nodata value and optional geo-referencing.
    """
    default_nodata = float('nan')  # nodata value of processed arrays
    default_dtype = 'float32'  # data type of processed arrays

    def __init__(
        self, array: np.ndarray, crs: Optional[CRS] = None, transform: Optional[Affine] = None,
        nodata: Optional[float] = default_nodata
    ):
        """
        Wrap a 2D numpy array, without copying it.

        Parameters
        ----------
        array: numpy.ndarray
            2D (height, width) array.
        crs: rasterio.crs.CRS, optional
            Coordinate reference system, or None for an array that is not geo-referenced.
        transform: rasterio.transform.Affine, optional
            Pixel to CRS transform.  The identity transform is used if None.
        nodata: float, optional
            Value of invalid pixels (can be nan).  None means all pixels are valid.
        """
        if array.ndim != 2:
            raise ValueError(f'`array` should be 2D, not {array.ndim}D')
        if not (crs is None or isinstance(crs, CRS)):
            raise TypeError('`crs` should be None, or a rasterio.crs.CRS instance')
        transform = Affine.identity() if transform is None else transform
        if not isinstance(transform, Affine):
            raise TypeError('`transform` should be a rasterio.transform.Affine instance')

        self._array = array
        self._crs = crs
        self._transform = transform
        self._nodata = nodata

    @classmethod
    def from_profile(cls, array: Optional[np.ndarray], profile: Dict) -> 'RasterArray':
        """
        Create a RasterArray from a rasterio style ``profile`` dictionary.

        ``profile`` supplies the `crs`, `transform` and `nodata` items.  When ``array`` is None, a new array filled
        with `nodata` is allocated using the `height`, `width` and `dtype` profile items as well.
        """
        if not {'crs', 'transform', 'nodata'}.issubset(profile):
            raise ValueError("'profile' is missing one or more of the 'crs', 'transform' and 'nodata' items")

        if array is None:
            if not {'width', 'height', 'dtype'}.issubset(profile):
                raise ValueError("'profile' is missing one or more of the 'width', 'height' and 'dtype' items")
            shape = (profile['height'], profile['width'])
            array = np.full(shape, fill_value=profile['nodata'], dtype=profile['dtype'])

        return cls(array, crs=profile['crs'], transform=profile['transform'], nodata=profile['nodata'])

    @classmethod
    def from_input(cls, raster: Union['RasterArray', np.ndarray], nodata: Optional[float] = None) -> 'RasterArray':
        """
        Return a floating point RasterArray copy of ``raster`` with :attr:`default_nodata` nodata.

        Parameters
        ----------
        raster: RasterArray, numpy.ndarray
            Input raster.  A numpy array is assumed to have :attr:`default_nodata` nodata.
        nodata: float, optional
            An additional nodata value to mask, over and above the nodata value of ``raster``.

        Returns
        -------
        RasterArray
            Masked copy of ``raster``.  Its data type is the precision of ``raster``, with a minimum of
            :attr:`default_dtype` e.g. float64 data stays float64, and uint8 data becomes float32.
        """
        if isinstance(raster, RasterArray):
            src_array, src_nodata = raster.array, raster.nodata
            crs, transform = raster.crs, raster.transform
        else:
            src_array, src_nodata = np.asarray(raster), cls.default_nodata
            crs, transform = None, None

        array = src_array.astype(np.result_type(src_array.dtype, cls.default_dtype), copy=True)
        # compare in the source data type, so that e.g. integer nodata values are matched exactly
        nodata_mask = np.full(src_array.shape, False)
        for _nodata in (src_nodata, nodata):
            if _nodata is not None:
                nodata_mask |= utils.nan_equals(src_array, _nodata)
        array[nodata_mask] = cls.default_nodata
        return cls(array, crs=crs, transform=transform, nodata=cls.default_nodata)

    @property
    def array(self) -> np.ndarray:
        """ The wrapped 2D array. """
        return self._array

    @property
    def crs(self) -> Optional[CRS]:
        """ Coordinate reference system, or None. """
        return self._crs

    @property
    def transform(self) -> Affine:
        """ Pixel to CRS transform. """
        return self._transform

    @property
    def shape(self) -> Tuple[int, int]:
        """ (height, width) in pixels. """
        return tuple(self._array.shape)

    @property
    def height(self) -> int:
        return self._array.shape[0]

    @property
    def width(self) -> int:
        return self._array.shape[1]

    @property
    def dtype(self) -> str:
        """ Array data type name. """
        return self._array.dtype.name

    @property
    def profile(self) -> Dict:
        """ rasterio style profile dictionary, that can be passed to :meth:`from_profile`. """
        return dict(
            crs=self._crs, transform=self._transform, nodata=self._nodata, height=self.height, width=self.width,
            dtype=self.dtype
        )

    @property
    def nodata(self) -> Optional[float]:
        """ Value of invalid pixels, or None. """
        return self._nodata

    @property
    def mask(self) -> np.ndarray:
        """ 2D boolean array that is True for valid pixels. """
        if self._nodata is None:
            return np.full(self._array.shape, True)
        return ~utils.nan_equals(self._array, self._nodata)

    def same_grid(self, other: 'RasterArray') -> bool:
        """ Whether ``other`` shares this RasterArray's shape and transform. """
        return (self.shape == other.shape) and (self.transform == other.transform)
