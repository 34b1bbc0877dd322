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
from multiprocessing import cpu_count

import numpy as np
import pytest
from rasterio.transform import Affine

from topocorr import correct, utils
from topocorr.enums import Method
from topocorr.errors import InvalidGeometryError, InvalidMethodError, IgnoredSampleIndicesWarning
from topocorr.illumination import calc_illumination
from topocorr.raster_array import RasterArray
from topocorr.topocorr import TopoCorrector, mask_out_of_range


def test_package_exports():
    """ Test the package namespace exports the public API only. """
    import topocorr
    public = {name for name in dir(topocorr) if not name.startswith('_')}
    api = {'Method', 'RasterArray', 'TopoCorrector', 'correct', 'grid_sample_indices', 'random_sample_indices'}
    assert api.issubset(public)
    # submodules are also bound as package attributes on import
    assert public - api <= {
        'coefficients', 'correction_model', 'enums', 'errors', 'illumination', 'raster_array', 'topocorr', 'utils',
        'version'
    }  # yapf: disable


def test_init(sun_geometry):
    """ Test TopoCorrector initialisation and properties. """
    topo_corrector = TopoCorrector(*sun_geometry, method='minn', il_epsilon=1e-3, dn_max=1000)
    assert topo_corrector.method == Method.minnaert
    assert topo_corrector.zenith == pytest.approx(np.radians(90 - sun_geometry[0]))
    assert topo_corrector.azimuth == pytest.approx(np.radians(sun_geometry[1]))
    assert topo_corrector._il_epsilon == 1e-3
    assert topo_corrector._dn_max == 1000
    assert topo_corrector._dn_min is None


@pytest.mark.parametrize('sun_elevation, sun_azimuth', [(-10, 180), (91, 180), (45, 400)])
def test_init_geometry_error(sun_elevation: float, sun_azimuth: float):
    """ Test an error is raised for an out of range sun position. """
    with pytest.raises(InvalidGeometryError):
        TopoCorrector(sun_elevation, sun_azimuth)


def test_init_errors(sun_geometry):
    """ Test errors are raised for an invalid method and epsilon. """
    with pytest.raises(InvalidMethodError):
        TopoCorrector(*sun_geometry, method='unknown')
    with pytest.raises(ValueError):
        TopoCorrector(*sun_geometry, il_epsilon=0)


def test_create_config():
    """ Test the default configurations. """
    config = TopoCorrector.create_config()
    assert config['il_epsilon'] == 1e-6
    assert np.isnan(config['nodata'])
    assert config['dn_min'] is None and config['dn_max'] is None

    block_config = TopoCorrector.create_block_config()
    assert block_config['threads'] == cpu_count()
    assert block_config['max_block_mem'] == 100
    assert not block_config['progress']


@pytest.mark.parametrize('method', list(Method))
def test_flat_unchanged(method: Method):
    """ Test flat terrain is left unchanged by all methods, except illumination. """
    x = np.array([[10, 20, 30], [40, 50, 60], [70, 80, 90]], dtype='float32')
    flat = np.zeros_like(x)
    corr_ra = correct(x, flat, flat, 45, 180, method=method, threads=1)
    if method == Method.illumination:
        assert corr_ra.array == pytest.approx(np.full(x.shape, np.cos(np.pi / 4)), abs=1e-6)
    else:
        assert (corr_ra.array == x).all()


@pytest.mark.parametrize('method', [m for m in Method if m != Method.illumination])
def test_flat_unchanged_float64(method: Method):
    """ Test float64 band values on flat terrain are returned exactly, in float64. """
    # values that are not exactly representable in float32
    x = np.array([[0.1, 123.456, 16777217.], [1e-9, 2.5, 1 / 3]], dtype='float64')
    flat = np.zeros_like(x)
    corr_ra = correct(x, flat, flat, 45, 180, method=method)
    assert corr_ra.dtype == 'float64'
    assert (corr_ra.array == x).all()


def test_output_dtype(terrain_ras, sun_geometry):
    """ Test the corrected band has the precision of the input band, with a minimum of float32. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    corrector = TopoCorrector(*sun_geometry, method=Method.cosine)
    assert corrector.process(x_ra.array.astype('uint16'), slope_ra, aspect_ra).dtype == 'float32'
    assert corrector.process(x_ra.array.astype('float32'), slope_ra, aspect_ra).dtype == 'float32'
    assert corrector.process(x_ra.array.astype('float64'), slope_ra, aspect_ra).dtype == 'float64'


@pytest.mark.parametrize('method', [m for m in Method if m != Method.illumination])
def test_slope_zero_unchanged(terrain_ras, sun_geometry, method: Method):
    """ Test pixels with zero slope are left unchanged in a terrain band. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    corr_ra = TopoCorrector(*sun_geometry, method=method).process(x_ra, slope_ra, aspect_ra)
    flat_mask = slope_ra.array == 0
    assert flat_mask.any()
    assert (corr_ra.array[flat_mask] == x_ra.array[flat_mask]).all()


def test_cosine(terrain_ras, sun_geometry):
    """ Test cosine correction against the cosine formula. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    topo_corrector = TopoCorrector(*sun_geometry, method=Method.cosine)
    corr_ra = topo_corrector.process(x_ra, slope_ra, aspect_ra)

    il = calc_illumination(slope_ra, aspect_ra, topo_corrector.zenith, topo_corrector.azimuth).array
    mask = (slope_ra.array > 0) & (np.abs(il) > 0.05)
    exp_array = x_ra.array * np.cos(topo_corrector.zenith) / il
    assert corr_ra.array[mask] == pytest.approx(exp_array[mask], rel=1e-5)


def test_illumination(terrain_ras, sun_geometry):
    """ Test the illumination method returns the illumination, regardless of the band. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    topo_corrector = TopoCorrector(*sun_geometry, method=Method.illumination)
    il_ra = calc_illumination(slope_ra, aspect_ra, topo_corrector.zenith, topo_corrector.azimuth)
    corr_ra = topo_corrector.process(x_ra, slope_ra, aspect_ra)
    assert utils.nan_equals(corr_ra.array, il_ra.array).all()

    corr_ra = topo_corrector.process(np.zeros(x_ra.shape), slope_ra, aspect_ra)
    assert utils.nan_equals(corr_ra.array, il_ra.array).all()


def test_minnaert_flattens(terrain_ras, sun_geometry):
    """ Test Minnaert correction of a synthetic Minnaert band gives a uniform band. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    topo_corrector = TopoCorrector(*sun_geometry, method=Method.minnaert)
    corr_ra = topo_corrector.process(x_ra, slope_ra, aspect_ra)

    il = calc_illumination(slope_ra, aspect_ra, topo_corrector.zenith, topo_corrector.azimuth).array
    mask = (slope_ra.array > 0) & (il > 0.05)
    assert corr_ra.array[mask] == pytest.approx(100, rel=1e-2)
    assert np.std(corr_ra.array[mask]) < np.std(x_ra.array[mask]) / 10


def test_c_correction_flattens(terrain_ras, sun_geometry):
    """ Test C-correction of a synthetic linear band gives a uniform band. """
    _, slope_ra, aspect_ra = terrain_ras
    topo_corrector = TopoCorrector(*sun_geometry, method=Method.c_correction)
    il_ra = calc_illumination(slope_ra, aspect_ra, topo_corrector.zenith, topo_corrector.azimuth)
    x_ra = RasterArray.from_profile((20 + 80 * il_ra.array).astype('float32'), il_ra.profile)
    corr_ra = topo_corrector.process(x_ra, slope_ra, aspect_ra)

    exp_value = 20 + 80 * np.cos(topo_corrector.zenith)
    mask = ~np.isnan(il_ra.array)
    assert corr_ra.array[mask] == pytest.approx(exp_value, rel=1e-4)


@pytest.mark.parametrize('method', [Method.minnaert, Method.minnaert_slope])
def test_sample_indices(terrain_ras, sun_geometry, method: Method):
    """ Test correction with a grid sample of pixels approximates correction with all pixels. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    topo_corrector = TopoCorrector(*sun_geometry, method=method)
    ref_ra = topo_corrector.process(x_ra, slope_ra, aspect_ra)
    sample_indices = utils.grid_sample_indices(x_ra.shape, step=(4, 4))
    corr_ra = topo_corrector.process(x_ra, slope_ra, aspect_ra, sample_indices=sample_indices)

    mask = ~np.isnan(ref_ra.array)
    assert (np.isnan(corr_ra.array) == ~mask).all()
    assert corr_ra.array[mask] == pytest.approx(ref_ra.array[mask], rel=0.05)


@pytest.mark.parametrize('method', [Method.cosine, Method.improved_cosine, Method.gamma, Method.scs])
def test_ignored_sample_indices(terrain_ras, sun_geometry, method: Method):
    """ Test sample indices are ignored, with a warning, by methods that do not fit a coefficient. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    topo_corrector = TopoCorrector(*sun_geometry, method=method)
    ref_ra = topo_corrector.process(x_ra, slope_ra, aspect_ra)
    with pytest.warns(IgnoredSampleIndicesWarning):
        corr_ra = topo_corrector.process(x_ra, slope_ra, aspect_ra, sample_indices=[0, 10, 100])
    assert utils.nan_equals(corr_ra.array, ref_ra.array).all()


def test_sample_indices_error(terrain_ras, sun_geometry):
    """ Test an error is raised for out of range sample indices. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    with pytest.raises(ValueError):
        TopoCorrector(*sun_geometry, method=Method.minnaert).process(
            x_ra, slope_ra, aspect_ra, sample_indices=[0, x_ra.width * x_ra.height]
        )


def test_out_of_range():
    """ Test corrected values outside [dn_min, dn_max] are set to nodata. """
    x = np.array([[100, 300, -5], [0, 255, 256]], dtype='float32')
    flat = np.zeros_like(x)
    corr_ra = correct(x, flat, flat, 60, 90, dn_min=0, dn_max=255, threads=1)
    assert utils.nan_equals(corr_ra.array, np.array([[100, np.nan, np.nan], [0, 255, np.nan]])).all()


def test_mask_out_of_range():
    """ Test masking out of range values is in place, and idempotent. """
    array = np.array([1., 5., 10., np.nan, -3.])
    masked = mask_out_of_range(array, dn_min=0, dn_max=8)
    assert masked is array
    exp_array = np.array([1., 5., np.nan, np.nan, np.nan])
    assert utils.nan_equals(array, exp_array).all()
    assert utils.nan_equals(mask_out_of_range(array.copy(), dn_min=0, dn_max=8), exp_array).all()

    # no bounds leaves the array unchanged
    assert utils.nan_equals(mask_out_of_range(np.array([-1e9, 1e9])), np.array([-1e9, 1e9])).all()


def test_nodata(terrain_ras, sun_geometry):
    """ Test band, slope and aspect nodata is propagated to the corrected band. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    x_array = x_ra.array.copy()
    x_array[5, 20] = -9999
    aspect_ra.array[6, 20] = np.nan
    corr_ra = TopoCorrector(*sun_geometry, method=Method.cosine, nodata=-9999).process(
        x_array, slope_ra.array, aspect_ra.array
    )
    assert np.isnan(corr_ra.nodata)
    assert np.isnan(corr_ra.array[5, 20])
    assert np.isnan(corr_ra.array[6, 20])
    assert np.isnan(corr_ra.array[-1, -1])
    assert corr_ra.mask.sum() == x_array.size - 3


def test_byte_nodata(ra_byte, sun_geometry):
    """ Test a byte band RasterArray is corrected to float with its nodata masked. """
    flat = np.zeros(ra_byte.shape)
    corr_ra = correct(ra_byte, flat, flat, *sun_geometry, threads=1)
    assert corr_ra.dtype == RasterArray.default_dtype
    assert (corr_ra.mask == ra_byte.mask).all()
    assert (corr_ra.array[corr_ra.mask] == ra_byte.array[ra_byte.mask]).all()


def test_georeferencing(terrain_ras, sun_geometry):
    """ Test the band CRS and transform are passed through to the corrected band. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    corr_ra = correct(x_ra, slope_ra, aspect_ra, *sun_geometry)
    assert corr_ra.crs == x_ra.crs
    assert corr_ra.transform == x_ra.transform
    assert corr_ra.shape == x_ra.shape

    corr_ra = correct(x_ra.array, slope_ra.array, aspect_ra.array, *sun_geometry)
    assert corr_ra.crs is None
    assert corr_ra.transform == Affine.identity()


def test_grid_errors(terrain_ras, sun_geometry):
    """ Test errors are raised when the band, slope and aspect are not on the same grid. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    topo_corrector = TopoCorrector(*sun_geometry)
    with pytest.raises(ValueError):
        topo_corrector.process(x_ra.array[:-1], slope_ra.array, aspect_ra.array)
    with pytest.raises(ValueError):
        topo_corrector.process(x_ra.array, slope_ra.array, aspect_ra.array[:, :-1])
    with pytest.raises(ValueError):
        topo_corrector.process(np.stack((x_ra.array,) * 2), slope_ra.array, aspect_ra.array)

    shifted_ra = RasterArray(aspect_ra.array, aspect_ra.crs, aspect_ra.transform * Affine.translation(1, 0))
    with pytest.raises(ValueError):
        topo_corrector.process(x_ra, slope_ra, shifted_ra)


@pytest.mark.parametrize('method', [Method.cosine, Method.improved_cosine, Method.minnaert, Method.c_correction])
@pytest.mark.parametrize('threads, max_block_mem', [(0, 0.001), (1, 0.001), (0, 0.0005)])
def test_blocks(terrain_ras, sun_geometry, method: Method, threads: int, max_block_mem: float):
    """ Test block processing gives the same result as processing the whole band in one block. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    topo_corrector = TopoCorrector(*sun_geometry, method=method)
    ref_ra = topo_corrector.process(
        x_ra, slope_ra, aspect_ra, block_config=dict(threads=1, max_block_mem=float('inf'))
    )
    block_config = TopoCorrector.create_block_config(threads=threads, max_block_mem=max_block_mem)
    assert len(utils.block_windows(x_ra.shape, max_block_mem=max_block_mem)) > 1
    corr_ra = topo_corrector.process(x_ra, slope_ra, aspect_ra, block_config=block_config)

    # compare away from the illumination zero crossing, where round-off can change the sign of the illumination
    il = calc_illumination(slope_ra, aspect_ra, topo_corrector.zenith, topo_corrector.azimuth).array
    mask = np.abs(il) > 0.01
    assert np.allclose(corr_ra.array[mask], ref_ra.array[mask], rtol=1e-4, equal_nan=True)
    assert (np.isnan(corr_ra.array) == np.isnan(ref_ra.array))[mask].all()


def test_progress(terrain_ras, sun_geometry):
    """ Test processing with a progress bar. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    topo_corrector = TopoCorrector(*sun_geometry)
    block_config = TopoCorrector.create_block_config(max_block_mem=0.001, progress=True)
    corr_ra = topo_corrector.process(x_ra, slope_ra, aspect_ra, block_config=block_config)
    assert corr_ra.shape == x_ra.shape


def test_inputs_unchanged(terrain_ras, sun_geometry):
    """ Test the input rasters are not modified. """
    x_ra, slope_ra, aspect_ra = terrain_ras
    arrays = [ra.array.copy() for ra in terrain_ras]
    correct(x_ra, slope_ra, aspect_ra, *sun_geometry, method=Method.minnaert, dn_min=0, dn_max=50)
    for ra, array in zip(terrain_ras, arrays):
        assert utils.nan_equals(ra.array, array).all()


@pytest.mark.parametrize('method', [Method.scs, Method.minnaert_slope])
def test_correct(terrain_ras, sun_geometry, method: Method):
    """ Test the correct() function gives the same result as TopoCorrector.process(). """
    x_ra, slope_ra, aspect_ra = terrain_ras
    sample_indices = utils.random_sample_indices(x_ra.shape, 500, seed=0)
    ref_ra = TopoCorrector(*sun_geometry, method=method, dn_min=0).process(
        x_ra, slope_ra, aspect_ra, sample_indices=sample_indices if method.fits_coefficient else None
    )
    corr_ra = correct(
        x_ra, slope_ra, aspect_ra, *sun_geometry, method=method.value, dn_min=0,
        sample_indices=sample_indices if method.fits_coefficient else None
    )
    assert utils.nan_equals(corr_ra.array, ref_ra.array).all()
