# [correct-start]
import numpy as np

from topocorr import Method, correct, grid_sample_indices

# synthetic terrain: a cone shaped hill, with slope and aspect in radians
rows, cols = np.mgrid[-50:50, -50:50].astype('float32')
slope = np.arctan(np.hypot(rows, cols) / 100)
aspect = np.arctan2(cols, -rows) % (2 * np.pi)

# synthetic band, darker on slopes facing away from the sun
sun_elevation, sun_azimuth = 40., 135.
band = 100 * (np.cos(slope) + 0.5 * np.sin(slope) * np.cos(np.radians(sun_azimuth) - aspect))

# Minnaert correction, fitting the Minnaert constant to a 5 x 5 pixel grid sample
corr_ra = correct(
    band, slope, aspect, sun_elevation, sun_azimuth, method=Method.minnaert,
    sample_indices=grid_sample_indices(band.shape, step=(5, 5)), dn_min=0, dn_max=255,
)
print(f'Band std: {np.nanstd(band):.2f}, corrected std: {np.nanstd(corr_ra.array):.2f}')
# [correct-end]
