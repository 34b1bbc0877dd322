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
from enum import Enum


class Method(str, Enum):
    """
    Topographic correction methods.

    All methods use the illumination (cosine of the solar incidence angle) of each pixel.  The
    :attr:`minnaert`, :attr:`minnaert_slope` and :attr:`c_correction` methods additionally fit an empirical
    coefficient to the image data by linear regression.
    """
    cosine = 'cosine'
    """ Cosine correction.  Tends to over-correct weakly illuminated slopes. """
    improved_cosine = 'improvedcosine'
    """ Improved cosine correction, relative to the mean illumination of the image. """
    minnaert = 'minnaert'
    """ Minnaert correction, with a fitted Minnaert constant modelling non-Lambertian reflectance. """
    minnaert_slope = 'minslope'
    """ Minnaert correction with the slope term of Colby (1991). """
    c_correction = 'ccorrection'
    """ C-correction of Teillet et al. (1982), with a fitted additive term. """
    gamma = 'gamma'
    """ Gamma correction, assuming a nadir view. """
    scs = 'SCS'
    """ Sun-canopy-sensor correction of Gu & Gillespie (1998). """
    illumination = 'illumination'
    """ Return the illumination only (the input band is ignored). """

    @property
    def fits_coefficient(self) -> bool:
        """ Whether the method fits a coefficient to the image data. """
        return self in (Method.minnaert, Method.minnaert_slope, Method.c_correction)
