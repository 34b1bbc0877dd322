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


class TopocorrError(Exception):
    """ Root exception class. """


class InvalidGeometryError(TopocorrError):
    """ Raised when the sun elevation or azimuth is outside its valid range. """


class InvalidMethodError(TopocorrError):
    """ Raised when a correction method name is unknown or ambiguous. """


class BlockSizeError(TopocorrError):
    """ Raised when the block size is invalid. """


class TopocorrWarning(RuntimeWarning):
    """ Topocorr runtime warning. """


class IgnoredSampleIndicesWarning(TopocorrWarning):
    """ Warn that sample indices were passed to a correction method that does not use them. """
