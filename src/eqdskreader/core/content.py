"""
Immutable record holding the content of one G-EQDSK file.
"""

import logging
import os
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

import numpy as np
import xarray as xr
from scipy.interpolate import RectBivariateSpline

from ..errors import FormatError
from ..io import cocos as _cocos
from ..io.eqdsk import read_fields
from ..io.tokenizer import Tokenizer

logger = logging.getLogger('eqdsk.content')


def _require_matplotlib_pyplot():
    """
    Import matplotlib pyplot lazily for plotting helpers.
    """
    try:
        import matplotlib.pyplot as plt
    except ModuleNotFoundError as exc:
        raise ModuleNotFoundError(
            "matplotlib is required for Content.plot. "
            "Install eqdskreader with plotting extras: pip install 'eqdskreader[plot]'."
        ) from exc
    return plt


_PROFILE_ATTRS = {
    'fpol':   {'units': 'T*m',       'desc': 'Poloidal current function F = RB_T'},
    'pres':   {'units': 'Pa',        'desc': 'Plasma pressure'},
    'ffprim': {'units': 'T^2*m^2*rad/Wb', 'desc': "FF'(psi)"},
    'pprime': {'units': 'Pa*rad/Wb', 'desc': "P'(psi)"},
    'qpsi':   {'units': '',          'desc': 'Safety factor'},
}


# ----------------------------------------------------------------------------
# CLASS FOR THE EQDSK CONTENT.
# ----------------------------------------------------------------------------
class Content:
    """
    Content of an EQDSK file.

    ``Content(path)`` and ``Content(stream)`` read the file; the record is
    never modified afterwards. Every array is read-only.

    Parameters
    ----------
    source : str, os.PathLike or stream
        EQDSK file path or open stream.
    tokenizer : str or Tokenizer, optional
        Strategy splitting the numeric lines. See
        :mod:`eqdskreader.io.tokenizer`.

    Attributes
    ----------
    case_id : str
        Identification character string.
    idum : int or None
        First integer of the header line, when present.
    nw, nh : int
        Number of horizontal (R) and vertical (Z) grid points.
    rdim, zdim : float
        Horizontal and vertical dimensions of the computational box [m].
    rcentr : float
        R where the vacuum toroidal field ``bcentr`` is given [m].
    rleft : float
        Minimum R of the computational box [m].
    zmid : float
        Z of the centre of the computational box [m].
    rmaxis, zmaxis : float
        Magnetic axis position [m].
    simag, sibry : float
        Poloidal flux at the magnetic axis and at the boundary [Wb/rad].
    bcentr : float
        Vacuum toroidal magnetic field at ``rcentr`` [T].
    current : float
        Plasma current [A].
    fpol, pres, ffprim, pprime, qpsi : np.ndarray
        Profiles on the uniform flux grid from axis to boundary (``nw``).
    psirz : np.ndarray
        Poloidal flux on the rectangular grid, shape ``(nw, nh)``, indexed
        ``psirz[i_R, j_Z]``. See :attr:`psirz_zr` for the transposed view.
    nbbbs, limitr : int
        Number of boundary and limiter points.
    rbbbs, zbbbs : np.ndarray
        Boundary contour [m].
    rlim, zlim : np.ndarray
        Limiter contour [m].
    duplicates : Mapping[str, float]
        Values of the repeated header slots (simag, rmaxis, zmaxis, sibry).

    Examples
    --------
    >>> eq = Content('g012345.01000')
    >>> eq.qpsi.size == eq.nw
    True
    """

    _SCALARS = ('case_id', 'idum', 'nw', 'nh', 'rdim', 'zdim', 'rcentr',
                'rleft', 'zmid', 'rmaxis', 'zmaxis', 'simag', 'sibry',
                'bcentr', 'current', 'nbbbs', 'limitr')
    _ARRAYS = ('fpol', 'pres', 'ffprim', 'pprime', 'psirz', 'qpsi',
               'rbbbs', 'zbbbs', 'rlim', 'zlim')

    __hash__ = None

    def __init__(
        self,
        source: Union[str, 'os.PathLike[str]', Any],
        tokenizer: Union[str, Tokenizer, None] = None
    ) -> None:
        self._assign(**read_fields(source, tokenizer=tokenizer))

    @classmethod
    def from_fields(cls, **fields) -> 'Content':
        """
        Build a record from already parsed fields.

        Raises
        ------
        FormatError
            If the array sizes do not match the declared dimensions.
        """
        obj = cls.__new__(cls)
        obj._assign(**fields)
        return obj

    def _assign(self, *, case_id: str, nw: int, nh: int,
                rdim: float, zdim: float, rcentr: float, rleft: float,
                zmid: float, rmaxis: float, zmaxis: float, simag: float,
                sibry: float, bcentr: float, current: float,
                fpol, pres, ffprim, pprime, psirz, qpsi,
                nbbbs: int, limitr: int, rbbbs, zbbbs, rlim, zlim,
                idum: Optional[int] = None,
                duplicates: Optional[Mapping[str, float]] = None) -> None:
        nw, nh = int(nw), int(nh)
        nbbbs, limitr = int(nbbbs), int(limitr)

        expected = {'fpol': (nw,), 'pres': (nw,), 'ffprim': (nw,),
                    'pprime': (nw,), 'qpsi': (nw,), 'psirz': (nw, nh),
                    'rbbbs': (nbbbs,), 'zbbbs': (nbbbs,),
                    'rlim': (limitr,), 'zlim': (limitr,)}
        given = {'fpol': fpol, 'pres': pres, 'ffprim': ffprim,
                 'pprime': pprime, 'qpsi': qpsi, 'psirz': psirz,
                 'rbbbs': rbbbs, 'zbbbs': zbbbs, 'rlim': rlim, 'zlim': zlim}

        for name, shape in expected.items():
            arr = np.array(given[name], dtype=np.float64)
            if arr.shape != shape:
                raise FormatError('Array does not match declared dimensions',
                                  field=name, expected=shape, found=arr.shape)
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)

        if duplicates is None:
            duplicates = {'simag': simag, 'rmaxis': rmaxis,
                          'zmaxis': zmaxis, 'sibry': sibry}

        scalars = dict(case_id=str(case_id),
                       idum=None if idum is None else int(idum),
                       nw=nw, nh=nh, rdim=float(rdim), zdim=float(zdim),
                       rcentr=float(rcentr), rleft=float(rleft),
                       zmid=float(zmid), rmaxis=float(rmaxis),
                       zmaxis=float(zmaxis), simag=float(simag),
                       sibry=float(sibry), bcentr=float(bcentr),
                       current=float(current), nbbbs=nbbbs, limitr=limitr)
        for name, value in scalars.items():
            object.__setattr__(self, name, value)
        object.__setattr__(self, 'duplicates', MappingProxyType(
            {key: float(val) for key, val in duplicates.items()}))

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f'Content is immutable, cannot set {name!r}')

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f'Content is immutable, cannot delete {name!r}')

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Content):
            return NotImplemented
        for name in self._SCALARS:
            if getattr(self, name) != getattr(other, name):
                return False
        for name in self._ARRAYS:
            if not np.array_equal(getattr(self, name), getattr(other, name)):
                return False
        return dict(self.duplicates) == dict(other.duplicates)

    def __repr__(self) -> str:
        return (f'{type(self).__name__}(case_id={self.case_id!r}, '
                f'nw={self.nw}, nh={self.nh}, nbbbs={self.nbbbs}, '
                f'limitr={self.limitr})')

    # ------------------------------------------------------------------------
    # COPIES.
    # ------------------------------------------------------------------------
    def as_dict(self) -> Dict[str, Any]:
        """
        Fields of the record as a dictionary of writable copies.
        """
        output = {name: getattr(self, name) for name in self._SCALARS}
        for name in self._ARRAYS:
            output[name] = getattr(self, name).copy()
        output['duplicates'] = dict(self.duplicates)
        return output

    def replace(self, **changes) -> 'Content':
        """
        New record with some fields replaced. The record itself is untouched.
        """
        fields = self.as_dict()
        unknown = set(changes) - set(fields)
        if unknown:
            raise TypeError(f'Unknown Content fields: {sorted(unknown)}')
        fields.update(changes)
        return type(self).from_fields(**fields)

    # ------------------------------------------------------------------------
    # GRIDS.
    # ------------------------------------------------------------------------
    @property
    def case(self) -> str:
        """Alias of ``case_id``."""
        return self.case_id

    @property
    def rgrid(self) -> np.ndarray:
        """Major radius of the grid points [m]."""
        return np.linspace(self.rleft, self.rleft + self.rdim, self.nw)

    @property
    def zgrid(self) -> np.ndarray:
        """Vertical position of the grid points [m]."""
        return np.linspace(self.zmid - 0.5*self.zdim,
                           self.zmid + 0.5*self.zdim, self.nh)

    @property
    def psi_grid(self) -> np.ndarray:
        """Uniform flux grid of the profiles, from axis to boundary [Wb/rad]."""
        return np.linspace(self.simag, self.sibry, self.nw)

    @property
    def psin(self) -> np.ndarray:
        """Normalised flux grid of the profiles."""
        return np.linspace(0.0, 1.0, self.nw)

    @property
    def psirz_zr(self) -> np.ndarray:
        """Poloidal flux indexed ``[j_Z, i_R]``, shape ``(nh, nw)``."""
        return self.psirz.T

    @property
    def boundary(self) -> np.ndarray:
        """Boundary contour as ``(nbbbs, 2)`` (R, Z) pairs."""
        return np.column_stack((self.rbbbs, self.zbbbs))

    @property
    def limiter(self) -> np.ndarray:
        """Limiter contour as ``(limitr, 2)`` (R, Z) pairs."""
        return np.column_stack((self.rlim, self.zlim))

    def to_dataset(self) -> xr.Dataset:
        """
        Convert the record into an ``xarray.Dataset``.

        Profiles live on the ``psin`` dimension, the flux map on ``(R, z)``,
        the contours on ``bdy`` and ``lim``. Scalars are stored in ``attrs``.
        """
        coords = {
            'R': xr.DataArray(self.rgrid, dims=('R',),
                              attrs={'units': 'm', 'desc': 'Major radius'}),
            'z': xr.DataArray(self.zgrid, dims=('z',),
                              attrs={'units': 'm', 'desc': 'Vertical position'}),
            'psin': xr.DataArray(self.psin, dims=('psin',),
                                 attrs={'units': '',
                                        'desc': 'Normalised poloidal flux'}),
        }

        data = {}
        for name, attrs in _PROFILE_ATTRS.items():
            data[name] = xr.DataArray(getattr(self, name), dims=('psin',),
                                      attrs={'name': name, **attrs})
        data['psirz'] = xr.DataArray(self.psirz, dims=('R', 'z'),
                                     attrs={'name': 'psirz', 'units': 'Wb/rad',
                                            'desc': 'Poloidal flux'})
        data['rbbbs'] = xr.DataArray(self.rbbbs, dims=('bdy',),
                                     attrs={'units': 'm', 'desc': 'Boundary R'})
        data['zbbbs'] = xr.DataArray(self.zbbbs, dims=('bdy',),
                                     attrs={'units': 'm', 'desc': 'Boundary Z'})
        data['rlim'] = xr.DataArray(self.rlim, dims=('lim',),
                                    attrs={'units': 'm', 'desc': 'Limiter R'})
        data['zlim'] = xr.DataArray(self.zlim, dims=('lim',),
                                    attrs={'units': 'm', 'desc': 'Limiter Z'})

        attrs = {name: getattr(self, name) for name in self._SCALARS
                 if getattr(self, name) is not None}
        return xr.Dataset(data, coords=coords, attrs=attrs)

    # ------------------------------------------------------------------------
    # CONSISTENCY CHECKS.
    # ------------------------------------------------------------------------
    def check_axis_flux(self, tol: float = 1e-4) -> float:
        """
        Interpolate the flux map at the magnetic axis and compare with simag.

        A warning is logged when the two values differ by more than ``tol``.
        The record is not modified.

        Parameters
        ----------
        tol : float, optional
            Absolute tolerance [Wb/rad]. Default is 1e-4.

        Returns
        -------
        float
            Flux interpolated at (rmaxis, zmaxis).

        Raises
        ------
        ValueError
            If the computational box has no extent.
        """
        if self.nw < 2 or self.nh < 2 or self.rdim <= 0.0 or self.zdim <= 0.0:
            raise ValueError('The computational box has no extent, cannot ' +
                             'interpolate the flux map')

        intrp = RectBivariateSpline(self.rgrid, self.zgrid, self.psirz,
                                    kx=min(3, self.nw - 1),
                                    ky=min(3, self.nh - 1))
        simag_intrp = float(intrp(self.rmaxis, self.zmaxis, grid=False))

        if abs(simag_intrp - self.simag) > tol:
            logger.warning('The magnetic flux at the axis seems ' +
                           'not be consistent with the value on the file ' +
                           f'({simag_intrp} != {self.simag})')
        return simag_intrp

    # ------------------------------------------------------------------------
    # COCOS.
    # ------------------------------------------------------------------------
    def cocos(self, phiclockwise: bool = False, weberperrad: bool = True) -> int:
        """
        Identify the COCOS convention of the record.

        Parameters
        ----------
        phiclockwise : bool, optional
            Whether the toroidal angle increases clockwise seen from above.
        weberperrad : bool, optional
            Whether the flux is per radian (COCOS 1-8). Default is True.
        """
        return _cocos.assign(self.qpsi[0], self.current, self.bcentr,
                             self.simag, self.sibry, phiclockwise=phiclockwise,
                             weberperrad=weberperrad)

    def to_cocos(self, cocos_out: int, cocos_in: Optional[int] = None,
                 phiclockwise: bool = False,
                 weberperrad: bool = True) -> 'Content':
        """
        New record transformed to the COCOS convention ``cocos_out``.

        See :func:`eqdskreader.io.cocos.convert`.
        """
        return _cocos.convert(self, cocos_out, cocos_in=cocos_in,
                              phiclockwise=phiclockwise,
                              weberperrad=weberperrad)

    # ------------------------------------------------------------------------
    # PLOTTING.
    # ------------------------------------------------------------------------
    def plot(self, ax=None, levels: int = 20, put_labels: bool = True):
        """
        Plot the flux map with the boundary and limiter contours.

        Parameters
        ----------
        ax : matplotlib axes, optional
            Axes to draw on. A new figure is created when None.
        levels : int, optional
            Number of flux contours. Default is 20.
        put_labels : bool, optional
            Whether to label the axes. Default is True.

        Returns
        -------
        ax : matplotlib axes
        """
        plt = _require_matplotlib_pyplot()
        if ax is None:
            _, ax = plt.subplots()

        ax.contour(self.rgrid, self.zgrid, self.psirz_zr, levels=levels)
        if self.nbbbs > 0:
            ax.plot(self.rbbbs, self.zbbbs, 'r-', label='Boundary')
        if self.limitr > 0:
            ax.plot(self.rlim, self.zlim, 'k-', label='Limiter')
        ax.set_aspect('equal')

        if put_labels:
            ax.set_xlabel('R [m]')
            ax.set_ylabel('Z [m]')
            ax.set_title(self.case_id)
        return ax
