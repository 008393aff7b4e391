"""Functions for checking and transforming the COCOS of EQDSK content.

COCOS (COordinate COnventionS) is a standard for describing conventions
used in tokamak equilibrium codes.

Reference: O. Sauter et al, Comp. Phys. Comm., 184 (2013) 293-302
https://www.sciencedirect.com/science/article/pii/S0010465512002962
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

logger = logging.getLogger('eqdsk.cocos')

# sigma_Bp, sigma_RpZ, sigma_rhotp, sign_q_pos, sign_pprime_pos
_SIGNS = {
    1: (+1, +1, +1, +1, -1),  # ITER, Boozer (11), TRANSP, ORBIT
    2: (+1, -1, +1, +1, -1),  # CHEASE, ONETWO, Hinton-Hazeltine, LION
    3: (-1, +1, -1, -1, +1),  # Freidberg, CAXE, KINX, EFIT; EU-ITM (13)
    4: (-1, -1, -1, -1, +1),
    5: (+1, +1, -1, -1, -1),
    6: (+1, -1, -1, -1, -1),
    7: (-1, +1, +1, +1, +1),
    8: (-1, -1, +1, +1, +1),
}

MU0 = 4 * np.pi * 1e-7


@dataclass(frozen=True)
class COCOS:
    """
    Sign conventions of one COCOS.

    Attributes
    ----------
    cocos : int
        COCOS ID number (1-8, 11-18).
    exp_Bp : int
        Exponent of 2π in the poloidal flux (0 or 1).
    sigma_Bp : int
        Sign of psi gradient.
    sigma_RpZ : int
        Handedness of (R, phi, Z).
    sigma_rhotp : int
        Handedness of (rho, theta, phi).
    sign_q_pos : int
        Sign of q with positive Ip and B0.
    sign_pprime_pos : int
        Sign of dp/dpsi with positive Ip and B0.
    """
    cocos: int
    exp_Bp: int
    sigma_Bp: int
    sigma_RpZ: int
    sigma_rhotp: int
    sign_q_pos: int
    sign_pprime_pos: int

    def __post_init__(self) -> None:
        signs = (self.sigma_Bp, self.sigma_RpZ, self.sigma_rhotp,
                 self.sign_q_pos, self.sign_pprime_pos)
        if not all(s in (-1, 1) for s in signs):
            raise ValueError("All signs must be either +1 or -1")


def cocos(cocos_in: int) -> COCOS:
    """
    Create the COCOS object for the given COCOS ID number.

    Raises
    ------
    ValueError
        If ``cocos_in`` is not in 1-8 or 11-18.

    Examples
    --------
    >>> cc = cocos(3)   # EFIT convention
    >>> cc.sigma_Bp
    -1
    """
    base = cocos_in - 10 if cocos_in > 10 else cocos_in
    if base not in _SIGNS:
        raise ValueError(f"COCOS = {cocos_in} does not exist")
    exp_Bp = 1 if cocos_in >= 11 else 0
    return COCOS(cocos_in, exp_Bp, *_SIGNS[base])


def assign(
    q: float,
    ip: float,
    b0: float,
    psiaxis: float,
    psibndr: float,
    phiclockwise: bool = False,
    weberperrad: bool = True
) -> int:
    """
    Determine the COCOS convention from the signs of equilibrium quantities.

    Parameters
    ----------
    q : float
        Safety factor (at any point, sign included).
    ip : float
        Plasma current (sign included).
    b0 : float
        Toroidal field (sign included).
    psiaxis, psibndr : float
        Poloidal flux at the magnetic axis and at the boundary.
    phiclockwise : bool, optional
        If True, the toroidal angle increases clockwise seen from above.
        Default is False.
    weberperrad : bool, optional
        If True, the poloidal flux is divided by 2π (COCOS 1-8).
        Default is True.

    Raises
    ------
    ValueError
        If one of the signs needed is zero.
    """
    sign_q = np.sign(q)
    sign_ip = np.sign(ip)
    sign_b0 = np.sign(b0)
    sign_dpsi = np.sign(psibndr - psiaxis)
    if 0 in (sign_q, sign_ip, sign_b0, sign_dpsi):
        raise ValueError("Could not determine COCOS: q, Ip, B0 and " +
                         "psi_bdy - psi_axis must all be non-zero")

    candidates = set(_SIGNS)
    sigma_bp = sign_dpsi * sign_ip
    sigma_rhothetaphi = sign_q * sign_ip * sign_b0
    sigma_rphiz = -1 if phiclockwise else +1

    for idx, signs in _SIGNS.items():
        if (signs[0], signs[1], signs[2]) != (sigma_bp, sigma_rphiz,
                                              sigma_rhothetaphi):
            candidates.discard(idx)

    if len(candidates) != 1:
        raise ValueError("Could not determine COCOS")
    cocos_id = candidates.pop()
    if not weberperrad:  # COCOS ID 11-18 are NOT divided by 2*pi.
        cocos_id += 10
    return cocos_id


def transform_cocos(
    cc_in: COCOS,
    cc_out: COCOS,
    sigma_Ip: Optional[Tuple[int, int]] = None,
    sigma_B0: Optional[Tuple[int, int]] = None,
    ld: Tuple[float, float] = (1, 1),
    lB: Tuple[float, float] = (1, 1),
    exp_mu0: Tuple[int, int] = (0, 0)
) -> Dict[str, float]:
    """
    Multiplicative factors transforming quantities between two COCOS.

    Parameters
    ----------
    cc_in, cc_out : COCOS
        Input and output conventions.
    sigma_Ip, sigma_B0 : tuple of int, optional
        (input, output) signs of the current and toroidal field. Inferred
        from the coordinate handedness when None.
    ld, lB : tuple of float, optional
        (input, output) length and field scales. Default is (1, 1).
    exp_mu0 : tuple of int, optional
        (input, output) exponents of μ₀. Default is (0, 0).

    Returns
    -------
    dict
        Factors keyed by 'R', 'Z', 'PRES', 'PSI', 'TOR', 'PPRIME',
        'FFPRIME', 'B', 'F', 'I', 'J' and 'Q'.
    """
    ld_eff = ld[1] / ld[0]
    lB_eff = lB[1] / lB[0]
    exp_mu0_eff = exp_mu0[1] - exp_mu0[0]

    sigma_RpZ_eff = cc_in.sigma_RpZ * cc_out.sigma_RpZ
    sigma_Ip_eff = sigma_RpZ_eff if sigma_Ip is None else sigma_Ip[0] * sigma_Ip[1]
    sigma_B0_eff = sigma_RpZ_eff if sigma_B0 is None else sigma_B0[0] * sigma_B0[1]
    sigma_Bp_eff = cc_in.sigma_Bp * cc_out.sigma_Bp
    exp_Bp_eff = cc_out.exp_Bp - cc_in.exp_Bp
    sigma_rhotp_eff = cc_in.sigma_rhotp * cc_out.sigma_rhotp

    twopi_bp = (2 * np.pi) ** exp_Bp_eff
    mu0_eff = MU0 ** exp_mu0_eff

    return {
        'R': ld_eff,
        'Z': ld_eff,
        'PRES': lB_eff ** 2 / mu0_eff,
        'PSI': lB_eff * ld_eff ** 2 * sigma_Ip_eff * sigma_Bp_eff * twopi_bp,
        'TOR': lB_eff * ld_eff ** 2 * sigma_B0_eff,
        'PPRIME': lB_eff / (ld_eff ** 2 * mu0_eff)
                  * sigma_Ip_eff * sigma_Bp_eff / twopi_bp,
        'FFPRIME': lB_eff * sigma_Ip_eff * sigma_Bp_eff / twopi_bp,
        'B': lB_eff * sigma_B0_eff,
        'F': sigma_B0_eff * ld_eff * lB_eff,
        'I': sigma_Ip_eff * ld_eff * lB_eff / mu0_eff,
        'J': sigma_Ip_eff * lB_eff / (mu0_eff * ld_eff),
        'Q': sigma_Ip_eff * sigma_B0_eff * sigma_rhotp_eff,
    }


def convert(
    content,
    cocos_out: int,
    cocos_in: Optional[int] = None,
    phiclockwise: bool = False,
    weberperrad: bool = True
):
    """
    Transform EQDSK content to another COCOS.

    Parameters
    ----------
    content : Content
        Record read from an EQDSK file. It is not modified.
    cocos_out : int
        Target COCOS convention.
    cocos_in : int, optional
        COCOS of ``content``. Identified with :func:`assign` when None.
    phiclockwise, weberperrad : bool, optional
        Used to identify ``cocos_in`` when it is not given.

    Returns
    -------
    Content
        New record in ``cocos_out``.

    Examples
    --------
    >>> eq11 = convert(eq, cocos_out=11, cocos_in=3)
    """
    if cocos_in is None:
        cocos_in = content.cocos(phiclockwise=phiclockwise,
                                 weberperrad=weberperrad)

    if cocos_in == cocos_out:
        return content

    logger.info(f'Transforming COCOS {cocos_in} to COCOS {cocos_out}')
    fct = transform_cocos(cocos(cocos_in), cocos(cocos_out))
    dup = content.duplicates

    return content.replace(
        rdim=content.rdim * fct['R'],
        zdim=content.zdim * fct['Z'],
        rcentr=content.rcentr * fct['R'],
        rleft=content.rleft * fct['R'],
        zmid=content.zmid * fct['Z'],
        rmaxis=content.rmaxis * fct['R'],
        zmaxis=content.zmaxis * fct['Z'],
        simag=content.simag * fct['PSI'],
        sibry=content.sibry * fct['PSI'],
        bcentr=content.bcentr * fct['B'],
        current=content.current * fct['I'],
        fpol=content.fpol * fct['F'],
        pres=content.pres * fct['PRES'],
        ffprim=content.ffprim * fct['FFPRIME'],
        pprime=content.pprime * fct['PPRIME'],
        psirz=content.psirz * fct['PSI'],
        qpsi=content.qpsi * fct['Q'],
        rbbbs=content.rbbbs * fct['R'],
        zbbbs=content.zbbbs * fct['Z'],
        rlim=content.rlim * fct['R'],
        zlim=content.zlim * fct['Z'],
        duplicates={'simag': dup['simag'] * fct['PSI'],
                    'sibry': dup['sibry'] * fct['PSI'],
                    'rmaxis': dup['rmaxis'] * fct['R'],
                    'zmaxis': dup['zmaxis'] * fct['Z']},
    )
